"""
Observation Service - periodic task orchestrator.

This module provides the ObservationService class which drives a session
on three independent clocks: the interval timer, the sync queue and
review playback.

Threading Model:
- Timer Thread (our thread, 250 ms): context.tick_timer()
- Sync Thread (our thread, 1 s): sync_queue.tick()
- Playback Thread (our thread, 120 ms): context.tick_playback()
- MQTT network thread (paho-mqtt internal, publisher.loop_start())

Each loop is a PeriodicTask: a daemon thread waiting on its own
threading.Event, so stopping one never affects the others. Shared state
is only touched through SessionContext, under its lock.
"""

import logging
import threading
from typing import Callable, Dict, Optional

from habitat_session.context import SessionContext
from habitat_session.sync import SyncQueue

logger = logging.getLogger(__name__)

TIMER_PERIOD_S = 0.25
SYNC_PERIOD_S = 1.0
PLAYBACK_PERIOD_S = 0.12


class PeriodicTask:
    """
    Named daemon thread calling a function at a fixed period.

    The first call happens one period after start(). Exceptions raised by
    the callback are logged and the loop keeps running.

    Usage:
        task = PeriodicTask("SyncThread", 1.0, queue.tick)
        task.start()
        ...
        task.stop()
    """

    def __init__(self, name: str, period: float, callback: Callable[[], object]):
        if period <= 0:
            raise ValueError(f"period must be > 0, got {period}")
        self.name = name
        self.period = period
        self.callback = callback

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return

        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            args=(self._stop_event,),
            name=self.name,
            daemon=True
        )
        self._thread.start()
        logger.debug(f"{self.name} started (period={self.period}s)")

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the loop and wait for it. In-flight callbacks finish first."""
        self._stop_event.set()
        thread = self._thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        self._thread = None
        logger.debug(f"{self.name} stopped")

    def _run(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.period):
            try:
                self.callback()
            except Exception as e:
                logger.error(f"Error in {self.name}: {e}", exc_info=True)


class ObservationService:
    """
    Runs a session: interval timer, auto-send and playback loops.

    Toggles map one-to-one onto tasks:
    - start_recording()/pause_resume() drive the timer task
    - set_auto_send() drives the sync task
    - play()/pause_playback() drive the playback task

    Usage:
        context = SessionContext(config, storage)
        context.init()
        publisher = ObservationPublisher(...)
        service = ObservationService(context, SyncQueue(context, publisher))

        service.start()
        service.start_recording()
        ...
        service.stop()
    """

    def __init__(self, context: SessionContext, sync_queue: SyncQueue):
        self.context = context
        self.sync_queue = sync_queue

        self.timer_task = PeriodicTask("TimerThread", TIMER_PERIOD_S, self._timer_tick)
        self.sync_task = PeriodicTask("SyncThread", SYNC_PERIOD_S, self.sync_queue.tick)
        self.playback_task = PeriodicTask("PlaybackThread", PLAYBACK_PERIOD_S, self._playback_tick)

        self._running = False
        self._stopped_event = threading.Event()

    def start(self) -> None:
        """
        Start the service (non-blocking).

        Resumes whatever loops the session state calls for: the sync task
        when auto-send is on, the timer and playback tasks when already
        running.
        """
        if self._running:
            logger.warning("Service already running")
            return

        logger.info("Starting observation service")
        self._running = True
        self._stopped_event.clear()

        if self.sync_queue.enabled:
            self.sync_task.start()
        if self.context.timer.is_running:
            self.timer_task.start()
        if self.context.playback.playing:
            self.playback_task.start()

        logger.info("✅ Observation service started")

    def wait(self) -> None:
        """Block until stop() is called."""
        if not self._running:
            logger.warning("Service not running")
            return

        try:
            while not self._stopped_event.wait(timeout=1.0):
                pass
        except KeyboardInterrupt:
            logger.info("Received KeyboardInterrupt, stopping...")
            self.stop()

    def stop(self) -> None:
        if not self._running:
            logger.warning("Service not running")
            return

        logger.info("Stopping observation service")
        for task in (self.timer_task, self.sync_task, self.playback_task):
            task.stop()
        self._running = False
        self._stopped_event.set()
        logger.info("✅ Observation service stopped")

    # ─────────────────────────────────────────────────────────────────────
    # Timer
    # ─────────────────────────────────────────────────────────────────────

    def start_recording(self):
        result = self.context.start_timer()
        if self._running:
            self.timer_task.start()
        return result

    def pause_resume(self):
        result = self.context.pause_resume_timer()
        if self.context.timer.is_running and self._running:
            self.timer_task.start()
        elif not self.context.timer.is_running:
            self.timer_task.stop()
        return result

    def reset(self):
        self.timer_task.stop()
        self.playback_task.stop()
        return self.context.reset()

    def _timer_tick(self) -> None:
        self.context.tick_timer()

    # ─────────────────────────────────────────────────────────────────────
    # Auto-send
    # ─────────────────────────────────────────────────────────────────────

    def set_auto_send(self, enabled: bool) -> None:
        if enabled:
            self.sync_queue.enable()
            if self._running:
                self.sync_task.start()
        else:
            self.sync_queue.disable()
            self.sync_task.stop()

    # ─────────────────────────────────────────────────────────────────────
    # Playback
    # ─────────────────────────────────────────────────────────────────────

    def play(self) -> None:
        self.context.play()
        if self.context.playback.playing and self._running:
            self.playback_task.start()

    def pause_playback(self) -> None:
        self.context.pause_playback()
        self.playback_task.stop()

    def _playback_tick(self) -> None:
        self.context.tick_playback()
        if not self.context.playback.playing:
            # Reached the end; the loop exits on its own
            self.playback_task.stop()

    def get_stats(self) -> Dict[str, object]:
        return {
            'running': self._running,
            'timer_task': self.timer_task.is_running,
            'sync_task': self.sync_task.is_running,
            'playback_task': self.playback_task.is_running,
            'timer_text': self.context.timer.timer_text,
            'interval_label': self.context.timer.label,
            'sync': self.sync_queue.get_stats(),
            'badge_text': self.sync_queue.badge_text,
        }
