"""
Synchronization Queue
=====================

Delivers live records to the remote log, one record per tick.

State machine per record:
    pending → ok
    pending → fail → ok
    fail → fail            (sustained outage)

Scheduling:
- tick() picks at most one record: the earliest-created live record whose
  status is pending or fail
- Success (sink returned True) → ok; any error or False → fail
- Retries are unbounded in count and bounded in rate (one per tick)
- Disabling the queue stops new attempts and never touches statuses

Single-flight: a non-blocking lock guarantees that two ticks never
deliver concurrently, so no record is attempted twice at the same time.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol

from habitat_mqtt import LogEvent, ObservationPayload, StructuredLogger, Timestamp, create_logger
from habitat_session.records import CloudStatus, ObservationRecord

if TYPE_CHECKING:
    from habitat_session.context import SessionContext


class SyncLoopStatus(str, Enum):
    """Aggregate status of the delivery loop."""
    IDLE = "idle"
    SENDING = "sending"
    OK = "ok"
    FAIL = "fail"


class ObservationSink(Protocol):
    """Opaque fire-and-forget sink."""

    def publish_observation(self, payload: ObservationPayload) -> bool:
        ...


@dataclass(frozen=True)
class SyncAttempt:
    """Outcome of one delivery attempt."""

    record_id: str
    success: bool
    error: Optional[str] = None


def build_payload(record: ObservationRecord, interval_minutes: int) -> ObservationPayload:
    """Sink document for a record (same fields as a CSV export row)."""
    return ObservationPayload(
        created_at=Timestamp.from_epoch_ms(record.created_at),
        observer=record.observer_name,
        site=record.building_site,
        interval_minutes=interval_minutes,
        interval_index=record.interval_index,
        interval_label=record.interval_label,
        badge=record.badge_number,
        role=record.role.value,
        activity=record.activity.value,
        group=record.is_group,
        x_norm=record.x,
        y_norm=record.y,
        zone=record.zone,
        note=record.note or "",
    )


class SyncQueue:
    """
    Per-tick delivery of live records to a sink.

    The enabled flag lives on the session settings so capture can decide
    the initial status of new records (pending when enabled, fail when
    disabled).

    Usage:
        queue = SyncQueue(context, publisher)
        queue.tick()          # from the 1 s sync task
        queue.badge_text      # "Auto-send: OK"
    """

    def __init__(
        self,
        context: "SessionContext",
        sink: ObservationSink,
        logger: Optional[StructuredLogger] = None,
    ):
        self.context = context
        self.sink = sink
        self.logger = logger or create_logger("sync")

        self.status = SyncLoopStatus.IDLE
        self.last_send_at: Optional[int] = None

        self._in_flight = threading.Lock()
        self._stats_lock = threading.Lock()
        self._attempts = 0
        self._delivered = 0
        self._failures = 0

    @property
    def enabled(self) -> bool:
        return self.context.settings.auto_send_enabled

    def enable(self) -> None:
        self.context.settings.auto_send_enabled = True
        self.logger.info(event=LogEvent.SYNC_ENABLED, message="Auto-send enabled")

    def disable(self) -> None:
        """Stop scheduling attempts. Existing statuses are left as they are."""
        self.context.settings.auto_send_enabled = False
        self.logger.info(event=LogEvent.SYNC_DISABLED, message="Auto-send disabled")

    def tick(self) -> Optional[SyncAttempt]:
        """
        Attempt delivery of at most one record.

        Returns:
            The attempt, or None if disabled, busy or nothing is eligible
        """
        if not self.enabled:
            return None

        if not self._in_flight.acquire(blocking=False):
            return None

        try:
            candidate = self.context.next_sync_candidate()
            if candidate is None:
                self.status = SyncLoopStatus.IDLE
                return None

            return self._deliver(candidate)
        finally:
            self._in_flight.release()

    def _deliver(self, record: ObservationRecord) -> SyncAttempt:
        self.status = SyncLoopStatus.SENDING
        with self._stats_lock:
            self._attempts += 1

        self.logger.debug(
            event=LogEvent.SYNC_ATTEMPT,
            message="Attempting delivery",
            metadata={'record_id': record.id, 'previous_status': record.cloud_status.value}
        )

        error = None
        try:
            payload = build_payload(record, self.context.settings.interval_minutes)
            success = bool(self.sink.publish_observation(payload))
            if not success:
                error = "sink rejected the message"
        except Exception as e:
            success = False
            error = f"{type(e).__name__}: {e}"

        # Late results are still applied: status writes are idempotent
        self.context.set_cloud_status(record.id, CloudStatus.OK if success else CloudStatus.FAIL)

        if success:
            self.status = SyncLoopStatus.OK
            self.last_send_at = self.context.now()
            with self._stats_lock:
                self._delivered += 1
            self.logger.info(
                event=LogEvent.SYNC_DELIVERED,
                message="Delivered record",
                metadata={'record_id': record.id}
            )
        else:
            self.status = SyncLoopStatus.FAIL
            with self._stats_lock:
                self._failures += 1
            self.logger.warning(
                event=LogEvent.SYNC_FAILED,
                message="Delivery failed, will retry",
                metadata={'record_id': record.id, 'error': error}
            )

        return SyncAttempt(record_id=record.id, success=success, error=error)

    @property
    def badge_text(self) -> str:
        if not self.enabled:
            return "Auto-send: OFF"
        if self.status == SyncLoopStatus.SENDING:
            return "Auto-send: sending…"
        if self.status == SyncLoopStatus.OK:
            return "Auto-send: OK"
        if self.status == SyncLoopStatus.FAIL:
            return "Auto-send: FAIL (retrying)"
        return "Auto-send: idle"

    def get_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            return {
                'enabled': self.enabled,
                'status': self.status.value,
                'attempts': self._attempts,
                'delivered': self._delivered,
                'failures': self._failures,
                'last_send_at': self.last_send_at,
                'pending': self.context.pending_sync_count(),
            }
