"""
Recording interval timer.

Splits an observation session into fixed-length windows. Records take
their interval_index / interval_label from the timer at capture time.

All times are epoch milliseconds and are passed in by the caller, so the
timer itself never reads the clock.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

NO_INTERVAL_LABEL = "—"
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _utc(ms: float) -> datetime:
    return _EPOCH + timedelta(milliseconds=ms)


def format_hm(ms: float) -> str:
    return _utc(ms).strftime("%H:%M")


def format_hms(ms: float) -> str:
    return _utc(ms).strftime("%H:%M:%S")


def format_interval_label(start_ms: int, duration_seconds: int) -> str:
    """Label a window as "HH:MM–HH:MM" (UTC)."""
    return f"{format_hm(start_ms)}–{format_hm(start_ms + duration_seconds * 1000)}"


class IntervalTimer:
    """
    Fixed-length interval timer driven by tick(now_ms).

    Usage:
        timer = IntervalTimer(interval_minutes=5)
        timer.start(now_ms)
        ...
        timer.tick(now_ms)    # every 250 ms from the timer task
        timer.label           # "14:00–14:05"
    """

    def __init__(self, interval_minutes: int = 5):
        self.interval_minutes = interval_minutes
        self.is_running = False
        self.interval_index = 0
        self.interval_start: Optional[int] = None
        self.time_left = self.interval_seconds

    @property
    def interval_minutes(self) -> int:
        return self._interval_minutes

    @interval_minutes.setter
    def interval_minutes(self, minutes: int) -> None:
        minutes = int(minutes)
        if minutes < 1:
            raise ValueError(f"interval_minutes must be >= 1, got {minutes}")
        self._interval_minutes = minutes
        if not getattr(self, "is_running", False):
            self.time_left = self.interval_seconds

    @property
    def interval_seconds(self) -> int:
        return max(1, self._interval_minutes * 60)

    def start(self, now_ms: int) -> None:
        """Start a fresh session at interval 0."""
        self.interval_start = now_ms
        self.interval_index = 0
        self.time_left = self.interval_seconds
        self.is_running = True

    def pause_resume(self, now_ms: int) -> bool:
        """
        Pause a running timer, or resume a paused one.

        Resuming opens a fresh interval window starting now; the index is
        kept.

        Returns:
            True if the timer is running afterwards
        """
        if self.is_running:
            self.is_running = False
        else:
            self.interval_start = now_ms
            self.time_left = self.interval_seconds
            self.is_running = True
        return self.is_running

    def reset(self) -> None:
        self.is_running = False
        self.interval_start = None
        self.interval_index = 0
        self.time_left = self.interval_seconds

    def tick(self, now_ms: int) -> bool:
        """
        Advance the timer.

        Returns:
            True if a new interval started on this tick
        """
        if not self.is_running or self.interval_start is None:
            return False

        elapsed = (now_ms - self.interval_start) // 1000
        if elapsed >= self.interval_seconds:
            self.interval_index += 1
            self.interval_start += self.interval_seconds * 1000
            self.time_left = self.interval_seconds
            return True

        self.time_left = self.interval_seconds - elapsed
        return False

    @property
    def label(self) -> str:
        if not self.interval_start:
            return NO_INTERVAL_LABEL
        return format_interval_label(self.interval_start, self.interval_seconds)

    @property
    def timer_text(self) -> str:
        """Remaining time as "M:SS"."""
        minutes, seconds = divmod(int(self.time_left), 60)
        return f"{minutes}:{seconds:02d}"
