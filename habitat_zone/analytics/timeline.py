"""
Timeline & Filter Pipeline
==========================

Derives the review view from the record store through an ordered
sequence of pure transformations:

    records → sort_timeline → apply_filters → playback cutoff → view

Design:
- Pure functions for sort/filter/cutoff
- Immutable filter settings (RecordFilter)
- Mutable playback state (PlaybackController), advanced by ticks
- Records are duck-typed: created_at, role, activity, is_group,
  badge_number
"""

import math
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

POSITION_MAX = 1000
PLAYBACK_TICK_MS = 120
PLAYBACK_SPEEDS = (1, 2, 4, 8)


@dataclass(frozen=True)
class RecordFilter:
    """
    Immutable review filter.

    Each criterion is optional (None / False / "" disables it); active
    criteria combine by logical AND.

    Attributes:
        role: Keep only records with this role
        activity: Keep only records with this activity
        group_only: Keep only group records
        badge_query: Case-insensitive substring of the badge number
    """

    role: Optional[Any] = None
    activity: Optional[Any] = None
    group_only: bool = False
    badge_query: str = ""

    @property
    def is_active(self) -> bool:
        return (
            self.role is not None
            or self.activity is not None
            or self.group_only
            or bool(self.badge_query.strip())
        )

    def matches(self, record: Any) -> bool:
        """Check a single record against every active criterion."""
        if self.role is not None and record.role != self.role:
            return False
        if self.activity is not None and record.activity != self.activity:
            return False
        if self.group_only and not record.is_group:
            return False

        query = self.badge_query.strip().lower()
        if query and query not in (record.badge_number or "").lower():
            return False
        return True


@dataclass(frozen=True)
class PlaybackWindow:
    """First and last timestamps of a non-empty timeline (epoch ms)."""

    min_t: int
    max_t: int

    def cutoff(self, position: int) -> float:
        """Map a slider position in [0, 1000] to a timestamp."""
        return self.min_t + (self.max_t - self.min_t) * position / POSITION_MAX


def sort_timeline(records: Iterable[Any]) -> List[Any]:
    """Canonical timeline: ascending created_at, ties keep insertion order."""
    return sorted(records, key=lambda r: r.created_at)


def playback_window(timeline: Sequence[Any]) -> Optional[PlaybackWindow]:
    """Window of a sorted timeline, or None when it is empty."""
    if not timeline:
        return None
    return PlaybackWindow(min_t=timeline[0].created_at, max_t=timeline[-1].created_at)


def apply_filters(timeline: Iterable[Any], record_filter: RecordFilter) -> List[Any]:
    return [r for r in timeline if record_filter.matches(r)]


def apply_cutoff(records: Iterable[Any], cutoff: Optional[float]) -> List[Any]:
    """Keep records created at or before the cutoff (no-op if undefined)."""
    if cutoff is None:
        return list(records)
    return [r for r in records if r.created_at <= cutoff]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class PlaybackController:
    """
    Stateful playback slider.

    Design:
    - position in [0, 1000]; 1000 shows the whole timeline
    - advance() is called on a fixed tick while playing; each tick moves
      the cutoff forward by PLAYBACK_TICK_MS * speed milliseconds
    - Reaching the end clamps to 1000 and stops playing

    Usage:
        playback = PlaybackController()
        playback.set_enabled(True)
        playback.seek(0)
        playback.play()
        while playback.playing:
            playback.advance(window)
    """

    def __init__(self, speed: int = 2):
        self.enabled = False
        self.playing = False
        self.position = POSITION_MAX
        self.speed = self._validate_speed(speed)

    @staticmethod
    def _validate_speed(speed: int) -> int:
        if speed not in PLAYBACK_SPEEDS:
            raise ValueError(f"playback speed must be one of {PLAYBACK_SPEEDS}, got {speed}")
        return speed

    def set_enabled(self, enabled: bool) -> None:
        """Toggling playback always rewinds to the end and stops playing."""
        self.enabled = enabled
        self.position = POSITION_MAX
        self.playing = False

    def set_speed(self, speed: int) -> None:
        self.speed = self._validate_speed(speed)

    def seek(self, position: int) -> None:
        self.position = max(0, min(POSITION_MAX, int(position)))

    def play(self) -> None:
        if self.enabled:
            self.playing = True

    def pause(self) -> None:
        self.playing = False

    def reset(self) -> None:
        self.set_enabled(False)

    def cutoff(self, window: Optional[PlaybackWindow]) -> Optional[float]:
        """Cutoff timestamp, or None if disabled or no window exists."""
        if not self.enabled or window is None:
            return None
        return window.cutoff(self.position)

    def advance(self, window: Optional[PlaybackWindow]) -> int:
        """
        Advance one tick.

        Args:
            window: Current timeline window

        Returns:
            New position
        """
        if not (self.enabled and self.playing) or window is None:
            return self.position

        total = max(1, window.max_t - window.min_t)
        step_ms = PLAYBACK_TICK_MS * self.speed

        current_t = window.min_t + total * self.position / POSITION_MAX
        next_position = _round_half_up((current_t + step_ms - window.min_t) / total * POSITION_MAX)

        if next_position >= POSITION_MAX:
            self.position = POSITION_MAX
            self.playing = False
        else:
            self.position = max(0, next_position)
        return self.position


def build_review_view(
    records: Iterable[Any],
    record_filter: RecordFilter,
    playback: PlaybackController,
) -> List[Any]:
    """
    Full review pipeline: sort, filter, then playback cutoff.

    The playback window is computed over the unfiltered timeline.
    """
    timeline = sort_timeline(records)
    filtered = apply_filters(timeline, record_filter)
    return apply_cutoff(filtered, playback.cutoff(playback_window(timeline)))


def count_by(records: Iterable[Any], attr: str, keys: Iterable[Any]) -> Dict[Any, int]:
    """
    Count records per attribute value, seeded with zero for every key.

    Example:
        >>> count_by(view, "activity", Activity)
    """
    counts: Dict[Any, int] = OrderedDict((key, 0) for key in keys)
    for record in records:
        value = getattr(record, attr)
        counts[value] = counts.get(value, 0) + 1
    return counts
