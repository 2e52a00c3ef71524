"""
Common Schema Types
==================

Bounded Context: Shared Data Structures

Types:
- Timestamp: ISO 8601 UTC timestamp wrapper

Epoch milliseconds outside the range datetime can represent (years 1
through 9999, UTC) are rejected rather than rendered.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

MIN_EPOCH_MS = -62_135_596_800_000   # 0001-01-01T00:00:00.000Z
MAX_EPOCH_MS = 253_402_300_799_999   # 9999-12-31T23:59:59.999Z


def epoch_ms_in_range(ms: int) -> bool:
    return MIN_EPOCH_MS <= ms <= MAX_EPOCH_MS


@dataclass(frozen=True)
class Timestamp:
    """
    Immutable ISO 8601 UTC timestamp wrapper.

    Values use millisecond precision and a "Z" suffix.

    Example:
        >>> Timestamp.from_epoch_ms(0).value
        '1970-01-01T00:00:00.000Z'
    """
    value: str

    @classmethod
    def now(cls) -> 'Timestamp':
        """Create timestamp from current time."""
        return cls.from_datetime(datetime.now(timezone.utc))

    @classmethod
    def from_datetime(cls, dt: datetime) -> 'Timestamp':
        """Create timestamp from datetime object (naive = UTC)."""
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        iso = dt.astimezone(timezone.utc).isoformat(timespec="milliseconds")
        return cls(value=iso.replace("+00:00", "Z"))

    @classmethod
    def from_epoch_ms(cls, ms: int) -> 'Timestamp':
        """
        Create timestamp from epoch milliseconds (exact, no float rounding).

        Raises:
            ValueError: If ms falls outside MIN_EPOCH_MS..MAX_EPOCH_MS
        """
        if not epoch_ms_in_range(ms):
            raise ValueError(f"Epoch milliseconds out of range: {ms}")
        return cls.from_datetime(_EPOCH + timedelta(milliseconds=ms))

    def to_datetime(self) -> datetime:
        """Parse to datetime object.

        Raises:
            ValueError: If timestamp format invalid
        """
        value = self.value
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(value)
        except ValueError as e:
            raise ValueError(f"Invalid ISO timestamp: {self.value}") from e

    def to_epoch_ms(self) -> int:
        return int(round(self.to_datetime().timestamp() * 1000))

    def to_dict(self) -> str:
        """Serialize to JSON (as string)."""
        return self.value
