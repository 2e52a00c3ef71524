"""
Geometric Shapes Module
========================

Pure geometric representations for the normalized floorplan - NO state,
NO side effects.

Coordinates are normalized to the plan's bounding box: (0, 0) is the
top-left corner and (1, 1) the bottom-right corner.

Design:
- Immutable shapes (frozen dataclass pattern)
- Closed bounds for rectangle containment
- Fail-fast validation in __post_init__
"""

import math
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Tuple

# Smallest accepted rectangle side (normalized units)
MIN_ZONE_SIZE = 0.01


def clamp01(value: float) -> float:
    """
    Clamp a value into [0, 1].

    Non-finite input (NaN, +/-inf) collapses to 0.
    """
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(value):
        return 0.0
    return max(0.0, min(1.0, value))


def rect_normalize(
    a: Tuple[float, float],
    b: Tuple[float, float],
) -> Tuple[float, float, float, float]:
    """
    Normalize two corner points into (x1, y1, x2, y2) with x1 <= x2, y1 <= y2.

    Args:
        a: First corner (x, y)
        b: Opposite corner (x, y)

    Returns:
        Tuple (x1, y1, x2, y2)
    """
    x1 = min(a[0], b[0])
    y1 = min(a[1], b[1])
    x2 = max(a[0], b[0])
    y2 = max(a[1], b[1])
    return x1, y1, x2, y2


@dataclass(frozen=True)
class ZoneRect:
    """
    Immutable axis-aligned zone rectangle in normalized plan coordinates.

    Zones are never edited in place: delete and recreate instead.

    Attributes:
        id: Opaque zone identifier
        name: Display name (returned by zone resolution)
        x1, y1: Top-left corner
        x2, y2: Bottom-right corner
        created_at: Creation time (epoch milliseconds)

    Invariants:
        - 0 <= x1 <= x2 <= 1
        - 0 <= y1 <= y2 <= 1
    """

    id: str
    name: str
    x1: float
    y1: float
    x2: float
    y2: float
    created_at: int = 0

    def __post_init__(self):
        """Validate bounds."""
        for attr in ("x1", "y1", "x2", "y2"):
            value = getattr(self, attr)
            if not isinstance(value, (int, float)) or not math.isfinite(value):
                raise ValueError(f"{attr} must be a finite number, got {value!r}")
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{attr} must be in [0, 1], got {value}")

        if self.x1 > self.x2:
            raise ValueError(f"x1 must be <= x2, got x1={self.x1}, x2={self.x2}")
        if self.y1 > self.y2:
            raise ValueError(f"y1 must be <= y2, got y1={self.y1}, y2={self.y2}")

    @classmethod
    def from_drag(
        cls,
        zone_id: str,
        name: str,
        start: Tuple[float, float],
        end: Tuple[float, float],
        created_at: int,
        min_size: float = MIN_ZONE_SIZE,
    ) -> Optional["ZoneRect"]:
        """
        Build a zone from a drag gesture between two plan points.

        Points are clamped into the plan before normalization.

        Returns:
            ZoneRect, or None when the rectangle is smaller than min_size
            on either axis
        """
        x1, y1, x2, y2 = rect_normalize(
            (clamp01(start[0]), clamp01(start[1])),
            (clamp01(end[0]), clamp01(end[1])),
        )
        if x2 - x1 < min_size or y2 - y1 < min_size:
            return None

        return cls(
            id=zone_id,
            name=(name or "").strip() or "Zone",
            x1=x1,
            y1=y1,
            x2=x2,
            y2=y2,
            created_at=created_at,
        )

    def contains_point(self, point: Tuple[float, float]) -> bool:
        """
        Check if point lies inside the rectangle (closed bounds).

        Args:
            point: (x, y) normalized coordinates

        Returns:
            True if x1 <= x <= x2 and y1 <= y <= y2
        """
        x, y = point
        return self.x1 <= x <= self.x2 and self.y1 <= y <= self.y2

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ZoneRect":
        """
        Deserialize from dict.

        Raises:
            ValueError: If required keys missing or invalid values
        """
        try:
            return cls(
                id=str(data["id"]),
                name=str(data["name"]),
                x1=float(data["x1"]),
                y1=float(data["y1"]),
                x2=float(data["x2"]),
                y2=float(data["y2"]),
                created_at=int(data.get("created_at", 0)),
            )
        except KeyError as e:
            raise ValueError(f"Missing required ZoneRect field: {e}")
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid ZoneRect data: {e}")
