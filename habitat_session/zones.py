"""
Zone Registry - ordered zone list management.

Zones are kept newest-first: the most recently drawn rectangle wins when
rectangles overlap. Zones are immutable; "editing" is delete + recreate.

Thread Safety:
- threading.Lock protects list mutations
- snapshot() returns a copy so resolution never holds the lock
"""

import threading
from typing import List, Optional, Tuple

from habitat_zone import ZoneRect, ZoneResolver


class ZoneRegistry:
    """
    Thread-safe ordered registry of zone rectangles.

    Usage:
        registry = ZoneRegistry()
        zone = registry.add_from_drag("z1", "Galley", (0.1, 0.1), (0.4, 0.5), now_ms)
        registry.resolve(0.2, 0.3)     # "Galley"
        registry.delete(zone.id)
    """

    def __init__(self, zones: Optional[List[ZoneRect]] = None):
        self._zones: List[ZoneRect] = list(zones or [])
        self._lock = threading.Lock()

    def add(self, zone: ZoneRect) -> None:
        """Prepend a zone (newest first)."""
        with self._lock:
            if any(z.id == zone.id for z in self._zones):
                raise ValueError(f"Zone '{zone.id}' already exists")
            self._zones.insert(0, zone)

    def add_from_drag(
        self,
        zone_id: str,
        name: str,
        start: Tuple[float, float],
        end: Tuple[float, float],
        created_at: int,
    ) -> Optional[ZoneRect]:
        """
        Create a zone from a drag gesture.

        Returns:
            The new zone, or None if the drag was too small
        """
        zone = ZoneRect.from_drag(zone_id, name, start, end, created_at)
        if zone is not None:
            self.add(zone)
        return zone

    def delete(self, zone_id: str) -> bool:
        """
        Remove a zone.

        Returns:
            True if a zone was removed
        """
        with self._lock:
            before = len(self._zones)
            self._zones = [z for z in self._zones if z.id != zone_id]
            return len(self._zones) != before

    def replace_all(self, zones: List[ZoneRect]) -> None:
        with self._lock:
            self._zones = list(zones)

    def snapshot(self) -> List[ZoneRect]:
        with self._lock:
            return list(self._zones)

    def resolve(self, x: float, y: float) -> str:
        return ZoneResolver.resolve(x, y, self.snapshot())

    def __len__(self) -> int:
        with self._lock:
            return len(self._zones)
