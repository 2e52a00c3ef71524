"""
Zone Resolver Module
====================

Stateless resolution logic - applies zone geometry to plan points.

Design:
- Pure functions (no state)
- Ordered zone list injected by the caller (first match wins)
- Batch recomputation returns new records, never mutates input
"""

from dataclasses import replace
from typing import Iterable, List, Sequence, TypeVar

from habitat_zone.geometry.shapes import ZoneRect

UNASSIGNED = "Unassigned"

R = TypeVar("R")


class ZoneResolver:
    """
    Stateless resolver from plan points to zone names.

    Design Philosophy:
    - All methods are static (no instance state)
    - Order of the zone sequence is significant: the first rectangle
      containing the point wins, so callers prepend newer zones
    """

    @staticmethod
    def resolve(x: float, y: float, zones: Iterable[ZoneRect]) -> str:
        """
        Resolve a point to the name of the first zone containing it.

        Args:
            x: Normalized x coordinate
            y: Normalized y coordinate
            zones: Ordered zone rectangles

        Returns:
            Zone name, or "Unassigned" if no zone contains the point
        """
        for zone in zones:
            if zone.contains_point((x, y)):
                return zone.name
        return UNASSIGNED

    @staticmethod
    def recompute_all(records: Iterable[R], zones: Sequence[ZoneRect]) -> List[R]:
        """
        Reassign the zone of every record from the current rectangles.

        Records must be dataclasses with x, y and zone fields. Zone edits
        do not rewrite history on their own: this is the explicit batch
        operation for doing so.

        Args:
            records: Records to relabel
            zones: Ordered zone rectangles

        Returns:
            New list of records, same order, zone field recomputed
        """
        zones = list(zones)
        return [
            replace(record, zone=ZoneResolver.resolve(record.x, record.y, zones))
            for record in records
        ]
