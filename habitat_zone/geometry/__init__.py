"""
Geometry Layer
==============

Bounded Context: Pure geometric shapes and spatial queries on the
normalized floorplan.

Responsibilities:
- Point clamping and rectangle normalization
- Zone rectangle representation (immutable)
- Point-to-zone resolution
- NO state, NO counting, NO rendering
"""

from habitat_zone.geometry.shapes import (
    MIN_ZONE_SIZE,
    ZoneRect,
    clamp01,
    rect_normalize,
)
from habitat_zone.geometry.resolver import UNASSIGNED, ZoneResolver

__all__ = [
    "MIN_ZONE_SIZE",
    "ZoneRect",
    "clamp01",
    "rect_normalize",
    "UNASSIGNED",
    "ZoneResolver",
]
