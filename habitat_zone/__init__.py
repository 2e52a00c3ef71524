"""
Habitat Zone
============

Bounded Context: Spatial analytics on a normalized floorplan.

Design Philosophy:
- Separation of Concerns: Geometry and Analytics separated
- Pure functions where possible, explicit state where needed
- numpy for bucketing, no hand-rolled loops over grids

Architecture:

    habitat_zone/
    ├── geometry/          # Pure geometry (immutable, stateless)
    │   ├── shapes.py      # clamp01, rect_normalize, ZoneRect
    │   └── resolver.py    # ZoneResolver (point → zone name)
    │
    └── analytics/         # Aggregation over records
        ├── timeline.py    # Sort, filters, playback windowing
        └── heatmap.py     # Grid-bucketed density

Usage:

    # 1. Define zones (immutable, newest first)
    from habitat_zone import ZoneRect, ZoneResolver

    galley = ZoneRect(id="z1", name="Galley", x1=0.1, y1=0.1, x2=0.4, y2=0.5)
    zone_name = ZoneResolver.resolve(0.2, 0.3, [galley])   # "Galley"

    # 2. Review pipeline
    from habitat_zone import RecordFilter, PlaybackController, build_review_view

    view = build_review_view(records, RecordFilter(group_only=True), PlaybackController())

    # 3. Heatmap over the view
    from habitat_zone import build_heatmap_grid

    cells = build_heatmap_grid([(r.x, r.y) for r in view], grid=60)
"""

# Geometry Layer (immutable, stateless)
from habitat_zone.geometry.shapes import MIN_ZONE_SIZE, ZoneRect, clamp01, rect_normalize
from habitat_zone.geometry.resolver import UNASSIGNED, ZoneResolver

# Analytics Layer
from habitat_zone.analytics.heatmap import HeatCell, build_heatmap_grid
from habitat_zone.analytics.timeline import (
    PlaybackController,
    PlaybackWindow,
    RecordFilter,
    build_review_view,
    playback_window,
    sort_timeline,
)

__all__ = [
    # Geometry
    "MIN_ZONE_SIZE",
    "ZoneRect",
    "clamp01",
    "rect_normalize",
    "UNASSIGNED",
    "ZoneResolver",
    # Analytics
    "HeatCell",
    "build_heatmap_grid",
    "PlaybackController",
    "PlaybackWindow",
    "RecordFilter",
    "build_review_view",
    "playback_window",
    "sort_timeline",
]

__version__ = "1.0.0"
