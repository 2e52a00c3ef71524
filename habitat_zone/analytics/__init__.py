"""
Analytics Layer
===============

Bounded Context: Spatial and temporal aggregation over observation
records.

Responsibilities:
- Canonical timeline (sorting), review filters, playback windowing
- Grid-bucketed heatmap density

Design Philosophy:
- Pure transformations (sort, filter, cutoff, bucketing)
- Immutable outputs (HeatCell, PlaybackWindow)
- One mutable accumulator: PlaybackController (slider state)
"""

from habitat_zone.analytics.heatmap import (
    DEFAULT_GRID,
    MAX_GRID,
    MIN_GRID,
    HeatCell,
    build_heatmap_grid,
    clamp_grid,
)
from habitat_zone.analytics.timeline import (
    PLAYBACK_SPEEDS,
    PLAYBACK_TICK_MS,
    POSITION_MAX,
    PlaybackController,
    PlaybackWindow,
    RecordFilter,
    apply_cutoff,
    apply_filters,
    build_review_view,
    count_by,
    playback_window,
    sort_timeline,
)

__all__ = [
    "DEFAULT_GRID",
    "MAX_GRID",
    "MIN_GRID",
    "HeatCell",
    "build_heatmap_grid",
    "clamp_grid",
    "PLAYBACK_SPEEDS",
    "PLAYBACK_TICK_MS",
    "POSITION_MAX",
    "PlaybackController",
    "PlaybackWindow",
    "RecordFilter",
    "apply_cutoff",
    "apply_filters",
    "build_review_view",
    "count_by",
    "playback_window",
    "sort_timeline",
]
