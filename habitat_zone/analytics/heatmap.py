"""
Heatmap Aggregator Module
=========================

Grid-bucketed density over a set of normalized plan points.

Design:
- Stateless aggregation (numpy bucketing)
- Immutable output cells (HeatCell)
- Sparse representation: unoccupied cells are omitted
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Tuple

import numpy as np

from habitat_zone.geometry.shapes import clamp01

MIN_GRID = 5
MAX_GRID = 200
DEFAULT_GRID = 60


@dataclass(frozen=True)
class HeatCell:
    """
    Immutable heatmap cell.

    Attributes:
        gx: Column index in [0, grid - 1]
        gy: Row index in [0, grid - 1]
        count: Number of points bucketed into the cell
        norm: count / max count over all occupied cells
    """

    gx: int
    gy: int
    count: int
    norm: float

    def alpha(self, strength: float) -> float:
        """Render intensity: density scaled by an independent strength."""
        return clamp01(self.norm * strength)

    def __str__(self) -> str:
        return f"({self.gx},{self.gy}): count={self.count}, norm={self.norm:.2f}"


def clamp_grid(grid: float) -> int:
    """
    Floor the grid resolution and clamp it into [MIN_GRID, MAX_GRID].

    Non-finite input (NaN, inf) yields DEFAULT_GRID.
    """
    if not math.isfinite(grid):
        return DEFAULT_GRID
    return int(max(MIN_GRID, min(MAX_GRID, math.floor(grid))))


def build_heatmap_grid(points: Iterable[Tuple[float, float]], grid: float) -> List[HeatCell]:
    """
    Bucket points into a g x g grid and compute normalized density.

    Args:
        points: (x, y) pairs in [0, 1]
        grid: Requested resolution (clamped to [5, 200])

    Returns:
        Occupied cells, ordered by row then column
    """
    g = clamp_grid(grid)

    pts = np.asarray(list(points), dtype=float).reshape(-1, 2)
    pts = pts[np.isfinite(pts).all(axis=1)]
    if len(pts) == 0:
        return []

    gx = np.clip(np.floor(pts[:, 0] * g), 0, g - 1).astype(np.int64)
    gy = np.clip(np.floor(pts[:, 1] * g), 0, g - 1).astype(np.int64)

    keys, counts = np.unique(gy * g + gx, return_counts=True)
    max_count = int(counts.max())

    return [
        HeatCell(
            gx=int(key % g),
            gy=int(key // g),
            count=int(count),
            norm=float(count) / max_count if max_count > 0 else 0.0,
        )
        for key, count in zip(keys, counts)
    ]
