"""Snap hand-drawn polygon vertices onto the visible part of a texture."""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
from PyQt6.QtCore import QPointF

from .alpha_mask import AlphaMask
from .geometry import round_half_up

logger = logging.getLogger(__name__)

NEIGHBOR_OFFSETS: Tuple[Tuple[int, int], ...] = (
    (-1, -1), (0, -1), (1, -1),
    (-1, 0), (1, 0),
    (-1, 1), (0, 1), (1, 1),
)

# Opposite neighbour pairs: E/W, N/S and both diagonals
FLANK_PAIRS: Tuple[Tuple[Tuple[int, int], Tuple[int, int]], ...] = (
    ((-1, 0), (1, 0)),
    ((0, -1), (0, 1)),
    ((-1, -1), (1, 1)),
    ((-1, 1), (1, -1)),
)

SEARCH_DIRECTIONS: Tuple[Tuple[int, int], ...] = (
    (-1, 0), (1, 0), (0, -1), (0, 1),
    (-1, -1), (-1, 1), (1, -1), (1, 1),
)


@dataclass
class SnapResult:
    """Outcome of snapping one polygon."""

    polygon: List[QPointF] = field(default_factory=list)
    moved_vertices: List[int] = field(default_factory=list)
    auto_adjusted: bool = False
    discard: bool = False


def is_surrounded_by_alpha(mask: AlphaMask, x: int, y: int) -> bool:
    """All 8 neighbours exist and are opaque."""
    for dx, dy in NEIGHBOR_OFFSETS:
        nx, ny = x + dx, y + dy
        if not mask.in_bounds(nx, ny) or not mask.is_opaque(nx, ny):
            return False
    return True


def is_flanked_by_alpha(mask: AlphaMask, x: int, y: int) -> bool:
    """Some pair of opposite neighbours both exist and are opaque."""
    for (ax, ay), (bx, by) in FLANK_PAIRS:
        a = (x + ax, y + ay)
        b = (x + bx, y + by)
        if not mask.in_bounds(*a) or not mask.in_bounds(*b):
            continue
        if mask.is_opaque(*a) and mask.is_opaque(*b):
            return True
    return False


def find_nearest_opaque(mask: AlphaMask, start_x: int, start_y: int) -> Optional[Tuple[int, int]]:
    """
    Breadth-first search for the closest opaque pixel.

    The start is clamped into the mask first, so vertices drawn outside the
    image still search from the nearest edge pixel.

    Returns:
        ``(x, y)`` of the first opaque pixel reached, or None if there is none
    """
    width, height = mask.width, mask.height
    if width == 0 or height == 0:
        return None

    x0 = min(max(start_x, 0), width - 1)
    y0 = min(max(start_y, 0), height - 1)

    visited = np.zeros((height, width), dtype=bool)
    visited[y0, x0] = True
    queue = deque([(x0, y0)])

    while queue:
        x, y = queue.popleft()
        if mask.alpha[y, x] > 0:
            return x, y
        for dx, dy in SEARCH_DIRECTIONS:
            nx, ny = x + dx, y + dy
            if nx < 0 or ny < 0 or nx >= width or ny >= height:
                continue
            if visited[ny, nx]:
                continue
            visited[ny, nx] = True
            queue.append((nx, ny))

    return None


def snap_polygon_to_alpha(polygon: Sequence[QPointF], mask: Optional[AlphaMask]) -> SnapResult:
    """
    Move vertices that landed on transparent pixels onto the visible texture.

    A vertex on a transparent pixel is left alone when it sits inside a
    one-pixel hole or a thin transparent line of the texture. Otherwise it
    jumps to the nearest opaque pixel. If the texture has no opaque pixel at
    all, the polygon should be discarded.

    Args:
        polygon: Finalized draft vertices in image pixels
        mask: Alpha mask of the image, or None when unavailable

    Returns:
        SnapResult with a new list of points (the input is not modified)
    """
    if not polygon:
        return SnapResult()

    adjusted = [QPointF(p) for p in polygon]
    if mask is None or not mask.has_transparency:
        return SnapResult(polygon=adjusted)

    moved: List[int] = []
    for index, point in enumerate(adjusted):
        if not (math.isfinite(point.x()) and math.isfinite(point.y())):
            continue

        px = round_half_up(point.x())
        py = round_half_up(point.y())
        if mask.is_opaque(px, py):
            continue
        if is_surrounded_by_alpha(mask, px, py):
            continue
        if is_flanked_by_alpha(mask, px, py):
            continue

        nearest = find_nearest_opaque(mask, px, py)
        if nearest is None:
            logger.info("No visible pixel to snap to, discarding polygon")
            return SnapResult(discard=True)

        logger.debug(f"Vertex {index} snapped from ({point.x()}, {point.y()}) to {nearest}")
        adjusted[index] = QPointF(float(nearest[0]), float(nearest[1]))
        moved.append(index)

    return SnapResult(polygon=adjusted, moved_vertices=sorted(moved), auto_adjusted=bool(moved))
