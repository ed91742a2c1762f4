"""Polygon geometry helpers shared by validation, hit testing and export."""

from __future__ import annotations

import math
from typing import Optional, Sequence

from PyQt6.QtCore import QPointF

from .models import BoundingBox


def polygon_area(polygon: Sequence[QPointF]) -> float:
    """
    Calculate the signed area of a polygon using the shoelace formula.

    Counter-clockwise rings (in a y-up frame) give a positive value. Callers
    that only care about size should take ``abs()`` of the result.

    Args:
        polygon: Ordered ring of points, last vertex connects to the first

    Returns:
        Signed area in squared pixel units (0.0 for fewer than 3 points)
    """
    n = len(polygon)
    if n < 3:
        return 0.0

    area = 0.0
    for i in range(n):
        current = polygon[i]
        nxt = polygon[(i + 1) % n]
        area += current.x() * nxt.y() - nxt.x() * current.y()

    return area / 2.0


def compute_bounding_box(polygon: Sequence[QPointF]) -> Optional[BoundingBox]:
    """
    Get the axis-aligned bounding box of a polygon.

    Returns:
        BoundingBox or None for an empty polygon
    """
    if not polygon:
        return None

    xs = [p.x() for p in polygon]
    ys = [p.y() for p in polygon]

    min_x, max_x = min(xs), max(xs)
    min_y, max_y = min(ys), max(ys)

    return BoundingBox(x=min_x, y=min_y, w=max_x - min_x, h=max_y - min_y)


def _direction(pi: QPointF, pj: QPointF, pk: QPointF) -> float:
    """Cross product sign of pk relative to the directed segment pi -> pj."""
    return (pk.x() - pi.x()) * (pj.y() - pi.y()) - (pj.x() - pi.x()) * (pk.y() - pi.y())


def _on_segment(pi: QPointF, pj: QPointF, pk: QPointF) -> bool:
    """Check whether a point known to be collinear lies within the segment box."""
    return (
        min(pi.x(), pj.x()) <= pk.x() <= max(pi.x(), pj.x()) and
        min(pi.y(), pj.y()) <= pk.y() <= max(pi.y(), pj.y())
    )


def segments_intersect(p1: QPointF, p2: QPointF, p3: QPointF, p4: QPointF) -> bool:
    """
    Test whether segment p1-p2 intersects segment p3-p4.

    Proper crossings and collinear overlaps (including touching endpoints)
    both count as intersections.
    """
    d1 = _direction(p3, p4, p1)
    d2 = _direction(p3, p4, p2)
    d3 = _direction(p1, p2, p3)
    d4 = _direction(p1, p2, p4)

    if ((d1 > 0 > d2) or (d1 < 0 < d2)) and ((d3 > 0 > d4) or (d3 < 0 < d4)):
        return True

    if d1 == 0 and _on_segment(p3, p4, p1):
        return True
    if d2 == 0 and _on_segment(p3, p4, p2):
        return True
    if d3 == 0 and _on_segment(p1, p2, p3):
        return True
    if d4 == 0 and _on_segment(p1, p2, p4):
        return True

    return False


def has_self_intersection(polygon: Sequence[QPointF]) -> bool:
    """
    Check a closed ring for intersecting non-adjacent edges.

    Edges sharing a vertex (consecutive edges and the wrap-around pair formed
    by the first and last edge) are skipped.
    """
    n = len(polygon)
    for i in range(n):
        a1 = polygon[i]
        a2 = polygon[(i + 1) % n]
        for j in range(i + 1, n):
            if abs(i - j) <= 1 or (i == 0 and j == n - 1):
                continue
            b1 = polygon[j]
            b2 = polygon[(j + 1) % n]
            if segments_intersect(a1, a2, b1, b2):
                return True
    return False


def point_in_polygon(point: QPointF, polygon: Sequence[QPointF]) -> bool:
    """Even-odd ray casting test."""
    inside = False
    n = len(polygon)
    j = n - 1
    for i in range(n):
        xi, yi = polygon[i].x(), polygon[i].y()
        xj, yj = polygon[j].x(), polygon[j].y()
        if (yi > point.y()) != (yj > point.y()):
            # Small epsilon keeps horizontal edges from dividing by zero
            x_cross = (xj - xi) * (point.y() - yi) / (yj - yi + 1e-7) + xi
            if point.x() < x_cross:
                inside = not inside
        j = i
    return inside


def distance(a: QPointF, b: QPointF) -> float:
    """Euclidean distance between two points."""
    return math.hypot(a.x() - b.x(), a.y() - b.y())


def distance_point_to_segment(point: QPointF, a: QPointF, b: QPointF) -> float:
    """Shortest distance from a point to the segment a-b."""
    dx = b.x() - a.x()
    dy = b.y() - a.y()
    if dx == 0 and dy == 0:
        return distance(point, a)

    t = ((point.x() - a.x()) * dx + (point.y() - a.y()) * dy) / (dx * dx + dy * dy)
    t = max(0.0, min(1.0, t))
    return distance(point, QPointF(a.x() + t * dx, a.y() + t * dy))


def polygon_centroid(polygon: Sequence[QPointF]) -> Optional[QPointF]:
    """Vertex average, used as the anchor of the move handle and label."""
    if not polygon:
        return None
    x = sum(p.x() for p in polygon)
    y = sum(p.y() for p in polygon)
    return QPointF(x / len(polygon), y / len(polygon))


def clamp_point(point: QPointF, width: Optional[float], height: Optional[float]) -> QPointF:
    """
    Clamp a point into ``[0, width] x [0, height]``.

    An unknown dimension (None or 0) leaves that axis unclamped from above.
    """
    x = max(point.x(), 0.0)
    y = max(point.y(), 0.0)
    if width:
        x = min(x, float(width))
    if height:
        y = min(y, float(height))
    return QPointF(x, y)


def is_finite_point(point: QPointF) -> bool:
    """Check that both coordinates are finite numbers."""
    return math.isfinite(point.x()) and math.isfinite(point.y())


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3, -0.5 -> 0)."""
    return math.floor(value + 0.5)
