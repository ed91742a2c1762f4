"""Tests for alpha-edge snapping."""

import math

import numpy as np
from PyQt6.QtCore import QPointF

from texture_annotator.core.alpha_mask import AlphaMask
from texture_annotator.core.snapping import (
    find_nearest_opaque,
    is_flanked_by_alpha,
    is_surrounded_by_alpha,
    snap_polygon_to_alpha,
)


def coords(polygon):
    return [(p.x(), p.y()) for p in polygon]


class TestNeighbourChecks:
    """Tests for the hole and thin-line checks."""

    def test_single_pixel_hole_is_surrounded(self):
        alpha = np.full((5, 5), 255, dtype=np.uint8)
        alpha[2, 2] = 0
        mask = AlphaMask(alpha)

        assert is_surrounded_by_alpha(mask, 2, 2)

    def test_edge_pixel_is_not_surrounded(self):
        """Neighbours outside the image count as missing."""
        mask = AlphaMask(np.full((5, 5), 255, dtype=np.uint8))

        assert not is_surrounded_by_alpha(mask, 0, 2)

    def test_thin_line_is_flanked(self):
        alpha = np.full((5, 5), 255, dtype=np.uint8)
        alpha[:, 2] = 0
        mask = AlphaMask(alpha)

        assert not is_surrounded_by_alpha(mask, 2, 2)
        assert is_flanked_by_alpha(mask, 2, 2)

    def test_open_area_is_not_flanked(self, transparent_border_mask):
        assert not is_flanked_by_alpha(transparent_border_mask, 1, 1)


class TestFindNearestOpaque:
    """Tests for the breadth-first search."""

    def test_finds_adjacent_pixel(self, transparent_border_mask):
        assert find_nearest_opaque(transparent_border_mask, 4, 7) == (5, 7)

    def test_clamps_start(self):
        """Starts outside the image search from the nearest edge pixel."""
        alpha = np.zeros((10, 10), dtype=np.uint8)
        alpha[3, 6] = 255

        assert find_nearest_opaque(AlphaMask(alpha), 6, -30) == (6, 3)

    def test_fully_transparent(self):
        assert find_nearest_opaque(AlphaMask(np.zeros((4, 4), dtype=np.uint8)), 1, 1) is None


class TestSnapPolygon:
    """Tests for snap_polygon_to_alpha."""

    def test_opaque_mask_leaves_polygon(self, square_points):
        mask = AlphaMask(np.full((20, 20), 255, dtype=np.uint8))

        result = snap_polygon_to_alpha(square_points, mask)

        assert coords(result.polygon) == coords(square_points)
        assert not result.auto_adjusted
        assert not result.discard

    def test_no_mask_leaves_polygon(self, square_points):
        result = snap_polygon_to_alpha(square_points, None)

        assert coords(result.polygon) == coords(square_points)
        assert result.moved_vertices == []

    def test_fully_transparent_mask_discards(self, square_points):
        result = snap_polygon_to_alpha(square_points, AlphaMask(np.zeros((20, 20), dtype=np.uint8)))

        assert result.discard
        assert result.polygon == []

    def test_snaps_transparent_vertices(self, transparent_border_mask):
        polygon = [QPointF(2, 2), QPointF(10, 6), QPointF(17, 17)]

        result = snap_polygon_to_alpha(polygon, transparent_border_mask)

        assert result.auto_adjusted
        assert result.moved_vertices == [0, 2]
        assert coords(result.polygon) == [(5.0, 5.0), (10.0, 6.0), (14.0, 14.0)]

    def test_input_not_modified(self, transparent_border_mask):
        polygon = [QPointF(2, 2), QPointF(10, 6), QPointF(12, 12)]

        snap_polygon_to_alpha(polygon, transparent_border_mask)

        assert coords(polygon)[0] == (2.0, 2.0)

    def test_rounds_half_up(self, transparent_border_mask):
        """4.5 samples pixel 5, which is opaque, so nothing moves."""
        polygon = [QPointF(4.5, 4.5), QPointF(10, 6), QPointF(12, 12)]

        result = snap_polygon_to_alpha(polygon, transparent_border_mask)

        assert not result.auto_adjusted
        assert coords(result.polygon)[0] == (4.5, 4.5)

    def test_non_finite_vertex_is_skipped(self, transparent_border_mask):
        polygon = [QPointF(math.nan, 1), QPointF(10, 6), QPointF(12, 12)]

        result = snap_polygon_to_alpha(polygon, transparent_border_mask)

        assert not result.discard
        assert result.moved_vertices == []
