"""Tests for polygon validation and derived data."""

import math

from PyQt6.QtCore import QPointF

from texture_annotator.core.models import ORIENT_DEFAULT_ID, Annotation, AnnotationObject
from texture_annotator.core.validation import (
    MSG_AREA_TOO_SMALL,
    MSG_INVALID_COORDINATES,
    MSG_OUTSIDE_IMAGE,
    MSG_SELF_INTERSECTION,
    MSG_TOO_FEW_VERTICES,
    adjusted_vertex_message,
    apply_orientation,
    defaulted_orientation_message,
    recompute_derived,
    validate_polygon,
)


def make_annotation(width=100, height=100):
    return Annotation(file_name="a.png", width=width, height=height)


class TestValidatePolygon:
    """Tests for validate_polygon."""

    def test_valid_square(self, square_points):
        result = validate_polygon(make_annotation(), AnnotationObject(class_name="head", polygon=square_points))

        assert result.errors == []
        assert result.warnings == []
        assert not result.block_export

    def test_too_few_vertices(self):
        obj = AnnotationObject(class_name="head", polygon=[QPointF(0, 0), QPointF(5, 5)])

        assert validate_polygon(make_annotation(), obj).errors == [MSG_TOO_FEW_VERTICES]

    def test_non_finite_coordinates(self):
        """Bad coordinates stop further checks."""
        polygon = [QPointF(0, 0), QPointF(math.nan, 0), QPointF(5, 5)]
        result = validate_polygon(make_annotation(), AnnotationObject(class_name="head", polygon=polygon))

        assert result.errors == [MSG_INVALID_COORDINATES]

    def test_outside_bounds_warns_once(self):
        polygon = [QPointF(-5, 0), QPointF(200, 0), QPointF(200, 200), QPointF(0, 50)]
        result = validate_polygon(make_annotation(), AnnotationObject(class_name="head", polygon=polygon))

        assert result.warnings == [MSG_OUTSIDE_IMAGE]
        assert result.errors == []

    def test_small_area(self):
        polygon = [QPointF(0, 0), QPointF(2, 0), QPointF(2, 2)]
        result = validate_polygon(make_annotation(), AnnotationObject(class_name="head", polygon=polygon))

        assert MSG_AREA_TOO_SMALL in result.errors

    def test_eyes_allow_tiny_regions(self):
        """Eye regions only need an area of one pixel."""
        polygon = [QPointF(0, 0), QPointF(2, 0), QPointF(2, 2)]
        result = validate_polygon(make_annotation(), AnnotationObject(class_name="eyes", polygon=polygon))

        assert result.errors == []

    def test_bowtie_blocks_export(self):
        """Self-intersection is a blocking warning, not an error."""
        bowtie = [QPointF(0, 0), QPointF(10, 10), QPointF(10, 0), QPointF(0, 10)]
        result = validate_polygon(make_annotation(), AnnotationObject(class_name="head", polygon=bowtie))

        assert MSG_SELF_INTERSECTION in result.warnings
        assert result.block_export


class TestRecomputeDerived:
    """Tests for recompute_derived."""

    def test_fills_derived_fields(self, square_points):
        obj = AnnotationObject(class_name="head", polygon=square_points)

        recompute_derived(make_annotation(), obj, {"body": 0, "head": 1})

        assert obj.class_id == 1
        assert obj.bbox.w == 10
        assert obj.is_valid

    def test_idempotent(self, square_points):
        """A second call changes nothing."""
        annotation = make_annotation()
        obj = AnnotationObject(
            class_name="head",
            polygon=square_points,
            class_orientation_id="garbage",
            meta={"autoAdjusted": True, "adjustedVertices": [1]},
        )

        recompute_derived(annotation, obj, {"head": 1})
        first = obj.to_record()
        recompute_derived(annotation, obj, {"head": 1})

        assert obj.to_record() == first

    def test_repairs_orientation(self, square_points):
        obj = AnnotationObject(class_name="head", polygon=square_points, class_orientation_id=42)

        recompute_derived(make_annotation(), obj)

        assert obj.class_orientation_id == ORIENT_DEFAULT_ID
        assert obj.orientation_defaulted
        assert defaulted_orientation_message() in obj.validation.warnings

    def test_unknown_class_keeps_integer_id(self, square_points):
        obj = AnnotationObject(class_name="ghost", polygon=square_points, class_id=7)

        recompute_derived(make_annotation(), obj, {"head": 1})

        assert obj.class_id == 7

    def test_adjusted_vertex_warnings(self, square_points):
        obj = AnnotationObject(
            class_name="head",
            polygon=square_points,
            meta={"autoAdjusted": True, "adjustedVertices": [0, 2]},
        )

        recompute_derived(make_annotation(), obj)

        assert adjusted_vertex_message(0) in obj.validation.warnings
        assert adjusted_vertex_message(2) in obj.validation.warnings
        assert obj.is_valid

    def test_invalid_polygon_never_raises(self):
        obj = AnnotationObject(class_name="head", polygon=[])

        recompute_derived(make_annotation(), obj)

        assert obj.bbox is None
        assert not obj.is_valid


class TestApplyOrientation:
    """Tests for user orientation changes."""

    def test_clears_default_flag(self, square_points):
        obj = AnnotationObject(class_name="head", polygon=square_points, meta={"orientationDefaulted": True})

        assert apply_orientation(obj, 2)
        assert obj.class_orientation_id == 2
        assert not obj.orientation_defaulted

    def test_rejects_invalid_id(self):
        obj = AnnotationObject(class_name="head", class_orientation_id=1)

        assert not apply_orientation(obj, 17)
        assert obj.class_orientation_id == 1

    def test_confirming_default_clears_flag(self):
        """Re-selecting Top keeps the id but marks it as chosen."""
        obj = AnnotationObject(class_name="head", meta={"orientationDefaulted": True})

        assert apply_orientation(obj, 0)
        assert not obj.orientation_defaulted
