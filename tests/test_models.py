"""Tests for annotation data models."""

import math

import pytest
from PyQt6.QtCore import QPointF

from texture_annotator.core.models import (
    ORIENT_DEFAULT_ID,
    ORIENTATION_COUNT,
    Annotation,
    AnnotationObject,
    BoundingBox,
    ValidationResult,
    annotation_from_record,
    bbox_to_polygon,
    coerce_orientation_id,
    migrate_legacy_record,
    orientation_key,
    orientation_label,
    point_from_dict,
)


class TestOrientations:
    """Tests for the orientation taxonomy."""

    def test_six_orientations(self):
        assert ORIENTATION_COUNT == 6
        assert orientation_key(0) == "top"
        assert orientation_key(5) == "bottom"
        assert orientation_label(3) == "Left"

    def test_unknown_orientation(self):
        assert orientation_key(9) == "unknown"
        assert orientation_label(None) == "Unknown"

    @pytest.mark.parametrize("value, expected", [
        (0, 0),
        (5, 5),
        (2.0, 2),
        ("4", 4),
        (" 1 ", 1),
        (6, None),
        (-1, None),
        (1.5, None),
        ("front", None),
        (True, None),
        (None, None),
        (math.nan, None),
    ])
    def test_coerce_orientation_id(self, value, expected):
        """Only integral values in range are accepted."""
        assert coerce_orientation_id(value) == expected


class TestValidationResult:
    """Tests for ValidationResult."""

    def test_add_warning_once(self):
        result = ValidationResult()
        result.add_warning("a")
        result.add_warning("a")

        assert result.warnings == ["a"]

    def test_to_dict(self):
        result = ValidationResult(errors=["e"], block_export=True)

        assert result.to_dict() == {"errors": ["e"], "warnings": [], "blockExport": True}


class TestAnnotationObject:
    """Tests for AnnotationObject serialization."""

    def test_ids_are_unique(self):
        assert AnnotationObject(class_name="head").id != AnnotationObject(class_name="head").id

    def test_to_record(self, square_points):
        """Records use the stored key names."""
        obj = AnnotationObject(class_name="head", class_id=1, polygon=square_points)
        obj.bbox = BoundingBox(0, 0, 10, 10)

        record = obj.to_record(enabled=False)

        assert record["class_name"] == "head"
        assert record["class_id"] == 1
        assert record["class_orientation_id"] == ORIENT_DEFAULT_ID
        assert record["polygon"][1] == {"x": 10.0, "y": 0.0}
        assert record["bbox"] == {"x": 0, "y": 0, "w": 10, "h": 10}
        assert record["isValid"] is True
        assert record["enabled"] is False

    def test_record_round_trip(self, square_points):
        """An object survives to_record/from_record."""
        obj = AnnotationObject(class_name="head", class_id=1, class_orientation_id=3, polygon=square_points)

        restored = AnnotationObject.from_record(obj.to_record())

        assert restored.id == obj.id
        assert restored.class_orientation_id == 3
        assert [(p.x(), p.y()) for p in restored.polygon] == [(p.x(), p.y()) for p in square_points]
        assert not restored.orientation_defaulted

    def test_from_record_repairs_orientation(self):
        """An unusable orientation becomes the default and is flagged."""
        restored = AnnotationObject.from_record(
            {"class_name": "head", "class_orientation_id": "sideways", "polygon": []}
        )

        assert restored.class_orientation_id == ORIENT_DEFAULT_ID
        assert restored.orientation_defaulted

    def test_from_record_resolves_class_id(self):
        """A missing class id is looked up in the class map."""
        restored = AnnotationObject.from_record({"class_name": "eyes"}, {"eyes": 2})

        assert restored.class_id == 2

    def test_garbage_point(self):
        """Unparsable coordinates become NaN instead of raising."""
        point = point_from_dict({"x": "left", "y": None})

        assert math.isnan(point.x())
        assert math.isnan(point.y())

    def test_copy_polygon_is_detached(self, square_points):
        obj = AnnotationObject(class_name="head", polygon=square_points)
        copied = obj.copy_polygon()
        copied[0].setX(99)

        assert obj.polygon[0].x() == 0


class TestLegacyMigration:
    """Tests for converting bounding-box records."""

    def test_bbox_to_polygon(self):
        polygon = bbox_to_polygon({"x": 1, "y": 2, "w": 3, "h": 4})

        assert [(p.x(), p.y()) for p in polygon] == [(1, 2), (4, 2), (4, 6), (1, 6)]

    def test_migrate_record(self):
        """Each box becomes a flagged rectangle; the input is untouched."""
        record = {
            "file_name": "a.png",
            "layer": "base",
            "head": [{"x": 0, "y": 0, "w": 5, "h": 5}],
            "eyes": [{"x": 1, "y": 1, "w": 2, "h": 1}, {"x": 3, "y": 1, "w": 2, "h": 1}],
        }

        objects = migrate_legacy_record(record, {"head": 1, "eyes": 2})

        assert len(objects) == 3
        assert {obj.class_name for obj in objects} == {"head", "eyes"}
        assert all(obj.meta == {"migrated": True, "orientationDefaulted": True} for obj in objects)
        assert objects[0].class_id == 1
        assert "objects" not in record

    def test_annotation_from_legacy_record(self):
        annotation, migrated = annotation_from_record(
            {"file_name": "a.png", "head": [{"x": 0, "y": 0, "w": 5, "h": 5}]}
        )

        assert annotation.file_name == "a.png"
        assert migrated == 1
        assert len(annotation.objects[0].polygon) == 4

    def test_annotation_without_file_name(self):
        assert annotation_from_record({"objects": []}) == (None, 0)
        assert annotation_from_record("not a record") == (None, 0)


class TestAnnotation:
    """Tests for the Annotation class."""

    def test_dimensions_are_set_once(self):
        """The first decode fixes the size."""
        annotation = Annotation(file_name="a.png")

        assert annotation.set_dimensions(100, 50)
        assert not annotation.set_dimensions(200, 200)
        assert (annotation.width, annotation.height) == (100, 50)

    def test_find_and_remove(self):
        obj = AnnotationObject(class_name="head")
        annotation = Annotation(file_name="a.png", objects=[obj])

        assert annotation.find_object(obj.id) is obj
        assert annotation.remove_object(obj.id) is obj
        assert annotation.find_object(obj.id) is None
        assert annotation.remove_object(obj.id) is None

    def test_to_record(self):
        annotation = Annotation(file_name="a.png", width=100, height=50)

        assert annotation.to_record() == {
            "file_name": "a.png",
            "width": 100,
            "height": 50,
            "layer": "base",
            "objects": [],
        }

    def test_polygon_record_loads_dimensions(self):
        annotation, migrated = annotation_from_record(
            {"file_name": "a.png", "width": 100, "height": "50", "objects": [{"class_name": "head"}]}
        )

        assert migrated == 0
        assert annotation.width == 100
        assert annotation.height is None
        assert annotation.objects[0].class_name == "head"
