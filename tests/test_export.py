"""Tests for label generation and save payloads."""

from PyQt6.QtCore import QPointF

from texture_annotator.core.classes import build_class_map
from texture_annotator.core.config import MISSING_POLICY_SKIP, AppConfig
from texture_annotator.core.export import (
    IMAGE_ISSUE_ID,
    MSG_MISSING_ORIENTATION,
    build_save_payload,
    generate_yolo_lines,
    is_object_enabled,
)
from texture_annotator.core.models import Annotation, AnnotationObject
from texture_annotator.core.validation import MSG_AREA_TOO_SMALL, MSG_SELF_INTERSECTION, recompute_derived

CLASSES = ["body", "head", "eyes", "aletas"]
CLASS_MAP = build_class_map(CLASSES)


def make_object(annotation, class_name="head", polygon=None, **kwargs):
    if polygon is None:
        polygon = [QPointF(0, 0), QPointF(10, 0), QPointF(10, 10), QPointF(0, 10)]
    obj = AnnotationObject(class_name=class_name, polygon=polygon, **kwargs)
    recompute_derived(annotation, obj, CLASS_MAP)
    annotation.objects.append(obj)
    return obj


def make_config(**filters):
    config = AppConfig()
    config.sync_with_classes(CLASSES)
    config.export.filter.classes.update(filters)
    return config


class TestGenerateYoloLines:
    """Tests for generate_yolo_lines."""

    def test_square_scenario(self):
        """A 10x10 head on a 100x50 image produces the expected label."""
        annotation = Annotation(file_name="a.png", width=100, height=50)
        make_object(annotation)

        result = generate_yolo_lines(annotation, make_config(), CLASS_MAP)

        assert result.lines == [f"{CLASS_MAP['head']} 0 0 0.1 0 0.1 0.2 0 0.2"]
        assert result.errors == []

    def test_expanded_class_id(self):
        annotation = Annotation(file_name="a.png", width=100, height=50)
        make_object(annotation, class_orientation_id=4)

        result = generate_yolo_lines(annotation, make_config(), CLASS_MAP, expand_orientations=True)

        assert result.lines[0].split()[0] == str(CLASS_MAP["head"] * 6 + 4)

    def test_expansion_from_config(self):
        annotation = Annotation(file_name="a.png", width=100, height=50)
        make_object(annotation, class_orientation_id=1)
        config = make_config()
        config.export.expand_orientations = True

        assert generate_yolo_lines(annotation, config, CLASS_MAP).lines[0].startswith("7 ")

    def test_class_filter_excludes_lines(self):
        """Filtered classes are dropped silently."""
        annotation = Annotation(file_name="a.png", width=100, height=50)
        make_object(annotation, class_name="head")
        make_object(annotation, class_name="body")

        result = generate_yolo_lines(annotation, make_config(head=False), CLASS_MAP)

        assert len(result.lines) == 1
        assert result.lines[0].startswith(f"{CLASS_MAP['body']} ")
        assert result.errors == []

    def test_orientation_filter(self):
        annotation = Annotation(file_name="a.png", width=100, height=50)
        make_object(annotation, class_orientation_id=2)
        config = make_config()
        config.export.filter.orientations["2"] = False

        assert generate_yolo_lines(annotation, config, CLASS_MAP).lines == []

    def test_invalid_object_reported(self):
        annotation = Annotation(file_name="a.png", width=100, height=50)
        obj = make_object(annotation, polygon=[QPointF(0, 0), QPointF(1, 0), QPointF(1, 1)])

        result = generate_yolo_lines(annotation, make_config(), CLASS_MAP)

        assert result.lines == []
        assert result.errors[0].object_id == obj.id
        assert MSG_AREA_TOO_SMALL in result.errors[0].message

    def test_blocked_object_reported(self):
        annotation = Annotation(file_name="a.png", width=100, height=50)
        obj = make_object(annotation, polygon=[QPointF(0, 0), QPointF(10, 10), QPointF(10, 0), QPointF(0, 5)])

        result = generate_yolo_lines(annotation, make_config(), CLASS_MAP)

        assert obj.is_valid
        assert result.lines == []
        assert MSG_SELF_INTERSECTION in result.errors[0].message

    def test_missing_dimensions(self):
        annotation = Annotation(file_name="a.png")
        make_object(annotation)

        result = generate_yolo_lines(annotation, make_config(), CLASS_MAP)

        assert result.lines == []
        assert result.errors[0].object_id == IMAGE_ISSUE_ID

    def test_skip_policy_drops_defaulted_orientation(self):
        annotation = Annotation(file_name="a.png", width=100, height=50)
        make_object(annotation, class_orientation_id="bad")
        config = make_config()
        config.export.missing_orientation_policy = MISSING_POLICY_SKIP

        result = generate_yolo_lines(annotation, config, CLASS_MAP)

        assert result.lines == []
        assert result.errors[0].message == MSG_MISSING_ORIENTATION

    def test_default_policy_uses_top(self):
        annotation = Annotation(file_name="a.png", width=100, height=50)
        make_object(annotation, class_orientation_id="bad")

        result = generate_yolo_lines(annotation, make_config(), CLASS_MAP, expand_orientations=True)

        assert result.lines[0].split()[0] == str(CLASS_MAP["head"] * 6)


class TestIsObjectEnabled:
    """Tests for is_object_enabled."""

    def test_enabled(self):
        annotation = Annotation(file_name="a.png", width=100, height=50)

        assert is_object_enabled(make_object(annotation), make_config())

    def test_reserved_class_disabled_by_default(self):
        annotation = Annotation(file_name="a.png", width=100, height=50)

        assert not is_object_enabled(make_object(annotation, class_name="aletas"), make_config())

    def test_invalid_object_disabled(self):
        annotation = Annotation(file_name="a.png", width=100, height=50)
        obj = make_object(annotation, polygon=[QPointF(0, 0), QPointF(1, 1)])

        assert not is_object_enabled(obj, make_config())

    def test_no_config(self):
        annotation = Annotation(file_name="a.png", width=100, height=50)

        assert not is_object_enabled(make_object(annotation), None)


class TestBuildSavePayload:
    """Tests for build_save_payload."""

    def test_full_and_filtered_records(self):
        annotation = Annotation(file_name="a.png", width=100, height=50)
        head = make_object(annotation, class_name="head")
        fins = make_object(annotation, class_name="aletas")

        payload = build_save_payload([annotation], make_config(), CLASS_MAP)

        full_objects = payload.full[0]["objects"]
        assert [(o["id"], o["enabled"]) for o in full_objects] == [(head.id, True), (fins.id, False)]
        assert [o["id"] for o in payload.filtered[0]["objects"]] == [head.id]
        assert payload.filtered[0]["width"] == 100
        assert len(payload.labels["a.png"]) == 1
        assert payload.errors == {}

    def test_errors_per_image(self):
        annotation = Annotation(file_name="b.png")

        payload = build_save_payload([annotation], make_config(), CLASS_MAP)

        assert payload.labels == {"b.png": []}
        assert payload.errors["b.png"][0].object_id == IMAGE_ISSUE_ID
