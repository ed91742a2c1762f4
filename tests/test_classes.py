"""Tests for class list handling."""

from texture_annotator.core.classes import (
    ClassListFile,
    build_class_map,
    format_class_file,
    infer_classes,
    sanitise_classes,
)
from texture_annotator.core.models import LEGACY_ZONES


class TestSanitiseClasses:
    """Tests for sanitise_classes."""

    def test_trims_and_deduplicates(self):
        """Blank names go, the first spelling of a duplicate wins."""
        assert sanitise_classes([" Head ", "", "body", "head", None, "BODY", "eyes"]) == ["Head", "body", "eyes"]


class TestInferClasses:
    """Tests for inferring classes from saved records."""

    def test_from_polygon_records(self):
        records = [
            {"file_name": "a.png", "objects": [{"class_name": "head"}, {"class_name": "Body"}]},
            {"file_name": "b.png", "objects": [{"class_name": "eyes"}]},
        ]

        assert infer_classes(records) == ["Body", "eyes", "head"]

    def test_from_legacy_records(self):
        records = [{"file_name": "a.png", "wings": [{"x": 0, "y": 0, "w": 1, "h": 1}], "head": []}]

        assert infer_classes(records) == ["wings"]

    def test_fallback_to_legacy_zones(self):
        assert set(infer_classes([])) == set(LEGACY_ZONES)


class TestClassListFile:
    """Tests for ClassListFile."""

    def test_load_existing(self, tmp_path):
        path = tmp_path / "classes.txt"
        path.write_text("body\nhead\n\nhead\n")

        result = ClassListFile(path).load()

        assert result.success
        assert result.classes == ["body", "head"]
        assert not result.inferred

    def test_missing_file_is_inferred_and_written(self, tmp_path):
        path = tmp_path / "classes.txt"
        records = [{"file_name": "a.png", "objects": [{"class_name": "head"}]}]

        result = ClassListFile(path).load(records)

        assert result.inferred
        assert result.classes == ["head"]
        assert path.read_text() == "head\n"

    def test_save(self, tmp_path):
        path = tmp_path / "classes.txt"

        assert ClassListFile(path).save(["a", "b", "A"]).success
        assert path.read_text() == format_class_file(["a", "b"])

    def test_ensure_class(self, tmp_path):
        path = tmp_path / "classes.txt"
        path.write_text("body\nhead\n")
        class_file = ClassListFile(path)

        assert class_file.ensure_class("aletas")
        assert not class_file.ensure_class("ALETAS")
        assert path.read_text() == "body\nhead\naletas\n"

    def test_ensure_class_without_file(self, tmp_path):
        assert not ClassListFile(tmp_path / "classes.txt").ensure_class()
        assert not (tmp_path / "classes.txt").exists()

    def test_class_map(self):
        assert build_class_map(["body", "head"]) == {"body": 0, "head": 1}
