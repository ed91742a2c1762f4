"""Class list file (``classes.txt``) handling."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping

from ..utils.fileio import atomic_write_text, describe_os_error, ensure_dir
from .models import LEGACY_ZONES
from .results import ClassLoadResult, OperationResult

logger = logging.getLogger(__name__)

RESERVED_CLASS = "aletas"


def sanitise_classes(names: Iterable[Any]) -> List[str]:
    """
    Clean a class list.

    Names are stripped, blanks dropped and case-insensitive duplicates
    removed, keeping the first spelling and the original order.
    """
    seen = set()
    classes: List[str] = []
    for item in names:
        name = str(item if item is not None else "").strip()
        if not name:
            continue
        key = name.lower()
        if key in seen:
            continue
        seen.add(key)
        classes.append(name)
    return classes


def infer_classes(records: Iterable[Mapping[str, Any]]) -> List[str]:
    """
    Guess the class list from saved annotation records.

    Polygon records contribute their objects' class names; legacy records
    contribute every zone that holds at least one box. With nothing found,
    the full legacy zone list is used.

    Returns:
        Class names sorted case-insensitively
    """
    inferred = set()
    for record in records:
        if not isinstance(record, Mapping):
            continue
        objects = record.get("objects")
        if isinstance(objects, list):
            for obj in objects:
                if isinstance(obj, Mapping) and obj.get("class_name"):
                    inferred.add(str(obj["class_name"]))
        else:
            for zone in LEGACY_ZONES:
                if isinstance(record.get(zone), list) and record[zone]:
                    inferred.add(zone)

    if not inferred:
        inferred.update(LEGACY_ZONES)

    return sorted(inferred, key=lambda name: (name.casefold(), name))


def build_class_map(classes: Iterable[str]) -> Dict[str, int]:
    """Map each class name to its index in the list."""
    return {name: index for index, name in enumerate(classes)}


def format_class_file(classes: Iterable[str]) -> str:
    return "".join(f"{name}\n" for name in classes)


class ClassListFile:
    """One class name per line; the line order defines the base class ids."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self, records: Iterable[Mapping[str, Any]] = ()) -> ClassLoadResult:
        """
        Load the class list, creating it when missing.

        Args:
            records: Saved annotation records, used to infer the list
                when the file does not exist yet

        Returns:
            ClassLoadResult; ``inferred`` is True if the file was created
        """
        try:
            if self.path.exists():
                with open(self.path, "r", encoding="utf-8") as f:
                    classes = sanitise_classes(f.read().splitlines())
                logger.info(f"Loaded {len(classes)} classes from {self.path}")
                return ClassLoadResult(True, classes=classes)

            classes = infer_classes(records)
            ensure_dir(self.path.parent)
            atomic_write_text(self.path, format_class_file(classes))
            logger.info(f"Created {self.path} with {len(classes)} inferred classes")
            return ClassLoadResult(True, classes=classes, inferred=True)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading classes: {e}")
            return ClassLoadResult(False, error=describe_os_error(e, "read", self.path.name))

    def save(self, classes: Iterable[Any]) -> OperationResult:
        """Write a sanitised class list."""
        cleaned = sanitise_classes(classes)
        try:
            ensure_dir(self.path.parent)
            atomic_write_text(self.path, format_class_file(cleaned))
        except (OSError, ValueError) as e:
            logger.error(f"Error saving classes: {e}")
            return OperationResult.failed(describe_os_error(e, "save", self.path.name))
        logger.info(f"Saved {len(cleaned)} classes to {self.path}")
        return OperationResult.ok()

    def ensure_class(self, name: str = RESERVED_CLASS) -> bool:
        """
        Append a class to an existing file if it is not already listed.

        A missing file is left alone; it will be created on the next load.

        Returns:
            True if the class was added
        """
        if not self.path.exists():
            return False
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                entries = [line.strip() for line in f.read().splitlines() if line.strip()]
            if any(entry.lower() == name.lower() for entry in entries):
                return False
            atomic_write_text(self.path, format_class_file(sanitise_classes(entries + [name])))
        except (OSError, ValueError) as e:
            logger.error(f"Could not add class {name} to {self.path}: {e}")
            return False
        logger.info(f"Added class {name} to {self.path}")
        return True
