"""Train/val/test dataset export with a YOLO dataset manifest."""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, TypeVar

import yaml

from ..utils.fileio import atomic_write_text, copy_file, describe_os_error, ensure_dir
from .geometry import round_half_up
from .models import NON_ORIENTATION_CLASSES, ORIENTATIONS
from .results import DatasetExportResult
from .yolo_format import format_label_file, label_file_name

logger = logging.getLogger(__name__)

SPLIT_NAMES = ("train", "val", "test")

T = TypeVar("T")


@dataclass
class SplitRatios:
    """Fractions of the images assigned to each split."""

    train: float = 0.7
    val: float = 0.2
    test: float = 0.1

    def to_dict(self) -> Dict[str, float]:
        return {"train": self.train, "val": self.val, "test": self.test}

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> SplitRatios:
        defaults = cls()
        data = data or {}

        def _ratio(key: str, default: float) -> float:
            value = data.get(key, default)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                return default
            return max(0.0, float(value))

        return cls(
            train=_ratio("train", defaults.train),
            val=_ratio("val", defaults.val),
            test=_ratio("test", defaults.test),
        )


def split_counts(total: int, ratios: SplitRatios) -> Dict[str, int]:
    """
    Number of images per split.

    Train and val are rounded (half up) and clamped so they never exceed
    the total; test takes whatever remains.
    """
    train = min(total, round_half_up(total * ratios.train))
    val = min(total - train, round_half_up(total * ratios.val))
    test = max(0, total - train - val)
    return {"train": train, "val": val, "test": test}


def shuffled(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Fisher-Yates shuffle into a new list."""
    rng = rng or random.Random()
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = rng.randint(0, i)
        result[i], result[j] = result[j], result[i]
    return result


def assign_splits(
    file_names: Sequence[str],
    ratios: SplitRatios,
    rng: Optional[random.Random] = None
) -> Dict[str, str]:
    """Randomly assign each file name to ``train``, ``val`` or ``test``."""
    order = shuffled(file_names, rng)
    counts = split_counts(len(order), ratios)

    assignment: Dict[str, str] = {}
    for index, name in enumerate(order):
        if index < counts["train"]:
            assignment[name] = "train"
        elif index < counts["train"] + counts["val"]:
            assignment[name] = "val"
        else:
            assignment[name] = "test"
    return assignment


def class_display_names(classes: Sequence[str], expand_orientations: bool) -> List[str]:
    """
    Ordered class names for the manifest.

    With orientation expansion each orientable class becomes one entry per
    orientation (``"head:top"``, ``"head:front"``, ...), in orientation id
    order. Non-orientable classes keep a single entry even though label
    files reserve a full block of ids for them, so the list index equals the
    encoded class id only while every non-orientable class comes after the
    orientable ones in ``classes``.
    """
    names: List[str] = []
    for class_name in classes:
        if expand_orientations and class_name not in NON_ORIENTATION_CLASSES:
            names.extend(f"{class_name}:{o.key}" for o in ORIENTATIONS)
        else:
            names.append(class_name)
    return names


def quote_yaml_name(name: str) -> str:
    """Single-quoted YAML scalar."""
    return "'" + name.replace("'", "''") + "'"


@dataclass
class DatasetManifest:
    """
    YOLO dataset descriptor (the dataset YAML file).

    Split paths are relative to ``path``.
    """

    path: str = ""
    train: str = "images/train"
    val: str = "images/val"
    test: str = "images/test"
    names: List[str] = field(default_factory=list)

    def to_yaml(self) -> str:
        """Render the manifest with ``names`` as a quoted flow list."""
        header = {"path": self.path, "train": self.train, "val": self.val, "test": self.test}
        content = yaml.safe_dump(header, default_flow_style=False, sort_keys=False)
        names = ", ".join(quote_yaml_name(n) for n in self.names)
        return f"{content}names: [{names}]\n"


@dataclass
class DatasetImage:
    """An image to include in the dataset and where to copy it from."""

    file_name: str
    path: Path


class DatasetExporter:
    """
    Writes a split dataset: ``images/<split>/`` and ``labels/<split>/``
    under the dataset directory plus the manifest next to it.
    """

    def __init__(self, dataset_dir: Path, manifest_path: Path) -> None:
        """
        Args:
            dataset_dir: Root of the exported dataset
            manifest_path: Dataset YAML file to write
        """
        self.dataset_dir = Path(dataset_dir)
        self.manifest_path = Path(manifest_path)

    def export(
        self,
        images: Sequence[DatasetImage],
        labels: Mapping[str, Sequence[str]],
        classes: Sequence[str],
        ratios: Optional[SplitRatios] = None,
        expand_orientations: bool = False,
        rng: Optional[random.Random] = None
    ) -> DatasetExportResult:
        """
        Copy images, write labels and the manifest.

        Stops at the first image that fails and reports it.

        Args:
            images: Images to export
            labels: Label lines per image file name
            classes: Base class list, in id order
            ratios: Split fractions (defaults 0.7/0.2/0.1)
            expand_orientations: Emit one manifest name per orientation
            rng: Random source for the shuffle

        Returns:
            DatasetExportResult listing the split of every exported image
        """
        ratios = ratios or SplitRatios()
        assignment = assign_splits([image.file_name for image in images], ratios, rng)

        try:
            ensure_dir(self.dataset_dir)
        except OSError as e:
            logger.error(f"Cannot create dataset directory {self.dataset_dir}: {e}")
            return DatasetExportResult(False, error=describe_os_error(e, "create", str(self.dataset_dir)))

        results: List[Dict[str, str]] = []
        for image in images:
            split = assignment.get(image.file_name, "train")
            dest_image = self.dataset_dir / "images" / split / image.file_name
            dest_label = self.dataset_dir / "labels" / split / label_file_name(image.file_name)
            try:
                copy_file(image.path, dest_image)
                ensure_dir(dest_label.parent)
                atomic_write_text(dest_label, format_label_file(list(labels.get(image.file_name, []))))
            except (OSError, ValueError) as e:
                logger.error(f"Error exporting {image.file_name}: {e}")
                return DatasetExportResult(
                    False,
                    results=results,
                    error=f"Error exporting {image.file_name}: {describe_os_error(e, 'export', image.file_name)}",
                )
            results.append({"file": image.file_name, "split": split})

        manifest = DatasetManifest(
            path=str(self.dataset_dir),
            names=class_display_names(classes, expand_orientations),
        )
        try:
            ensure_dir(self.manifest_path.parent)
            atomic_write_text(self.manifest_path, manifest.to_yaml())
        except (OSError, ValueError) as e:
            logger.error(f"Error writing dataset manifest {self.manifest_path}: {e}")
            return DatasetExportResult(
                False,
                results=results,
                error=describe_os_error(e, "write", self.manifest_path.name),
            )

        logger.info(f"Exported {len(results)} images to {self.dataset_dir}")
        return DatasetExportResult(True, results=results)
