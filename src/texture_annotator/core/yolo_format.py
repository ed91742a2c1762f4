"""YOLO polygon label format: normalization, class id encoding, label files."""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from PyQt6.QtCore import QPointF

from ..utils.fileio import atomic_write_text, describe_os_error, ensure_dir
from .models import ORIENTATION_COUNT
from .results import FileError, OperationResult

logger = logging.getLogger(__name__)

COORDINATE_PRECISION = 6


def normalize_polygon(
    polygon: Sequence[QPointF],
    width: Optional[float],
    height: Optional[float]
) -> Optional[List[float]]:
    """
    Convert pixel vertices into flat normalized ``[x1, y1, x2, y2, ...]``.

    Each value is divided by the image size and rounded to 6 decimals.

    Returns:
        Flat coordinate list, or None if any value is not finite
    """
    if not width or not height:
        return None

    coords: List[float] = []
    for point in polygon:
        x = point.x() / width
        y = point.y() / height
        if not (math.isfinite(x) and math.isfinite(y)):
            return None
        coords.append(round(x, COORDINATE_PRECISION))
        coords.append(round(y, COORDINATE_PRECISION))
    return coords


def denormalize_polygon(coords: Sequence[float], width: float, height: float) -> List[QPointF]:
    """Convert flat normalized coordinates back into pixel points."""
    return [
        QPointF(coords[i] * width, coords[i + 1] * height)
        for i in range(0, len(coords) - 1, 2)
    ]


def encode_class_id(base_class_id: int, orientation_id: int, expand_orientations: bool) -> int:
    """
    Compute the class id written to a label line.

    With orientation expansion every base class occupies ORIENTATION_COUNT
    consecutive ids, one per orientation.
    """
    if expand_orientations:
        return base_class_id * ORIENTATION_COUNT + orientation_id
    return base_class_id


def format_coordinate(value: float) -> str:
    """Shortest decimal text of a 6-place coordinate (``0.1`` not ``0.100000``)."""
    text = f"{value:.{COORDINATE_PRECISION}f}".rstrip("0").rstrip(".")
    if text in ("-0", ""):
        return "0"
    return text


def format_label_line(class_id: int, coords: Sequence[float]) -> str:
    """Build ``"<id> <x1> <y1> ..."`` for one object."""
    return " ".join([str(class_id)] + [format_coordinate(v) for v in coords])


def label_file_name(image_name: str) -> str:
    """Label file for an image: same stem, ``.txt`` extension."""
    return f"{Path(image_name).stem}.txt"


def format_label_file(lines: Sequence[str]) -> str:
    """Join label lines; an image without eligible objects gets an empty file."""
    if not lines:
        return ""
    return "\n".join(lines) + "\n"


class YOLOLabelWriter:
    """
    Writer for per-image YOLO label files.

    Every file is written atomically; failures are collected per file
    instead of aborting the batch.
    """

    def __init__(self, labels_dir: Path) -> None:
        """
        Args:
            labels_dir: Directory receiving one ``.txt`` per image
        """
        self.labels_dir = Path(labels_dir)

    def write_batch(self, per_image_lines: Mapping[str, Sequence[str]]) -> OperationResult:
        """
        Write the label file of every image in the mapping.

        Args:
            per_image_lines: Image file name to its label lines

        Returns:
            OperationResult with one FileError per failed image
        """
        try:
            ensure_dir(self.labels_dir)
        except OSError as e:
            logger.error(f"Cannot create labels directory {self.labels_dir}: {e}")
            return OperationResult.failed(describe_os_error(e, "create", f"{self.labels_dir.name}/"))

        errors: List[FileError] = []
        for file_name, lines in per_image_lines.items():
            target = self.labels_dir / label_file_name(file_name)
            try:
                atomic_write_text(target, format_label_file(list(lines or [])))
            except (OSError, ValueError) as e:
                logger.error(f"Error writing label file {target}: {e}")
                errors.append(FileError(file=file_name, error=describe_os_error(e, "write", str(target))))

        if errors:
            return OperationResult.failed("Some label files could not be saved.", errors)

        logger.info(f"Saved {len(per_image_lines)} label files to {self.labels_dir}")
        return OperationResult.ok()
