"""Data models for texture annotations."""

from __future__ import annotations

import copy
import logging
import math
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from PyQt6.QtCore import QPointF

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Orientation:
    """One face of the fixed orientation taxonomy."""

    id: int
    key: str
    label: str


ORIENTATIONS: Tuple[Orientation, ...] = (
    Orientation(0, "top", "Top"),
    Orientation(1, "front", "Front"),
    Orientation(2, "back", "Back"),
    Orientation(3, "left", "Left"),
    Orientation(4, "right", "Right"),
    Orientation(5, "bottom", "Bottom"),
)
ORIENTATION_COUNT = len(ORIENTATIONS)
ORIENT_DEFAULT_ID = 0

# Classes that never carry an orientation in expanded exports
NON_ORIENTATION_CLASSES = frozenset({
    "eyes", "mouth", "heart", "cracks", "cristal", "flower", "zombie_zone",
    "sky", "stars", "wings", "claws", "aletas", "fangs",
})

# Classes allowed to be much smaller than the regular area minimum
TINY_REGION_CLASSES = frozenset({"eyes", "ojos"})

# Classes whose export filter starts disabled
DISABLED_BY_DEFAULT_CLASSES = frozenset({"aletas"})

# Per-class keys of the old bounding-box record format
LEGACY_ZONES: Tuple[str, ...] = (
    "img_zone", "eyes", "wings", "chest", "back", "extremities", "fangs", "claws",
    "head", "mouth", "heart", "cracks", "cristal", "flower", "zombie_zone",
    "armor", "sky", "stars", "extra",
)


def get_orientation(orientation_id: Any) -> Optional[Orientation]:
    """Look up an orientation by id, returning None for unknown ids."""
    for orientation in ORIENTATIONS:
        if orientation.id == orientation_id and not isinstance(orientation_id, bool):
            return orientation
    return None


def orientation_key(orientation_id: Any) -> str:
    """Short key used in expanded class names ("unknown" if invalid)."""
    orientation = get_orientation(orientation_id)
    return orientation.key if orientation else "unknown"


def orientation_label(orientation_id: Any) -> str:
    """Human readable orientation name."""
    orientation = get_orientation(orientation_id)
    return orientation.label if orientation else "Unknown"


def coerce_orientation_id(value: Any) -> Optional[int]:
    """
    Convert a stored orientation value into a valid orientation id.

    Accepts ints, integral floats and numeric strings. Booleans, fractional
    values and ids outside ``[0, ORIENTATION_COUNT)`` are rejected.

    Returns:
        The orientation id, or None if the value cannot be used
    """
    if isinstance(value, bool) or value is None:
        return None

    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None

    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            return None
        value = int(value)

    if not isinstance(value, int):
        return None

    if 0 <= value < ORIENTATION_COUNT:
        return value
    return None


@dataclass
class BoundingBox:
    """Axis-aligned bounding box in image pixels."""

    x: float
    y: float
    w: float
    h: float

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary for serialization."""
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BoundingBox:
        """Create from dictionary."""
        return cls(
            x=float(data.get("x", 0)),
            y=float(data.get("y", 0)),
            w=float(data.get("w", 0)),
            h=float(data.get("h", 0)),
        )


@dataclass
class ValidationResult:
    """
    Outcome of validating one annotation object.

    Errors make the object invalid. Warnings are advisory, except that
    ``block_export`` keeps an otherwise valid object out of label files.
    """

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    block_export: bool = False

    def add_warning(self, message: str) -> None:
        """Append a warning once."""
        if message not in self.warnings:
            self.warnings.append(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "blockExport": self.block_export,
        }


def point_from_dict(data: Any) -> QPointF:
    """Build a point from a ``{"x": .., "y": ..}`` record, NaN for garbage."""
    if not isinstance(data, Mapping):
        return QPointF(math.nan, math.nan)

    def _number(value: Any) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            return math.nan

    return QPointF(_number(data.get("x")), _number(data.get("y")))


def point_to_dict(point: QPointF) -> Dict[str, float]:
    """Serialize a point."""
    return {"x": point.x(), "y": point.y()}


def new_object_id() -> str:
    """Generate an opaque, unique object id."""
    return str(uuid.uuid4())


@dataclass
class AnnotationObject:
    """
    A single labeled polygon region on a texture.

    ``bbox``, ``is_valid`` and ``validation`` are derived from the polygon and
    must be refreshed with ``recompute_derived`` after every mutation.
    """

    class_name: str
    polygon: List[QPointF] = field(default_factory=list)
    class_id: int = 0
    class_orientation_id: Any = ORIENT_DEFAULT_ID
    id: str = field(default_factory=new_object_id)
    bbox: Optional[BoundingBox] = None
    is_valid: bool = True
    validation: ValidationResult = field(default_factory=ValidationResult)
    meta: Dict[str, Any] = field(default_factory=dict)
    enabled: bool = True

    @property
    def orientation_defaulted(self) -> bool:
        """True while the orientation was filled in automatically."""
        return bool(self.meta.get("orientationDefaulted"))

    def copy_polygon(self) -> List[QPointF]:
        """Return a detached copy of the polygon points."""
        return [QPointF(p) for p in self.polygon]

    def to_record(self, enabled: Optional[bool] = None) -> Dict[str, Any]:
        """
        Convert to a JSON-serializable record.

        Args:
            enabled: Override for the exported ``enabled`` flag

        Returns:
            Dictionary for one entry of an annotation's ``objects`` list
        """
        return {
            "id": self.id,
            "class_name": self.class_name,
            "class_id": self.class_id,
            "class_orientation_id": self.class_orientation_id,
            "polygon": [point_to_dict(p) for p in self.polygon],
            "bbox": self.bbox.to_dict() if self.bbox else None,
            "isValid": self.is_valid,
            "validation": self.validation.to_dict(),
            "meta": copy.deepcopy(self.meta),
            "enabled": self.enabled if enabled is None else enabled,
        }

    @classmethod
    def from_record(
        cls,
        data: Mapping[str, Any],
        class_map: Optional[Mapping[str, int]] = None
    ) -> AnnotationObject:
        """
        Create an object from a stored record.

        Invalid orientation values are replaced by the default id and flagged
        in ``meta`` so the user can correct them.
        """
        class_map = class_map or {}
        raw_polygon = data.get("polygon")
        polygon = [point_from_dict(p) for p in raw_polygon] if isinstance(raw_polygon, list) else []

        meta = dict(data.get("meta") or {}) if isinstance(data.get("meta"), Mapping) else {}
        orientation_id = coerce_orientation_id(data.get("class_orientation_id"))
        if orientation_id is None:
            orientation_id = ORIENT_DEFAULT_ID
            meta["orientationDefaulted"] = True

        class_name = str(data.get("class_name") or "")
        stored_class_id = data.get("class_id")
        if isinstance(stored_class_id, int) and not isinstance(stored_class_id, bool):
            class_id = stored_class_id
        else:
            class_id = class_map.get(class_name, 0)

        bbox_data = data.get("bbox")
        bbox = BoundingBox.from_dict(bbox_data) if isinstance(bbox_data, Mapping) else None

        return cls(
            id=str(data.get("id") or new_object_id()),
            class_name=class_name,
            class_id=class_id,
            class_orientation_id=orientation_id,
            polygon=polygon,
            bbox=bbox,
            is_valid=data.get("isValid") is not False,
            meta=meta,
            enabled=data.get("enabled") is not False,
        )


def bbox_to_polygon(bbox: Optional[Mapping[str, Any]]) -> List[QPointF]:
    """
    Convert a legacy ``{x, y, w, h}`` box into a 4-vertex rectangle.

    Returns:
        Clockwise ring starting at the top-left corner, or [] for no box
    """
    if not bbox:
        return []
    box = BoundingBox.from_dict(bbox)
    x1, y1 = box.x, box.y
    x2, y2 = box.x + box.w, box.y + box.h
    return [QPointF(x1, y1), QPointF(x2, y1), QPointF(x2, y2), QPointF(x1, y2)]


def migrate_legacy_record(
    record: Mapping[str, Any],
    class_map: Optional[Mapping[str, int]] = None
) -> List[AnnotationObject]:
    """
    Convert an old per-class bounding-box record into polygon objects.

    Every list-valued key other than ``file_name`` and ``layer`` is a class
    name holding boxes. Each box becomes a rectangle tagged ``migrated`` and
    ``orientationDefaulted``. The input record is not modified.
    """
    class_map = class_map or {}
    objects: List[AnnotationObject] = []

    for zone_name, entries in record.items():
        if zone_name in ("file_name", "layer", "width", "height"):
            continue
        if not isinstance(entries, list):
            continue
        for entry in entries:
            box = entry if isinstance(entry, Mapping) else None
            objects.append(AnnotationObject(
                class_name=zone_name,
                class_id=class_map.get(zone_name, 0),
                class_orientation_id=ORIENT_DEFAULT_ID,
                polygon=bbox_to_polygon(box),
                bbox=BoundingBox.from_dict(box) if box else None,
                meta={"migrated": True, "orientationDefaulted": True},
            ))

    return objects


@dataclass
class Annotation:
    """
    All objects annotated on one image.

    ``width`` and ``height`` are the native pixel size of the image. They are
    unknown until the image is first decoded and fixed afterwards.
    """

    file_name: str
    width: Optional[int] = None
    height: Optional[int] = None
    layer: str = "base"
    objects: List[AnnotationObject] = field(default_factory=list)

    @property
    def has_dimensions(self) -> bool:
        """True once the image size is known."""
        return bool(self.width) and bool(self.height)

    def set_dimensions(self, width: int, height: int) -> bool:
        """
        Record the decoded image size.

        Returns:
            True if the dimensions were stored, False if they were already set
        """
        if self.has_dimensions:
            if (self.width, self.height) != (width, height):
                logger.warning(
                    f"Ignoring new size {width}x{height} for {self.file_name}, "
                    f"keeping {self.width}x{self.height}"
                )
            return False
        self.width = int(width)
        self.height = int(height)
        return True

    def find_object(self, object_id: Optional[str]) -> Optional[AnnotationObject]:
        """Find an object by id."""
        if object_id is None:
            return None
        for obj in self.objects:
            if obj.id == object_id:
                return obj
        return None

    def remove_object(self, object_id: str) -> Optional[AnnotationObject]:
        """Remove and return an object by id."""
        for index, obj in enumerate(self.objects):
            if obj.id == object_id:
                return self.objects.pop(index)
        return None

    def to_record(self, objects: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
        """
        Convert to a JSON-serializable record.

        Args:
            objects: Pre-built object records; defaults to every object as-is
        """
        if objects is None:
            objects = [obj.to_record() for obj in self.objects]
        return {
            "file_name": self.file_name,
            "width": self.width,
            "height": self.height,
            "layer": self.layer,
            "objects": objects,
        }


def annotation_from_record(
    record: Any,
    class_map: Optional[Mapping[str, int]] = None
) -> Tuple[Optional[Annotation], int]:
    """
    Build an Annotation from a stored record of either format.

    Records with an ``objects`` list use the polygon format; anything else is
    treated as a legacy per-class box record and migrated.

    Returns:
        Tuple of (annotation or None if the record has no file name,
        number of migrated boxes)
    """
    if not isinstance(record, Mapping) or not record.get("file_name"):
        return None, 0

    def _dimension(value: Any) -> Optional[int]:
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
            return int(value)
        return None

    annotation = Annotation(
        file_name=str(record["file_name"]),
        width=_dimension(record.get("width")),
        height=_dimension(record.get("height")),
        layer=str(record.get("layer") or "base"),
    )

    if isinstance(record.get("objects"), list):
        annotation.objects = [
            AnnotationObject.from_record(item, class_map)
            for item in record["objects"]
            if isinstance(item, Mapping)
        ]
        return annotation, 0

    annotation.objects = migrate_legacy_record(record, class_map)
    return annotation, len(annotation.objects)
