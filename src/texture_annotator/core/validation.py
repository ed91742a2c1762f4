"""Polygon validation and recomputation of derived object data."""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from .geometry import compute_bounding_box, has_self_intersection, is_finite_point, polygon_area
from .models import (
    ORIENT_DEFAULT_ID,
    TINY_REGION_CLASSES,
    Annotation,
    AnnotationObject,
    ValidationResult,
    coerce_orientation_id,
    orientation_label,
)

logger = logging.getLogger(__name__)

MIN_POLYGON_AREA = 5.0
MIN_EYE_POLYGON_AREA = 1.0

MSG_TOO_FEW_VERTICES = "Polygon must have at least 3 vertices."
MSG_INVALID_COORDINATES = "Invalid coordinates."
MSG_OUTSIDE_IMAGE = "Some vertices lie outside the image bounds."
MSG_AREA_TOO_SMALL = "Polygon area is too small."
MSG_SELF_INTERSECTION = "Polygon has self-intersections."


def minimum_area_for(class_name: Optional[str]) -> float:
    """Area threshold below which a polygon of this class is rejected."""
    return MIN_EYE_POLYGON_AREA if class_name in TINY_REGION_CLASSES else MIN_POLYGON_AREA


def validate_polygon(annotation: Annotation, obj: AnnotationObject) -> ValidationResult:
    """
    Check an object's polygon against the image it belongs to.

    Errors (too few vertices, bad coordinates, tiny area) make the object
    invalid. A self-intersecting ring is kept valid but blocked from export.

    Args:
        annotation: Owning annotation, used for the image bounds
        obj: Object to check

    Returns:
        A fresh ValidationResult
    """
    result = ValidationResult()
    polygon = obj.polygon or []

    if len(polygon) < 3:
        result.errors.append(MSG_TOO_FEW_VERTICES)
        return result

    if not all(is_finite_point(p) for p in polygon):
        result.errors.append(MSG_INVALID_COORDINATES)
        return result

    width, height = annotation.width, annotation.height
    for point in polygon:
        outside_x = bool(width) and (point.x() < 0 or point.x() > width)
        outside_y = bool(height) and (point.y() < 0 or point.y() > height)
        if outside_x or outside_y:
            result.add_warning(MSG_OUTSIDE_IMAGE)
            break

    if abs(polygon_area(polygon)) < minimum_area_for(obj.class_name):
        result.errors.append(MSG_AREA_TOO_SMALL)

    if has_self_intersection(polygon):
        result.add_warning(MSG_SELF_INTERSECTION)
        result.block_export = True

    return result


def adjusted_vertex_message(index: int) -> str:
    return f"Vertex {index + 1} adjusted to the visible (alpha) edge."


def defaulted_orientation_message() -> str:
    return f"Default orientation applied ({orientation_label(ORIENT_DEFAULT_ID)})."


def apply_orientation(obj: AnnotationObject, orientation_id: object) -> bool:
    """
    Set an orientation chosen by the user.

    A valid id also clears the ``orientationDefaulted`` flag, since the
    orientation is no longer a fallback.

    Returns:
        False if the id is not a valid orientation
    """
    valid_id = coerce_orientation_id(orientation_id)
    if valid_id is None:
        logger.warning(f"Ignoring invalid orientation {orientation_id!r} for object {obj.id}")
        return False
    obj.class_orientation_id = valid_id
    if obj.meta:
        obj.meta.pop("orientationDefaulted", None)
    return True


def recompute_derived(
    annotation: Annotation,
    obj: AnnotationObject,
    class_map: Optional[Mapping[str, int]] = None
) -> AnnotationObject:
    """
    Bring every derived field of ``obj`` in line with its inputs.

    Safe to call any number of times; a second call changes nothing. Never
    raises, whatever the polygon looks like.

    Args:
        annotation: Owning annotation
        obj: Object to refresh in place
        class_map: Class name to base id mapping

    Returns:
        The same object, for chaining
    """
    class_map = class_map or {}
    if obj.class_name in class_map:
        obj.class_id = class_map[obj.class_name]
    elif not isinstance(obj.class_id, int) or isinstance(obj.class_id, bool):
        obj.class_id = 0

    if obj.meta is None:
        obj.meta = {}

    orientation_id = coerce_orientation_id(obj.class_orientation_id)
    if orientation_id is None:
        logger.debug(f"Object {obj.id} has orientation {obj.class_orientation_id!r}, using default")
        obj.class_orientation_id = ORIENT_DEFAULT_ID
        obj.meta["orientationDefaulted"] = True
    else:
        obj.class_orientation_id = orientation_id

    obj.bbox = compute_bounding_box(obj.polygon)

    validation = validate_polygon(annotation, obj)
    adjusted = obj.meta.get("adjustedVertices")
    if obj.meta.get("autoAdjusted") and isinstance(adjusted, list):
        for index in adjusted:
            if isinstance(index, int):
                validation.add_warning(adjusted_vertex_message(index))
    if obj.meta.get("orientationDefaulted"):
        validation.add_warning(defaulted_orientation_message())

    obj.validation = validation
    obj.is_valid = not validation.errors
    return obj
