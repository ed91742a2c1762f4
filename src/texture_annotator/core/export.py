"""Export eligibility, label line generation and save payload assembly."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .config import MISSING_POLICY_SKIP, AppConfig
from .models import ORIENT_DEFAULT_ID, Annotation, AnnotationObject, coerce_orientation_id
from .yolo_format import encode_class_id, format_label_line, normalize_polygon

logger = logging.getLogger(__name__)

IMAGE_ISSUE_ID = "image"

MSG_NO_DIMENSIONS = "The image has no known dimensions."
MSG_INVALID_OBJECT = "Invalid object."
MSG_BLOCKED_OBJECT = "The object has warnings and was not exported."
MSG_MISSING_ORIENTATION = "Missing orientation, object skipped."
MSG_NORMALIZATION_FAILED = "Invalid normalization."


@dataclass
class ExportIssue:
    """Why one object (or the whole image) produced no label line."""

    object_id: str
    message: str


@dataclass
class LabelResult:
    """Label lines of one image plus the problems found while building them."""

    lines: List[str] = field(default_factory=list)
    errors: List[ExportIssue] = field(default_factory=list)


@dataclass
class SavePayload:
    """Everything a save writes, computed from the in-memory annotations."""

    filtered: List[Dict[str, Any]] = field(default_factory=list)
    full: List[Dict[str, Any]] = field(default_factory=list)
    labels: Dict[str, List[str]] = field(default_factory=dict)
    errors: Dict[str, List[ExportIssue]] = field(default_factory=dict)


def is_object_enabled(obj: AnnotationObject, config: Optional[AppConfig]) -> bool:
    """
    Decide whether an object goes into the filtered record set.

    The object must pass the class and orientation filters, be valid and
    not blocked, and, under the ``skip`` policy, have a user-chosen
    orientation.
    """
    if obj is None or config is None:
        return False

    filters = config.export.filter
    if filters.classes.get(obj.class_name) is False:
        return False

    orientation_id = coerce_orientation_id(obj.class_orientation_id)
    if orientation_id is None:
        orientation_id = ORIENT_DEFAULT_ID
    if filters.orientations.get(str(orientation_id)) is False:
        return False

    if not obj.is_valid or obj.validation.block_export:
        return False

    if config.export.missing_orientation_policy == MISSING_POLICY_SKIP and obj.orientation_defaulted:
        return False

    return True


def generate_yolo_lines(
    annotation: Annotation,
    config: AppConfig,
    class_map: Mapping[str, int],
    expand_orientations: Optional[bool] = None
) -> LabelResult:
    """
    Build the label lines of one image.

    Invalid and export-blocked objects are reported as issues. Objects
    turned off by a filter are left out silently.

    Args:
        annotation: Image annotation with known dimensions
        config: Application config supplying filters and policies
        class_map: Class name to base id
        expand_orientations: Override of ``config.export.expand_orientations``

    Returns:
        LabelResult with one line per exported object
    """
    result = LabelResult()
    if annotation is None or not annotation.has_dimensions:
        result.errors.append(ExportIssue(IMAGE_ISSUE_ID, MSG_NO_DIMENSIONS))
        return result

    export = config.export
    expand = export.expand_orientations if expand_orientations is None else expand_orientations
    filters = export.filter

    for obj in annotation.objects:
        if not obj.is_valid:
            message = " · ".join(obj.validation.errors) or MSG_INVALID_OBJECT
            result.errors.append(ExportIssue(obj.id, message))
            continue

        if obj.validation.block_export:
            message = " · ".join(obj.validation.warnings) or MSG_BLOCKED_OBJECT
            result.errors.append(ExportIssue(obj.id, message))
            continue

        if filters.classes.get(obj.class_name) is False:
            continue

        orientation_id = coerce_orientation_id(obj.class_orientation_id)
        if orientation_id is None or obj.orientation_defaulted:
            if export.missing_orientation_policy == MISSING_POLICY_SKIP:
                result.errors.append(ExportIssue(obj.id, MSG_MISSING_ORIENTATION))
                continue
            if orientation_id is None:
                orientation_id = ORIENT_DEFAULT_ID

        if filters.orientations.get(str(orientation_id)) is False:
            continue

        coords = normalize_polygon(obj.polygon, annotation.width, annotation.height)
        if coords is None:
            result.errors.append(ExportIssue(obj.id, MSG_NORMALIZATION_FAILED))
            continue

        base_class_id = class_map.get(obj.class_name, obj.class_id)
        class_id = encode_class_id(base_class_id, orientation_id, expand)
        result.lines.append(format_label_line(class_id, coords))

    return result


def build_save_payload(
    annotations: Iterable[Annotation],
    config: AppConfig,
    class_map: Mapping[str, int],
    expand_orientations: Optional[bool] = None
) -> SavePayload:
    """
    Assemble the full and filtered record sets and every image's labels.

    Full records keep every object with its computed ``enabled`` flag.
    Filtered records keep only eligible objects, each marked enabled.
    """
    payload = SavePayload()

    for annotation in annotations:
        full_objects = []
        filtered_objects = []
        for obj in annotation.objects:
            enabled = is_object_enabled(obj, config)
            full_objects.append(obj.to_record(enabled=enabled))
            if enabled:
                filtered_objects.append(obj.to_record(enabled=True))

        payload.full.append(annotation.to_record(full_objects))
        payload.filtered.append(annotation.to_record(filtered_objects))

        labels = generate_yolo_lines(annotation, config, class_map, expand_orientations)
        payload.labels[annotation.file_name] = labels.lines
        if labels.errors:
            payload.errors[annotation.file_name] = labels.errors

    logger.debug(f"Built save payload for {len(payload.full)} annotations")
    return payload
