"""
Annotation session: the editing state behind the main window.

The session owns the loaded images, their annotations, the drawing draft,
the selection and the save state. It is plain Python so the whole editing
flow can be driven and tested without widgets; the UI forwards pointer and
keyboard input (already mapped to image pixels) and renders the result.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from PyQt6.QtCore import QPointF

from .alpha_mask import AlphaMask
from .classes import build_class_map
from .config import AppConfig
from .dataset import DatasetImage
from .export import ExportIssue, SavePayload, build_save_payload, generate_yolo_lines
from .geometry import (
    clamp_point,
    distance,
    distance_point_to_segment,
    point_in_polygon,
    polygon_centroid,
)
from .models import (
    ORIENT_DEFAULT_ID,
    Annotation,
    AnnotationObject,
    annotation_from_record,
    coerce_orientation_id,
)
from .results import ImageEntry, OperationResult
from .snapping import snap_polygon_to_alpha
from .validation import apply_orientation, recompute_derived

logger = logging.getLogger(__name__)

HANDLE_CANVAS_PX = 8
MOVE_HANDLE_CANVAS_PX = 12
SAVE_DEBOUNCE_SECONDS = 0.5

NOTICE_SAVE_IN_PROGRESS = "A save is already in progress, please wait."
NOTICE_SNAPPED = "Polygon adjusted to the visible (alpha) edge."
NOTICE_DISCARDED = "Invalid region discarded (transparent area without a visible edge)."
NOTICE_TOO_FEW_VERTICES = "A polygon needs at least 3 vertices."
NOTICE_SELECT_CLASS = "Select a class before drawing."
NOTICE_VERTEX_MINIMUM = "Cannot delete the vertex: the polygon would become invalid."


class SaveTrigger(Enum):
    """What asked for a save. Only shortcut saves are debounced."""

    BUTTON = "button"
    SHORTCUT = "shortcut"


class HitKind(Enum):
    VERTEX = "vertex"
    MOVE_HANDLE = "move_handle"
    BODY = "body"


@dataclass
class HitResult:
    """An object (and possibly one of its vertices) under the pointer."""

    object_id: str
    kind: HitKind
    vertex_index: Optional[int] = None


@dataclass
class Draft:
    """A polygon being drawn, not yet part of the annotation."""

    class_name: str
    class_id: int
    orientation_id: int
    points: List[QPointF] = field(default_factory=list)
    preview: Optional[QPointF] = None


@dataclass
class FinalizeResult:
    """Outcome of closing a draft."""

    obj: Optional[AnnotationObject] = None
    discarded: bool = False
    auto_adjusted: bool = False
    notice: Optional[str] = None


@dataclass
class SaveRequest:
    """
    Answer to a save request.

    ``payload`` is set only when the save was accepted; the caller writes it
    and reports back with ``AnnotationSession.complete_save``.
    """

    accepted: bool
    payload: Optional[SavePayload] = None
    notice: Optional[str] = None


@dataclass
class LoadSummary:
    """What happened while loading saved records."""

    loaded: int = 0
    migrated: int = 0
    skipped: int = 0


@dataclass
class ObjectDrag:
    object_id: str
    origin: QPointF
    start_polygon: List[QPointF]


class AnnotationSession:
    """
    Editing state for one workspace mode.

    Args:
        config: Application configuration (shared with the config panel)
        orientation_aware: Whether the active mode uses orientations on export
        clock: Monotonic time source in seconds, used for save debouncing
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        orientation_aware: bool = True,
        clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.config = config or AppConfig()
        self.orientation_aware = orientation_aware
        self._clock = clock

        self.images: List[ImageEntry] = []
        self.annotations: Dict[str, Annotation] = {}
        self.classes: List[str] = []
        self.class_map: Dict[str, int] = {}

        self.current_index = -1
        self.alpha_mask: Optional[AlphaMask] = None
        self.current_class_name: Optional[str] = None
        self.current_orientation_id = ORIENT_DEFAULT_ID

        self.draft: Optional[Draft] = None
        self.selected_object_id: Optional[str] = None
        self.selected_vertex_index: Optional[int] = None
        self._drag: Optional[ObjectDrag] = None

        self.dirty_images: Set[str] = set()
        self.annotation_errors: Dict[str, List[ExportIssue]] = {}
        self.save_in_progress = False
        self._last_shortcut_save: Optional[float] = None
        self.migration_count = 0

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    @property
    def expand_orientations(self) -> bool:
        """Orientation expansion as actually applied on export."""
        return self.orientation_aware and self.config.export.expand_orientations

    def set_images(self, images: Iterable[ImageEntry]) -> None:
        """Replace the image list and select the first image."""
        self.images = list(images)
        self.cancel_draft()
        self.clear_selection()
        self.alpha_mask = None
        self.current_index = 0 if self.images else -1

    def set_classes(self, classes: Iterable[str]) -> None:
        """
        Install the class list.

        Base ids of existing objects are re-resolved, and every class gets an
        explicit export filter entry.
        """
        self.classes = list(classes)
        self.class_map = build_class_map(self.classes)
        self.config.sync_with_classes(self.classes)
        if self.current_class_name not in self.class_map:
            self.current_class_name = self.classes[0] if self.classes else None

        for annotation in self.annotations.values():
            for obj in annotation.objects:
                recompute_derived(annotation, obj, self.class_map)

    def load_records(self, records: Iterable[Mapping[str, Any]]) -> LoadSummary:
        """
        Install saved annotation records.

        Legacy box records are migrated to polygons. Records without a file
        name are skipped. Derived data of every object is recomputed.
        """
        summary = LoadSummary()
        for record in records:
            annotation, migrated = annotation_from_record(record, self.class_map)
            if annotation is None:
                summary.skipped += 1
                continue
            for obj in annotation.objects:
                recompute_derived(annotation, obj, self.class_map)
            self.annotations[annotation.file_name] = annotation
            summary.loaded += 1
            summary.migrated += migrated

        self.migration_count += summary.migrated
        if summary.migrated:
            logger.info(f"Migrated {summary.migrated} legacy boxes to polygons")
        if summary.skipped:
            logger.warning(f"Skipped {summary.skipped} records without a file name")
        return summary

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    @property
    def current_image(self) -> Optional[ImageEntry]:
        if 0 <= self.current_index < len(self.images):
            return self.images[self.current_index]
        return None

    def get_annotation(self, file_name: str) -> Annotation:
        """Annotation of an image, created on first access."""
        annotation = self.annotations.get(file_name)
        if annotation is None:
            annotation = Annotation(file_name=file_name)
            self.annotations[file_name] = annotation
        return annotation

    @property
    def current_annotation(self) -> Optional[Annotation]:
        image = self.current_image
        if image is None:
            return None
        return self.get_annotation(image.name)

    def select_image(self, index: int) -> bool:
        """Make another image current; out-of-range indices are ignored."""
        if index < 0 or index >= len(self.images):
            return False
        if index != self.current_index:
            self.cancel_draft()
            self.clear_selection()
            self.alpha_mask = None
        self.current_index = index
        return True

    def navigate(self, step: int) -> bool:
        """Move forward or backward through the images, wrapping around."""
        if not self.images:
            return False
        return self.select_image((self.current_index + step) % len(self.images))

    def on_image_decoded(self, width: int, height: int, mask: Optional[AlphaMask]) -> None:
        """
        Record what the decoder found for the current image.

        The annotation's size is fixed by the first decode.
        """
        annotation = self.current_annotation
        if annotation is None:
            return
        if annotation.set_dimensions(width, height):
            for obj in annotation.objects:
                recompute_derived(annotation, obj, self.class_map)
        self.alpha_mask = mask

    # ------------------------------------------------------------------
    # Selection and hit testing
    # ------------------------------------------------------------------

    def find_object(self, object_id: Optional[str]) -> Optional[AnnotationObject]:
        annotation = self.current_annotation
        return annotation.find_object(object_id) if annotation else None

    @property
    def selected_object(self) -> Optional[AnnotationObject]:
        return self.find_object(self.selected_object_id)

    def select_object(self, object_id: Optional[str], vertex_index: Optional[int] = None) -> None:
        self.selected_object_id = object_id
        self.selected_vertex_index = vertex_index

    def clear_selection(self) -> None:
        self.select_object(None)
        self._drag = None

    def hit_test(self, point: QPointF, handle_radius: float, move_radius: float) -> Optional[HitResult]:
        """
        Find what lies under an image point.

        Vertex handles win over centroid move handles, which win over polygon
        interiors. Objects drawn last (on top) are tested first.
        """
        annotation = self.current_annotation
        if annotation is None:
            return None
        objects = list(reversed(annotation.objects))

        for obj in objects:
            for index, vertex in enumerate(obj.polygon):
                if distance(point, vertex) <= handle_radius:
                    return HitResult(obj.id, HitKind.VERTEX, index)

        for obj in objects:
            centroid = polygon_centroid(obj.polygon)
            if centroid is not None and distance(point, centroid) <= move_radius:
                return HitResult(obj.id, HitKind.MOVE_HANDLE)

        for obj in objects:
            if point_in_polygon(point, obj.polygon):
                return HitResult(obj.id, HitKind.BODY)

        return None

    @staticmethod
    def find_edge_for_insertion(obj: AnnotationObject, point: QPointF, tolerance: float) -> Optional[int]:
        """Index of the first edge within ``tolerance`` of the point."""
        count = len(obj.polygon)
        for index in range(count):
            a = obj.polygon[index]
            b = obj.polygon[(index + 1) % count]
            if distance_point_to_segment(point, a, b) <= tolerance:
                return index
        return None

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    def start_draft(self, point: QPointF) -> Optional[str]:
        """
        Begin drawing a polygon at ``point`` with the current class.

        Returns:
            A notice if drawing cannot start, otherwise None
        """
        if self.current_annotation is None:
            return None
        if not self.current_class_name:
            return NOTICE_SELECT_CLASS
        self.clear_selection()
        self.draft = Draft(
            class_name=self.current_class_name,
            class_id=self.class_map.get(self.current_class_name, 0),
            orientation_id=self.current_orientation_id,
            points=[QPointF(point)],
        )
        return None

    def add_draft_point(self, point: QPointF, close_radius: float) -> Optional[FinalizeResult]:
        """
        Add a vertex to the draft.

        Clicking within ``close_radius`` of the first vertex, once the draft
        has 3 or more points, closes the polygon instead.

        Returns:
            The FinalizeResult if the click closed the draft, else None
        """
        if self.draft is None:
            return None
        points = self.draft.points
        if len(points) >= 3 and distance(point, points[0]) <= close_radius:
            return self.finalize_draft()
        points.append(QPointF(point))
        return None

    def update_draft_preview(self, point: Optional[QPointF]) -> None:
        if self.draft is not None:
            self.draft.preview = point

    def cancel_draft(self) -> None:
        self.draft = None

    def finalize_draft(self) -> FinalizeResult:
        """
        Turn the draft into an object.

        Vertices are snapped to the visible texture first. A draft with fewer
        than 3 points, or one that cannot be snapped, is dropped.
        """
        draft = self.draft
        self.draft = None
        annotation = self.current_annotation
        if draft is None or annotation is None:
            return FinalizeResult()

        if len(draft.points) < 3:
            return FinalizeResult(notice=NOTICE_TOO_FEW_VERTICES)

        snap = snap_polygon_to_alpha(draft.points, self.alpha_mask)
        if snap.discard:
            return FinalizeResult(discarded=True, notice=NOTICE_DISCARDED)

        obj = AnnotationObject(
            class_name=draft.class_name,
            class_id=draft.class_id,
            class_orientation_id=draft.orientation_id,
            polygon=snap.polygon,
        )
        if snap.auto_adjusted:
            obj.meta["autoAdjusted"] = True
            obj.meta["autoAdjustedPending"] = True
            obj.meta["adjustedVertices"] = list(snap.moved_vertices)

        recompute_derived(annotation, obj, self.class_map)
        annotation.objects.append(obj)
        self.select_object(obj.id)
        self._mark_dirty(annotation)
        logger.info(f"Added {obj.class_name} polygon with {len(obj.polygon)} vertices to {annotation.file_name}")

        return FinalizeResult(
            obj=obj,
            auto_adjusted=snap.auto_adjusted,
            notice=NOTICE_SNAPPED if snap.auto_adjusted else None,
        )

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def _edit_target(self, object_id: str) -> Tuple[Optional[Annotation], Optional[AnnotationObject]]:
        annotation = self.current_annotation
        if annotation is None:
            return None, None
        obj = annotation.find_object(object_id)
        if obj is None:
            logger.warning(f"Object {object_id} not found in {annotation.file_name}")
        return annotation, obj

    def _commit(self, annotation: Annotation, obj: AnnotationObject) -> None:
        recompute_derived(annotation, obj, self.class_map)
        self._mark_dirty(annotation)

    def move_vertex(self, object_id: str, index: int, point: QPointF) -> bool:
        """Move one vertex, clamped to the image."""
        annotation, obj = self._edit_target(object_id)
        if obj is None or not 0 <= index < len(obj.polygon):
            return False
        obj.polygon[index] = clamp_point(point, annotation.width, annotation.height)
        self._commit(annotation, obj)
        return True

    def begin_object_drag(self, object_id: str, origin: QPointF) -> bool:
        """Remember the polygon and pointer position a whole-object move starts from."""
        obj = self.find_object(object_id)
        if obj is None:
            return False
        self.select_object(object_id)
        self._drag = ObjectDrag(object_id, QPointF(origin), obj.copy_polygon())
        return True

    def drag_object_to(self, point: QPointF) -> bool:
        """Translate the dragged object by the pointer offset from the drag origin."""
        if self._drag is None:
            return False
        annotation, obj = self._edit_target(self._drag.object_id)
        if obj is None:
            self._drag = None
            return False
        dx = point.x() - self._drag.origin.x()
        dy = point.y() - self._drag.origin.y()
        obj.polygon = [
            clamp_point(QPointF(p.x() + dx, p.y() + dy), annotation.width, annotation.height)
            for p in self._drag.start_polygon
        ]
        self._commit(annotation, obj)
        return True

    def end_drag(self) -> None:
        self._drag = None

    @property
    def dragging_object(self) -> bool:
        return self._drag is not None

    def insert_vertex(self, object_id: str, point: QPointF, tolerance: float) -> Optional[int]:
        """
        Insert a vertex on the edge nearest to ``point``.

        Returns:
            Index of the new vertex, or None if no edge is close enough
        """
        annotation, obj = self._edit_target(object_id)
        if obj is None:
            return None
        edge = self.find_edge_for_insertion(obj, point, tolerance)
        if edge is None:
            return None
        obj.polygon.insert(edge + 1, QPointF(point))
        self._commit(annotation, obj)
        return edge + 1

    def delete_vertex(self, object_id: str, index: int) -> Optional[str]:
        """
        Remove one vertex, keeping at least 3.

        Returns:
            A notice if the vertex was not removed, otherwise None
        """
        annotation, obj = self._edit_target(object_id)
        if obj is None or not 0 <= index < len(obj.polygon):
            return None
        if len(obj.polygon) <= 3:
            return NOTICE_VERTEX_MINIMUM
        del obj.polygon[index]
        if self.selected_object_id == object_id:
            self.selected_vertex_index = None
        self._commit(annotation, obj)
        return None

    def delete_object(self, object_id: str) -> bool:
        annotation = self.current_annotation
        if annotation is None or annotation.remove_object(object_id) is None:
            return False
        if self.selected_object_id == object_id:
            self.clear_selection()
        self._mark_dirty(annotation)
        return True

    def delete_selection(self) -> Optional[str]:
        """Delete the selected vertex if any, else the selected object."""
        if self.selected_object_id is None:
            return None
        if self.selected_vertex_index is not None:
            return self.delete_vertex(self.selected_object_id, self.selected_vertex_index)
        self.delete_object(self.selected_object_id)
        return None

    def set_object_class(self, object_id: str, class_name: str) -> bool:
        annotation, obj = self._edit_target(object_id)
        if obj is None or not class_name:
            return False
        obj.class_name = class_name
        self._commit(annotation, obj)
        return True

    def set_object_orientation(self, object_id: str, orientation_id: Any) -> bool:
        annotation, obj = self._edit_target(object_id)
        if obj is None or not apply_orientation(obj, orientation_id):
            return False
        self._commit(annotation, obj)
        return True

    def set_current_orientation(self, orientation_id: Any) -> bool:
        """Orientation given to newly drawn polygons."""
        valid = coerce_orientation_id(orientation_id)
        if valid is None:
            return False
        self.current_orientation_id = valid
        return True

    # ------------------------------------------------------------------
    # Orientation issues
    # ------------------------------------------------------------------

    @staticmethod
    def _needs_orientation(obj: AnnotationObject) -> bool:
        return coerce_orientation_id(obj.class_orientation_id) is None or obj.orientation_defaulted

    def orientation_issue_count(self) -> int:
        """Objects whose orientation was filled in automatically."""
        return sum(
            1
            for annotation in self.annotations.values()
            for obj in annotation.objects
            if self._needs_orientation(obj)
        )

    def assign_default_orientation_to_all(self) -> int:
        """
        Confirm the default orientation on every object lacking one.

        Returns:
            Number of objects changed
        """
        changed = 0
        for annotation in self.annotations.values():
            for obj in annotation.objects:
                if self._needs_orientation(obj):
                    apply_orientation(obj, ORIENT_DEFAULT_ID)
                    self._commit(annotation, obj)
                    changed += 1
        if changed:
            logger.info(f"Assigned the default orientation to {changed} objects")
        return changed

    # ------------------------------------------------------------------
    # Saving and export
    # ------------------------------------------------------------------

    def _mark_dirty(self, annotation: Annotation) -> None:
        self.dirty_images.add(annotation.file_name)

    @property
    def has_unsaved_changes(self) -> bool:
        return bool(self.dirty_images)

    def current_label_issues(self) -> List[ExportIssue]:
        """Export problems of the current image, computed on demand."""
        annotation = self.current_annotation
        if annotation is None:
            return []
        return generate_yolo_lines(annotation, self.config, self.class_map, self.expand_orientations).errors

    def request_save(self, trigger: SaveTrigger = SaveTrigger.BUTTON) -> SaveRequest:
        """
        Start a save if none is running.

        Shortcut saves arriving within the debounce interval of the previous
        accepted shortcut save are dropped silently.

        Returns:
            SaveRequest carrying the payload to write when accepted
        """
        if self.save_in_progress:
            return SaveRequest(False, notice=NOTICE_SAVE_IN_PROGRESS)

        now = self._clock()
        if trigger is SaveTrigger.SHORTCUT:
            last = self._last_shortcut_save
            if last is not None and now - last < SAVE_DEBOUNCE_SECONDS:
                logger.debug("Shortcut save debounced")
                return SaveRequest(False)
            self._last_shortcut_save = now

        payload = build_save_payload(
            self.annotations.values(), self.config, self.class_map, self.expand_orientations
        )
        self.annotation_errors = dict(payload.errors)
        self.save_in_progress = True
        return SaveRequest(True, payload=payload)

    def complete_save(self, result: OperationResult) -> bool:
        """
        Finish the save started by ``request_save``.

        On success the dirty set and pending snap highlights are cleared.

        Returns:
            True if any pending snap highlight was cleared
        """
        self.save_in_progress = False
        if not result.success:
            logger.error(f"Save failed: {result.describe()}")
            return False

        self.dirty_images.clear()
        cleared = False
        for annotation in self.annotations.values():
            for obj in annotation.objects:
                if obj.meta.get("autoAdjustedPending"):
                    obj.meta["autoAdjustedPending"] = False
                    cleared = True
        logger.info("Save completed")
        return cleared

    def build_dataset_export(self) -> Tuple[List[DatasetImage], Dict[str, List[str]]]:
        """
        Images and label lines for a dataset export.

        Every listed image is included; images without objects get empty
        label files.
        """
        images: List[DatasetImage] = []
        labels: Dict[str, List[str]] = {}
        for entry in self.images:
            images.append(DatasetImage(file_name=entry.name, path=entry.path))
            annotation = self.annotations.get(entry.name)
            if annotation is None:
                labels[entry.name] = []
                continue
            result = generate_yolo_lines(annotation, self.config, self.class_map, self.expand_orientations)
            labels[entry.name] = result.lines
        return images, labels
