"""Annotation canvas widget: image display, polygon drawing and editing."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from PyQt6.QtCore import Qt, QPointF, QRectF, pyqtSignal
from PyQt6.QtGui import (
    QPainter, QColor, QPen, QFont, QFontMetrics, QPolygonF, QPixmap,
    QImage, QMouseEvent, QKeyEvent, QWheelEvent
)
from PyQt6.QtWidgets import QWidget

from ..core.geometry import polygon_centroid
from ..core.models import AnnotationObject, orientation_key
from ..core.session import (
    HANDLE_CANVAS_PX,
    MOVE_HANDLE_CANVAS_PX,
    AnnotationSession,
    FinalizeResult,
    HitKind,
)
from ..core.view_transform import ViewTransform

logger = logging.getLogger(__name__)

NOTICE_INFO = "info"
NOTICE_WARNING = "warning"


class AnnotationCanvas(QWidget):
    """
    Canvas for drawing and editing polygon annotations on one texture.

    Pointer positions are mapped to image pixels through a ViewTransform and
    forwarded to the AnnotationSession; the canvas only keeps interaction
    state (panning, vertex drags) and paints what the session holds.

    Controls:
    - Click on empty space starts a polygon, further clicks add vertices
    - Click near the first vertex, double-click or Enter closes the polygon
    - Drag a vertex to move it, drag the centre handle to move the object
    - Double-click on an edge of the selected object inserts a vertex
    - Ctrl+drag or middle-drag pans, the wheel zooms, Ctrl+0 fits the view
    - Delete/Backspace removes the selected vertex or object, Escape cancels
    """

    # Signals
    objects_changed = pyqtSignal()
    selection_changed = pyqtSignal(object)  # object id or None
    notice = pyqtSignal(str, str)  # level, message
    zoom_changed = pyqtSignal(float)

    # Constants
    LINE_THICKNESS = 2
    FONT_SIZE = 9
    INVALID_COLOR = QColor(220, 40, 40)
    SELECTED_COLOR = QColor(255, 220, 0)
    ADJUSTED_COLOR = QColor(255, 140, 0)
    DRAFT_COLOR = QColor(0, 170, 255)

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        """Initialize the canvas."""
        super().__init__(parent)
        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setMinimumSize(320, 240)

        self.session: Optional[AnnotationSession] = None
        self.view = ViewTransform()
        self._pixmap: Optional[QPixmap] = None
        self._class_colors: Dict[str, QColor] = {}

        self._panning = False
        self._pan_origin = QPointF()
        self._vertex_drag: Optional[tuple] = None
        self._changed_during_drag = False
        self._view_adjusted = False

    # === Setup ===

    def set_session(self, session: AnnotationSession) -> None:
        self.session = session
        self.refresh_class_colors()
        self.update()

    def refresh_class_colors(self) -> None:
        """Assign a stable hue to every known class."""
        self._class_colors.clear()
        if self.session is None:
            return
        count = max(1, len(self.session.classes))
        for index, name in enumerate(self.session.classes):
            self._class_colors[name] = QColor.fromHsv(int(360 * index / count) % 360, 200, 230)

    def set_image(self, image: Optional[QImage]) -> None:
        """Show a decoded image and fit it to the canvas."""
        self._pixmap = QPixmap.fromImage(image) if image is not None and not image.isNull() else None
        self._reset_interaction()
        self.fit_view()

    def clear(self) -> None:
        self._pixmap = None
        self._reset_interaction()
        self.view.reset()
        self.update()

    def has_image(self) -> bool:
        return self._pixmap is not None

    def fit_view(self) -> None:
        """Fit the image to the canvas and centre it."""
        self._view_adjusted = False
        if self._pixmap is None:
            self.update()
            return
        if self.view.fit(self.width(), self.height(), self._pixmap.width(), self._pixmap.height()):
            self.zoom_changed.emit(self.view.zoom)
        self.update()

    def _reset_interaction(self) -> None:
        self._panning = False
        self._vertex_drag = None
        self._changed_during_drag = False
        self.unsetCursor()

    # === Coordinate helpers ===

    def _to_image(self, pos: QPointF) -> Optional[QPointF]:
        return self.view.device_to_image(pos)

    def _handle_radius(self) -> float:
        return self.view.canvas_length_to_image(HANDLE_CANVAS_PX)

    def _move_radius(self) -> float:
        return self.view.canvas_length_to_image(MOVE_HANDLE_CANVAS_PX)

    def _emit_notice(self, message: Optional[str], level: str = NOTICE_INFO) -> None:
        if message:
            self.notice.emit(level, message)

    def _report_finalize(self, result: FinalizeResult) -> None:
        if result.discarded:
            self._emit_notice(result.notice, NOTICE_WARNING)
        elif result.obj is None:
            self._emit_notice(result.notice, NOTICE_WARNING)
        else:
            self._emit_notice(result.notice)
            self.objects_changed.emit()
            self.selection_changed.emit(result.obj.id)

    # === Event Handlers ===

    def resizeEvent(self, event) -> None:
        """Keep the image fitted until the user zooms or pans."""
        super().resizeEvent(event)
        if not self._view_adjusted:
            self.fit_view()

    def wheelEvent(self, event: QWheelEvent) -> None:
        """Zoom around the cursor."""
        if self._pixmap is None:
            return
        delta = event.angleDelta().y()
        if delta == 0:
            return
        if self.view.wheel_zoom(event.position(), delta):
            self._view_adjusted = True
            self.zoom_changed.emit(self.view.zoom)
            self.update()
        event.accept()

    def mousePressEvent(self, event: QMouseEvent) -> None:
        """Handle mouse press events."""
        self.setFocus()
        pos = event.position()

        panning_click = (
            event.button() == Qt.MouseButton.MiddleButton
            or (
                event.button() == Qt.MouseButton.LeftButton
                and event.modifiers() & Qt.KeyboardModifier.ControlModifier
            )
        )
        if panning_click:
            self._panning = True
            self._pan_origin = QPointF(pos)
            self.setCursor(Qt.CursorShape.ClosedHandCursor)
            return

        if event.button() != Qt.MouseButton.LeftButton or self.session is None or self._pixmap is None:
            return

        point = self._to_image(pos)
        if point is None:
            return

        session = self.session
        if session.draft is not None:
            result = session.add_draft_point(point, self._handle_radius())
            if result is not None:
                self._report_finalize(result)
            self.update()
            return

        hit = session.hit_test(point, self._handle_radius(), self._move_radius())
        if hit is None:
            selected = session.selected_object
            if selected is not None and session.find_edge_for_insertion(
                selected, point, self._handle_radius()
            ) is not None:
                # First click of a double-click that inserts a vertex
                return
            previous = session.selected_object_id
            self._emit_notice(session.start_draft(point), NOTICE_WARNING)
            if previous is not None and session.selected_object_id is None:
                self.selection_changed.emit(None)
        elif hit.kind is HitKind.VERTEX:
            session.select_object(hit.object_id, hit.vertex_index)
            self._vertex_drag = (hit.object_id, hit.vertex_index)
            self.selection_changed.emit(hit.object_id)
        elif hit.kind is HitKind.MOVE_HANDLE:
            session.begin_object_drag(hit.object_id, point)
            self.selection_changed.emit(hit.object_id)
        else:
            session.select_object(hit.object_id)
            self.selection_changed.emit(hit.object_id)
        self.update()

    def mouseMoveEvent(self, event: QMouseEvent) -> None:
        """Handle mouse move events."""
        pos = event.position()

        if self._panning:
            self.view.pan_by(pos.x() - self._pan_origin.x(), pos.y() - self._pan_origin.y())
            self._pan_origin = QPointF(pos)
            self._view_adjusted = True
            self.update()
            return

        if self.session is None or self._pixmap is None:
            return
        point = self._to_image(pos)
        if point is None:
            return

        session = self.session
        if self._vertex_drag is not None:
            object_id, index = self._vertex_drag
            if session.move_vertex(object_id, index, point):
                self._changed_during_drag = True
        elif session.dragging_object:
            if session.drag_object_to(point):
                self._changed_during_drag = True
        elif session.draft is not None:
            session.update_draft_preview(point)
        else:
            self._update_hover_cursor(point)
        self.update()

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:
        """Handle mouse release events."""
        if self._panning:
            self._panning = False
            self.unsetCursor()
            return

        if self.session is not None:
            self.session.end_drag()
        self._vertex_drag = None
        if self._changed_during_drag:
            self._changed_during_drag = False
            self.objects_changed.emit()
        self.update()

    def mouseDoubleClickEvent(self, event: QMouseEvent) -> None:
        """Close the draft, or insert a vertex on an edge of the selected object."""
        if event.button() != Qt.MouseButton.LeftButton or self.session is None:
            return
        session = self.session
        if session.draft is not None:
            self._report_finalize(session.finalize_draft())
            self.update()
            return

        point = self._to_image(event.position())
        if point is None or session.selected_object_id is None:
            return
        index = session.insert_vertex(session.selected_object_id, point, self._handle_radius())
        if index is not None:
            session.select_object(session.selected_object_id, index)
            self.objects_changed.emit()
            self.update()

    def keyPressEvent(self, event: QKeyEvent) -> None:
        """Handle key press events."""
        key = event.key()
        session = self.session

        if key == Qt.Key.Key_0 and event.modifiers() & Qt.KeyboardModifier.ControlModifier:
            self.fit_view()
        elif session is None:
            super().keyPressEvent(event)
        elif key in (Qt.Key.Key_Return, Qt.Key.Key_Enter) and session.draft is not None:
            self._report_finalize(session.finalize_draft())
        elif key == Qt.Key.Key_Escape:
            if session.draft is not None:
                session.cancel_draft()
            else:
                session.clear_selection()
                self.selection_changed.emit(None)
        elif key in (Qt.Key.Key_Delete, Qt.Key.Key_Backspace) and session.selected_object_id:
            had_vertex = session.selected_vertex_index is not None
            notice = session.delete_selection()
            if notice:
                self._emit_notice(notice, NOTICE_WARNING)
            else:
                self.objects_changed.emit()
                if not had_vertex:
                    self.selection_changed.emit(None)
        else:
            super().keyPressEvent(event)
            return
        self.update()

    def _update_hover_cursor(self, point: QPointF) -> None:
        hit = self.session.hit_test(point, self._handle_radius(), self._move_radius())
        if hit is None:
            self.setCursor(Qt.CursorShape.CrossCursor)
        elif hit.kind is HitKind.VERTEX:
            self.setCursor(Qt.CursorShape.PointingHandCursor)
        elif hit.kind is HitKind.MOVE_HANDLE:
            self.setCursor(Qt.CursorShape.SizeAllCursor)
        else:
            self.setCursor(Qt.CursorShape.ArrowCursor)

    # === Painting ===

    def paintEvent(self, event) -> None:
        """Paint the image, the objects and the draft."""
        painter = QPainter(self)
        painter.fillRect(self.rect(), QColor(40, 40, 40))
        if self._pixmap is None:
            painter.end()
            return

        scale = self.view.scale
        painter.translate(self.view.pan_x, self.view.pan_y)
        painter.scale(scale, scale)

        # Pixel art must stay crisp when zoomed
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform, False)
        painter.drawPixmap(0, 0, self._pixmap)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)

        annotation = self.session.current_annotation if self.session else None
        if annotation is not None:
            for obj in annotation.objects:
                self._draw_object(painter, obj, obj.id == self.session.selected_object_id)
        if self.session is not None and self.session.draft is not None:
            self._draw_draft(painter)

        painter.end()

    def _class_color(self, class_name: str) -> QColor:
        return QColor(self._class_colors.get(class_name, QColor(0, 255, 0)))

    def _draw_object(self, painter: QPainter, obj: AnnotationObject, selected: bool) -> None:
        """Draw one polygon with its label and handles."""
        if len(obj.polygon) < 2:
            return
        scale = self.view.scale
        color = self._class_color(obj.class_name)
        if selected:
            color = QColor(self.SELECTED_COLOR)

        pen = QPen(color, self.LINE_THICKNESS / scale)
        if not obj.is_valid:
            pen = QPen(self.INVALID_COLOR, self.LINE_THICKNESS / scale, Qt.PenStyle.DashLine)
        painter.setPen(pen)
        painter.setBrush(QColor(color.red(), color.green(), color.blue(), 50))
        painter.drawPolygon(QPolygonF(obj.polygon))

        adjusted = set()
        if obj.meta.get("autoAdjustedPending"):
            adjusted = set(obj.meta.get("adjustedVertices") or [])

        radius = HANDLE_CANVAS_PX / 2 / scale
        for index, vertex in enumerate(obj.polygon):
            if index in adjusted:
                painter.setBrush(self.ADJUSTED_COLOR)
            elif selected and index == self.session.selected_vertex_index:
                painter.setBrush(QColor(255, 0, 0))
            else:
                painter.setBrush(QColor(255, 255, 255))
            painter.setPen(QPen(color, 1 / scale))
            painter.drawEllipse(vertex, radius, radius)

        centroid = polygon_centroid(obj.polygon)
        if centroid is not None:
            half = MOVE_HANDLE_CANVAS_PX / 2 / scale
            painter.setPen(QPen(color, 1 / scale))
            painter.setBrush(QColor(color.red(), color.green(), color.blue(), 160))
            painter.drawRect(QRectF(centroid.x() - half, centroid.y() - half, 2 * half, 2 * half))

        label = obj.class_name
        if self.session is not None and self.session.orientation_aware:
            label = f"{obj.class_name}:{orientation_key(obj.class_orientation_id)}"
        self._draw_label(painter, label, obj.polygon[0], color)

    def _draw_draft(self, painter: QPainter) -> None:
        draft = self.session.draft
        scale = self.view.scale
        painter.setPen(QPen(self.DRAFT_COLOR, self.LINE_THICKNESS / scale))
        painter.setBrush(Qt.BrushStyle.NoBrush)
        points = list(draft.points)
        if len(points) > 1:
            painter.drawPolyline(QPolygonF(points))
        if draft.preview is not None and points:
            painter.setPen(QPen(self.DRAFT_COLOR, 1 / scale, Qt.PenStyle.DashLine))
            painter.drawLine(points[-1], draft.preview)

        radius = HANDLE_CANVAS_PX / 2 / scale
        painter.setPen(QPen(self.DRAFT_COLOR, 1 / scale))
        for index, point in enumerate(points):
            painter.setBrush(QColor(255, 255, 0) if index == 0 else QColor(255, 255, 255))
            painter.drawEllipse(point, radius, radius)

    def _draw_label(self, painter: QPainter, label: str, point: QPointF, color: QColor) -> None:
        """Draw a label with background, keeping a constant on-screen size."""
        scale = self.view.scale
        font = QFont("Arial")
        font.setPointSizeF(max(1.0, self.FONT_SIZE / scale))
        metrics = QFontMetrics(font)
        padding = 3 / scale
        rect = QRectF(
            point.x(),
            point.y() - metrics.height() - 2 * padding,
            metrics.horizontalAdvance(label) + 2 * padding,
            metrics.height() + 2 * padding,
        )

        background = QColor(color)
        background.setAlpha(180)
        brightness = (background.red() * 299 + background.green() * 587 + background.blue() * 114) / 1000
        text_color = Qt.GlobalColor.black if brightness > 128 else Qt.GlobalColor.white

        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(background)
        painter.drawRect(rect)
        painter.setFont(font)
        painter.setPen(text_color)
        painter.drawText(rect, Qt.AlignmentFlag.AlignCenter, label)
