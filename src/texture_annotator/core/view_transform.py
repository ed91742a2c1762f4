"""Pan and zoom mapping between canvas (device) pixels and image pixels."""

from __future__ import annotations

import logging
import math
from typing import Optional

from PyQt6.QtCore import QPointF

logger = logging.getLogger(__name__)

MIN_BASE_SCALE = 0.01
MIN_ZOOM = 0.1
MAX_ZOOM = 10.0
WHEEL_ZOOM_IN = 1.1
WHEEL_ZOOM_OUT = 0.9


def _finite(*values: float) -> bool:
    return all(isinstance(v, (int, float)) and math.isfinite(v) for v in values)


class ViewTransform:
    """
    Affine view state of the annotation canvas.

    ``base_scale`` fits the image into the canvas, ``zoom`` is the user zoom
    on top of it, and ``pan`` is the device position of the image origin::

        device = pan + image * base_scale * zoom
    """

    def __init__(self) -> None:
        self.base_scale: float = 1.0
        self.zoom: float = 1.0
        self.pan_x: float = 0.0
        self.pan_y: float = 0.0

    @property
    def scale(self) -> float:
        """Effective device pixels per image pixel."""
        return self.base_scale * self.zoom

    def reset(self) -> None:
        self.base_scale = 1.0
        self.zoom = 1.0
        self.pan_x = 0.0
        self.pan_y = 0.0

    def fit(self, canvas_width: float, canvas_height: float, image_width: float, image_height: float) -> bool:
        """
        Scale the image to fit the canvas and centre it.

        Zoom is reset to 1. Image sizes below one pixel are treated as 1.

        Returns:
            False if any input is not finite (state is left unchanged)
        """
        if not _finite(canvas_width, canvas_height, image_width, image_height):
            logger.warning(
                f"Cannot fit view to {canvas_width}x{canvas_height} canvas "
                f"and {image_width}x{image_height} image"
            )
            return False

        image_width = max(1.0, float(image_width))
        image_height = max(1.0, float(image_height))
        scale_x = canvas_width / image_width
        scale_y = canvas_height / image_height

        self.base_scale = max(MIN_BASE_SCALE, min(scale_x, scale_y))
        self.zoom = 1.0
        self.pan_x = (canvas_width - image_width * self.scale) / 2
        self.pan_y = (canvas_height - image_height * self.scale) / 2
        return True

    def device_to_image(self, point: QPointF) -> Optional[QPointF]:
        """Map a canvas position to image pixels, None if it cannot be mapped."""
        scale = self.scale
        if not _finite(point.x(), point.y(), scale) or scale == 0:
            logger.debug(f"Cannot map device point ({point.x()}, {point.y()}) at scale {scale}")
            return None
        return QPointF((point.x() - self.pan_x) / scale, (point.y() - self.pan_y) / scale)

    def image_to_device(self, point: QPointF) -> Optional[QPointF]:
        """Map image pixels to a canvas position, None if it cannot be mapped."""
        if not _finite(point.x(), point.y()):
            return None
        scale = self.scale
        return QPointF(self.pan_x + point.x() * scale, self.pan_y + point.y() * scale)

    def zoom_at(self, pivot: QPointF, factor: float) -> bool:
        """
        Multiply the zoom by ``factor`` keeping ``pivot`` over the same image pixel.

        Args:
            pivot: Canvas position under the cursor
            factor: Zoom multiplier (clamped result stays in [0.1, 10])

        Returns:
            False if the request was ignored
        """
        if not _finite(factor) or factor <= 0:
            logger.warning(f"Ignoring invalid zoom factor {factor}")
            return False

        before = self.device_to_image(pivot)
        self.zoom = min(max(self.zoom * factor, MIN_ZOOM), MAX_ZOOM)
        after = self.device_to_image(pivot)
        if before is None or after is None:
            return False

        self.pan_x += (after.x() - before.x()) * self.scale
        self.pan_y += (after.y() - before.y()) * self.scale
        return True

    def wheel_zoom(self, pivot: QPointF, angle_delta_y: float) -> bool:
        """Zoom one wheel notch in (scrolling up) or out."""
        factor = WHEEL_ZOOM_IN if angle_delta_y > 0 else WHEEL_ZOOM_OUT
        return self.zoom_at(pivot, factor)

    def pan_by(self, dx: float, dy: float) -> None:
        """Move the image by a device-space delta. Pan is unbounded."""
        if not _finite(dx, dy):
            logger.warning(f"Ignoring invalid pan delta ({dx}, {dy})")
            return
        self.pan_x += dx
        self.pan_y += dy

    def canvas_length_to_image(self, length: float) -> float:
        """Convert a fixed on-screen length (such as a handle radius) to image pixels."""
        scale = self.scale
        if not scale:
            return float(length)
        return length / scale
