"""Per-pixel opacity sampling of a decoded texture."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np
from PyQt6.QtGui import QImage

logger = logging.getLogger(__name__)


class AlphaMask:
    """
    Read-only alpha channel of an image.

    Coordinates outside the image sample as fully transparent (0).
    """

    def __init__(self, alpha: np.ndarray) -> None:
        """
        Args:
            alpha: ``(height, width)`` array of opacity values in 0..255
        """
        if alpha.ndim != 2:
            raise ValueError(f"Alpha mask must be 2-dimensional, got shape {alpha.shape}")
        self.alpha = np.ascontiguousarray(alpha, dtype=np.uint8)

    @property
    def width(self) -> int:
        return int(self.alpha.shape[1])

    @property
    def height(self) -> int:
        return int(self.alpha.shape[0])

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def alpha_at(self, x: int, y: int) -> int:
        """Opacity at an integer pixel, 0 outside the image."""
        if not self.in_bounds(x, y):
            return 0
        return int(self.alpha[y, x])

    def is_opaque(self, x: int, y: int) -> bool:
        """True for any pixel that is not fully transparent."""
        return self.alpha_at(x, y) > 0

    @property
    def has_transparency(self) -> bool:
        """True if at least one pixel is not fully opaque."""
        return self.alpha.size > 0 and bool((self.alpha < 255).any())

    @classmethod
    def from_qimage(cls, image: Optional[QImage]) -> Optional[AlphaMask]:
        """
        Extract the alpha channel of a decoded image.

        Returns:
            AlphaMask, or None if the image is null or cannot be converted
        """
        if image is None or image.isNull():
            logger.warning("Cannot extract alpha from a null image")
            return None

        width, height = image.width(), image.height()
        if width <= 0 or height <= 0:
            logger.warning("Image has no valid dimensions for alpha extraction")
            return None

        try:
            rgba = image.convertToFormat(QImage.Format.Format_RGBA8888)
            ptr = rgba.constBits()
            ptr.setsize(rgba.sizeInBytes())
            buffer = np.frombuffer(ptr, dtype=np.uint8)
            rows = buffer.reshape(height, rgba.bytesPerLine())
            pixels = rows[:, :width * 4].reshape(height, width, 4)
            return cls(pixels[:, :, 3].copy())
        except (ValueError, TypeError, RuntimeError) as e:
            logger.warning(f"Could not extract alpha data from image: {e}")
            return None

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> Optional[AlphaMask]:
        """Decode an image file and extract its alpha channel, None on failure."""
        image = QImage(str(path))
        if image.isNull():
            logger.warning(f"Could not decode image for alpha mask: {path}")
            return None
        return cls.from_qimage(image)
