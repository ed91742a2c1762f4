"""Image directory scanning."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from PyQt6.QtCore import QThread, pyqtSignal

from ..core.results import ImageEntry, ImageScanResult
from ..utils.fileio import describe_os_error, ensure_dir

logger = logging.getLogger(__name__)

# Supported image extensions
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".bmp"}


def is_image_file(path: Path) -> bool:
    return path.is_file() and path.suffix.lower() in IMAGE_EXTENSIONS


def get_image_files(directory: Path) -> List[ImageEntry]:
    """
    Get the image files in a directory, sorted by name.

    Args:
        directory: Directory to scan

    Returns:
        List of ImageEntry (empty if the directory does not exist)

    Raises:
        OSError: If the directory cannot be listed
    """
    directory = Path(directory)
    if not directory.is_dir():
        return []

    entries = [ImageEntry(name=f.name, path=f) for f in directory.iterdir() if is_image_file(f)]
    entries.sort(key=lambda entry: entry.name.lower())
    return entries


def scan_images(directory: Path) -> ImageScanResult:
    """
    List the images of a mode's image directory, creating it if needed.

    Returns:
        ImageScanResult; failures carry a readable error instead of raising
    """
    directory = Path(directory)
    try:
        ensure_dir(directory)
        images = get_image_files(directory)
    except OSError as e:
        logger.error(f"Error scanning directory {directory}: {e}")
        return ImageScanResult(False, error=describe_os_error(e, "read", f"the image folder {directory}"))

    logger.info(f"Image scan complete: {len(images)} images found in {directory}")
    return ImageScanResult(True, images=images)


class ImageScanner(QThread):
    """
    Background thread for scanning the image directory.

    Only lists file names; images are decoded when they are opened.
    """

    # Emitted with the ImageScanResult when the scan is done
    scan_complete = pyqtSignal(object)

    def __init__(self, directory: Path) -> None:
        """
        Initialize the image scanner.

        Args:
            directory: Directory to scan for images
        """
        super().__init__()
        self.directory = Path(directory)

    def run(self) -> None:
        """Scan directory for image files."""
        self.scan_complete.emit(scan_images(self.directory))
