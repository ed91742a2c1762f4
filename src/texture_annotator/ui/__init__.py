"""UI components for Texture Annotator."""

from .canvas import AnnotationCanvas
from .config_panel import ExportConfigPanel
from .main_window import MainWindow

__all__ = [
    "AnnotationCanvas",
    "ExportConfigPanel",
    "MainWindow",
]
