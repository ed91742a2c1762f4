"""Core business logic modules for Texture Annotator."""

from .models import Annotation, AnnotationObject, BoundingBox, ValidationResult
from .config import AppConfig, ConfigManager
from .alpha_mask import AlphaMask
from .snapping import SnapResult, snap_polygon_to_alpha
from .validation import recompute_derived, validate_polygon
from .view_transform import ViewTransform
from .export import generate_yolo_lines, is_object_enabled
from .persistence import ProjectStorage
from .session import AnnotationSession

__all__ = [
    "Annotation",
    "AnnotationObject",
    "BoundingBox",
    "ValidationResult",
    "AppConfig",
    "ConfigManager",
    "AlphaMask",
    "SnapResult",
    "snap_polygon_to_alpha",
    "recompute_derived",
    "validate_polygon",
    "ViewTransform",
    "generate_yolo_lines",
    "is_object_enabled",
    "ProjectStorage",
    "AnnotationSession",
]
