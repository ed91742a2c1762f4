"""
Texture Annotator - A desktop tool for polygon annotation of game textures.

Built with PyQt6. Polygons snap to the visible (alpha) edge of the texture
and are exported as YOLO segmentation labels and train/val/test datasets,
optionally with one class per texture orientation.
"""

__version__ = "1.0.0"
__author__ = "Texture Annotator Team"
