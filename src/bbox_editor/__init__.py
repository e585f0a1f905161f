"""
BoundingBox Editor - hierarchical bounding-box annotation core.

Data model, category/shape tree reconciliation and Pascal VOC / Simple
annotation persistence for image labeling tools built with PyQt6.
"""

__version__ = "1.0.0"
__author__ = "BoundingBox Editor Team"
