"""Background worker threads for BoundingBox Editor."""

from .annotation_io import ExportWorker, ImportWorker

__all__ = ["ExportWorker", "ImportWorker"]
