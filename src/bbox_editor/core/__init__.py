"""Core business logic modules for BoundingBox Editor."""

from .models import (
    BoundingShapeData,
    CategoryRegistry,
    ImageAnnotation,
    ImageAnnotationData,
    ImageMetaData,
    ObjectCategory,
    ShapeType,
)
from .config import AppConfig, CategoryRegistryFile, ConfigManager
from .errors import AnnotationFormatError, AnnotationIOError, ConfigurationError, ErrorKind
from .format_registry import FormatRegistry, StrategyType
from .results import ExportResult, ImportResult, IOErrorInfo
from .shape_tree import ShapeTree

__all__ = [
    "BoundingShapeData",
    "CategoryRegistry",
    "ImageAnnotation",
    "ImageAnnotationData",
    "ImageMetaData",
    "ObjectCategory",
    "ShapeType",
    "AppConfig",
    "CategoryRegistryFile",
    "ConfigManager",
    "AnnotationFormatError",
    "AnnotationIOError",
    "ConfigurationError",
    "ErrorKind",
    "FormatRegistry",
    "StrategyType",
    "ExportResult",
    "ImportResult",
    "IOErrorInfo",
    "ShapeTree",
]
