"""Exceptions and error kinds used by the annotation IO layer."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Category of a non-fatal, per-item failure."""

    IO = "io"
    FORMAT = "format"


class AnnotationIOError(Exception):
    """Base class for annotation IO exceptions."""


class ConfigurationError(AnnotationIOError, ValueError):
    """
    Fatal setup problem detected before any item is processed.

    Raised for unknown strategy tags, unusable destination roots and
    missing load sources.
    """


class AnnotationFormatError(AnnotationIOError):
    """Malformed annotation content encountered while loading one item."""
