"""Abstract base class for annotation save/load strategies."""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional, Sequence, TypeVar, Union

from .errors import AnnotationFormatError, ConfigurationError, ErrorKind
from .models import CategoryRegistry, ImageAnnotation, ImageAnnotationData
from .results import ExportResult, ImportResult, IOResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]
PathLike = Union[str, Path]

T = TypeVar("T")


class AnnotationStrategy(ABC):
    """
    Abstract base class for annotation save/load strategies.

    A strategy persists a whole ImageAnnotationData to a destination and
    restores it from a source. Items (images or annotation files) are
    processed sequentially; a failing item is recorded in the result and
    never aborts the batch. Configuration problems are raised as
    ConfigurationError before any item is touched.

    Strategies are divided into two types:
    - Per-image formats (Pascal VOC): one annotation file per image
    - Dataset formats (Simple): one file for all images
    """

    @property
    @abstractmethod
    def format_name(self) -> str:
        """Return the format name (e.g., 'pascal_voc', 'simple')."""
        pass

    @property
    @abstractmethod
    def is_per_image(self) -> bool:
        """Return True if format uses one file per image, False for dataset-wide files."""
        pass

    @property
    @abstractmethod
    def file_extension(self) -> str:
        """Return the file extension for annotation files (e.g., '.xml', '.json')."""
        pass

    @abstractmethod
    def save(
        self,
        data: ImageAnnotationData,
        destination: PathLike,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> ExportResult:
        """
        Save all image annotations.

        Args:
            data: Annotations to save
            destination: Destination directory (created if missing)
            progress: Called with the processed fraction in [0, 1]
            cancel_event: Checked at every image boundary

        Returns:
            ExportResult with counts, elapsed time and per-item errors

        Raises:
            ConfigurationError: If the destination cannot be used
        """
        pass

    @abstractmethod
    def load(
        self,
        source: PathLike,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        registry: Optional[CategoryRegistry] = None
    ) -> ImportResult:
        """
        Load image annotations.

        Args:
            source: Source directory (or file, for dataset formats)
            progress: Called with the processed fraction in [0, 1]
            cancel_event: Checked at every image boundary
            registry: Category registry to resolve category names against

        Returns:
            ImportResult with the loaded data, counts, elapsed time and
            per-item errors

        Raises:
            ConfigurationError: If the source does not exist
        """
        pass

    def _prepare_destination(self, destination: PathLike) -> Path:
        destination = Path(destination)
        try:
            destination.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(f"Cannot create destination directory {destination}: {e}") from e

        if not destination.is_dir():
            raise ConfigurationError(f"Destination is not a directory: {destination}")
        if not os.access(destination, os.W_OK):
            raise ConfigurationError(f"Destination directory is not writable: {destination}")
        return destination

    def _require_source(self, source: PathLike) -> Path:
        source = Path(source)
        if not source.exists():
            raise ConfigurationError(f"Source not found: {source}")
        return source

    def _add_loaded_annotation(self, data: ImageAnnotationData, annotation: ImageAnnotation) -> None:
        """
        Add a freshly loaded annotation; the first one loaded for an image wins.

        Raises:
            AnnotationFormatError: If the image already has an annotation
        """
        if annotation.file_name in data:
            raise AnnotationFormatError(
                f"Duplicate annotation for image {annotation.file_name}, keeping the one loaded first"
            )
        data.add_annotation(annotation)

    def _process_items(
        self,
        items: Sequence[T],
        process: Callable[[T], None],
        item_name: Callable[[T], str],
        result: IOResult,
        progress: Optional[ProgressCallback],
        cancel_event: Optional[threading.Event]
    ) -> None:
        """
        Run process on every item in order, collecting failures in result.

        Progress is reported after each item and reaches 1.0 unless the run
        is cancelled.
        """
        start = time.perf_counter()
        total = len(items)

        for index, item in enumerate(items):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"{self.format_name} {result.operation.value} cancelled after {index} of {total} items")
                result.cancelled = True
                break

            name = item_name(item)
            try:
                process(item)
            except OSError as e:
                logger.error(f"Error processing {name}: {e}")
                result.add_error(name, str(e), ErrorKind.IO)
            except (AnnotationFormatError, ValueError, ArithmeticError) as e:
                logger.error(f"Invalid annotation data in {name}: {e}")
                result.add_error(name, str(e), ErrorKind.FORMAT)
            else:
                result.nr_successfully_processed_items += 1

            if progress is not None:
                progress((index + 1) / total)

        if total == 0 and progress is not None:
            progress(1.0)

        result.time_taken_ms += (time.perf_counter() - start) * 1000.0


def write_atomic(path: Path, content: str) -> None:
    """
    Write a text file so that it is either fully written or left untouched.

    The content goes to a temporary file in the same directory which then
    replaces the target.
    """
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise
