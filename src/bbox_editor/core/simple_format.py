"""Simple (lossless JSON) annotation format reading and writing."""

from __future__ import annotations

import json
import logging
import math
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from .annotation_strategy import AnnotationStrategy, PathLike, ProgressCallback, write_atomic
from .errors import AnnotationFormatError, ConfigurationError, ErrorKind
from .models import (
    BoundingShapeData,
    CategoryRegistry,
    ImageAnnotation,
    ImageAnnotationData,
    ImageMetaData,
    ObjectCategory,
    ShapeType,
    color_from_string,
)
from .results import ExportResult, ImportResult

logger = logging.getLogger(__name__)

SIMPLE_FORMAT_ID = "bbox-editor-simple"
SIMPLE_FORMAT_VERSION = 1
DEFAULT_SIMPLE_FILE_NAME = "annotations.json"


class SimpleAnnotationFormat(AnnotationStrategy):
    """
    Simple annotation format strategy.

    Stores the whole dataset, including the category registry, in a single
    JSON file. Coordinates keep full double precision, so saving and loading
    reproduces the data exactly. Also used to persist projects.

    JSON structure:
    {
        "format": "bbox-editor-simple",
        "version": 1,
        "categories": {"person": "#80ff0000"},
        "images": [
            {
                "fileName": "image.jpg",
                "folderName": "images",
                "width": 1920,
                "height": 1080,
                "depth": 3,
                "shapes": [
                    {
                        "type": "box",
                        "category": "person",
                        "points": [[100.25, 100.0], [200.0, 200.5]],
                        "tags": ["difficult"],
                        "parts": [...]
                    }
                ]
            }
        ]
    }

    Readers accept documents of any version up to SIMPLE_FORMAT_VERSION.
    """

    def __init__(self, file_name: str = DEFAULT_SIMPLE_FILE_NAME) -> None:
        """
        Initialize the Simple format strategy.

        Args:
            file_name: Name of the dataset file inside a destination directory
        """
        self.file_name = file_name

    @property
    def format_name(self) -> str:
        """Return the format name."""
        return "simple"

    @property
    def is_per_image(self) -> bool:
        """Simple uses a single JSON file for all images."""
        return False

    @property
    def file_extension(self) -> str:
        """Simple uses .json files."""
        return ".json"

    def get_annotation_path(self, directory: Path) -> Path:
        """Get the dataset file path inside a directory."""
        return directory / self.file_name

    def save(
        self,
        data: ImageAnnotationData,
        destination: PathLike,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> ExportResult:
        """
        Save all annotations to one JSON file.

        Images that fail to serialize are reported and left out of the file.
        A cancelled save writes nothing.
        """
        directory = self._prepare_destination(destination)
        json_path = self.get_annotation_path(directory)
        result = ExportResult()
        images: List[Dict[str, Any]] = []

        self._process_items(
            list(data),
            lambda annotation: images.append(self._annotation_to_dict(annotation)),
            lambda annotation: annotation.file_name,
            result,
            progress,
            cancel_event,
        )

        if result.cancelled:
            result.nr_successfully_processed_items = 0
            logger.info(f"Save to {json_path} cancelled, nothing written")
            return result

        document = {
            "format": SIMPLE_FORMAT_ID,
            "version": SIMPLE_FORMAT_VERSION,
            "categories": data.registry.to_dict(),
            "images": images,
        }

        try:
            write_atomic(json_path, json.dumps(document, indent=2, ensure_ascii=False))
        except OSError as e:
            logger.error(f"Error writing Simple annotation file {json_path}: {e}")
            result.add_error(json_path.name, str(e), ErrorKind.IO)
            result.nr_successfully_processed_items = 0

        logger.info(f"{result.summary()} Destination: {json_path}")
        return result

    def load(
        self,
        source: PathLike,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        registry: Optional[CategoryRegistry] = None
    ) -> ImportResult:
        """
        Load annotations from a Simple JSON file.

        Args:
            source: The JSON file or a directory containing it

        Categories already in the given registry keep their colors.
        """
        source = self._require_source(source)
        json_path = self.get_annotation_path(source) if source.is_dir() else source
        if not json_path.exists():
            raise ConfigurationError(f"Simple annotation file not found: {json_path}")

        data = ImageAnnotationData(registry=registry)
        result = ImportResult(data=data)

        try:
            with open(json_path, "r", encoding="utf-8") as f:
                document = json.load(f)
            entries = self._read_header(document, data.registry)
        except OSError as e:
            logger.error(f"Error reading Simple annotation file {json_path}: {e}")
            result.add_error(json_path.name, str(e), ErrorKind.IO)
            return result
        except (AnnotationFormatError, ValueError) as e:
            logger.error(f"Error parsing Simple annotation file {json_path}: {e}")
            result.add_error(json_path.name, str(e), ErrorKind.FORMAT)
            return result

        def entry_name(indexed_entry) -> str:
            index, entry = indexed_entry
            if isinstance(entry, dict) and entry.get("fileName"):
                return str(entry["fileName"])
            return f"images[{index}]"

        self._process_items(
            list(enumerate(entries)),
            lambda indexed_entry: self._add_loaded_annotation(
                data, self._annotation_from_dict(indexed_entry[1], data.registry)
            ),
            entry_name,
            result,
            progress,
            cancel_event,
        )

        logger.info(f"{result.summary()} Source: {json_path}")
        return result

    def _read_header(self, document: Any, registry: CategoryRegistry) -> List[Any]:
        if not isinstance(document, dict) or document.get("format") != SIMPLE_FORMAT_ID:
            raise AnnotationFormatError("Not a Simple annotation document")

        version = document.get("version")
        if not isinstance(version, int) or version > SIMPLE_FORMAT_VERSION:
            raise AnnotationFormatError(f"Unsupported Simple format version: {version!r}")

        categories = document.get("categories", {})
        if not isinstance(categories, dict):
            raise AnnotationFormatError("'categories' must be an object")

        for name, color_text in categories.items():
            if name in registry:
                continue
            try:
                registry.add(ObjectCategory(name, color_from_string(str(color_text))))
            except ValueError as e:
                logger.warning(f"{e} for category '{name}', using a random color")
                registry.get_or_create(name)

        images = document.get("images", [])
        if not isinstance(images, list):
            raise AnnotationFormatError("'images' must be a list")
        return images

    def _annotation_to_dict(self, annotation: ImageAnnotation) -> Dict[str, Any]:
        meta_data = annotation.image_meta_data
        return {
            "fileName": meta_data.file_name,
            "folderName": meta_data.folder_name,
            "width": meta_data.width,
            "height": meta_data.height,
            "depth": meta_data.depth,
            "shapes": [self._shape_to_dict(shape) for shape in annotation.shapes],
        }

    def _shape_to_dict(self, shape: BoundingShapeData) -> Dict[str, Any]:
        points = [[p.x(), p.y()] for p in shape.points]
        if not all(math.isfinite(c) for point in points for c in point):
            raise ValueError(f"Shape of category '{shape.category.name}' has non-finite coordinates")
        return {
            "type": shape.type.value,
            "category": shape.category.name,
            "points": points,
            "tags": list(shape.tags),
            "parts": [self._shape_to_dict(part) for part in shape.parts],
        }

    def _annotation_from_dict(self, entry: Any, registry: CategoryRegistry) -> ImageAnnotation:
        if not isinstance(entry, dict):
            raise AnnotationFormatError("Image entry must be an object")

        file_name = entry.get("fileName")
        if not isinstance(file_name, str) or not file_name:
            raise AnnotationFormatError("Image entry without 'fileName'")

        try:
            meta_data = ImageMetaData(
                file_name=file_name,
                folder_name=str(entry.get("folderName", "")),
                width=int(entry.get("width", 0)),
                height=int(entry.get("height", 0)),
                depth=int(entry.get("depth", 0)),
            )
        except (TypeError, ValueError, OverflowError) as e:
            raise AnnotationFormatError(f"Invalid image size: {e}") from e
        shapes = [self._shape_from_dict(item, registry) for item in _as_list(entry.get("shapes", []), "shapes")]
        return ImageAnnotation(meta_data, shapes)

    def _shape_from_dict(self, item: Any, registry: CategoryRegistry) -> BoundingShapeData:
        if not isinstance(item, dict):
            raise AnnotationFormatError("Shape entry must be an object")

        try:
            shape_type = ShapeType(item.get("type"))
        except ValueError:
            raise AnnotationFormatError(f"Unknown shape type: {item.get('type')!r}") from None

        category_name = item.get("category")
        if not isinstance(category_name, str) or not category_name:
            raise AnnotationFormatError("Shape entry without 'category'")

        points = []
        for point in _as_list(item.get("points"), "points"):
            if not isinstance(point, list) or len(point) != 2:
                raise AnnotationFormatError(f"Invalid point: {point!r}")
            try:
                x, y = float(point[0]), float(point[1])
            except (TypeError, ValueError):
                raise AnnotationFormatError(f"Invalid point: {point!r}") from None
            if not (math.isfinite(x) and math.isfinite(y)):
                raise AnnotationFormatError(f"Point coordinates must be finite: {point!r}")
            points.append((x, y))

        return BoundingShapeData(
            type=shape_type,
            category=registry.get_or_create(category_name),
            points=points,
            parts=[self._shape_from_dict(part, registry) for part in _as_list(item.get("parts", []), "parts")],
            tags=[str(tag) for tag in _as_list(item.get("tags", []), "tags")],
        )


def _as_list(value: Any, key: str) -> List[Any]:
    if not isinstance(value, list):
        raise AnnotationFormatError(f"'{key}' must be a list")
    return value
