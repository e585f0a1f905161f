"""Data models for BoundingBox Editor annotations."""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from PyQt6.QtCore import QPointF
from PyQt6.QtGui import QColor

from .image_metadata import read_image_dimensions
from .statistics import CategoryStatistics

logger = logging.getLogger(__name__)

PointLike = Union[QPointF, Tuple[float, float], Sequence[float]]


class ShapeType(str, Enum):
    """Type of bounding shape."""

    BOX = "box"
    POLYGON = "polygon"


def color_to_string(color: QColor) -> str:
    """Serialize a color as '#AARRGGBB'."""
    return color.name(QColor.NameFormat.HexArgb)


def color_from_string(text: str) -> QColor:
    """
    Parse a color written by color_to_string (or any Qt color name).

    Raises:
        ValueError: If the text is not a valid color
    """
    color = QColor(text)
    if not color.isValid():
        raise ValueError(f"Invalid color: {text!r}")
    return color


@dataclass
class ObjectCategory:
    """
    A named object category with its display color.

    Categories are owned by a CategoryRegistry and referenced by shapes.
    """

    name: str
    color: QColor = field(default_factory=lambda: ObjectCategory._generate_random_color())

    def __hash__(self) -> int:
        return hash(self.name)

    @staticmethod
    def _generate_random_color() -> QColor:
        """Generate a random half-transparent color with full saturation and value."""
        hue = random.randint(0, 359)
        hsv = QColor.fromHsv(hue, 255, 255, 128)
        # Plain 8-bit RGB so the color survives a '#AARRGGBB' round-trip
        return QColor(hsv.red(), hsv.green(), hsv.blue(), hsv.alpha())


@dataclass
class BoundingShapeData:
    """
    Data of one bounding shape, either a box or a polygon.

    A box holds exactly two points, (xmin, ymin) and (xmax, ymax).
    A polygon holds its vertices in drawing order. Both may contain
    nested parts, which are bounding shapes themselves.

    Raises:
        ValueError: On construction with non-finite coordinates or the
            wrong number of points
    """

    type: ShapeType
    category: ObjectCategory
    points: List[QPointF]
    parts: List[BoundingShapeData] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.type = ShapeType(self.type)
        self.points = [_to_point(p) for p in self.points]
        for point in self.points:
            if not (math.isfinite(point.x()) and math.isfinite(point.y())):
                raise ValueError(f"Coordinates must be finite numbers, got ({point.x()}, {point.y()})")

        if self.type == ShapeType.BOX:
            if len(self.points) != 2:
                raise ValueError("A box needs exactly 2 points")
            first, second = self.points
            self.points = [
                QPointF(min(first.x(), second.x()), min(first.y(), second.y())),
                QPointF(max(first.x(), second.x()), max(first.y(), second.y())),
            ]
        elif not self.points:
            raise ValueError("A polygon needs at least 1 point")

    @classmethod
    def box(
        cls,
        category: ObjectCategory,
        xmin: float,
        ymin: float,
        xmax: float,
        ymax: float,
        parts: Optional[List[BoundingShapeData]] = None,
        tags: Optional[List[str]] = None
    ) -> BoundingShapeData:
        """Create a box shape from its corner coordinates."""
        return cls(
            type=ShapeType.BOX,
            category=category,
            points=[QPointF(xmin, ymin), QPointF(xmax, ymax)],
            parts=parts or [],
            tags=tags or [],
        )

    @classmethod
    def polygon(
        cls,
        category: ObjectCategory,
        points: Iterable[PointLike],
        parts: Optional[List[BoundingShapeData]] = None,
        tags: Optional[List[str]] = None
    ) -> BoundingShapeData:
        """Create a polygon shape from its vertices."""
        return cls(
            type=ShapeType.POLYGON,
            category=category,
            points=list(points),
            parts=parts or [],
            tags=tags or [],
        )

    @property
    def xmin(self) -> float:
        return min(p.x() for p in self.points)

    @property
    def ymin(self) -> float:
        return min(p.y() for p in self.points)

    @property
    def xmax(self) -> float:
        return max(p.x() for p in self.points)

    @property
    def ymax(self) -> float:
        return max(p.y() for p in self.points)

    def bounding_rect(self) -> Tuple[float, float, float, float]:
        """
        Get the bounding rectangle of the shape.

        Returns:
            Tuple of (x, y, width, height)
        """
        return (self.xmin, self.ymin, self.xmax - self.xmin, self.ymax - self.ymin)

    def iter_shapes(self) -> Iterator[BoundingShapeData]:
        """Yield this shape followed by all nested parts, depth-first."""
        yield self
        for part in self.parts:
            yield from part.iter_shapes()

    def without_parts(self) -> BoundingShapeData:
        """Return a copy of this shape with no nested parts."""
        return replace(self, points=list(self.points), parts=[], tags=list(self.tags))


def _to_point(point: PointLike) -> QPointF:
    if isinstance(point, QPointF):
        return QPointF(point)
    x, y = point
    return QPointF(float(x), float(y))


@dataclass
class ImageMetaData:
    """
    Metadata of an image file.

    Width, height and depth are 0 when they could not be read.
    """

    file_name: str
    folder_name: str = ""
    width: int = 0
    height: int = 0
    depth: int = 0

    @property
    def has_details(self) -> bool:
        """True if the image dimensions are known."""
        return self.width > 0 and self.height > 0 and self.depth > 0

    @classmethod
    def from_file(cls, image_path: Union[str, Path]) -> ImageMetaData:
        """
        Create metadata from an image file without decoding its pixels.

        Args:
            image_path: Path to the image file

        Returns:
            ImageMetaData (zero dimensions if the header is unreadable)
        """
        image_path = Path(image_path)
        dimensions = read_image_dimensions(image_path)
        return cls(
            file_name=image_path.name,
            folder_name=image_path.resolve().parent.name,
            width=dimensions.width,
            height=dimensions.height,
            depth=dimensions.depth,
        )


@dataclass
class ImageAnnotation:
    """
    All top-level shapes of a single image.

    Nested parts are reachable through each shape's parts list. The shape
    sequence is a tuple; while the annotation belongs to an
    ImageAnnotationData, every change to it goes through that dataset's
    category registry and statistics.
    """

    image_meta_data: ImageMetaData
    shapes: Tuple[BoundingShapeData, ...] = ()
    _owner: Optional[ImageAnnotationData] = field(default=None, init=False, repr=False, compare=False)

    def __setattr__(self, name: str, value: object) -> None:
        if name == "shapes":
            value = tuple(value)
            if self._owner is not None:
                self._owner._track(self.shapes, value)
        super().__setattr__(name, value)

    @property
    def file_name(self) -> str:
        return self.image_meta_data.file_name

    def add_shape(self, shape: BoundingShapeData) -> None:
        """Add a top-level shape."""
        if self._owner is not None:
            self._owner._track((), (shape,))
        super().__setattr__("shapes", self.shapes + (shape,))

    def remove_shape(self, index: int) -> Optional[BoundingShapeData]:
        """Remove and return a top-level shape by index."""
        if not 0 <= index < len(self.shapes):
            return None
        shape = self.shapes[index]
        if self._owner is not None:
            self._owner._track((shape,), ())
        super().__setattr__("shapes", self.shapes[:index] + self.shapes[index + 1:])
        return shape

    def iter_shapes(self) -> Iterator[BoundingShapeData]:
        """Yield every shape of the image including nested parts."""
        for shape in self.shapes:
            yield from shape.iter_shapes()

    @property
    def shape_count(self) -> int:
        """Count of all shapes including nested parts."""
        return sum(1 for _ in self.iter_shapes())

    @property
    def box_count(self) -> int:
        """Count of bounding box annotations."""
        return sum(1 for s in self.iter_shapes() if s.type == ShapeType.BOX)

    @property
    def polygon_count(self) -> int:
        """Count of polygon annotations."""
        return sum(1 for s in self.iter_shapes() if s.type == ShapeType.POLYGON)


class CategoryRegistry:
    """
    Project-wide registry of object categories, keyed by unique name.

    Keeps insertion order so that exported category lists are stable.
    """

    def __init__(self, categories: Optional[Iterable[ObjectCategory]] = None) -> None:
        self._categories: Dict[str, ObjectCategory] = {}
        for category in categories or []:
            self.add(category)

    def __contains__(self, name: object) -> bool:
        if isinstance(name, ObjectCategory):
            name = name.name
        return name in self._categories

    def __iter__(self) -> Iterator[ObjectCategory]:
        return iter(list(self._categories.values()))

    def __len__(self) -> int:
        return len(self._categories)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CategoryRegistry):
            return NotImplemented
        return list(self._categories.values()) == list(other._categories.values())

    def __repr__(self) -> str:
        return f"CategoryRegistry({list(self._categories)!r})"

    def names(self) -> List[str]:
        return list(self._categories)

    def get(self, name: str) -> Optional[ObjectCategory]:
        return self._categories.get(name)

    def add(self, category: ObjectCategory) -> ObjectCategory:
        """
        Add a new category.

        Raises:
            ValueError: If the name is empty or already registered
        """
        if not category.name:
            raise ValueError("Category name must not be empty")
        if category.name in self._categories:
            raise ValueError(f"Category already exists: {category.name}")
        self._categories[category.name] = category
        return category

    def get_or_create(self, name: str, color: Optional[QColor] = None) -> ObjectCategory:
        """Return the registered category with this name, creating it if needed."""
        category = self._categories.get(name)
        if category is None:
            category = ObjectCategory(name, color) if color is not None else ObjectCategory(name)
            self.add(category)
            logger.debug(f"Created category '{name}'")
        return category

    def remove(self, name: str) -> Optional[ObjectCategory]:
        """Remove and return a category by name."""
        return self._categories.pop(name, None)

    def to_dict(self) -> Dict[str, str]:
        """Convert to a name -> '#AARRGGBB' mapping."""
        return {name: color_to_string(c.color) for name, c in self._categories.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> CategoryRegistry:
        """
        Create a registry from a name -> color mapping.

        Invalid colors are replaced by a random color.
        """
        registry = cls()
        for name, color_text in data.items():
            try:
                color = color_from_string(str(color_text))
            except ValueError as e:
                logger.warning(f"{e} for category '{name}', using a random color")
                registry.get_or_create(str(name))
                continue
            registry.add(ObjectCategory(str(name), color))
        return registry


class ImageAnnotationData:
    """
    Dataset-wide annotation collection.

    Maps image file names to their ImageAnnotation and keeps the category
    registry and per-category shape counts consistent with the contents.
    Not safe for concurrent mutation.
    """

    def __init__(
        self,
        annotations: Optional[Iterable[ImageAnnotation]] = None,
        registry: Optional[CategoryRegistry] = None
    ) -> None:
        self.registry = registry if registry is not None else CategoryRegistry()
        self.statistics = CategoryStatistics()
        self._annotations: Dict[str, ImageAnnotation] = {}

        for annotation in annotations or []:
            self.add_annotation(annotation)

    def __len__(self) -> int:
        return len(self._annotations)

    def __iter__(self) -> Iterator[ImageAnnotation]:
        return iter(list(self._annotations.values()))

    def __contains__(self, file_name: object) -> bool:
        return file_name in self._annotations

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ImageAnnotationData):
            return NotImplemented
        return self._annotations == other._annotations and self.registry == other.registry

    def __repr__(self) -> str:
        return f"ImageAnnotationData(images={len(self)}, categories={len(self.registry)})"

    @property
    def image_count(self) -> int:
        return len(self._annotations)

    @property
    def shape_count(self) -> int:
        return self.statistics.total

    def file_names(self) -> List[str]:
        return list(self._annotations)

    def get_annotation(self, file_name: str) -> Optional[ImageAnnotation]:
        return self._annotations.get(file_name)

    def add_annotation(self, annotation: ImageAnnotation) -> None:
        """Add an image annotation, replacing any existing one for the same file."""
        self.remove_image(annotation.file_name)
        if annotation._owner is not None:
            annotation._owner.remove_image(annotation.file_name)
        self._track((), annotation.shapes)
        annotation._owner = self
        self._annotations[annotation.file_name] = annotation

    def remove_image(self, file_name: str) -> Optional[ImageAnnotation]:
        """Discard the annotation of an image that left the project."""
        annotation = self._annotations.pop(file_name, None)
        if annotation is not None:
            self._track(annotation.shapes, ())
            annotation._owner = None
        return annotation

    def add_shape(
        self,
        file_name: str,
        shape: BoundingShapeData,
        image_meta_data: Optional[ImageMetaData] = None
    ) -> ImageAnnotation:
        """
        Add a top-level shape to an image.

        The image annotation is created on its first shape.
        """
        annotation = self._annotation_for(file_name, image_meta_data)
        annotation.add_shape(shape)
        return annotation

    def remove_shape(self, file_name: str, index: int) -> Optional[BoundingShapeData]:
        """Remove a top-level shape (with its parts) from an image."""
        annotation = self._annotations.get(file_name)
        if annotation is None:
            return None
        return annotation.remove_shape(index)

    def set_shapes(self, file_name: str, shapes: Iterable[BoundingShapeData]) -> ImageAnnotation:
        """Replace all top-level shapes of an image, e.g. after extracting them from a ShapeTree."""
        annotation = self._annotation_for(file_name)
        annotation.shapes = shapes
        return annotation

    def remove_category(self, name: str) -> ObjectCategory:
        """
        Remove an unused category from the registry.

        Raises:
            ValueError: If shapes still use the category or it does not exist
        """
        if self.statistics.count(name) > 0:
            raise ValueError(f"Category '{name}' is still assigned to {self.statistics.count(name)} shape(s)")
        category = self.registry.remove(name)
        if category is None:
            raise ValueError(f"Unknown category: {name}")
        return category

    def _annotation_for(self, file_name: str, image_meta_data: Optional[ImageMetaData] = None) -> ImageAnnotation:
        annotation = self._annotations.get(file_name)
        if annotation is None:
            annotation = ImageAnnotation(image_meta_data or ImageMetaData(file_name))
            self.add_annotation(annotation)
        return annotation

    def _track(self, removed: Iterable[BoundingShapeData], added: Iterable[BoundingShapeData]) -> None:
        """Update registry and statistics for top-level shapes leaving and entering the dataset."""
        for shape in removed:
            self.statistics.remove_shape(shape)
        for shape in added:
            self._register(shape)

    def _register(self, shape: BoundingShapeData) -> None:
        for item in shape.iter_shapes():
            registered = self.registry.get(item.category.name)
            if registered is None:
                self.registry.add(item.category)
            elif registered is not item.category:
                item.category = registered
        self.statistics.add_shape(shape)
