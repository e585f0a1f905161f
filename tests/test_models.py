"""Tests for core models."""

import math

import pytest
from PyQt6.QtCore import QPointF
from PyQt6.QtGui import QColor

from bbox_editor.core.models import (
    BoundingShapeData,
    CategoryRegistry,
    ImageAnnotation,
    ImageAnnotationData,
    ImageMetaData,
    ObjectCategory,
    ShapeType,
    color_from_string,
    color_to_string,
)
from bbox_editor.core.statistics import CategoryStatistics


class TestBoundingShapeData:
    """Tests for the BoundingShapeData class."""

    def test_create_box(self):
        """Test creating a bounding box shape."""
        category = ObjectCategory("cat")
        shape = BoundingShapeData.box(category, 10, 20, 100, 200)

        assert shape.type == ShapeType.BOX
        assert shape.category is category
        assert (shape.xmin, shape.ymin, shape.xmax, shape.ymax) == (10, 20, 100, 200)
        assert shape.parts == []
        assert shape.tags == []

    def test_box_corners_are_normalized(self):
        """Test that box corners are sorted into min/max order."""
        shape = BoundingShapeData.box(ObjectCategory("cat"), 100, 200, 10, 20)

        assert shape.points[0] == QPointF(10, 20)
        assert shape.points[1] == QPointF(100, 200)

    def test_box_needs_two_points(self):
        """Test that a box with the wrong number of points is rejected."""
        with pytest.raises(ValueError):
            BoundingShapeData(ShapeType.BOX, ObjectCategory("cat"), [QPointF(0, 0)])

    @pytest.mark.parametrize("value", [math.inf, -math.inf, math.nan])
    def test_non_finite_coordinates_rejected(self, value):
        """Test that NaN and infinite coordinates are rejected for boxes and polygons."""
        with pytest.raises(ValueError):
            BoundingShapeData.box(ObjectCategory("cat"), 0, 0, value, 5)
        with pytest.raises(ValueError):
            BoundingShapeData.polygon(ObjectCategory("cat"), [(0, 0), (value, 1)])

    def test_create_polygon(self):
        """Test creating a polygon from tuples; it is not closed implicitly."""
        shape = BoundingShapeData.polygon(ObjectCategory("roof"), [(0, 0), (100, 0), (50, 100)])

        assert shape.type == ShapeType.POLYGON
        assert len(shape.points) == 3
        assert shape.points[2] == QPointF(50, 100)

    def test_empty_polygon_rejected(self):
        """Test that a polygon needs at least one vertex."""
        with pytest.raises(ValueError):
            BoundingShapeData.polygon(ObjectCategory("roof"), [])

    def test_get_bounding_rect(self):
        """Test getting the bounding rectangle of a polygon."""
        shape = BoundingShapeData.polygon(ObjectCategory("roof"), [(10, 20), (110, 30), (40, 120)])

        assert shape.bounding_rect() == (10, 20, 100, 100)

    def test_iter_shapes_includes_parts(self, nested_shape):
        """Test depth-first iteration over nested parts."""
        names = [s.category.name for s in nested_shape.iter_shapes()]

        assert names == ["person", "head", "car"]

    def test_without_parts_copies(self, nested_shape):
        """Test that without_parts returns an independent copy."""
        copy = nested_shape.without_parts()

        assert copy.parts == []
        assert nested_shape.parts != []
        copy.tags.append("truncated")
        assert "truncated" not in nested_shape.tags

    def test_equality_includes_parts(self, registry):
        """Test structural equality including nested parts."""
        person = registry.get("person")
        head = registry.get("head")
        first = BoundingShapeData.box(person, 0, 0, 10, 10, parts=[BoundingShapeData.box(head, 1, 1, 2, 2)])
        second = BoundingShapeData.box(person, 0, 0, 10, 10, parts=[BoundingShapeData.box(head, 1, 1, 2, 2)])
        third = BoundingShapeData.box(person, 0, 0, 10, 10, parts=[BoundingShapeData.box(head, 1, 1, 3, 2)])

        assert first == second
        assert first != third


class TestObjectCategory:
    """Tests for ObjectCategory and color helpers."""

    def test_random_color_is_assigned(self):
        """Test that categories get a half-transparent color by default."""
        category = ObjectCategory("cat")

        assert category.color.isValid()
        assert category.color.alpha() == 128

    def test_random_color_survives_string_round_trip(self):
        """Test that generated colors equal their parsed string form."""
        category = ObjectCategory("cat")

        assert color_from_string(color_to_string(category.color)) == category.color

    def test_color_to_string(self):
        """Test ARGB hex serialization."""
        assert color_to_string(QColor(255, 0, 0, 128)) == "#80ff0000"

    def test_invalid_color_string(self):
        """Test that invalid colors raise ValueError."""
        with pytest.raises(ValueError):
            color_from_string("not-a-color")


class TestCategoryRegistry:
    """Tests for the CategoryRegistry class."""

    def test_get_or_create(self):
        """Test that get_or_create returns the same instance for a name."""
        registry = CategoryRegistry()

        first = registry.get_or_create("cat")
        second = registry.get_or_create("cat")

        assert first is second
        assert len(registry) == 1
        assert "cat" in registry

    def test_add_duplicate_fails(self):
        """Test that names are unique."""
        registry = CategoryRegistry([ObjectCategory("cat")])

        with pytest.raises(ValueError):
            registry.add(ObjectCategory("cat"))

    def test_add_empty_name_fails(self):
        """Test that empty names are rejected."""
        with pytest.raises(ValueError):
            CategoryRegistry().add(ObjectCategory(""))

    def test_dict_round_trip(self, registry):
        """Test exporting and importing the name -> color mapping."""
        data = registry.to_dict()

        assert data == {"person": "#80ff0000", "head": "#8000ff00", "car": "#800000ff"}
        assert CategoryRegistry.from_dict(data) == registry

    def test_from_dict_invalid_color(self):
        """Test that an invalid color is replaced by a random one."""
        registry = CategoryRegistry.from_dict({"cat": "nope"})

        assert registry.get("cat").color.isValid()

    def test_order_is_kept(self):
        """Test that categories keep insertion order."""
        registry = CategoryRegistry()
        for name in ["b", "a", "c"]:
            registry.get_or_create(name)

        assert registry.names() == ["b", "a", "c"]


class TestImageMetaData:
    """Tests for the ImageMetaData class."""

    def test_defaults_are_zero(self):
        """Test the zero sentinel for unknown dimensions."""
        meta_data = ImageMetaData("a.jpg")

        assert (meta_data.width, meta_data.height, meta_data.depth) == (0, 0, 0)
        assert meta_data.has_details is False

    def test_has_details(self):
        """Test has_details with known dimensions."""
        assert ImageMetaData("a.jpg", "images", 10, 20, 3).has_details is True

    def test_from_unreadable_file(self, tmp_path):
        """Test that unreadable files yield zero dimensions."""
        path = tmp_path / "broken.png"
        path.write_bytes(b"this is not an image")

        meta_data = ImageMetaData.from_file(path)

        assert meta_data.file_name == "broken.png"
        assert meta_data.folder_name == tmp_path.name
        assert meta_data.has_details is False


class TestImageAnnotation:
    """Tests for the ImageAnnotation class."""

    def test_counts_include_parts(self, nested_shape):
        """Test shape, box and polygon counts over nested parts."""
        annotation = ImageAnnotation(ImageMetaData("a.jpg"), [nested_shape])

        assert annotation.file_name == "a.jpg"
        assert annotation.shape_count == 3
        assert annotation.box_count == 2
        assert annotation.polygon_count == 1

    def test_remove_shape(self, nested_shape):
        """Test removing a shape by index."""
        annotation = ImageAnnotation(ImageMetaData("a.jpg"), [nested_shape])

        assert annotation.remove_shape(5) is None
        assert annotation.remove_shape(0) is nested_shape
        assert annotation.shapes == ()


class TestImageAnnotationData:
    """Tests for the ImageAnnotationData class."""

    def test_statistics_after_construction(self, sample_data):
        """Test that statistics count nested parts of every image."""
        assert sample_data.statistics.as_dict() == {"person": 1, "head": 1, "car": 3}
        assert sample_data.shape_count == 5
        assert sample_data.image_count == 2

    def test_add_shape_creates_annotation(self):
        """Test that the first shape of an image creates its annotation."""
        data = ImageAnnotationData()
        shape = BoundingShapeData.box(ObjectCategory("cat"), 0, 0, 1, 1)

        annotation = data.add_shape("a.jpg", shape)

        assert "a.jpg" in data
        assert annotation.shapes == (shape,)
        assert "cat" in data.registry
        assert data.statistics.count("cat") == 1

    def test_unknown_category_instance_replaced_by_registry_entry(self, registry):
        """Test that shapes end up referencing the registered category."""
        data = ImageAnnotationData(registry=registry)
        shape = BoundingShapeData.box(ObjectCategory("person", QColor("white")), 0, 0, 1, 1)

        data.add_shape("a.jpg", shape)

        assert shape.category is registry.get("person")

    def test_remove_shape_updates_statistics(self, sample_data):
        """Test that removing a shape uncounts its parts too."""
        sample_data.remove_shape("first.jpg", 0)

        assert sample_data.statistics.as_dict() == {"car": 2}

    def test_set_shapes(self, sample_data, registry):
        """Test replacing all shapes of an image."""
        sample_data.set_shapes("second.png", [BoundingShapeData.box(registry.get("head"), 0, 0, 5, 5)])

        assert sample_data.statistics.as_dict() == {"person": 1, "head": 2, "car": 1}
        assert sample_data.get_annotation("second.png").image_meta_data.width == 800

    def test_remove_image(self, sample_data):
        """Test discarding an image."""
        removed = sample_data.remove_image("second.png")

        assert removed.file_name == "second.png"
        assert "second.png" not in sample_data
        assert sample_data.statistics.as_dict() == {"person": 1, "head": 1, "car": 1}

    def test_replacing_annotation_keeps_counts_consistent(self, sample_data):
        """Test that adding an annotation for an existing file replaces it."""
        sample_data.add_annotation(ImageAnnotation(ImageMetaData("second.png")))

        assert sample_data.statistics.as_dict() == {"person": 1, "head": 1, "car": 1}

    def test_edits_through_annotation_keep_statistics(self, sample_data, registry):
        """Test that edits made on a handed-out ImageAnnotation are counted."""
        annotation = sample_data.get_annotation("first.jpg")

        annotation.add_shape(BoundingShapeData.box(registry.get("car"), 0, 0, 1, 1))
        annotation.remove_shape(0)
        sample_data.get_annotation("second.png").shapes = [BoundingShapeData.box(ObjectCategory("dog"), 0, 0, 2, 2)]

        all_shapes = [shape for a in sample_data for shape in a.shapes]
        assert sample_data.statistics == CategoryStatistics.recount(all_shapes)
        assert sample_data.statistics.as_dict() == {"car": 1, "dog": 1}
        assert "dog" in sample_data.registry

    def test_shape_sequence_is_immutable(self, sample_data):
        """Test that the shapes of an image cannot be appended to in place."""
        assert isinstance(sample_data.get_annotation("first.jpg").shapes, tuple)

    def test_removed_annotation_is_detached(self, sample_data, registry):
        """Test that a removed annotation no longer affects the dataset."""
        removed = sample_data.remove_image("second.png")

        removed.add_shape(BoundingShapeData.box(registry.get("car"), 0, 0, 1, 1))

        assert removed.shape_count == 3
        assert sample_data.statistics.as_dict() == {"person": 1, "head": 1, "car": 1}

    def test_remove_category_in_use_fails(self, sample_data):
        """Test that used categories cannot be removed."""
        with pytest.raises(ValueError):
            sample_data.remove_category("car")

    def test_remove_unused_category(self, sample_data):
        """Test removing a category after its shapes are gone."""
        sample_data.remove_shape("first.jpg", 0)

        sample_data.remove_category("person")

        assert "person" not in sample_data.registry

    def test_statistics_match_recount(self, registry):
        """Test that incremental counts equal a full rescan after mixed edits."""
        data = ImageAnnotationData(registry=registry)
        person, head, car = registry.get("person"), registry.get("head"), registry.get("car")

        for i in range(6):
            data.add_shape(
                f"img{i % 3}.jpg",
                BoundingShapeData.box(person, 0, 0, 10, 10, parts=[BoundingShapeData.box(head, 1, 1, 2, 2)]),
            )
            data.add_shape(f"img{i % 2}.jpg", BoundingShapeData.polygon(car, [(0, 0), (1, 1), (0, 1)]))
        data.remove_shape("img0.jpg", 1)
        data.remove_shape("img1.jpg", 0)
        data.set_shapes("img2.jpg", [BoundingShapeData.box(car, 0, 0, 1, 1)])
        data.remove_image("img1.jpg")

        all_shapes = [shape for annotation in data for shape in annotation.shapes]
        assert data.statistics == CategoryStatistics.recount(all_shapes)
