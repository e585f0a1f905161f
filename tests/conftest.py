"""Pytest configuration and fixtures."""

import os
import pytest
import sys
from pathlib import Path

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Qt must not need a display for the tests
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from PyQt6.QtGui import QColor

from bbox_editor.core.models import (
    BoundingShapeData,
    CategoryRegistry,
    ImageAnnotation,
    ImageAnnotationData,
    ImageMetaData,
    ObjectCategory,
)


@pytest.fixture(scope="session")
def qapp():
    """Create a QApplication for tests that need it."""
    from PyQt6.QtWidgets import QApplication

    app = QApplication.instance()
    if app is None:
        app = QApplication([])

    yield app


@pytest.fixture
def temp_dir(tmp_path):
    """Provide a temporary directory for tests."""
    return tmp_path


@pytest.fixture
def registry():
    """A registry with three categories and fixed colors."""
    return CategoryRegistry([
        ObjectCategory("person", QColor("#80ff0000")),
        ObjectCategory("head", QColor("#8000ff00")),
        ObjectCategory("car", QColor("#800000ff")),
    ])


@pytest.fixture
def nested_shape(registry):
    """A person box with a head polygon part, which itself has a nested box part."""
    person = registry.get("person")
    head = registry.get("head")
    car = registry.get("car")

    inner = BoundingShapeData.box(car, 12.5, 13.25, 14.75, 16.0)
    head_part = BoundingShapeData.polygon(
        head, [(10.1, 10.2), (20.3, 10.4), (15.5, 25.6)], parts=[inner], tags=["occluded"]
    )
    return BoundingShapeData.box(person, 1.25, 2.5, 100.75, 200.5, parts=[head_part], tags=["difficult"])


@pytest.fixture
def sample_data(registry, nested_shape):
    """Annotation data for two images."""
    car = registry.get("car")
    first = ImageAnnotation(ImageMetaData("first.jpg", "images", 640, 480, 3), [nested_shape])
    second = ImageAnnotation(
        ImageMetaData("second.png", "images", 800, 600, 4),
        [
            BoundingShapeData.box(car, 0.0, 0.0, 50.5, 60.49),
            BoundingShapeData.polygon(car, [(1.0, 1.0), (30.5, 2.0), (15.0, 40.0), (2.0, 20.0)]),
        ],
    )
    return ImageAnnotationData([first, second], registry=registry)
