"""Tests for strategy selection and format auto-detection."""

import pytest
from pathlib import Path
import tempfile

from bbox_editor.core.errors import ConfigurationError
from bbox_editor.core.format_registry import FormatRegistry, StrategyType
from bbox_editor.core.pascal_voc_format import PascalVOCAnnotationFormat
from bbox_editor.core.simple_format import SimpleAnnotationFormat


class TestFormatRegistry:
    """Tests for FormatRegistry."""

    def test_get_format_names(self):
        """Test getting list of format names."""
        assert FormatRegistry.get_format_names() == ["pascal_voc", "simple"]

    def test_get_display_name(self):
        """Test getting display names."""
        assert FormatRegistry.get_display_name("pascal_voc") == "Pascal VOC"
        assert FormatRegistry.get_display_name(StrategyType.SIMPLE) == "Simple"
        assert FormatRegistry.get_display_name("unknown") == "unknown"

    def test_get_description(self):
        """Test getting descriptions."""
        assert ".xml" in FormatRegistry.get_description("pascal_voc")
        assert FormatRegistry.get_description("unknown") == ""

    @pytest.mark.parametrize("tag,expected", [
        (StrategyType.PASCAL_VOC, PascalVOCAnnotationFormat),
        ("pascal_voc", PascalVOCAnnotationFormat),
        ("PASCAL_VOC", PascalVOCAnnotationFormat),
        ("simple", SimpleAnnotationFormat),
        ("SIMPLE", SimpleAnnotationFormat),
    ])
    def test_get_strategy(self, tag, expected):
        """Test resolving tags to strategies."""
        assert isinstance(FormatRegistry.get_strategy(tag), expected)

    def test_get_strategy_with_options(self):
        """Test passing constructor options."""
        strategy = FormatRegistry.get_strategy("simple", file_name="project.json")
        assert strategy.file_name == "project.json"

    def test_unknown_tag(self):
        """Test that unknown tags are configuration failures."""
        with pytest.raises(ConfigurationError):
            FormatRegistry.get_strategy("yolo")

    def test_unknown_tag_is_value_error(self):
        """Test that ConfigurationError can be caught as ValueError."""
        with pytest.raises(ValueError):
            FormatRegistry.resolve("coco")

    def test_is_per_image_format(self):
        """Test per-image format check."""
        assert FormatRegistry.is_per_image_format("pascal_voc") is True
        assert FormatRegistry.is_per_image_format("simple") is False


class TestFormatDetection:
    """Tests for format auto-detection."""

    def test_detect_empty_directory(self):
        """Test detecting format in empty directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            assert FormatRegistry.detect_format(Path(tmpdir)) is None

    def test_detect_missing_directory(self):
        """Test detecting format in a missing directory."""
        assert FormatRegistry.detect_format(Path("/nonexistent/path")) is None

    def test_detect_pascal_voc(self, tmp_path, sample_data):
        """Test detecting Pascal VOC format."""
        PascalVOCAnnotationFormat().save(sample_data, tmp_path)

        assert FormatRegistry.detect_format(tmp_path) == StrategyType.PASCAL_VOC

    def test_detect_simple(self, tmp_path, sample_data):
        """Test detecting Simple format, which wins over VOC files."""
        PascalVOCAnnotationFormat().save(sample_data, tmp_path)
        SimpleAnnotationFormat().save(sample_data, tmp_path)

        assert FormatRegistry.detect_format(tmp_path) == StrategyType.SIMPLE

    def test_foreign_json_not_detected(self, tmp_path):
        """Test that other JSON files are not taken for Simple format."""
        (tmp_path / "annotations.json").write_text('{"images": []}')

        assert FormatRegistry.detect_format(tmp_path) is None

    def test_foreign_xml_not_detected(self, tmp_path):
        """Test that XML without an annotation root is ignored."""
        (tmp_path / "data.xml").write_text("<root></root>")
        (tmp_path / "broken.xml").write_text("<annotation>")

        assert FormatRegistry.detect_format(tmp_path) is None
