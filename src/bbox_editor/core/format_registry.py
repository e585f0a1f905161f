"""Format registry for annotation strategy selection and format detection."""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, Union

from .annotation_strategy import AnnotationStrategy
from .errors import ConfigurationError
from .pascal_voc_format import PascalVOCAnnotationFormat
from .simple_format import DEFAULT_SIMPLE_FILE_NAME, SIMPLE_FORMAT_ID, SimpleAnnotationFormat

logger = logging.getLogger(__name__)


class StrategyType(str, Enum):
    """Tags of the available save/load strategies."""

    PASCAL_VOC = "pascal_voc"
    SIMPLE = "simple"


# Format display names
FORMAT_DISPLAY_NAMES = {
    StrategyType.PASCAL_VOC: "Pascal VOC",
    StrategyType.SIMPLE: "Simple",
}

# Format descriptions
FORMAT_DESCRIPTIONS = {
    StrategyType.PASCAL_VOC: "One .xml file per image (ImageNet/VOC format)",
    StrategyType.SIMPLE: "Single lossless JSON file for the entire project",
}


class FormatRegistry:
    """
    Registry for annotation save/load strategies.

    Resolves strategy tags to strategy instances and detects the format
    used in a directory.
    """

    # Map strategy tags to strategy classes
    _strategies: Dict[StrategyType, Type[AnnotationStrategy]] = {
        StrategyType.PASCAL_VOC: PascalVOCAnnotationFormat,
        StrategyType.SIMPLE: SimpleAnnotationFormat,
    }

    @classmethod
    def get_format_names(cls) -> List[str]:
        """Get list of available format names."""
        return [strategy_type.value for strategy_type in cls._strategies]

    @classmethod
    def get_display_name(cls, format_name: Union[str, StrategyType]) -> str:
        """Get the display name for a format."""
        try:
            return FORMAT_DISPLAY_NAMES[cls.resolve(format_name)]
        except ConfigurationError:
            return str(format_name)

    @classmethod
    def get_description(cls, format_name: Union[str, StrategyType]) -> str:
        """Get the description for a format."""
        try:
            return FORMAT_DESCRIPTIONS[cls.resolve(format_name)]
        except ConfigurationError:
            return ""

    @classmethod
    def resolve(cls, tag: Union[str, StrategyType]) -> StrategyType:
        """
        Resolve a tag given as enum, value ('pascal_voc') or name ('PASCAL_VOC').

        Raises:
            ConfigurationError: If the tag is unknown
        """
        if isinstance(tag, StrategyType):
            return tag

        text = str(tag).strip()
        try:
            return StrategyType(text.lower())
        except ValueError:
            pass
        try:
            return StrategyType[text.upper()]
        except KeyError:
            raise ConfigurationError(f"Unknown annotation format: {tag}") from None

    @classmethod
    def get_strategy(cls, tag: Union[str, StrategyType], **options: Any) -> AnnotationStrategy:
        """
        Get an instance of a save/load strategy.

        Args:
            tag: Strategy tag (pascal_voc, simple)
            **options: Keyword arguments for the strategy constructor

        Returns:
            AnnotationStrategy instance

        Raises:
            ConfigurationError: If the tag is unknown
        """
        strategy_class = cls._strategies.get(cls.resolve(tag))
        if strategy_class is None:
            raise ConfigurationError(f"No strategy registered for format: {tag}")
        return strategy_class(**options)

    @classmethod
    def detect_format(
        cls,
        directory: Path,
        simple_file_name: str = DEFAULT_SIMPLE_FILE_NAME
    ) -> Optional[StrategyType]:
        """
        Detect the annotation format used in a directory.

        Detection order (first match wins):
        1. Simple: dataset JSON file with the Simple format marker
        2. Pascal VOC: .xml files with an 'annotation' root

        Args:
            directory: Path to the directory to analyze
            simple_file_name: Name of the Simple dataset file

        Returns:
            The detected StrategyType, or None if nothing was found
        """
        directory = Path(directory)
        if not directory.is_dir():
            logger.warning(f"Directory not found: {directory}")
            return None

        if cls._detect_simple(directory / simple_file_name):
            logger.info(f"Detected Simple format in {directory}")
            return StrategyType.SIMPLE

        if cls._detect_pascal_voc(directory):
            logger.info(f"Detected Pascal VOC format in {directory}")
            return StrategyType.PASCAL_VOC

        logger.info(f"No annotation format detected in {directory}")
        return None

    @classmethod
    def _detect_simple(cls, json_path: Path) -> bool:
        """Check if a file is a Simple format document."""
        if not json_path.is_file():
            return False
        try:
            with open(json_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.debug(f"Not a Simple annotation file {json_path}: {e}")
            return False
        return isinstance(data, dict) and data.get("format") == SIMPLE_FORMAT_ID

    @classmethod
    def _detect_pascal_voc(cls, directory: Path) -> bool:
        """Check if directory contains Pascal VOC format annotations."""
        for xml_path in sorted(directory.glob("*.xml")):
            try:
                root = ET.parse(xml_path).getroot()
            except (OSError, ET.ParseError):
                continue
            # Pascal VOC has an 'annotation' root
            if root.tag == "annotation":
                return True
        return False

    @classmethod
    def is_per_image_format(cls, tag: Union[str, StrategyType]) -> bool:
        """Check if a format uses per-image files."""
        return cls.get_strategy(tag).is_per_image
