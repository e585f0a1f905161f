"""Image header metadata extraction without pixel decoding."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from PyQt6.QtGui import QImage, QImageReader

logger = logging.getLogger(__name__)

# Supported image extensions
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".gif", ".webp"}

_SINGLE_CHANNEL_FORMATS = {
    QImage.Format.Format_Mono,
    QImage.Format.Format_MonoLSB,
    QImage.Format.Format_Grayscale8,
    QImage.Format.Format_Grayscale16,
    QImage.Format.Format_Alpha8,
}

_ALPHA_FORMATS = {
    QImage.Format.Format_ARGB32,
    QImage.Format.Format_ARGB32_Premultiplied,
    QImage.Format.Format_ARGB8565_Premultiplied,
    QImage.Format.Format_ARGB6666_Premultiplied,
    QImage.Format.Format_ARGB8555_Premultiplied,
    QImage.Format.Format_ARGB4444_Premultiplied,
    QImage.Format.Format_RGBA8888,
    QImage.Format.Format_RGBA8888_Premultiplied,
    QImage.Format.Format_A2BGR30_Premultiplied,
    QImage.Format.Format_A2RGB30_Premultiplied,
    QImage.Format.Format_RGBA64,
    QImage.Format.Format_RGBA64_Premultiplied,
}


@dataclass(frozen=True)
class ImageDimensions:
    """Width, height and channel count of an image."""

    width: int
    height: int
    depth: int

    @classmethod
    def zero(cls) -> ImageDimensions:
        """Sentinel for dimensions that could not be read."""
        return cls(0, 0, 0)

    @property
    def is_zero(self) -> bool:
        return self.width == 0 and self.height == 0 and self.depth == 0


def channel_count(image_format: QImage.Format) -> int:
    """
    Number of channels stored by a QImage format.

    Returns:
        1 for mono/grayscale, 4 for formats with alpha, 0 for an invalid
        format and 3 otherwise (indexed images count as color)
    """
    if image_format == QImage.Format.Format_Invalid:
        return 0
    if image_format in _SINGLE_CHANNEL_FORMATS:
        return 1
    if image_format in _ALPHA_FORMATS:
        return 4
    return 3


def read_image_dimensions(image_path: Union[str, Path]) -> ImageDimensions:
    """
    Read width, height and depth from an image file header.

    Never raises: unreadable or unsupported files yield ImageDimensions.zero()
    and a logged warning.

    Args:
        image_path: Path to the image file

    Returns:
        ImageDimensions of the image
    """
    image_path = Path(image_path)

    try:
        reader = QImageReader(str(image_path))
        reader.setAutoTransform(False)

        if not reader.canRead():
            logger.warning(f"Could not read image-size data from file {image_path.name}: {reader.errorString()}")
            return ImageDimensions.zero()

        size = reader.size()
        if not size.isValid():
            logger.warning(f"Image header of {image_path.name} does not contain a size")
            return ImageDimensions.zero()

        depth = channel_count(reader.imageFormat())
        if depth == 0:
            logger.warning(f"Image header of {image_path.name} does not report a pixel format")
            return ImageDimensions.zero()

        return ImageDimensions(size.width(), size.height(), depth)

    except Exception as e:
        logger.warning(f"Could not open image-file {image_path.name}: {e}")
        return ImageDimensions.zero()


def is_image_file(path: Union[str, Path]) -> bool:
    """Check if a file has a supported image extension."""
    return Path(path).suffix.lower() in IMAGE_EXTENSIONS
