"""Pascal VOC annotation format reading and writing."""

from __future__ import annotations

import logging
import math
import re
import threading
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import List, Optional
from xml.dom import minidom

from PyQt6.QtCore import QPointF

from .annotation_strategy import AnnotationStrategy, PathLike, ProgressCallback, write_atomic
from .errors import AnnotationFormatError, ErrorKind
from .models import (
    BoundingShapeData,
    CategoryRegistry,
    ImageAnnotation,
    ImageAnnotationData,
    ImageMetaData,
    ShapeType,
)
from .results import ExportResult, ImportResult, IOResult

logger = logging.getLogger(__name__)

# Tags stored as 0/1 flags on every object
FLAG_TAGS = ("truncated", "difficult", "occluded")
POSE_TAG_PREFIX = "pose:"
ACTION_TAG_PREFIX = "action:"
DEFAULT_POSE = "Unspecified"


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""
    return int(math.floor(value + 0.5))


class PascalVOCAnnotationFormat(AnnotationStrategy):
    """
    Pascal VOC annotation format strategy.

    Pascal VOC format stores annotations in XML files with one file per image.
    Polygons are stored as numbered vertex lists and parts as nested
    object elements. Coordinates are written as rounded integers.

    Only the tags VOC has elements for are kept, and they load back in
    canonical form: 'pose: <value>', 'action: <element name>' and the
    lowercase flags. Other tags are logged and left out.

    XML structure:
    <annotation>
        <folder>images</folder>
        <filename>image.jpg</filename>
        <size>
            <width>1920</width>
            <height>1080</height>
            <depth>3</depth>
        </size>
        <segmented>0</segmented>
        <object>
            <name>person</name>
            <pose>Unspecified</pose>
            <truncated>0</truncated>
            <difficult>0</difficult>
            <occluded>0</occluded>
            <bndbox>
                <xmin>100</xmin>
                <ymin>100</ymin>
                <xmax>200</xmax>
                <ymax>200</ymax>
            </bndbox>
            <object>
                <name>head</name>
                ...
                <polygon>
                    <x1>120</x1>
                    <y1>110</y1>
                    <x2>...</x2>
                    ...
                </polygon>
            </object>
        </object>
    </annotation>
    """

    @property
    def format_name(self) -> str:
        """Return the format name."""
        return "pascal_voc"

    @property
    def is_per_image(self) -> bool:
        """Pascal VOC uses one .xml file per image."""
        return True

    @property
    def file_extension(self) -> str:
        """Pascal VOC uses .xml files."""
        return ".xml"

    def get_annotation_path(self, directory: Path, file_name: str) -> Path:
        """Get the .xml annotation file path for an image file name."""
        return directory / f"{Path(file_name).stem}{self.file_extension}"

    def save(
        self,
        data: ImageAnnotationData,
        destination: PathLike,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> ExportResult:
        """Save every image annotation to its own Pascal VOC XML file."""
        directory = self._prepare_destination(destination)
        result = ExportResult()

        self._process_items(
            list(data),
            lambda annotation: self.write_annotation(annotation, directory),
            lambda annotation: annotation.file_name,
            result,
            progress,
            cancel_event,
        )

        logger.info(f"{result.summary()} Destination: {directory}")
        return result

    def load(
        self,
        source: PathLike,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        registry: Optional[CategoryRegistry] = None
    ) -> ImportResult:
        """Load all Pascal VOC XML files in a directory."""
        directory = self._require_source(source)
        data = ImageAnnotationData(registry=registry)
        result = ImportResult(data=data)

        xml_paths = [directory] if directory.is_file() else sorted(directory.glob(f"*{self.file_extension}"))

        self._process_items(
            xml_paths,
            lambda xml_path: self._add_loaded_annotation(data, self.read_annotation(xml_path, data.registry, result)),
            lambda xml_path: xml_path.name,
            result,
            progress,
            cancel_event,
        )

        logger.info(f"{result.summary()} Source: {directory}")
        return result

    def write_annotation(self, annotation: ImageAnnotation, directory: Path) -> Path:
        """
        Write the annotation of one image to an XML file.

        Args:
            annotation: The image annotation
            directory: Destination directory

        Returns:
            Path of the written file
        """
        xml_path = self.get_annotation_path(directory, annotation.file_name)
        document = self._create_document(annotation)

        # Write XML with pretty printing
        xml_str = ET.tostring(document, encoding="unicode")
        pretty_xml = minidom.parseString(xml_str).toprettyxml(indent="    ")

        # Remove extra blank lines from minidom output
        lines = [line for line in pretty_xml.split("\n") if line.strip()]
        content = '<?xml version="1.0" encoding="UTF-8"?>\n' + "\n".join(lines[1:]) + "\n"

        write_atomic(xml_path, content)
        logger.debug(f"Saved {annotation.shape_count} annotations to {xml_path}")
        return xml_path

    def read_annotation(
        self,
        xml_path: Path,
        registry: CategoryRegistry,
        result: Optional[IOResult] = None
    ) -> ImageAnnotation:
        """
        Read the annotation of one image from an XML file.

        Objects that cannot be interpreted are skipped; a warning is logged
        and, if a result is given, recorded in its errors.

        Raises:
            AnnotationFormatError: If the file is not a valid annotation document
            OSError: If the file cannot be read
        """
        try:
            root = ET.parse(xml_path).getroot()
        except ET.ParseError as e:
            raise AnnotationFormatError(f"Malformed XML: {e}") from e

        if root.tag != "annotation":
            raise AnnotationFormatError(f"Unexpected root element <{root.tag}>")

        file_name = (root.findtext("filename") or "").strip()
        if not file_name:
            raise AnnotationFormatError("Missing <filename> element")

        def warn(message: str) -> None:
            logger.warning(f"{xml_path.name}: {message}")
            if result is not None:
                result.add_error(xml_path.name, message, ErrorKind.FORMAT)

        meta_data = ImageMetaData(
            file_name=file_name,
            folder_name=(root.findtext("folder") or "").strip(),
        )
        size = root.find("size")
        if size is None:
            warn("Missing <size> element, image dimensions unknown")
        else:
            try:
                meta_data.width = int(float(size.findtext("width")))
                meta_data.height = int(float(size.findtext("height")))
                meta_data.depth = int(float(size.findtext("depth")))
            except (TypeError, ValueError, OverflowError):
                meta_data.width = meta_data.height = meta_data.depth = 0
                warn("Invalid <size> element, image dimensions unknown")

        shapes = self._parse_objects(root, registry, warn)
        logger.debug(f"Loaded {len(shapes)} top-level annotations from {xml_path}")
        return ImageAnnotation(meta_data, shapes)

    def _create_document(self, annotation: ImageAnnotation) -> ET.Element:
        meta_data = annotation.image_meta_data
        root = ET.Element("annotation")

        ET.SubElement(root, "folder").text = meta_data.folder_name
        ET.SubElement(root, "filename").text = meta_data.file_name

        size_elem = ET.SubElement(root, "size")
        ET.SubElement(size_elem, "width").text = str(meta_data.width)
        ET.SubElement(size_elem, "height").text = str(meta_data.height)
        ET.SubElement(size_elem, "depth").text = str(meta_data.depth)

        ET.SubElement(root, "segmented").text = "0"

        for shape in annotation.shapes:
            root.append(self._create_object(shape, meta_data.file_name))

        return root

    def _create_object(self, shape: BoundingShapeData, file_name: str) -> ET.Element:
        obj_elem = ET.Element("object")
        ET.SubElement(obj_elem, "name").text = shape.category.name

        pose = DEFAULT_POSE
        actions: List[str] = []
        dropped: List[str] = []
        for tag in shape.tags:
            lowered = tag.lower()
            if lowered.startswith(POSE_TAG_PREFIX):
                pose = tag[len(POSE_TAG_PREFIX):].strip()
            elif lowered.startswith(ACTION_TAG_PREFIX):
                actions.append(tag[len(ACTION_TAG_PREFIX):].strip())
            elif lowered.strip() not in FLAG_TAGS:
                dropped.append(tag)

        if dropped:
            logger.warning(
                f"{file_name}: tags {dropped} of a '{shape.category.name}' object "
                f"have no Pascal VOC element and are not saved"
            )

        ET.SubElement(obj_elem, "pose").text = pose
        lowered_tags = {tag.lower().strip() for tag in shape.tags}
        for flag in FLAG_TAGS:
            ET.SubElement(obj_elem, flag).text = "1" if flag in lowered_tags else "0"

        if actions:
            actions_elem = ET.SubElement(obj_elem, "actions")
            for action in actions:
                element_name = _element_name(action)
                if element_name != action:
                    logger.warning(f"{file_name}: action '{action}' saved as <{element_name}>")
                ET.SubElement(actions_elem, element_name).text = "1"

        if shape.type == ShapeType.BOX:
            bndbox_elem = ET.SubElement(obj_elem, "bndbox")
            ET.SubElement(bndbox_elem, "xmin").text = str(round_half_up(shape.xmin))
            ET.SubElement(bndbox_elem, "ymin").text = str(round_half_up(shape.ymin))
            ET.SubElement(bndbox_elem, "xmax").text = str(round_half_up(shape.xmax))
            ET.SubElement(bndbox_elem, "ymax").text = str(round_half_up(shape.ymax))
        else:
            polygon_elem = ET.SubElement(obj_elem, "polygon")
            for index, point in enumerate(shape.points, start=1):
                ET.SubElement(polygon_elem, f"x{index}").text = str(round_half_up(point.x()))
                ET.SubElement(polygon_elem, f"y{index}").text = str(round_half_up(point.y()))

        for part in shape.parts:
            obj_elem.append(self._create_object(part, file_name))

        return obj_elem

    def _parse_objects(self, parent: ET.Element, registry: CategoryRegistry, warn) -> List[BoundingShapeData]:
        shapes: List[BoundingShapeData] = []
        for obj in parent.findall("object"):
            shape = self._parse_object(obj, registry, warn)
            if shape is not None:
                shapes.append(shape)
        return shapes

    def _parse_object(self, obj: ET.Element, registry: CategoryRegistry, warn) -> Optional[BoundingShapeData]:
        name = (obj.findtext("name") or "").strip()
        if not name:
            warn("Skipped <object> without <name>")
            return None

        bndbox = obj.find("bndbox")
        polygon = obj.find("polygon")

        try:
            if bndbox is not None:
                shape_type = ShapeType.BOX
                points = [
                    QPointF(_coordinate(bndbox, "xmin"), _coordinate(bndbox, "ymin")),
                    QPointF(_coordinate(bndbox, "xmax"), _coordinate(bndbox, "ymax")),
                ]
            elif polygon is not None:
                shape_type = ShapeType.POLYGON
                points = _polygon_points(polygon)
            else:
                warn(f"Skipped <object> '{name}' without <bndbox> or <polygon>")
                return None
        except (TypeError, ValueError) as e:
            warn(f"Skipped <object> '{name}' with invalid coordinates: {e}")
            return None

        for child in obj:
            if child.tag not in _KNOWN_OBJECT_ELEMENTS:
                warn(f"Ignored unknown element <{child.tag}> in <object> '{name}'")

        return BoundingShapeData(
            type=shape_type,
            category=registry.get_or_create(name),
            points=points,
            parts=self._parse_objects(obj, registry, warn),
            tags=_parse_tags(obj),
        )


_KNOWN_OBJECT_ELEMENTS = {
    "name", "pose", "truncated", "difficult", "occluded", "actions",
    "bndbox", "polygon", "object", "part", "attributes",
}


def _element_name(text: str) -> str:
    name = re.sub(r"[^\w.-]+", "_", text.strip()) or "_"
    return name if not name[0].isdigit() and name[0] not in ".-" else f"_{name}"


def _coordinate(parent: ET.Element, tag: str) -> float:
    text = parent.findtext(tag)
    if text is None:
        raise ValueError(f"missing <{tag}>")
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"<{tag}> is not a finite number: {text.strip()}")
    return value


def _polygon_points(polygon: ET.Element) -> List[QPointF]:
    points: List[QPointF] = []
    index = 1
    while polygon.find(f"x{index}") is not None:
        points.append(QPointF(_coordinate(polygon, f"x{index}"), _coordinate(polygon, f"y{index}")))
        index += 1
    if not points:
        raise ValueError("polygon has no vertices")
    return points


def _parse_tags(obj: ET.Element) -> List[str]:
    tags: List[str] = []

    pose = (obj.findtext("pose") or "").strip()
    if pose and pose != DEFAULT_POSE:
        tags.append(f"pose: {pose}")

    for flag in FLAG_TAGS:
        if (obj.findtext(flag) or "").strip() == "1":
            tags.append(flag)

    actions = obj.find("actions")
    if actions is not None:
        for action in actions:
            if (action.text or "").strip() == "1":
                tags.append(f"action: {action.tag}")

    return tags
