"""Results of annotation save and load operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, ClassVar, List, Optional

from .errors import ErrorKind

if TYPE_CHECKING:
    from .models import ImageAnnotationData


class OperationType(str, Enum):
    """Direction of an IO operation."""

    EXPORT = "export"
    IMPORT = "import"


@dataclass
class IOErrorInfo:
    """A non-fatal failure of one item (image or annotation file)."""

    item_name: str
    description: str
    kind: ErrorKind = ErrorKind.IO

    def __str__(self) -> str:
        return f"{self.item_name}: {self.description}"


@dataclass
class IOResult:
    """
    Outcome of one save or load invocation.

    Failed items are listed in errors; they never abort the batch.
    """

    operation: ClassVar[OperationType]

    nr_successfully_processed_items: int = 0
    time_taken_ms: float = 0.0
    errors: List[IOErrorInfo] = field(default_factory=list)
    cancelled: bool = False

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def add_error(self, item_name: str, description: str, kind: ErrorKind = ErrorKind.IO) -> None:
        self.errors.append(IOErrorInfo(item_name, description, kind))

    def summary(self) -> str:
        """User-facing one-line description of the result."""
        count = self.nr_successfully_processed_items
        verb = "saved" if self.operation == OperationType.EXPORT else "loaded"
        text = (
            f"Successfully {verb} {count} image-annotation{'s' if count != 1 else ''} "
            f"in {self.time_taken_ms / 1000.0:.3f} sec."
        )
        if self.errors:
            text += f" {len(self.errors)} error{'s' if len(self.errors) != 1 else ''} occurred."
        if self.cancelled:
            text += " Cancelled."
        return text


@dataclass
class ExportResult(IOResult):
    """Result of saving annotations."""

    operation: ClassVar[OperationType] = OperationType.EXPORT


@dataclass
class ImportResult(IOResult):
    """Result of loading annotations, with the reconstructed data."""

    operation: ClassVar[OperationType] = OperationType.IMPORT

    data: Optional[ImageAnnotationData] = None
