"""Background worker threads for saving and loading annotations."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Optional, Union

from PyQt6.QtCore import QThread, pyqtSignal

from ..core.annotation_strategy import AnnotationStrategy
from ..core.errors import ConfigurationError
from ..core.format_registry import FormatRegistry, StrategyType
from ..core.models import CategoryRegistry, ImageAnnotationData
from ..core.results import IOResult

logger = logging.getLogger(__name__)


class AnnotationIOWorker(QThread):
    """
    Runs one save or load invocation off the interactive thread.

    Forwards progress as a percentage and ends with either completed
    (carrying the IOResult) or failed (configuration or unexpected errors).
    """

    # Signal for progress updates (percent, 0-100)
    progress = pyqtSignal(int)

    # Signal emitted with the IOResult when the operation ran
    completed = pyqtSignal(object)

    # Signal emitted with a message when the operation could not run to completion
    failed = pyqtSignal(str)

    def __init__(self, strategy_type: Union[str, StrategyType], **strategy_options: Any) -> None:
        """
        Initialize the worker.

        Args:
            strategy_type: Tag of the save/load strategy
            **strategy_options: Keyword arguments for the strategy constructor
        """
        super().__init__()
        self.strategy_type = strategy_type
        self.strategy_options = strategy_options
        self._cancel_event = threading.Event()
        self._last_percent = -1

    def run(self) -> None:
        """Run the operation in the background thread."""
        try:
            strategy = FormatRegistry.get_strategy(self.strategy_type, **self.strategy_options)
            result = self._execute(strategy)
        except ConfigurationError as e:
            logger.error(f"Annotation {self._operation_name} failed: {e}")
            self.failed.emit(str(e))
            return
        except Exception as e:
            # Exceptions must not leave QThread.run; report them as failures
            logger.exception(f"Unexpected error during annotation {self._operation_name}")
            self.failed.emit(f"Unexpected error: {e}")
            return

        logger.info(result.summary())
        self.completed.emit(result)

    def stop(self) -> None:
        """Request cancellation; checked between images."""
        self._cancel_event.set()

    @property
    def _operation_name(self) -> str:
        return "operation"

    def _execute(self, strategy: AnnotationStrategy) -> IOResult:
        raise NotImplementedError

    def _report_progress(self, fraction: float) -> None:
        percent = int(fraction * 100)
        if percent > self._last_percent:
            self._last_percent = percent
            self.progress.emit(percent)


class ExportWorker(AnnotationIOWorker):
    """Saves an ImageAnnotationData in the background."""

    def __init__(
        self,
        data: ImageAnnotationData,
        destination: Union[str, Path],
        strategy_type: Union[str, StrategyType],
        **strategy_options: Any
    ) -> None:
        super().__init__(strategy_type, **strategy_options)
        self.data = data
        self.destination = Path(destination)

    @property
    def _operation_name(self) -> str:
        return "export"

    def _execute(self, strategy: AnnotationStrategy) -> IOResult:
        return strategy.save(self.data, self.destination, self._report_progress, self._cancel_event)


class ImportWorker(AnnotationIOWorker):
    """Loads annotations in the background."""

    def __init__(
        self,
        source: Union[str, Path],
        strategy_type: Union[str, StrategyType],
        registry: Optional[CategoryRegistry] = None,
        **strategy_options: Any
    ) -> None:
        super().__init__(strategy_type, **strategy_options)
        self.source = Path(source)
        self.registry = registry

    @property
    def _operation_name(self) -> str:
        return "import"

    def _execute(self, strategy: AnnotationStrategy) -> IOResult:
        return strategy.load(self.source, self._report_progress, self._cancel_event, self.registry)
