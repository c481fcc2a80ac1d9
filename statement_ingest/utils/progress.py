"""Progress reporting and cooperative cancellation for pipeline runs."""

import threading
from typing import Callable, Optional

import structlog

from ..errors import ExtractionCancelled
from ..models import ProgressEvent, ProgressStage

logger = structlog.get_logger()

ProgressCallback = Callable[[ProgressEvent], None]


class CancellationToken:
    """
    Thread-safe cancellation flag.

    The pipeline checks it at page boundaries and before each OCR call;
    cancelling never interrupts work already in flight.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: Optional[str] = None, page: Optional[int] = None) -> None:
        if self._event.is_set():
            raise ExtractionCancelled(stage=stage, page=page)


class ProgressReporter:
    """Wraps an optional caller callback; percent values are clamped to [0, 100]."""

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback
        self.last_event: Optional[ProgressEvent] = None

    def report(self, stage: ProgressStage, message: str, percent: float) -> None:
        event = ProgressEvent(stage=stage, message=message, percent=max(0.0, min(100.0, float(percent))))
        self.last_event = event
        logger.debug("Progress", stage=stage.value, percent=round(event.percent, 1), message=message)
        if self.callback is not None:
            self.callback(event)

    def complete(self, message: str = "Complete!") -> None:
        self.report(ProgressStage.COMPLETE, message, 100)
