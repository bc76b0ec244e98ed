"""Progress reporting and cooperative cancellation."""

import threading
from collections.abc import Callable

from .models import ProgressEvent

ProgressCallback = Callable[[ProgressEvent], None]


class PipelineCancelled(Exception):
    """Raised between work chunks once a CancellationToken is cancelled."""


class CancellationToken:
    """Flag a caller can set from another thread to stop a running pipeline."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PipelineCancelled("Pipeline cancelled")


def check_cancelled(token: CancellationToken | None) -> None:
    if token is not None:
        token.raise_if_cancelled()


def report(callback: ProgressCallback | None, stage: str, progress: float) -> None:
    """Send a progress event if a callback is registered."""
    if callback is not None:
        callback(ProgressEvent(stage, round(min(100.0, max(0.0, progress)), 2)))
