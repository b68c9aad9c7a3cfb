"""Background execution with a progress stream and cooperative cancellation."""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import Future
from typing import Callable, Generic, Iterator, TypeVar

from services.update.models import DownloadProgress


_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[DownloadProgress], None]
TaskWork = Callable[[ProgressCallback, threading.Event], T]

_DONE = object()


class BackgroundTask(Generic[T]):
    """Run ``work`` on a daemon thread.

    ``work`` receives a progress callback and a cancellation event.  Every
    progress update it reports is queued before the task's result or error is
    published, so done callbacks never observe progress that is still to come.
    """

    def __init__(self, work: TaskWork[T], *, name: str = "handoff-update") -> None:
        self._work = work
        self._cancel_event = threading.Event()
        self._events: queue.Queue[object] = queue.Queue()
        self._future: Future[T] = Future()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> "BackgroundTask[T]":
        self._future.set_running_or_notify_cancel()
        self._thread.start()
        return self

    def cancel(self) -> None:
        """Request cancellation; the work observes it when its download completes."""

        _LOGGER.info("Cancellation requested for %s", self._thread.name)
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def done(self) -> bool:
        return self._future.done()

    def progress(self) -> Iterator[DownloadProgress]:
        """Yield progress updates until the task finishes."""

        while True:
            item = self._events.get()
            if item is _DONE:
                self._events.put(_DONE)
                return
            assert isinstance(item, DownloadProgress)
            yield item

    def result(self, timeout: float | None = None) -> T:
        return self._future.result(timeout)

    def exception(self, timeout: float | None = None) -> BaseException | None:
        return self._future.exception(timeout)

    def add_done_callback(self, callback: Callable[["BackgroundTask[T]"], None]) -> None:
        self._future.add_done_callback(lambda _future: callback(self))

    def _run(self) -> None:
        try:
            result = self._work(self._events.put, self._cancel_event)
        except Exception as exc:
            _LOGGER.debug("Background task %s failed: %s", self._thread.name, exc)
            self._future.set_exception(exc)
        else:
            self._future.set_result(result)
        finally:
            self._events.put(_DONE)


__all__ = ["BackgroundTask", "ProgressCallback"]
