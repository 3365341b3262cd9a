"""Executor lanes that cron jobs are submitted to."""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import TYPE_CHECKING, Any, TypeVar

from .job import ExecutorLane

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_UNBOUNDED_WORKERS = 256


class SequentialExecutor(Executor):
    """Runs each submitted callable immediately in the submitting thread."""

    def __init__(self) -> None:
        self._shutdown = False
        self._lock = threading.Lock()

    def submit(self, fn: Callable[..., T], /, *args: Any, **kwargs: Any) -> Future[T]:
        with self._lock:
            if self._shutdown:
                raise RuntimeError("cannot schedule new futures after shutdown")

        future: Future[T] = Future()
        future.set_running_or_notify_cancel()
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            future.set_exception(e)
        else:
            future.set_result(result)
        return future

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = False) -> None:
        with self._lock:
            self._shutdown = True


class Executors:
    """The three executor lanes shared by every job of a daemon.

    Created when the daemon's first job is registered and closed when the
    last one is removed.
    """

    def __init__(
        self,
        per_processor_workers: int | None = None,
        unbounded_workers: int = DEFAULT_UNBOUNDED_WORKERS,
    ) -> None:
        """Initialize the executor lanes.

        Args:
            per_processor_workers: Size of the per-processor pool, defaults to the CPU count.
            unbounded_workers: Upper limit on threads in the unbounded pool.
        """
        workers = per_processor_workers or os.cpu_count() or 1
        self.per_processor: Executor = ThreadPoolExecutor(
            max_workers=workers,
            thread_name_prefix="cronpilot-per-processor",
        )
        self.unbounded: Executor = ThreadPoolExecutor(
            max_workers=unbounded_workers,
            thread_name_prefix="cronpilot-unbounded",
        )
        self.sequential: Executor = SequentialExecutor()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def for_lane(self, lane: ExecutorLane) -> Executor:
        """Get the executor for a lane.

        Raises:
            ValueError: If the lane is not recognized.
        """
        if lane is ExecutorLane.PER_PROCESSOR:
            return self.per_processor
        if lane is ExecutorLane.SEQUENTIAL:
            return self.sequential
        if lane is ExecutorLane.UNBOUNDED:
            return self.unbounded
        raise ValueError(f"Unknown executor lane: {lane!r}")

    def close(self) -> None:
        """Stop accepting work. Jobs already running are left to finish."""
        if self._closed:
            return
        self._closed = True
        for executor in (self.per_processor, self.unbounded, self.sequential):
            executor.shutdown(wait=False)
        logger.debug("Executors closed")
