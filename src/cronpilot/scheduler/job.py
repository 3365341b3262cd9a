"""The cron job contract."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING

from cronpilot.cron import Schedule, parse_schedule

if TYPE_CHECKING:
    from collections.abc import Callable

    from cronpilot.cron import TimeComponents

# Thread priorities are niceness offsets; 0 leaves the worker thread untouched
NORMAL_PRIORITY = 0


class ConcurrencyMode(str, Enum):
    """What to do when a job is due while a previous run is still going."""

    SKIP = "skip"  # Don't start another run
    CONCURRENT = "concurrent"  # Start another run alongside


class ExecutorLane(str, Enum):
    """The executor a job is submitted to."""

    PER_PROCESSOR = "per-processor"  # Bounded by CPU count, for CPU-bound jobs
    SEQUENTIAL = "sequential"  # Inline on the daemon thread, fast jobs only
    UNBOUNDED = "unbounded"  # Grows on demand, for I/O-bound jobs


class CronJob(ABC):
    """A task run by :class:`~cronpilot.scheduler.daemon.CronDaemon`.

    Subclasses supply :attr:`schedule` and :meth:`run`. The remaining
    properties have defaults and may be overridden.

    Example:
        ```python
        class RotateLogs(CronJob):
            schedule = parse_schedule("0 3 * * *")

            def run(self, components: TimeComponents) -> None:
                rotate()
        ```
    """

    @property
    def name(self) -> str:
        """Name used in log messages; defaults to the class path."""
        cls = type(self)
        return f"{cls.__module__}.{cls.__qualname__}"

    @property
    @abstractmethod
    def schedule(self) -> Schedule:
        """The schedule for this job, checked once per minute."""

    @property
    def concurrency_mode(self) -> ConcurrencyMode:
        return ConcurrencyMode.SKIP

    @property
    def executor_lane(self) -> ExecutorLane:
        return ExecutorLane.UNBOUNDED

    @property
    def priority(self) -> int:
        """Niceness offset for the worker thread while this job runs.

        Positive values lower the priority, negative values raise it.
        """
        return NORMAL_PRIORITY

    @abstractmethod
    def run(self, components: TimeComponents) -> None:
        """Perform the scheduled task for the minute in ``components``."""


class FunctionJob(CronJob):
    """Adapts a plain callable into a :class:`CronJob`."""

    def __init__(
        self,
        func: Callable[[TimeComponents], object],
        schedule: Schedule | str,
        *,
        name: str | None = None,
        concurrency_mode: ConcurrencyMode = ConcurrencyMode.SKIP,
        executor_lane: ExecutorLane = ExecutorLane.UNBOUNDED,
        priority: int = NORMAL_PRIORITY,
    ) -> None:
        self._func = func
        self._schedule = parse_schedule(schedule) if isinstance(schedule, str) else schedule
        self._name = name or f"{func.__module__}.{func.__qualname__}"
        self._concurrency_mode = concurrency_mode
        self._executor_lane = executor_lane
        self._priority = priority

    @property
    def name(self) -> str:
        return self._name

    @property
    def schedule(self) -> Schedule:
        return self._schedule

    @property
    def concurrency_mode(self) -> ConcurrencyMode:
        return self._concurrency_mode

    @property
    def executor_lane(self) -> ExecutorLane:
        return self._executor_lane

    @property
    def priority(self) -> int:
        return self._priority

    def run(self, components: TimeComponents) -> None:
        self._func(components)

    def __repr__(self) -> str:
        return f"FunctionJob(name={self._name!r}, schedule={str(self._schedule)!r})"


def cron_job(
    schedule: Schedule | str,
    *,
    name: str | None = None,
    concurrency_mode: ConcurrencyMode = ConcurrencyMode.SKIP,
    executor_lane: ExecutorLane = ExecutorLane.UNBOUNDED,
    priority: int = NORMAL_PRIORITY,
) -> Callable[[Callable[[TimeComponents], object]], FunctionJob]:
    """Decorator turning a function into a :class:`FunctionJob`.

    Example:
        ```python
        @cron_job("*/5 * * * *")
        def poll(components: TimeComponents) -> None:
            ...

        daemon.register(poll)
        ```
    """

    def decorator(func: Callable[[TimeComponents], object]) -> FunctionJob:
        return FunctionJob(
            func,
            schedule,
            name=name,
            concurrency_mode=concurrency_mode,
            executor_lane=executor_lane,
            priority=priority,
        )

    return decorator
