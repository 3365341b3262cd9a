"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Generator
from datetime import datetime, timedelta

import pytest

from cronpilot.cron import Schedule, TimeComponents, parse_schedule
from cronpilot.scheduler import ConcurrencyMode, CronDaemon, CronJob, ExecutorLane


class FakeClock:
    """Clock returning a settable time."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingJob(CronJob):
    """Job recording each run, optionally blocking until released or failing."""

    def __init__(
        self,
        schedule: str = "* * * * *",
        *,
        name: str = "recording-job",
        mode: ConcurrencyMode = ConcurrencyMode.SKIP,
        lane: ExecutorLane = ExecutorLane.SEQUENTIAL,
        block: bool = False,
        error: Exception | None = None,
    ) -> None:
        self._schedule = parse_schedule(schedule)
        self._name = name
        self._mode = mode
        self._lane = lane
        self.release = threading.Event()
        if not block:
            self.release.set()
        self.error = error
        self.calls: list[TimeComponents] = []
        self.threads: list[str] = []
        self._calls_lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def schedule(self) -> Schedule:
        return self._schedule

    @property
    def concurrency_mode(self) -> ConcurrencyMode:
        return self._mode

    @property
    def executor_lane(self) -> ExecutorLane:
        return self._lane

    def run(self, components: TimeComponents) -> None:
        with self._calls_lock:
            self.calls.append(components)
            self.threads.append(threading.current_thread().name)
        self.release.wait(5)
        if self.error is not None:
            raise self.error


def _wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def wait_until() -> Callable[..., bool]:
    """Poll a predicate until it is true or the timeout passes."""
    return _wait_until


@pytest.fixture
def clock() -> FakeClock:
    """A clock fixed at 2024-01-01 00:00:05, a Monday."""
    return FakeClock(datetime(2024, 1, 1, 0, 0, 5))


@pytest.fixture
def daemon(clock: FakeClock) -> Generator[CronDaemon, None, None]:
    """A daemon driven manually through tick() and run_due_jobs()."""
    cron_daemon = CronDaemon(clock=clock, start_polling=False)
    yield cron_daemon
    cron_daemon.close()


@pytest.fixture
def make_job() -> Generator[Callable[..., RecordingJob], None, None]:
    """Factory for recording jobs, released at teardown."""
    jobs: list[RecordingJob] = []

    def factory(*args: object, **kwargs: object) -> RecordingJob:
        job = RecordingJob(*args, **kwargs)  # type: ignore[arg-type]
        jobs.append(job)
        return job

    yield factory

    for job in jobs:
        job.release.set()
