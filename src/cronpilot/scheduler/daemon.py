"""Cron daemon: runs registered jobs when their schedules come due."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from cronpilot.config import SchedulerSettings
from cronpilot.cron import TimeComponents, is_due
from cronpilot.errors import UnregisteredJobError

from .executors import Executors
from .job import ConcurrencyMode, CronJob, ExecutorLane
from .priority import thread_name, thread_priority

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

JOB_LOGGER_PREFIX = "cronpilot.jobs"


@dataclass(eq=False)
class _Registration:
    job: CronJob
    logger: logging.Logger


@dataclass(eq=False)
class _RunningJob:
    job: CronJob
    name: str
    logger: logging.Logger
    components: TimeComponents
    generation: int


@dataclass(eq=False)
class _Driver:
    """Per-generation state of a running daemon."""

    generation: int
    executors: Executors
    stop_event: threading.Event = field(default_factory=threading.Event)
    thread: threading.Thread | None = None
    last_seen: TimeComponents | None = None


class CronDaemon:
    """Runs :class:`CronJob` instances once per minute when their schedules are due.

    The daemon starts its polling thread and executor pool when the first job
    is registered and stops both when the last job is removed. Registry and
    running-job bookkeeping happen under a single lock, so the "already
    running" check for ``SKIP`` jobs and marking a job as running are atomic
    with respect to other ticks and to :meth:`run_now`.

    Example:
        ```python
        daemon = CronDaemon()
        daemon.register(RotateLogs())
        ...
        daemon.close()
        ```
    """

    def __init__(
        self,
        settings: SchedulerSettings | None = None,
        *,
        logger: logging.Logger | None = None,
        clock: Callable[[], datetime] | None = None,
        executors_factory: Callable[[], Executors] | None = None,
        start_polling: bool = True,
    ) -> None:
        """Initialize the daemon.

        Args:
            settings: Timing and pool settings, defaults to ``SchedulerSettings()``.
            logger: Logger for daemon errors (not the individual jobs).
            clock: Returns the current local time, defaults to ``datetime.now``.
            executors_factory: Builds the executor lanes when the daemon starts.
            start_polling: Start the polling thread with the first job. When
                False the caller drives the daemon with :meth:`tick`.
        """
        self._settings = settings or SchedulerSettings()
        self._logger = logger or logging.getLogger(__name__)
        self._clock = clock or datetime.now
        self._executors_factory = executors_factory or self._default_executors
        self._start_polling = start_polling

        self._lock = threading.RLock()
        self._jobs: dict[int, _Registration] = {}
        self._running: list[_RunningJob] = []
        self._driver: _Driver | None = None
        self._generation = 0

    def _default_executors(self) -> Executors:
        return Executors(
            per_processor_workers=self._settings.per_processor_workers,
            unbounded_workers=self._settings.unbounded_workers,
        )

    @property
    def logger(self) -> logging.Logger:
        """Logger for daemon-level errors."""
        return self._logger

    @logger.setter
    def logger(self, value: logging.Logger | None) -> None:
        self._logger = value if value is not None else logging.getLogger(__name__)

    @property
    def is_running(self) -> bool:
        """True while at least one job is registered."""
        with self._lock:
            return self._driver is not None

    @property
    def jobs(self) -> list[CronJob]:
        """Registered jobs in registration order."""
        with self._lock:
            return [registration.job for registration in self._jobs.values()]

    def is_registered(self, job: CronJob) -> bool:
        with self._lock:
            return id(job) in self._jobs

    def running_count(self, job: CronJob | None = None) -> int:
        """Number of outstanding runs, of one job or of all jobs."""
        with self._lock:
            if job is None:
                return len(self._running)
            return sum(1 for running in self._running if running.job is job)

    def register(self, job: CronJob, logger: logging.Logger | None = None) -> bool:
        """Add a job to the daemon.

        Registering a job instance that is already present does nothing.

        Args:
            job: The job to add.
            logger: Where the job's errors are reported, defaults to
                ``cronpilot.jobs.<job name>``.

        Returns:
            True if the job was added, False if it was already registered.
        """
        if job is None:
            raise ValueError("job must not be None")

        with self._lock:
            if id(job) in self._jobs:
                return False

            job_logger = logger or logging.getLogger(f"{JOB_LOGGER_PREFIX}.{job.name}")
            self._jobs[id(job)] = _Registration(job=job, logger=job_logger)
            if self._driver is None:
                self._start_driver()

        self._logger.info(f"Registered cron job: {job.name}")
        return True

    def unregister(self, job: CronJob) -> bool:
        """Remove a job from the daemon.

        Removing the last job stops the polling thread and closes the
        executors. Runs already in progress are left to finish.

        Returns:
            True if the job was removed, False if it was not registered.
        """
        with self._lock:
            removed = self._jobs.pop(id(job), None) is not None
            if not self._jobs:
                self._stop_driver()

        if removed:
            self._logger.info(f"Unregistered cron job: {job.name}")
        return removed

    def run_now(self, job: CronJob) -> bool:
        """Run a registered job immediately.

        The usual concurrency mode applies: a ``SKIP`` job that is still
        running is not started again.

        Returns:
            True if a run was started.

        Raises:
            UnregisteredJobError: If the job has not been registered.
        """
        components = TimeComponents.from_datetime(self._clock())
        with self._lock:
            registration = self._jobs.get(id(job))
            if registration is None:
                raise UnregisteredJobError(job.name)
            try:
                return self._dispatch(registration, components)
            except Exception:
                registration.logger.exception(f"cron_job.name={job.name}")
                return False

    def close(self, wait: bool = False, timeout: float | None = None) -> None:
        """Remove every job and stop the daemon.

        Args:
            wait: Wait for the polling thread to exit.
            timeout: Longest time to wait, in seconds.
        """
        with self._lock:
            self._jobs.clear()
            driver = self._stop_driver()

        if wait and driver is not None and driver.thread is not None:
            if driver.thread is not threading.current_thread():
                driver.thread.join(timeout)

    def __enter__(self) -> CronDaemon:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close(wait=True)

    def tick(self) -> float:
        """Run one pass of the polling loop.

        Returns:
            Seconds until the next pass should run.
        """
        with self._lock:
            driver = self._driver
        if driver is None:
            return self._settings.max_sleep
        return self._tick(driver)

    def run_due_jobs(self, components: TimeComponents) -> list[CronJob]:
        """Dispatch every registered job whose schedule is due at ``components``.

        Jobs are checked in registration order. A failure evaluating or
        dispatching one job is logged to that job's logger and does not stop
        the others.

        Returns:
            The jobs for which a run was started.
        """
        with self._lock:
            return self._run_due_jobs(components, self._driver)

    def _run_due_jobs(self, components: TimeComponents, driver: _Driver | None) -> list[CronJob]:
        started: list[CronJob] = []
        with self._lock:
            for registration in list(self._jobs.values()):
                # Stopped or restarted, possibly by a sequential job
                if driver is None or self._driver is not driver:
                    break
                job = registration.job
                if self._jobs.get(id(job)) is not registration:
                    continue
                try:
                    if is_due(job.schedule, components) and self._dispatch(
                        registration, components
                    ):
                        started.append(job)
                except Exception:
                    registration.logger.exception(f"cron_job.name={job.name}")
        return started

    def _start_driver(self) -> None:
        self._generation += 1
        driver = _Driver(generation=self._generation, executors=self._executors_factory())
        self._driver = driver

        if self._start_polling:
            driver.thread = threading.Thread(
                target=self._run_loop,
                args=(driver,),
                name=f"cronpilot-daemon-{driver.generation}",
                daemon=True,
            )
            driver.thread.start()

        self._logger.info(f"Cron daemon started (generation {driver.generation})")

    def _stop_driver(self) -> _Driver | None:
        driver = self._driver
        if driver is None:
            return None

        self._driver = None
        driver.stop_event.set()
        driver.executors.close()
        self._running.clear()
        self._logger.info(f"Cron daemon stopped (generation {driver.generation})")
        return driver

    def _is_current(self, driver: _Driver) -> bool:
        with self._lock:
            return self._driver is not None and self._driver.generation == driver.generation

    def _run_loop(self, driver: _Driver) -> None:
        while self._is_current(driver):
            try:
                delay = self._tick(driver)
            except Exception:
                self._logger.exception("Cron daemon tick failed")
                delay = self._settings.recovery_delay

            self._logger.debug(f"Re-arming cron loop with delay={delay:.3f}s")
            try:
                if driver.stop_event.wait(max(delay, 0.0)):
                    break
            except Exception:
                self._logger.critical(
                    "Unable to re-arm cron loop, cron daemon dying", exc_info=True
                )
                return

        self._logger.debug(f"Cron loop exiting (generation {driver.generation})")

    def _tick(self, driver: _Driver) -> float:
        now = self._clock()
        components = TimeComponents.from_datetime(now)

        # Woken early within the same minute, imprecise timers
        if components == driver.last_seen:
            return self._settings.duplicate_tick_delay

        self._run_due_jobs(components, driver)
        driver.last_seen = components

        # Time until the next minute starts, bounded in case the clock jumps
        next_minute = now.replace(second=0, microsecond=0) + timedelta(minutes=1)
        delay = (next_minute - self._clock()).total_seconds()
        return min(delay, self._settings.max_sleep)

    def _dispatch(self, registration: _Registration, components: TimeComponents) -> bool:
        """Start a run of a due job. Caller holds the lock."""
        driver = self._driver
        if driver is None:
            raise RuntimeError("Cron daemon is not running")

        job = registration.job
        name = job.name
        mode = job.concurrency_mode
        if mode is ConcurrencyMode.SKIP:
            if any(running.job is job for running in self._running):
                registration.logger.debug(f"cron_job.name={name}: still running, skipped")
                return False
        elif mode is not ConcurrencyMode.CONCURRENT:
            raise ValueError(f"Unknown concurrency mode from cron job {name}: {mode!r}")

        lane = job.executor_lane
        executor = driver.executors.for_lane(lane)
        record = _RunningJob(
            job=job,
            name=name,
            logger=registration.logger,
            components=components,
            generation=driver.generation,
        )
        self._running.append(record)
        try:
            future = executor.submit(self._execute, record)
        except Exception:
            self._remove_running(record)
            raise

        self._logger.debug(f"Dispatched cron job {name} on the {lane.value} lane")
        if lane is ExecutorLane.SEQUENTIAL:
            future.result()
        return True

    def _execute(self, record: _RunningJob) -> None:
        job = record.job
        try:
            with (
                thread_name(f"cronpilot:{record.name}"),
                thread_priority(job.priority, record.name, record.logger),
            ):
                job.run(record.components)
        except Exception:
            record.logger.exception(f"cron_job.name={record.name}")
        finally:
            self._job_done(record)

    def _remove_running(self, record: _RunningJob) -> bool:
        for index, running in enumerate(self._running):
            if running is record:
                del self._running[index]
                return True
        return False

    def _job_done(self, record: _RunningJob) -> None:
        with self._lock:
            if self._remove_running(record):
                return
            current = self._driver is not None and self._driver.generation == record.generation

        if current:
            self._logger.warning(f"cron_job.name={record.name}: finished run was not tracked")
        else:
            self._logger.debug(f"cron_job.name={record.name}: finished after daemon stopped")
