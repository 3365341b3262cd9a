"""Tests for the cron daemon."""

import logging
import threading

import pytest

from cronpilot import cron_job
from cronpilot.config import SchedulerSettings
from cronpilot.cron import Schedule, TimeComponents, parse_schedule
from cronpilot.errors import UnregisteredJobError
from cronpilot.scheduler import (
    ConcurrencyMode,
    CronDaemon,
    CronJob,
    ExecutorLane,
    Executors,
    FunctionJob,
)

JOB_LOGGER = "cronpilot.jobs.recording-job"


class BrokenScheduleJob(CronJob):
    """Job whose schedule cannot be evaluated."""

    name = "broken-schedule"

    @property
    def schedule(self) -> Schedule:
        raise RuntimeError("schedule unavailable")

    def run(self, components: TimeComponents) -> None:
        pass


class RecordingEvent:
    """Stop event that records wait timeouts and ends the loop after one wait."""

    def __init__(self, error: Exception | None = None) -> None:
        self.delays: list[float] = []
        self.error = error

    def wait(self, timeout: float) -> bool:
        self.delays.append(timeout)
        if self.error is not None:
            raise self.error
        return True

    def set(self) -> None:
        pass


def components_of(clock) -> TimeComponents:
    return TimeComponents.from_datetime(clock())


def find_thread(name: str) -> threading.Thread | None:
    for thread in threading.enumerate():
        if thread.name == name:
            return thread
    return None


class TestRegistration:
    """Tests for adding and removing jobs."""

    def test_starts_with_first_job(self, daemon, make_job) -> None:
        """The daemon runs only while it has jobs."""
        job = make_job()
        assert not daemon.is_running

        assert daemon.register(job) is True
        assert daemon.is_running
        assert daemon.is_registered(job)

        assert daemon.unregister(job) is True
        assert not daemon.is_running
        assert not daemon.is_registered(job)

    def test_duplicate_registration(self, daemon, make_job) -> None:
        """Registering the same instance twice is a no-op."""
        job = make_job()
        assert daemon.register(job) is True
        assert daemon.register(job) is False
        assert daemon.jobs == [job]

    def test_equal_jobs_are_distinct(self, daemon, make_job) -> None:
        """Registration is by instance, not by name."""
        first = make_job(name="same")
        second = make_job(name="same")
        daemon.register(first)
        daemon.register(second)
        assert daemon.jobs == [first, second]

    def test_unregister_unknown(self, daemon, make_job) -> None:
        """Removing a job that was never added reports False."""
        assert daemon.unregister(make_job()) is False

    def test_register_none(self, daemon) -> None:
        """None is not a job."""
        with pytest.raises(ValueError):
            daemon.register(None)

    def test_executors_follow_lifecycle(self, clock, make_job) -> None:
        """Executors are created on start and closed on stop."""
        created: list[Executors] = []

        def factory() -> Executors:
            executors = Executors(per_processor_workers=1, unbounded_workers=2)
            created.append(executors)
            return executors

        daemon = CronDaemon(clock=clock, executors_factory=factory, start_polling=False)
        job = make_job()
        daemon.register(job)
        daemon.register(make_job())
        assert len(created) == 1
        assert not created[0].closed

        daemon.unregister(job)
        assert not created[0].closed

        daemon.close()
        assert created[0].closed

        daemon.register(job)
        assert len(created) == 2
        daemon.close()

    def test_context_manager(self, clock, make_job) -> None:
        """Leaving the block stops the daemon."""
        with CronDaemon(clock=clock, start_polling=False) as daemon:
            daemon.register(make_job())
            assert daemon.is_running
        assert not daemon.is_running
        assert daemon.jobs == []

    def test_logger_setter(self, daemon) -> None:
        """Setting the logger to None restores the default."""
        custom = logging.getLogger("custom.cron")
        daemon.logger = custom
        assert daemon.logger is custom

        daemon.logger = None
        assert daemon.logger.name == "cronpilot.scheduler.daemon"


class TestDispatch:
    """Tests for running due jobs."""

    def test_due_job_runs(self, daemon, clock, make_job) -> None:
        """A due job runs with the tick's components."""
        job = make_job()
        daemon.register(job)

        started = daemon.run_due_jobs(components_of(clock))

        assert started == [job]
        assert job.calls == [components_of(clock)]
        assert daemon.running_count() == 0

    def test_job_not_due(self, daemon, clock, make_job) -> None:
        """Jobs whose schedule doesn't match are left alone."""
        job = make_job("30 12 * * *")
        daemon.register(job)

        assert daemon.run_due_jobs(components_of(clock)) == []
        assert job.calls == []

    def test_registration_order(self, daemon, clock) -> None:
        """Due jobs are dispatched in the order they were registered."""
        order: list[str] = []
        jobs = [
            FunctionJob(
                lambda c, n=name: order.append(n),
                "* * * * *",
                name=name,
                executor_lane=ExecutorLane.SEQUENTIAL,
            )
            for name in ["first", "second", "third"]
        ]
        for job in jobs:
            daemon.register(job)

        daemon.run_due_jobs(components_of(clock))
        assert order == ["first", "second", "third"]

    def test_sequential_runs_inline(self, daemon, clock, make_job) -> None:
        """Sequential jobs run in the ticking thread under a job-specific name."""
        job = make_job(lane=ExecutorLane.SEQUENTIAL)
        daemon.register(job)
        before = threading.current_thread().name

        daemon.run_due_jobs(components_of(clock))

        assert job.threads == ["cronpilot:recording-job"]
        assert threading.current_thread().name == before

    def test_unbounded_runs_in_pool(self, daemon, clock, make_job, wait_until) -> None:
        """Unbounded jobs run on a pool thread."""
        job = make_job(lane=ExecutorLane.UNBOUNDED)
        daemon.register(job)

        daemon.run_due_jobs(components_of(clock))

        assert wait_until(lambda: daemon.running_count() == 0)
        assert job.threads == ["cronpilot:recording-job"]

    def test_per_processor_lane(self, daemon, clock, make_job, wait_until) -> None:
        """Per-processor jobs run and finish."""
        job = make_job(lane=ExecutorLane.PER_PROCESSOR)
        daemon.register(job)

        daemon.run_due_jobs(components_of(clock))

        assert wait_until(lambda: len(job.calls) == 1 and daemon.running_count() == 0)

    def test_skip_while_running(self, daemon, clock, make_job, caplog, wait_until) -> None:
        """A SKIP job is not started again while a run is outstanding."""
        caplog.set_level(logging.DEBUG, logger=JOB_LOGGER)
        job = make_job(lane=ExecutorLane.UNBOUNDED, block=True)
        daemon.register(job)

        assert daemon.run_due_jobs(components_of(clock)) == [job]
        assert wait_until(lambda: len(job.calls) == 1)
        assert daemon.run_due_jobs(components_of(clock)) == []
        assert daemon.running_count(job) == 1
        assert "still running, skipped" in caplog.text

        job.release.set()
        assert wait_until(lambda: daemon.running_count(job) == 0)
        assert daemon.run_due_jobs(components_of(clock)) == [job]
        assert wait_until(lambda: len(job.calls) == 2)

    def test_concurrent_overlaps(self, daemon, clock, make_job, wait_until) -> None:
        """A CONCURRENT job starts again while the previous run is going."""
        job = make_job(mode=ConcurrencyMode.CONCURRENT, lane=ExecutorLane.UNBOUNDED, block=True)
        daemon.register(job)

        daemon.run_due_jobs(components_of(clock))
        daemon.run_due_jobs(components_of(clock))

        assert wait_until(lambda: len(job.calls) == 2)
        assert daemon.running_count(job) == 2

        job.release.set()
        assert wait_until(lambda: daemon.running_count() == 0)

    def test_job_failure_is_logged(self, daemon, clock, make_job, caplog) -> None:
        """A failing job is logged to its own logger and leaves no record behind."""
        job = make_job(error=RuntimeError("boom"))
        daemon.register(job)

        daemon.run_due_jobs(components_of(clock))

        records = [r for r in caplog.records if r.name == JOB_LOGGER]
        assert len(records) == 1
        assert records[0].levelno == logging.ERROR
        assert records[0].getMessage() == "cron_job.name=recording-job"
        assert "boom" in caplog.text
        assert daemon.running_count() == 0

    def test_custom_job_logger(self, daemon, clock, make_job, caplog) -> None:
        """Jobs can be registered with their own logger."""
        job = make_job(error=RuntimeError("boom"))
        daemon.register(job, logger=logging.getLogger("app.reports"))

        daemon.run_due_jobs(components_of(clock))

        assert [r.name for r in caplog.records if r.levelno == logging.ERROR] == ["app.reports"]

    def test_schedule_failure_does_not_stop_others(self, daemon, clock, make_job, caplog) -> None:
        """A job whose schedule raises is logged and the next job still runs."""
        broken = BrokenScheduleJob()
        job = make_job()
        daemon.register(broken)
        daemon.register(job)

        assert daemon.run_due_jobs(components_of(clock)) == [job]
        errors = [r for r in caplog.records if r.name == "cronpilot.jobs.broken-schedule"]
        assert len(errors) == 1
        assert "schedule unavailable" in str(errors[0].exc_info[1])

    def test_job_removed_mid_tick(self, daemon, clock, make_job) -> None:
        """A job unregistered by an earlier job in the same tick does not run."""
        later = make_job(name="later")
        remover = FunctionJob(
            lambda c: daemon.unregister(later),
            "* * * * *",
            name="remover",
            executor_lane=ExecutorLane.SEQUENTIAL,
        )
        daemon.register(remover)
        daemon.register(later)

        assert daemon.run_due_jobs(components_of(clock)) == [remover]
        assert later.calls == []

    def test_submit_failure_discards_record(self, clock, make_job, caplog) -> None:
        """A job whose executor rejects it is logged and not left running."""
        executors = Executors(per_processor_workers=1, unbounded_workers=1)
        daemon = CronDaemon(clock=clock, executors_factory=lambda: executors, start_polling=False)
        job = make_job(lane=ExecutorLane.UNBOUNDED)
        daemon.register(job)
        executors.unbounded.shutdown()

        assert daemon.run_due_jobs(components_of(clock)) == []
        assert daemon.running_count() == 0
        assert any(r.name == JOB_LOGGER for r in caplog.records)
        daemon.close()

    def test_stop_forgets_running_jobs(self, daemon, clock, make_job, wait_until) -> None:
        """Runs still going when the daemon stops are no longer tracked."""
        job = make_job(lane=ExecutorLane.UNBOUNDED, block=True)
        daemon.register(job)
        daemon.run_due_jobs(components_of(clock))
        assert wait_until(lambda: len(job.calls) == 1)

        daemon.close()
        assert daemon.running_count() == 0
        job.release.set()


class TestRunNow:
    """Tests for running a job on demand."""

    def test_run_now(self, daemon, clock, make_job) -> None:
        """run_now ignores the schedule."""
        job = make_job("30 12 2 2 *")
        daemon.register(job)

        assert daemon.run_now(job) is True
        assert job.calls == [components_of(clock)]

    def test_unregistered(self, daemon, make_job) -> None:
        """Running an unknown job is an error and nothing runs."""
        job = make_job()
        with pytest.raises(UnregisteredJobError, match="Cron job has not been registered"):
            daemon.run_now(job)
        assert job.calls == []
        assert daemon.running_count() == 0

    def test_respects_skip(self, daemon, make_job, wait_until) -> None:
        """A running SKIP job is not started again by run_now."""
        job = make_job(lane=ExecutorLane.UNBOUNDED, block=True)
        daemon.register(job)

        assert daemon.run_now(job) is True
        assert wait_until(lambda: len(job.calls) == 1)
        assert daemon.run_now(job) is False

        job.release.set()
        assert wait_until(lambda: daemon.running_count() == 0)


class TestTick:
    """Tests for the polling loop's timing."""

    def test_idle_tick(self, daemon) -> None:
        """Without jobs a tick does nothing and waits the maximum."""
        assert daemon.tick() == 60.0

    def test_sleeps_until_next_minute(self, daemon, clock, make_job) -> None:
        """After running due jobs the loop waits for the next minute."""
        job = make_job()
        daemon.register(job)

        assert daemon.tick() == pytest.approx(55.0)
        assert len(job.calls) == 1

    def test_duplicate_minute(self, daemon, clock, make_job) -> None:
        """A second tick in the same minute runs nothing and retries shortly."""
        job = make_job()
        daemon.register(job)
        daemon.tick()

        clock.advance(seconds=30)
        assert daemon.tick() == 1.0
        assert len(job.calls) == 1

        clock.advance(seconds=30)
        daemon.tick()
        assert len(job.calls) == 2
        assert job.calls[1].minute == 1

    def test_sleep_is_bounded(self, clock, make_job) -> None:
        """The wait never exceeds max_sleep."""
        daemon = CronDaemon(SchedulerSettings(max_sleep=10), clock=clock, start_polling=False)
        daemon.register(make_job())
        assert daemon.tick() == 10.0
        daemon.close()

    def test_restart_forgets_last_minute(self, daemon, clock, make_job) -> None:
        """A restarted daemon runs jobs for the current minute again."""
        job = make_job()
        daemon.register(job)
        daemon.tick()
        daemon.unregister(job)

        daemon.register(job)
        daemon.tick()
        assert len(job.calls) == 2

    def test_superseded_driver_dispatches_nothing(self, daemon, clock, make_job) -> None:
        """A tick from a stopped generation doesn't run jobs for its successor."""
        job = make_job()
        daemon.register(job)
        old_driver = daemon._driver
        daemon.unregister(job)
        daemon.register(job)

        daemon._tick(old_driver)
        assert job.calls == []

        daemon.tick()
        assert len(job.calls) == 1


class TestPolling:
    """Tests for the background polling thread."""

    def test_polls_and_stops(self, clock, make_job, wait_until) -> None:
        """The polling thread runs due jobs and exits on close."""
        daemon = CronDaemon(clock=clock)
        job = make_job()
        daemon.register(job)

        assert wait_until(
            lambda: len(job.calls) == 1 and find_thread("cronpilot-daemon-1") is not None
        )
        thread = find_thread("cronpilot-daemon-1")
        assert thread is not None and thread.daemon

        daemon.close(wait=True, timeout=5)
        assert not thread.is_alive()

    def test_restart_uses_new_generation(self, clock, make_job, wait_until) -> None:
        """Stopping and starting again replaces the polling thread."""
        daemon = CronDaemon(clock=clock)
        job = make_job("30 12 * * *")
        daemon.register(job)
        assert wait_until(lambda: find_thread("cronpilot-daemon-1") is not None)
        first = find_thread("cronpilot-daemon-1")

        daemon.unregister(job)
        daemon.register(job)

        assert wait_until(lambda: not first.is_alive())
        assert wait_until(lambda: find_thread("cronpilot-daemon-2") is not None)
        daemon.close(wait=True, timeout=5)

    def test_tick_failure_is_logged(self, make_job, caplog, wait_until) -> None:
        """An exception in the loop is logged and the loop keeps going."""

        def broken_clock():
            raise RuntimeError("clock failure")

        daemon = CronDaemon(clock=broken_clock)
        daemon.register(make_job())

        assert wait_until(lambda: "Cron daemon tick failed" in caplog.text)
        assert daemon.is_running
        daemon.close(wait=True, timeout=5)

    def test_rearms_with_recovery_delay(self, make_job, caplog) -> None:
        """After a failed tick the loop waits the recovery delay."""

        def broken_clock():
            raise RuntimeError("clock failure")

        settings = SchedulerSettings(recovery_delay=12.5)
        daemon = CronDaemon(settings, clock=broken_clock, start_polling=False)
        daemon.register(make_job())
        driver = daemon._driver
        driver.stop_event = RecordingEvent()

        daemon._run_loop(driver)

        assert driver.stop_event.delays == [12.5]
        assert "Cron daemon tick failed" in caplog.text
        daemon.close()

    def test_rearm_failure_ends_loop(self, clock, make_job, caplog) -> None:
        """If the wait itself fails the loop logs a critical error and exits."""
        daemon = CronDaemon(clock=clock, start_polling=False)
        job = make_job("30 12 * * *")
        daemon.register(job)
        driver = daemon._driver
        driver.stop_event = RecordingEvent(RuntimeError("timer unavailable"))

        daemon._run_loop(driver)

        assert driver.stop_event.delays == [pytest.approx(55.0)]
        critical = [r for r in caplog.records if r.levelno == logging.CRITICAL]
        assert len(critical) == 1
        assert "cron daemon dying" in critical[0].getMessage()
        daemon.close()


class TestJobDefinitions:
    """Tests for the job contract helpers."""

    def test_defaults(self) -> None:
        """Unspecified job properties use their defaults."""
        job = BrokenScheduleJob()
        assert job.concurrency_mode is ConcurrencyMode.SKIP
        assert job.executor_lane is ExecutorLane.UNBOUNDED
        assert job.priority == 0

    def test_default_name(self) -> None:
        """The default name is the class path."""

        class Nightly(CronJob):
            schedule = parse_schedule("@daily")

            def run(self, components):
                pass

        name = Nightly().name
        assert "test_daemon" in name
        assert name.endswith("<locals>.Nightly")

    def test_function_job(self) -> None:
        """Functions become jobs through the decorator."""
        @cron_job("*/5 * * * *", executor_lane=ExecutorLane.SEQUENTIAL, priority=5)
        def poll(components):
            return components

        assert poll.name.endswith("poll")
        assert str(poll.schedule) == "*/5 * * * *"
        assert poll.executor_lane is ExecutorLane.SEQUENTIAL
        assert poll.priority == 5
        assert "*/5 * * * *" in repr(poll)
