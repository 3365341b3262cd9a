"""Scoped worker thread settings applied while a cron job runs."""

from __future__ import annotations

import logging
import os
import sys
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING

from .job import NORMAL_PRIORITY

if TYPE_CHECKING:
    from collections.abc import Iterator

MIN_NICENESS = -20
MAX_NICENESS = 19


def supports_thread_priority() -> bool:
    """Per-thread niceness is only addressable by thread id on Linux."""
    return sys.platform.startswith("linux") and hasattr(os, "setpriority")


def _set_niceness(niceness: int) -> None:
    os.setpriority(os.PRIO_PROCESS, threading.get_native_id(), niceness)


def _get_niceness() -> int:
    return os.getpriority(os.PRIO_PROCESS, threading.get_native_id())


@contextmanager
def thread_priority(priority: int, job_name: str, job_logger: logging.Logger) -> Iterator[int]:
    """Apply a job's priority to the current thread for the duration of the block.

    The priority is added to the thread's niceness. Worker threads are reused
    by later jobs, so the priority is only applied when it can be undone
    again: an unprivileged process may raise its niceness but not lower it
    back. Failing to change it, or finding that it could not be restored, is
    logged as a warning and the job runs at the current priority instead.

    Args:
        priority: Niceness offset, ``NORMAL_PRIORITY`` leaves the thread alone.
        job_name: Job name for log messages.
        job_logger: Logger receiving warnings.

    Yields:
        The priority offset actually in effect.
    """
    if priority == NORMAL_PRIORITY:
        yield NORMAL_PRIORITY
        return

    if not supports_thread_priority():
        job_logger.debug(f"cron_job.name={job_name}: thread priority unsupported on {sys.platform}")
        yield NORMAL_PRIORITY
        return

    try:
        old_niceness = _get_niceness()
        new_niceness = max(MIN_NICENESS, min(MAX_NICENESS, old_niceness + priority))
        if not _can_restore(old_niceness, new_niceness):
            raise PermissionError(
                f"niceness {new_niceness} could not be restored to {old_niceness}"
            )
        _set_niceness(new_niceness)
    except OSError as e:
        job_logger.warning(f"cron_job.name={job_name}: unable to set thread priority: {e}")
        yield NORMAL_PRIORITY
        return

    try:
        yield new_niceness - old_niceness
    finally:
        try:
            _set_niceness(old_niceness)
        except OSError as e:
            job_logger.warning(f"cron_job.name={job_name}: unable to restore thread priority: {e}")


def _can_restore(old_niceness: int, new_niceness: int) -> bool:
    """Check on a scratch thread that niceness can go from new back to old.

    The scratch thread starts with the caller's niceness and exits afterwards,
    so whatever it manages to change is thrown away with it.
    """
    if new_niceness <= old_niceness:
        return True

    outcome: list[bool] = []

    def check() -> None:
        try:
            _set_niceness(new_niceness)
            _set_niceness(old_niceness)
        except OSError:
            outcome.append(False)
        else:
            outcome.append(True)

    thread = threading.Thread(target=check, name="cronpilot-priority-check", daemon=True)
    thread.start()
    thread.join()
    return outcome == [True]


@contextmanager
def thread_name(name: str) -> Iterator[None]:
    """Rename the current thread for the duration of the block."""
    thread = threading.current_thread()
    old_name = thread.name
    thread.name = name
    try:
        yield
    finally:
        thread.name = old_name
