"""cronpilot scheduling system.

This module provides the minute-resolution cron daemon, the job contract
it runs, and the executor lanes jobs are dispatched to.
"""

from .daemon import CronDaemon
from .executors import Executors, SequentialExecutor
from .job import (
    NORMAL_PRIORITY,
    ConcurrencyMode,
    CronJob,
    ExecutorLane,
    FunctionJob,
    cron_job,
)
from .priority import supports_thread_priority, thread_name, thread_priority

__all__ = [
    "NORMAL_PRIORITY",
    "ConcurrencyMode",
    "CronDaemon",
    "CronJob",
    "ExecutorLane",
    "Executors",
    "FunctionJob",
    "SequentialExecutor",
    "cron_job",
    "supports_thread_priority",
    "thread_name",
    "thread_priority",
]
