"""cronpilot: a minute-resolution, in-process cron scheduler."""

from cronpilot.cron import Schedule, TimeComponents, parse_schedule
from cronpilot.errors import ScheduleParseError, UnregisteredJobError
from cronpilot.scheduler import (
    ConcurrencyMode,
    CronDaemon,
    CronJob,
    ExecutorLane,
    FunctionJob,
    cron_job,
)

__version__ = "0.1.0"

__all__ = [
    "ConcurrencyMode",
    "CronDaemon",
    "CronJob",
    "ExecutorLane",
    "FunctionJob",
    "Schedule",
    "ScheduleParseError",
    "TimeComponents",
    "UnregisteredJobError",
    "__version__",
    "cron_job",
    "parse_schedule",
]
