"""Error classification for cronpilot."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NamedTuple


class ErrorKind(str, Enum):
    """Where in the scheduler an error originated."""

    PARSE = "parse"  # Malformed cron text, raised to the caller
    JOB_EXECUTION = "job_execution"  # Job callback failed, logged to the job logger
    UNREGISTERED_JOB = "unregistered_job"  # run_now on a job that was never added
    JOB_FILE = "job_file"
    CONFIG = "config"


@dataclass
class CronPilotError(Exception):
    """Base error with classification and context."""

    message: str
    kind: ErrorKind
    job_name: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"

    def __post_init__(self) -> None:
        super().__init__(self.message)


@dataclass
class ScheduleParseError(CronPilotError):
    """Raised when a cron expression or one of its fields cannot be parsed."""

    def __init__(
        self,
        message: str,
        expression: str | None = None,
        field_name: str | None = None,
    ) -> None:
        super().__init__(
            message=message,
            kind=ErrorKind.PARSE,
            context={"expression": expression, "field": field_name},
        )

    @property
    def expression(self) -> str | None:
        return self.context.get("expression")

    @property
    def field_name(self) -> str | None:
        return self.context.get("field")


@dataclass
class UnregisteredJobError(CronPilotError):
    """Raised when asking the daemon to run a job it does not know about."""

    def __init__(self, job_name: str) -> None:
        super().__init__(
            message=f"Cron job has not been registered: {job_name}",
            kind=ErrorKind.UNREGISTERED_JOB,
            job_name=job_name,
        )


@dataclass
class JobExecutionError(CronPilotError):
    """Raised by a job body to report a failed run."""

    def __init__(self, message: str, job_name: str | None = None, **context: Any) -> None:
        super().__init__(
            message=message,
            kind=ErrorKind.JOB_EXECUTION,
            job_name=job_name,
            context=context,
        )


@dataclass
class ConfigError(CronPilotError):
    """Error loading or accessing configuration."""

    def __init__(self, message: str) -> None:
        super().__init__(message=message, kind=ErrorKind.CONFIG)


class JobFileProblem(NamedTuple):
    """One validation problem in a job file."""

    job: str | None  # Job name, or "#<n>" for a job without a usable name
    field: str | None
    message: str

    def __str__(self) -> str:
        location = ".".join(part for part in (self.job, self.field) if part)
        return f"{location}: {self.message}" if location else self.message


@dataclass
class JobFileError(CronPilotError):
    """Raised when a job file cannot be read or fails validation."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        problems: list[JobFileProblem] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            kind=ErrorKind.JOB_FILE,
            context={"source": source, "problems": problems or []},
        )

    @property
    def source(self) -> str | None:
        return self.context.get("source")

    @property
    def problems(self) -> list[JobFileProblem]:
        return self.context["problems"]
