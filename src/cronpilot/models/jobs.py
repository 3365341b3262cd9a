"""Job file models for cronpilot."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator

from cronpilot.cron import parse_schedule
from cronpilot.errors import ScheduleParseError
from cronpilot.scheduler.job import NORMAL_PRIORITY, ConcurrencyMode, ExecutorLane


class ShellJobDefinition(BaseModel):
    """A shell command run on a cron schedule."""

    name: str = Field(
        ...,
        pattern=r"^[a-z][a-z0-9-]*$",
        description="Job name (lowercase, alphanumeric, hyphens)",
    )
    schedule: str = Field(..., description="Cron expression, shorthand, or ';' separated list")
    command: str = Field(..., description="Shell command to execute")
    concurrency: ConcurrencyMode = Field(
        default=ConcurrencyMode.SKIP, description="Behavior when the previous run is still going"
    )
    lane: ExecutorLane = Field(default=ExecutorLane.UNBOUNDED, description="Executor lane")
    priority: int = Field(
        default=NORMAL_PRIORITY, ge=-20, le=19, description="Niceness offset while running"
    )
    timeout: int = Field(default=300, ge=1, description="Timeout in seconds")
    working_dir: str | None = Field(default=None, description="Working directory")
    env: dict[str, str] = Field(default_factory=dict, description="Environment variables")

    @field_validator("schedule")
    @classmethod
    def validate_schedule(cls, v: str) -> str:
        """Validate the cron expression parses."""
        try:
            parse_schedule(v)
        except ScheduleParseError as e:
            raise ValueError(e.message) from e
        return v


class JobFile(BaseModel):
    """Complete job file."""

    jobs: list[ShellJobDefinition] = Field(..., min_length=1, description="Scheduled jobs")

    @model_validator(mode="after")
    def validate_no_duplicate_names(self) -> JobFile:
        """Ensure all job names are unique."""
        names = [job.name for job in self.jobs]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate job names found: {duplicates}")
        return self
