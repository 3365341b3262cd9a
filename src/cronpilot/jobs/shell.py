"""Shell command cron jobs."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

from cronpilot.cron import Schedule, parse_schedule
from cronpilot.errors import JobExecutionError
from cronpilot.scheduler import ConcurrencyMode, CronJob, ExecutorLane

if TYPE_CHECKING:
    from cronpilot.cron import TimeComponents
    from cronpilot.models import ShellJobDefinition

logger = logging.getLogger(__name__)


class ShellJob(CronJob):
    """Runs a shell command from a job file definition."""

    def __init__(self, definition: ShellJobDefinition) -> None:
        self.definition = definition
        self._schedule = parse_schedule(definition.schedule)

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def schedule(self) -> Schedule:
        return self._schedule

    @property
    def concurrency_mode(self) -> ConcurrencyMode:
        return self.definition.concurrency

    @property
    def executor_lane(self) -> ExecutorLane:
        return self.definition.lane

    @property
    def priority(self) -> int:
        return self.definition.priority

    def run(self, components: TimeComponents) -> None:
        """Run the command.

        Raises:
            JobExecutionError: If the command times out, exits non-zero, or
                its working directory is missing.
        """
        definition = self.definition
        working_dir = self._expand_path(definition.working_dir) if definition.working_dir else None
        env = {**os.environ, **definition.env}

        logger.debug(f"Running cron job {definition.name}: {definition.command}")
        try:
            proc = subprocess.run(
                definition.command,
                shell=True,
                capture_output=True,
                text=True,
                errors="replace",
                cwd=working_dir,
                env=env,
                timeout=definition.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise JobExecutionError(
                f"Command timed out after {definition.timeout}s",
                job_name=definition.name,
            ) from e
        except FileNotFoundError as e:
            raise JobExecutionError(
                f"Working directory not found: {e}",
                job_name=definition.name,
            ) from e

        if proc.returncode != 0:
            raise JobExecutionError(
                f"Command exited with code {proc.returncode}",
                job_name=definition.name,
                exit_code=proc.returncode,
                stderr=proc.stderr.strip(),
            )

        logger.info(f"Cron job {definition.name} completed")
        if proc.stdout.strip():
            logger.debug(f"Cron job {definition.name} output: {proc.stdout.strip()}")

    @staticmethod
    def _expand_path(path: str) -> Path:
        """Expand ~ and environment variables in path."""
        expanded = os.path.expandvars(os.path.expanduser(path))
        return Path(expanded)
