"""Load shell jobs from YAML job files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from cronpilot.errors import JobFileError, JobFileProblem
from cronpilot.models import JobFile

from .shell import ShellJob

logger = logging.getLogger(__name__)


def load_job_file(path: Path | str) -> list[ShellJob]:
    """Read a job file and build a job for each entry.

    Args:
        path: Path to the YAML job file.

    Returns:
        The jobs in file order, ready to register on a daemon.

    Raises:
        FileNotFoundError: If the file does not exist.
        JobFileError: If the file is not valid YAML or fails validation.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Job file not found: {path}")

    return load_jobs(path.read_text(), source=str(path))


def load_jobs(content: str, source: str = "<string>") -> list[ShellJob]:
    """Build jobs from job file YAML.

    Problems are reported per job, by name where the entry has one, so
    ``backup.schedule: ...`` rather than a pydantic location path.
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise JobFileError(f"Invalid YAML syntax in {source}: {e}", source=source) from e

    if data is None:
        raise JobFileError(f"Empty job file: {source}", source=source)

    try:
        job_file = JobFile.model_validate(data)
    except ValidationError as e:
        problems = [_problem(error["loc"], error["msg"], data) for error in e.errors()]
        lines = "\n".join(f"  {problem}" for problem in problems)
        raise JobFileError(
            f"Job file validation failed ({source}):\n{lines}",
            source=source,
            problems=problems,
        ) from e

    jobs = [ShellJob(definition) for definition in job_file.jobs]
    logger.debug(f"Loaded {len(jobs)} job(s) from {source}")
    return jobs


def _problem(loc: tuple[Any, ...], message: str, data: Any) -> JobFileProblem:
    if len(loc) >= 2 and loc[0] == "jobs" and isinstance(loc[1], int):
        field = ".".join(str(part) for part in loc[2:]) or None
        return JobFileProblem(job=_job_label(data, loc[1]), field=field, message=message)
    field = ".".join(str(part) for part in loc) or None
    return JobFileProblem(job=None, field=field, message=message)


def _job_label(data: Any, index: int) -> str:
    try:
        name = data["jobs"][index]["name"]
    except (KeyError, IndexError, TypeError):
        name = None
    return name if isinstance(name, str) and name else f"#{index + 1}"
