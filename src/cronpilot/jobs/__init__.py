"""Job files: shell commands scheduled from YAML."""

from .loader import load_job_file, load_jobs
from .shell import ShellJob

__all__ = [
    "ShellJob",
    "load_job_file",
    "load_jobs",
]
