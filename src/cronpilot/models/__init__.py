"""cronpilot data models."""

from .jobs import JobFile, ShellJobDefinition

__all__ = [
    "JobFile",
    "ShellJobDefinition",
]
