"""Configuration management for cronpilot."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from cronpilot.errors import ConfigError

CRONPILOT_DIR = Path.home() / ".cronpilot"
CONFIG_FILE = CRONPILOT_DIR / "config.yaml"

ENV_PREFIX = "CRONPILOT_"


class SchedulerSettings(BaseModel):
    """Timing and pool settings for a cron daemon."""

    max_sleep: float = Field(
        default=60.0, gt=0, description="Longest wait between ticks, in seconds"
    )
    recovery_delay: float = Field(
        default=30.0, gt=0, description="Wait after a failed tick, in seconds"
    )
    duplicate_tick_delay: float = Field(
        default=1.0, gt=0, description="Wait when woken early within the same minute"
    )
    per_processor_workers: int | None = Field(
        default=None, ge=1, description="Per-processor pool size, defaults to CPU count"
    )
    unbounded_workers: int = Field(
        default=256, ge=1, description="Thread limit for the unbounded pool"
    )


def get_cronpilot_config(config_path: Path | None = None) -> dict[str, Any]:
    """Load the cronpilot configuration file.

    Args:
        config_path: Config file to read, defaults to ``~/.cronpilot/config.yaml``.

    Returns:
        Configuration dictionary, empty if the file doesn't exist.

    Raises:
        ConfigError: If the file exists but cannot be read or parsed.
    """
    path = config_path or CONFIG_FILE
    if not path.exists():
        return {}

    try:
        with open(path) as f:
            config = yaml.safe_load(f)
    except (yaml.YAMLError, OSError) as e:
        raise ConfigError(f"Unable to read config file {path}: {e}") from e

    return config if isinstance(config, dict) else {}


def _env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for name in SchedulerSettings.model_fields:
        if value := os.environ.get(f"{ENV_PREFIX}{name.upper()}"):
            overrides[name] = value
    return overrides


def load_settings(config_path: Path | None = None) -> SchedulerSettings:
    """Build scheduler settings.

    Checks in order of priority:
    1. ``CRONPILOT_<FIELD>`` environment variables, e.g. ``CRONPILOT_MAX_SLEEP``
    2. The ``scheduler`` section of the config file
    3. Built-in defaults

    Raises:
        ConfigError: If the configuration is unreadable or has invalid values.
    """
    section = get_cronpilot_config(config_path).get("scheduler") or {}
    if not isinstance(section, dict):
        raise ConfigError("The 'scheduler' config section must be a mapping")

    try:
        return SchedulerSettings.model_validate({**section, **_env_overrides()})
    except ValidationError as e:
        raise ConfigError(f"Invalid scheduler settings: {e}") from e
