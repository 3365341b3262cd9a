"""Serve command for cronpilot CLI.

Runs the jobs from a YAML job file on a cron daemon in the foreground
until interrupted.
"""

from __future__ import annotations

import logging
import signal
import sys
import threading
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.markup import escape

from cronpilot.cli import app, console
from cronpilot.config import load_settings
from cronpilot.errors import ConfigError, JobFileError
from cronpilot.jobs import load_job_file
from cronpilot.scheduler import CronDaemon

if TYPE_CHECKING:
    from types import FrameType

logger = logging.getLogger(__name__)


def setup_logging(log_file: Path | None = None, debug: bool = False) -> None:
    """Set up logging for the daemon.

    Args:
        log_file: Optional file to log to instead of stderr.
        debug: Enable debug logging.
    """
    level = logging.DEBUG if debug else logging.INFO
    handler: logging.Handler = (
        logging.FileHandler(log_file) if log_file else logging.StreamHandler(sys.stderr)
    )
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[handler],
    )


def setup_signal_handlers(stop: threading.Event) -> None:
    """Set up signal handlers for graceful shutdown."""

    def handle_signal(signum: int, frame: FrameType | None) -> None:
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, shutting down...")
        stop.set()

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)


@app.command()
def serve(
    job_file: Path = typer.Argument(..., help="Path to the job YAML file"),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Config file (default: ~/.cronpilot/config.yaml)",
    ),
    log_file: Path | None = typer.Option(
        None,
        "--log-file",
        help="Write logs to this file instead of stderr",
    ),
    check: bool = typer.Option(
        False,
        "--check",
        help="Validate the job file and exit",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug logging",
    ),
) -> None:
    """Run the jobs in a job file until interrupted.

    Examples:
        cronpilot serve jobs.yaml
        cronpilot serve jobs.yaml --check
        cronpilot serve jobs.yaml --debug --log-file cron.log
    """
    try:
        jobs = load_job_file(job_file)
        settings = load_settings(config)
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/] {escape(str(e))}")
        raise typer.Exit(1)
    except (JobFileError, ConfigError) as e:
        console.print(f"[red]✗[/] {escape(str(e))}")
        raise typer.Exit(1)

    console.print(f"[green]✓[/] Loaded {len(jobs)} job(s) from [cyan]{escape(str(job_file))}[/]")
    for job in jobs:
        console.print(f"  - {job.name} [dim]({escape(str(job.schedule))})[/]")

    if check:
        return

    setup_logging(log_file, debug)
    stop = threading.Event()
    setup_signal_handlers(stop)

    console.print("[dim]Press Ctrl+C to stop[/]")
    daemon = CronDaemon(settings)
    try:
        for job in jobs:
            daemon.register(job)
        stop.wait()
    except KeyboardInterrupt:
        pass
    finally:
        daemon.close(wait=True, timeout=settings.max_sleep)
        console.print("\n[yellow]Cron daemon stopped.[/]")
