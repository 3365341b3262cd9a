"""Next command for cronpilot CLI."""

from __future__ import annotations

from datetime import datetime, timedelta

import typer
from rich.markup import escape

from cronpilot.cli import app, console
from cronpilot.cron import iter_due_times, parse_schedule
from cronpilot.errors import ScheduleParseError


@app.command(name="next")
def next_runs(
    expression: str = typer.Argument(..., help="Cron expression"),
    count: int = typer.Option(5, "--count", "-n", min=1, max=100, help="Number of runs to show"),
    start: str | None = typer.Option(
        None,
        "--start",
        "-s",
        help="Start time in ISO format (default: now)",
    ),
    within_days: int = typer.Option(
        366,
        "--within-days",
        min=1,
        help="How far ahead to search",
    ),
) -> None:
    """Show the next times a cron expression is due.

    Examples:
        cronpilot next "*/15 * * * *"
        cronpilot next @weekly --count 3
        cronpilot next "0 9 * * mon-fri" --start 2024-01-01T00:00
    """
    try:
        schedule = parse_schedule(expression)
    except ScheduleParseError as e:
        console.print(f"[red]✗[/] Invalid schedule: {escape(e.message)}")
        raise typer.Exit(1)

    if start is None:
        start_time = datetime.now()
    else:
        try:
            start_time = datetime.fromisoformat(start)
        except ValueError:
            console.print(f"[red]Error:[/] Invalid start time: {escape(start)}")
            raise typer.Exit(1)

    due_times = list(
        iter_due_times(schedule, start_time, count, limit=timedelta(days=within_days))
    )
    if not due_times:
        console.print(f"[yellow]No runs within {within_days} days[/]")
        raise typer.Exit(1)

    console.print(f"Next runs for [cyan]{escape(str(schedule))}[/]:")
    for when in due_times:
        console.print(f"  {when:%Y-%m-%d %H:%M} [dim]({when:%A})[/]")
