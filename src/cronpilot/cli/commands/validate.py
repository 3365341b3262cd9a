"""Validate command for cronpilot CLI."""

import typer
from rich.markup import escape

from cronpilot.cli import app, console
from cronpilot.cron import parse_schedule
from cronpilot.errors import ScheduleParseError


@app.command()
def validate(
    expression: str = typer.Argument(..., help="Cron expression, e.g. '*/15 * * * *'"),
) -> None:
    """Validate a cron expression and show its canonical form.

    Accepts five-field cron lines, shorthands such as @daily, and
    several schedules separated by ';'.
    """
    try:
        schedule = parse_schedule(expression)
    except ScheduleParseError as e:
        console.print(f"[red]✗[/] Invalid schedule: {escape(e.message)}")
        raise typer.Exit(1)

    console.print(f"[green]✓[/] Schedule is valid: [cyan]{escape(str(schedule))}[/]")
