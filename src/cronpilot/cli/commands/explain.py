"""Explain command for cronpilot CLI."""

import typer
from rich.markup import escape
from rich.table import Table

from cronpilot.cli import app, console
from cronpilot.cron import (
    FieldKind,
    MatcherSchedule,
    MultiSchedule,
    Schedule,
    matching_values,
    parse_schedule,
)
from cronpilot.errors import ScheduleParseError

MONTH_ABBREVIATIONS = "jan feb mar apr may jun jul aug sep oct nov dec".split()
DAY_ABBREVIATIONS = "sun mon tue wed thu fri sat".split()


def _format_values(kind: FieldKind, values: list[int]) -> str:
    if len(values) == len(kind.domain()):
        return "every value"
    if kind is FieldKind.MONTH:
        return ", ".join(f"{v} ({MONTH_ABBREVIATIONS[v - 1]})" for v in values)
    if kind is FieldKind.DAY_OF_WEEK:
        return ", ".join(f"{v} ({DAY_ABBREVIATIONS[v]})" for v in values)
    return ", ".join(str(v) for v in values) or "(none)"


def _print_schedule(schedule: Schedule) -> None:
    if not isinstance(schedule, MatcherSchedule):
        console.print(f"[cyan]{escape(str(schedule))}[/]: fixed shorthand schedule")
        return

    table = Table(title=escape(str(schedule)))
    table.add_column("Field", style="cyan")
    table.add_column("Expression")
    table.add_column("Matches")

    fields = [
        (FieldKind.MINUTE, schedule.minute),
        (FieldKind.HOUR, schedule.hour),
        (FieldKind.DAY_OF_MONTH, schedule.day_of_month),
        (FieldKind.MONTH, schedule.month),
        (FieldKind.DAY_OF_WEEK, schedule.day_of_week),
    ]
    for kind, matcher in fields:
        values = matching_values(kind, matcher)
        table.add_row(kind.label, escape(str(matcher)), _format_values(kind, values))

    console.print(table)


@app.command()
def explain(
    expression: str = typer.Argument(..., help="Cron expression to explain"),
) -> None:
    """Show which values each field of a cron expression matches."""
    try:
        schedule = parse_schedule(expression)
    except ScheduleParseError as e:
        console.print(f"[red]✗[/] Invalid schedule: {escape(e.message)}")
        raise typer.Exit(1)

    schedules = schedule.schedules if isinstance(schedule, MultiSchedule) else (schedule,)
    for sub_schedule in schedules:
        _print_schedule(sub_schedule)
