"""Schedules: predicates deciding whether a job is due at a given minute."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, NamedTuple, Protocol, runtime_checkable

from cronpilot.errors import ScheduleParseError

from .matcher import (
    Matcher,
    parse_day_of_month,
    parse_day_of_week,
    parse_hour,
    parse_minute,
    parse_month,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

# Months as passed to Schedule.is_scheduled are 0-based
JANUARY = 0
FEBRUARY = 1
MARCH = 2
APRIL = 3
MAY = 4
JUNE = 5
JULY = 6
AUGUST = 7
SEPTEMBER = 8
OCTOBER = 9
NOVEMBER = 10
DECEMBER = 11

# Days of week as passed to Schedule.is_scheduled are 1-based, Sunday first
SUNDAY = 1
MONDAY = 2
TUESDAY = 3
WEDNESDAY = 4
THURSDAY = 5
FRIDAY = 6
SATURDAY = 7


class TimeComponents(NamedTuple):
    """The six time components a schedule is evaluated against.

    Field order matches the arguments of :meth:`Schedule.is_scheduled`.
    """

    minute: int
    hour: int
    day_of_month: int
    month: int  # JANUARY (0) through DECEMBER (11)
    day_of_week: int  # SUNDAY (1) through SATURDAY (7)
    year: int

    @classmethod
    def from_datetime(cls, when: datetime) -> TimeComponents:
        """Break a datetime into schedule components."""
        return cls(
            minute=when.minute,
            hour=when.hour,
            day_of_month=when.day,
            month=when.month - 1 + JANUARY,
            day_of_week=when.isoweekday() % 7 + SUNDAY,
            year=when.year,
        )


@runtime_checkable
class Schedule(Protocol):
    """Determines if a job should run at a given minute."""

    def is_scheduled(
        self,
        minute: int,
        hour: int,
        day_of_month: int,
        month: int,
        day_of_week: int,
        year: int,
    ) -> bool:
        """Check whether the schedule is due.

        Args:
            minute: 0-59.
            hour: 0-23.
            day_of_month: 1-31.
            month: 0-11, ``JANUARY`` through ``DECEMBER``.
            day_of_week: 1-7, ``SUNDAY`` through ``SATURDAY``.
            year: Calendar year.
        """
        ...


def is_due(schedule: Schedule, components: TimeComponents) -> bool:
    """Evaluate ``schedule`` against a full set of time components."""
    return schedule.is_scheduled(*components)


@dataclass(frozen=True)
class MatcherSchedule:
    """Five-field cron schedule.

    Day of month and day of week are OR'd together: ``0 0 15 * 1`` runs on
    the 15th and on every Monday. A ``*`` in either day field therefore
    matches every day.
    """

    minute: Matcher
    hour: Matcher
    day_of_month: Matcher
    month: Matcher  # 1-12 like cron
    day_of_week: Matcher  # Sunday is 0

    def is_scheduled(
        self,
        minute: int,
        hour: int,
        day_of_month: int,
        month: int,
        day_of_week: int,
        year: int,
    ) -> bool:
        return (
            self.minute.matches(minute)
            and self.hour.matches(hour)
            and self.month.matches(1 + (month - JANUARY))
            and (
                self.day_of_month.matches(day_of_month)
                or self.day_of_week.matches(0 + (day_of_week - SUNDAY))
            )
        )

    def __str__(self) -> str:
        return f"{self.minute} {self.hour} {self.day_of_month} {self.month} {self.day_of_week}"


@dataclass(frozen=True)
class MultiSchedule:
    """Due when any of its schedules is due."""

    schedules: tuple[Schedule, ...]

    def is_scheduled(
        self,
        minute: int,
        hour: int,
        day_of_month: int,
        month: int,
        day_of_week: int,
        year: int,
    ) -> bool:
        return any(
            schedule.is_scheduled(minute, hour, day_of_month, month, day_of_week, year)
            for schedule in self.schedules
        )

    def __str__(self) -> str:
        return "; ".join(str(schedule) for schedule in self.schedules)


@dataclass(frozen=True)
class ShorthandSchedule:
    """One of the fixed ``@yearly`` style schedules."""

    token: str

    def is_scheduled(
        self,
        minute: int,
        hour: int,
        day_of_month: int,
        month: int,
        day_of_week: int,
        year: int,
    ) -> bool:
        if self.token == "@hourly":
            return minute == 0
        if minute != 0 or hour != 0:
            return False
        if self.token == "@daily":
            return True
        if self.token == "@weekly":
            return day_of_week == SUNDAY
        if self.token == "@monthly":
            return day_of_month == 1
        if self.token == "@yearly":
            return day_of_month == 1 and month == JANUARY
        raise ValueError(f"Unknown shorthand schedule: {self.token}")

    def __str__(self) -> str:
        return self.token


YEARLY = ShorthandSchedule("@yearly")
MONTHLY = ShorthandSchedule("@monthly")
WEEKLY = ShorthandSchedule("@weekly")
DAILY = ShorthandSchedule("@daily")
HOURLY = ShorthandSchedule("@hourly")

SHORTHANDS: dict[str, ShorthandSchedule] = {
    "@yearly": YEARLY,
    "@annually": YEARLY,
    "@monthly": MONTHLY,
    "@weekly": WEEKLY,
    "@daily": DAILY,
    "@midnight": DAILY,
    "@hourly": HOURLY,
}


def _parse_fields(text: str) -> MatcherSchedule:
    fields = text.split()
    if len(fields) != 5:
        msg = f"Cron expression must have 5 fields, got {len(fields)}: {text!r}"
        raise ScheduleParseError(msg, expression=text)

    minute, hour, day_of_month, month, day_of_week = fields
    return MatcherSchedule(
        minute=parse_minute(minute),
        hour=parse_hour(hour),
        day_of_month=parse_day_of_month(day_of_month),
        month=parse_month(month),
        day_of_week=parse_day_of_week(day_of_week),
    )


def parse_schedule(text: str) -> Schedule:
    """Parse an entire schedule.

    Accepts a five-field cron line, a shorthand such as ``@daily``, or
    several of these separated by ``;``.

    Args:
        text: The schedule text.

    Returns:
        The parsed schedule.

    Raises:
        ScheduleParseError: If the text is not a valid schedule.
    """
    if ";" in text:
        clauses = [clause.strip() for clause in text.split(";")]
        schedules = tuple(parse_schedule(clause) for clause in clauses if clause)
        if not schedules:
            raise ScheduleParseError(f"Empty schedule: {text!r}", expression=text)
        return MultiSchedule(schedules)

    stripped = text.strip()
    shorthand = SHORTHANDS.get(stripped.lower())
    if shorthand is not None:
        return shorthand

    if stripped.startswith("@"):
        raise ScheduleParseError(f"Unknown shorthand schedule: {stripped!r}", expression=text)

    try:
        return _parse_fields(stripped)
    except ScheduleParseError as e:
        if e.context.get("expression") == stripped:
            raise
        raise ScheduleParseError(
            f"Invalid cron expression {stripped!r}: {e.message}",
            expression=stripped,
            field_name=e.field_name,
        ) from e


def iter_due_times(
    schedule: Schedule,
    start: datetime,
    count: int,
    limit: timedelta = timedelta(days=366),
) -> Iterator[datetime]:
    """Yield the next ``count`` minutes at or after ``start`` when ``schedule`` is due.

    The search walks minute by minute and stops after ``limit``, so a
    schedule that is not due within that window yields nothing.
    """
    when = start.replace(second=0, microsecond=0)
    if when < start:
        when += timedelta(minutes=1)
    end = when + limit
    found = 0
    while found < count and when < end:
        if is_due(schedule, TimeComponents.from_datetime(when)):
            yield when
            found += 1
        when += timedelta(minutes=1)
