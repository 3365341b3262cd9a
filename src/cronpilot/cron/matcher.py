"""Cron field matchers.

A matcher decides whether a single integer time field (minute, hour,
day of month, month or day of week) satisfies one field of a cron
expression. The variants form a closed set:

- ``ValueMatcher``: a single value, ``5``
- ``RangeMatcher``: an inclusive range that may wrap around, ``6-1``
- ``WildcardMatcher``: any value, ``*``
- ``StepMatcher``: every n-th value of a value, range or wildcard, ``*/15``
- ``ListMatcher``: the union of other matchers, ``1,3,5``
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import TypeAlias

from cronpilot.errors import ScheduleParseError

_DECIMAL = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class ValueMatcher:
    """Matches exactly one value."""

    value: int

    @property
    def step_offset(self) -> int:
        return self.value

    def matches(self, value: int) -> bool:
        return self.value == value

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class RangeMatcher:
    """Matches an inclusive range, wrapping around when ``begin > end``."""

    begin: int
    end: int

    @property
    def step_offset(self) -> int:
        return self.begin

    def matches(self, value: int) -> bool:
        if self.begin <= self.end:
            return self.begin <= value <= self.end
        # Wrap-around, e.g. day of week 6-1 is Saturday through Monday
        return value >= self.begin or value <= self.end

    def __str__(self) -> str:
        return f"{self.begin}-{self.end}"


@dataclass(frozen=True)
class WildcardMatcher:
    """Matches any value; steps count from the field minimum."""

    step_offset: int

    def matches(self, value: int) -> bool:
        return True

    def __str__(self) -> str:
        return "*"


SteppableMatcher: TypeAlias = ValueMatcher | RangeMatcher | WildcardMatcher


@dataclass(frozen=True)
class StepMatcher:
    """Matches every ``step``-th value of its base, counted from the base's step offset."""

    base: SteppableMatcher
    step: int

    def matches(self, value: int) -> bool:
        return self.base.matches(value) and (value - self.base.step_offset) % self.step == 0

    def __str__(self) -> str:
        return f"{self.base}/{self.step}"


@dataclass(frozen=True)
class ListMatcher:
    """Matches when any member matches."""

    members: tuple[Matcher, ...]

    def matches(self, value: int) -> bool:
        return any(member.matches(value) for member in self.members)

    def __str__(self) -> str:
        return ",".join(str(member) for member in self.members)


Matcher: TypeAlias = ValueMatcher | RangeMatcher | WildcardMatcher | StepMatcher | ListMatcher


MONTH_NAMES: dict[str, int] = {
    "jan": 1,
    "january": 1,
    "feb": 2,
    "february": 2,
    "mar": 3,
    "march": 3,
    "apr": 4,
    "april": 4,
    "may": 5,
    "jun": 6,
    "june": 6,
    "jul": 7,
    "july": 7,
    "aug": 8,
    "august": 8,
    "sep": 9,
    "september": 9,
    "oct": 10,
    "october": 10,
    "nov": 11,
    "november": 11,
    "dec": 12,
    "december": 12,
}

DAY_OF_WEEK_NAMES: dict[str, int] = {
    "sun": 0,
    "sunday": 0,
    "mon": 1,
    "monday": 1,
    "tue": 2,
    "tuesday": 2,
    "wed": 3,
    "wednesday": 3,
    "thu": 4,
    "thursday": 4,
    "fri": 5,
    "friday": 5,
    "sat": 6,
    "saturday": 6,
}


class FieldKind(Enum):
    """The five cron fields with their domains.

    Each value is ``(minimum, maximum, modulus, names)``. Months are 1-12
    like cron; day of week accepts both 0 and 7 for Sunday.
    """

    MINUTE = (0, 59, 60, None)
    HOUR = (0, 23, 24, None)
    DAY_OF_MONTH = (1, 31, 32, None)
    MONTH = (1, 12, 13, "month")
    DAY_OF_WEEK = (0, 7, 7, "day_of_week")

    @property
    def minimum(self) -> int:
        return self.value[0]

    @property
    def maximum(self) -> int:
        return self.value[1]

    @property
    def modulus(self) -> int:
        return self.value[2]

    @property
    def names(self) -> dict[str, int]:
        if self.value[3] == "month":
            return MONTH_NAMES
        if self.value[3] == "day_of_week":
            return DAY_OF_WEEK_NAMES
        return {}

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", "-")

    def domain(self) -> range:
        """All distinct values a matcher for this field is evaluated against."""
        if self is FieldKind.DAY_OF_WEEK:
            return range(0, 7)
        return range(self.minimum, self.maximum + 1)


def _parse_int(text: str, kind: FieldKind) -> int:
    named = kind.names.get(text.lower())
    if named is not None:
        return named
    if not _DECIMAL.fullmatch(text):
        raise ScheduleParseError(
            f"Invalid {kind.label} value: {text!r}", expression=text, field_name=kind.label
        )
    return int(text)


def _parse_bounded(text: str, kind: FieldKind) -> int:
    value = _parse_int(text, kind)
    if value < kind.minimum or value > kind.maximum:
        raise ScheduleParseError(
            f"{kind.label} value {value} out of range {kind.minimum}-{kind.maximum}",
            expression=text,
            field_name=kind.label,
        )
    return value


def _parse_steppable(text: str, kind: FieldKind) -> SteppableMatcher:
    if text == "*":
        return WildcardMatcher(kind.minimum)

    begin_text, dash, end_text = text.partition("-")
    if dash:
        begin = _parse_bounded(begin_text, kind)
        end = _parse_bounded(end_text, kind)
        return RangeMatcher(begin % kind.modulus, end % kind.modulus)

    return ValueMatcher(_parse_bounded(text, kind) % kind.modulus)


def parse_field(kind: FieldKind, text: str) -> Matcher:
    """Parse one cron field, supporting lists, wildcards, ranges and steps.

    Args:
        kind: Which field is being parsed, selecting its domain and names.
        text: The field text, e.g. ``"*/15"`` or ``"mon-fri"``.

    Returns:
        The parsed matcher.

    Raises:
        ScheduleParseError: If the text is malformed or a value is out of range.
    """
    if "," in text:
        tokens = text.split(",")
        if any(not token for token in tokens):
            raise ScheduleParseError(
                f"Empty list element in {kind.label} field: {text!r}",
                expression=text,
                field_name=kind.label,
            )
        return ListMatcher(tuple(parse_field(kind, token) for token in tokens))

    base_text, slash, step_text = text.partition("/")
    if slash:
        if not _DECIMAL.fullmatch(step_text) or int(step_text) == 0:
            raise ScheduleParseError(
                f"Invalid step in {kind.label} field: {text!r}",
                expression=text,
                field_name=kind.label,
            )
        return StepMatcher(_parse_steppable(base_text, kind), int(step_text))

    return _parse_steppable(text, kind)


def parse_minute(text: str) -> Matcher:
    """Parse a minute field (0-59)."""
    return parse_field(FieldKind.MINUTE, text)


def parse_hour(text: str) -> Matcher:
    """Parse an hour field (0-23)."""
    return parse_field(FieldKind.HOUR, text)


def parse_day_of_month(text: str) -> Matcher:
    """Parse a day of month field (1-31)."""
    return parse_field(FieldKind.DAY_OF_MONTH, text)


def parse_month(text: str) -> Matcher:
    """Parse a month field.

    Months are 1-12 like cron, not 0-11 like the schedule arguments.
    """
    return parse_field(FieldKind.MONTH, text)


def parse_day_of_week(text: str) -> Matcher:
    """Parse a day of week field.

    Sunday is 0 (or 7), Monday is 1.
    """
    return parse_field(FieldKind.DAY_OF_WEEK, text)


def matching_values(kind: FieldKind, matcher: Matcher) -> list[int]:
    """List every value in the field's domain accepted by ``matcher``."""
    return [value for value in kind.domain() if matcher.matches(value)]
