"""Cron expression parsing and schedule evaluation."""

from .matcher import (
    FieldKind,
    ListMatcher,
    Matcher,
    RangeMatcher,
    StepMatcher,
    ValueMatcher,
    WildcardMatcher,
    matching_values,
    parse_day_of_month,
    parse_day_of_week,
    parse_field,
    parse_hour,
    parse_minute,
    parse_month,
)
from .schedule import (
    DAILY,
    FRIDAY,
    HOURLY,
    JANUARY,
    MONDAY,
    MONTHLY,
    SATURDAY,
    SUNDAY,
    THURSDAY,
    TUESDAY,
    WEDNESDAY,
    WEEKLY,
    YEARLY,
    MatcherSchedule,
    MultiSchedule,
    Schedule,
    ShorthandSchedule,
    TimeComponents,
    is_due,
    iter_due_times,
    parse_schedule,
)

__all__ = [
    "DAILY",
    "FRIDAY",
    "HOURLY",
    "JANUARY",
    "MONDAY",
    "MONTHLY",
    "SATURDAY",
    "SUNDAY",
    "THURSDAY",
    "TUESDAY",
    "WEDNESDAY",
    "WEEKLY",
    "YEARLY",
    "FieldKind",
    "ListMatcher",
    "Matcher",
    "MatcherSchedule",
    "MultiSchedule",
    "RangeMatcher",
    "Schedule",
    "ShorthandSchedule",
    "StepMatcher",
    "TimeComponents",
    "ValueMatcher",
    "WildcardMatcher",
    "is_due",
    "iter_due_times",
    "matching_values",
    "parse_day_of_month",
    "parse_day_of_week",
    "parse_field",
    "parse_hour",
    "parse_minute",
    "parse_month",
    "parse_schedule",
]
