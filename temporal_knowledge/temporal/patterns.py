"""
Temporal expression pattern table.

Each pattern pairs a compiled regex with the kind of reference it produces
and a handler that resolves a match against a reference instant. Patterns
are tried in table order; the parser keeps the first match for any span of
text, so more specific patterns come before more general ones.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from temporal_knowledge.models.temporal import (
    RecurrenceFrequency,
    RecurrenceRule,
    TemporalKind,
)


# Sunday is day 0, matching RecurrenceRule.day_of_week
WEEKDAYS = [
    "sunday",
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
]

# Month name to number mapping
MONTHS = {
    "january": 1, "february": 2, "march": 3, "april": 4,
    "may": 5, "june": 6, "july": 7, "august": 8,
    "september": 9, "october": 10, "november": 11, "december": 12,
    "jan": 1, "feb": 2, "mar": 3, "apr": 4,
    "jun": 6, "jul": 7, "aug": 8, "sep": 9, "sept": 9,
    "oct": 10, "nov": 11, "dec": 12,
}

# Longest names first so "june" wins over "jun"
_MONTH_ALTERNATION = "|".join(sorted(MONTHS, key=len, reverse=True))
_WEEKDAY_ALTERNATION = "|".join(WEEKDAYS)

# Events that repeat every year regardless of how the date is phrased
RECURRING_EVENT_PATTERN = re.compile(
    r"\b(?:birthdays?|b-?day|born|anniversar(?:y|ies)|holidays?|christmas|"
    r"thanksgiving|easter|valentine|halloween)",
    re.IGNORECASE,
)

# Annotation appended after resolved phrases: " (Saturday, May 31, 2025)"
ANNOTATION_PATTERN = re.compile(
    rf"\s\((?:{'|'.join(day.capitalize() for day in WEEKDAYS)}),\s"
    r"[A-Z][a-z]+\s\d{1,2},\s\d{4}\)"
)


def format_long_date(dt: datetime) -> str:
    """Format a date as 'Saturday, May 31, 2025'."""
    return f"{dt:%A}, {dt:%B} {dt.day}, {dt.year}"


def sunday_weekday(dt: datetime) -> int:
    """Weekday number with Sunday as 0."""
    return (dt.weekday() + 1) % 7


def add_months(dt: datetime, months: int) -> datetime:
    """Shift by whole calendar months, clamping to the last day of the month."""
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def weekday_offset(current: int, target: int, direction: int) -> int:
    """
    Days from weekday ``current`` to weekday ``target``.

    Args:
        current: Weekday of the reference instant (0 = Sunday)
        target: Requested weekday (0 = Sunday)
        direction: 1 for "next" (1..7), -1 for "last" (-7..-1), 0 for "this" (0..6)
    """
    diff = target - current
    if direction > 0:
        return diff + 7 if diff <= 0 else diff
    if direction < 0:
        return diff - 7 if diff >= 0 else diff
    return diff + 7 if diff < 0 else diff


def _shift(unit: str, amount: int, reference: datetime) -> datetime:
    unit = unit.lower().rstrip("s")
    if unit == "day":
        return reference + timedelta(days=amount)
    if unit == "week":
        return reference + timedelta(weeks=amount)
    return add_months(reference, amount)


Resolution = tuple[datetime, RecurrenceRule | None]
Handler = Callable[[re.Match, datetime], Resolution]


@dataclass(frozen=True)
class TemporalPattern:
    """A regex plus the rule that turns its matches into a resolved date."""

    name: str
    regex: re.Pattern
    kind: TemporalKind
    handler: Handler


def _fixed_days(days: int) -> Handler:
    def handler(match: re.Match, reference: datetime) -> Resolution:
        return reference + timedelta(days=days), None

    return handler


def _fixed_months(months: int) -> Handler:
    def handler(match: re.Match, reference: datetime) -> Resolution:
        return add_months(reference, months), None

    return handler


def _in_n_units(match: re.Match, reference: datetime) -> Resolution:
    return _shift(match.group(2), int(match.group(1)), reference), None


def _n_units_ago(match: re.Match, reference: datetime) -> Resolution:
    return _shift(match.group(2), -int(match.group(1)), reference), None


def _relative_weekday(direction: int) -> Handler:
    def handler(match: re.Match, reference: datetime) -> Resolution:
        target = WEEKDAYS.index(match.group(1).lower())
        offset = weekday_offset(sunday_weekday(reference), target, direction)
        return reference + timedelta(days=offset), None

    return handler


def _every(frequency: RecurrenceFrequency) -> Handler:
    def handler(match: re.Match, reference: datetime) -> Resolution:
        return reference, RecurrenceRule(frequency=frequency)

    return handler


def _every_weekday(match: re.Match, reference: datetime) -> Resolution:
    rule = RecurrenceRule(
        frequency=RecurrenceFrequency.WEEKLY,
        day_of_week=WEEKDAYS.index(match.group(1).lower()),
    )
    # First occurrence on or after the reference day
    offset = weekday_offset(sunday_weekday(reference), rule.day_of_week, 0)
    return reference + timedelta(days=offset), rule


def _compile(pattern: str) -> re.Pattern:
    return re.compile(pattern, re.IGNORECASE)


_UNITS = r"(days?|weeks?|months?)"

RELATIVE_PATTERNS: list[TemporalPattern] = [
    TemporalPattern("tomorrow", _compile(r"\btomorrow\b"), TemporalKind.RELATIVE, _fixed_days(1)),
    TemporalPattern("yesterday", _compile(r"\byesterday\b"), TemporalKind.RELATIVE, _fixed_days(-1)),
    TemporalPattern("today", _compile(r"\btoday\b"), TemporalKind.RELATIVE, _fixed_days(0)),
    TemporalPattern("next_week", _compile(r"\bnext\s+week\b"), TemporalKind.RELATIVE, _fixed_days(7)),
    TemporalPattern("last_week", _compile(r"\blast\s+week\b"), TemporalKind.RELATIVE, _fixed_days(-7)),
    TemporalPattern("next_month", _compile(r"\bnext\s+month\b"), TemporalKind.RELATIVE, _fixed_months(1)),
    TemporalPattern("last_month", _compile(r"\blast\s+month\b"), TemporalKind.RELATIVE, _fixed_months(-1)),
    TemporalPattern("in_n_units", _compile(rf"\bin\s+(\d+)\s+{_UNITS}\b"), TemporalKind.RELATIVE, _in_n_units),
    TemporalPattern("n_units_ago", _compile(rf"\b(\d+)\s+{_UNITS}\s+ago\b"), TemporalKind.RELATIVE, _n_units_ago),
    TemporalPattern(
        "next_weekday",
        _compile(rf"\bnext\s+({_WEEKDAY_ALTERNATION})\b"),
        TemporalKind.RELATIVE,
        _relative_weekday(1),
    ),
    TemporalPattern(
        "last_weekday",
        _compile(rf"\blast\s+({_WEEKDAY_ALTERNATION})\b"),
        TemporalKind.RELATIVE,
        _relative_weekday(-1),
    ),
    TemporalPattern(
        "this_weekday",
        _compile(rf"\bthis\s+({_WEEKDAY_ALTERNATION})\b"),
        TemporalKind.RELATIVE,
        _relative_weekday(0),
    ),
    # Recurring
    TemporalPattern(
        "every_weekday",
        _compile(rf"\bevery\s+({_WEEKDAY_ALTERNATION})\b"),
        TemporalKind.RECURRING,
        _every_weekday,
    ),
    TemporalPattern(
        "daily",
        _compile(r"\b(?:every\s+day|daily)\b"),
        TemporalKind.RECURRING,
        _every(RecurrenceFrequency.DAILY),
    ),
    TemporalPattern(
        "weekly",
        _compile(r"\b(?:every\s+week|weekly)\b"),
        TemporalKind.RECURRING,
        _every(RecurrenceFrequency.WEEKLY),
    ),
    TemporalPattern(
        "monthly",
        _compile(r"\b(?:every\s+month|monthly)\b"),
        TemporalKind.RECURRING,
        _every(RecurrenceFrequency.MONTHLY),
    ),
    TemporalPattern(
        "yearly",
        _compile(r"\b(?:every\s+year|yearly|annually)\b"),
        TemporalKind.RECURRING,
        _every(RecurrenceFrequency.YEARLY),
    ),
]


# Absolute date shapes, tried before the relative table
ABSOLUTE_PATTERNS: list[tuple[str, re.Pattern]] = [
    # "2025-07-09", "2025/7/9"
    ("ymd", re.compile(r"\b(\d{4})[/-](\d{1,2})[/-](\d{1,2})\b")),
    # "7/9/2025", "09-07-25"
    ("numeric", re.compile(r"\b(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})\b")),
    # "July 9, 2025", "July 9th", "Jul 9 2025"
    (
        "month_day",
        _compile(
            rf"\b({_MONTH_ALTERNATION})\.?\s+(\d{{1,2}})(?:st|nd|rd|th)?"
            r"(?:,?\s+(\d{4}))?\b"
        ),
    ),
    # "9 July 2025", "9th of July"
    (
        "day_month",
        _compile(
            rf"\b(\d{{1,2}})(?:st|nd|rd|th)?\s+(?:of\s+)?({_MONTH_ALTERNATION})\b\.?"
            r"(?:,?\s+(\d{4}))?\b"
        ),
    ),
]


# Ordinal day suffix: "5th", "22nd"
_ORDINAL = re.compile(r"\d(?:st|nd|rd|th)\b", re.IGNORECASE)


def is_modal_may(month_text: str, match: re.Match, year: str | None) -> bool:
    """
    Whether a "may" month match is really the verb ("I may 5 times").

    Only lowercase "may" with neither an ordinal day nor a year is rejected.
    """
    return month_text == "may" and year is None and not _ORDINAL.search(match.group(0))


def expand_year(year: int) -> int:
    """Expand a two-digit year: 00-49 -> 2000s, 50-99 -> 1900s."""
    if year < 100:
        return 2000 + year if year < 50 else 1900 + year
    return year


def resolve_absolute(
    shape: str,
    match: re.Match,
    reference: datetime,
    prefer_day_first: bool = False,
) -> datetime | None:
    """
    Turn an absolute date match into a datetime at midnight.

    Returns None when the numbers do not form a valid calendar date or the
    month is the verb "may".
    """
    try:
        if shape == "ymd":
            year, month, day = (int(g) for g in match.groups())
        elif shape == "numeric":
            first, second, year = (int(g) for g in match.groups())
            if prefer_day_first or first > 12:
                day, month = first, second
            else:
                month, day = first, second
            year = expand_year(year)
        elif shape == "month_day":
            if is_modal_may(match.group(1), match, match.group(3)):
                return None
            month = MONTHS[match.group(1).lower()]
            day = int(match.group(2))
            year = int(match.group(3)) if match.group(3) else reference.year
        elif shape == "day_month":
            if is_modal_may(match.group(2), match, match.group(3)):
                return None
            day = int(match.group(1))
            month = MONTHS[match.group(2).lower()]
            year = int(match.group(3)) if match.group(3) else reference.year
        else:
            return None
        return datetime(year, month, day)
    except (ValueError, KeyError):
        return None
