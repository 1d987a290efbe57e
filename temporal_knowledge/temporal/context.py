"""
Temporal reasoning over parsed references.

Classifies the temporal intent of a search query, decides whether stored
references fit a time window, explains references in plain language and
computes the next occurrence of recurring events.
"""

from __future__ import annotations

import calendar
import math
import re
from datetime import datetime, timedelta
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from temporal_knowledge.config import SearchConfig
from temporal_knowledge.models.temporal import (
    RecurrenceFrequency,
    TemporalReference,
)
from temporal_knowledge.temporal.parser import TemporalExpressionParser
from temporal_knowledge.temporal.patterns import (
    add_months,
    format_long_date,
    sunday_weekday,
    weekday_offset,
)


TimeFrame = Literal["future", "past", "current", "all"]

# Window around "now" counted as current
CURRENT_WINDOW = timedelta(days=7)


class TemporalIntent(str, Enum):
    """What period a query is asking about."""

    FUTURE = "future"
    PAST = "past"
    CURRENT = "current"
    GENERAL = "general"


INTENT_KEYWORDS: list[tuple[TemporalIntent, re.Pattern]] = [
    (
        TemporalIntent.FUTURE,
        re.compile(
            r"\b(?:will|upcoming|next|future|planning|scheduled|tomorrow|later)\b",
            re.IGNORECASE,
        ),
    ),
    (
        TemporalIntent.PAST,
        re.compile(
            r"\b(?:was|did|happened|last|ago|before|yesterday|previous)\b",
            re.IGNORECASE,
        ),
    ),
    (
        TemporalIntent.CURRENT,
        re.compile(
            r"\b(?:today|now|current|this\s+week|this\s+month|recent)\b",
            re.IGNORECASE,
        ),
    ),
]


def classify_intent(query: str, has_temporal_refs: bool = False) -> TemporalIntent:
    """
    Classify the temporal intent of a query by keyword.

    Future keywords win over past, past over current. A query with temporal
    expressions but no intent keyword is treated as current.
    """
    for intent, pattern in INTENT_KEYWORDS:
        if pattern.search(query):
            return intent
    return TemporalIntent.CURRENT if has_temporal_refs else TemporalIntent.GENERAL


def matches_intent(
    references: list[TemporalReference],
    intent: TemporalIntent,
    now: datetime,
) -> bool:
    """Whether an entry's references fit the window implied by a query intent."""
    if intent == TemporalIntent.GENERAL or not references:
        return True

    for ref in references:
        if intent == TemporalIntent.FUTURE:
            if ref.is_recurring or (ref.resolved_date and ref.resolved_date > now):
                return True
        elif intent == TemporalIntent.PAST:
            if ref.resolved_date and ref.resolved_date < now:
                return True
        elif intent == TemporalIntent.CURRENT:
            if ref.is_recurring:
                return True
            if ref.resolved_date and abs(ref.resolved_date - now) <= CURRENT_WINDOW:
                return True
    return False


def is_temporally_relevant(
    references: list[TemporalReference],
    now: datetime,
    time_frame: TimeFrame = "all",
    include_expired_events: bool = False,
) -> bool:
    """
    Whether stored references are still relevant for a time frame.

    Non-temporal content and recurring events are always relevant. With
    ``time_frame="all"`` past one-time events only count when
    ``include_expired_events`` is set.
    """
    if not references:
        return True

    for ref in references:
        if ref.is_recurring:
            return True

        is_past = bool(ref.resolved_date and ref.resolved_date < now)
        if time_frame == "future" and ref.resolved_date and ref.resolved_date > now:
            return True
        if time_frame == "past" and is_past:
            return True
        if time_frame == "current" and ref.resolved_date:
            if abs(ref.resolved_date - now) <= CURRENT_WINDOW:
                return True
        if time_frame == "all" and (not is_past or include_expired_events):
            return True

    return False


def next_occurrence(ref: TemporalReference, now: datetime) -> datetime | None:
    """
    Next date strictly after ``now`` on which a recurring reference falls.

    Returns None for one-time references.
    """
    rule = ref.recurrence
    if rule is None or ref.resolved_date is None:
        return None

    anchor = ref.resolved_date

    if rule.frequency == RecurrenceFrequency.DAILY:
        return now + timedelta(days=1)

    if rule.frequency == RecurrenceFrequency.WEEKLY:
        target = rule.day_of_week
        if target is None:
            target = sunday_weekday(anchor)
        return now + timedelta(days=weekday_offset(sunday_weekday(now), target, 1))

    if rule.frequency == RecurrenceFrequency.MONTHLY:
        day = rule.day_of_month or anchor.day
        for months_ahead in range(0, 13):
            candidate = add_months(now.replace(day=1), months_ahead)
            last_day = calendar.monthrange(candidate.year, candidate.month)[1]
            candidate = candidate.replace(day=min(day, last_day))
            if candidate > now:
                return candidate
        return None

    month = rule.month or anchor.month
    day = rule.day_of_month or anchor.day
    for year in (now.year, now.year + 1, now.year + 2):
        # Feb 29 falls on Feb 28 in common years
        last_day = calendar.monthrange(year, month)[1]
        candidate = now.replace(year=year, month=month, day=min(day, last_day))
        if candidate > now:
            return candidate
    return None


def earliest_next_occurrence(
    references: list[TemporalReference], now: datetime
) -> datetime | None:
    occurrences = [
        occurrence
        for occurrence in (next_occurrence(ref, now) for ref in references)
        if occurrence is not None
    ]
    return min(occurrences) if occurrences else None


def create_temporal_context(references: list[TemporalReference], now: datetime) -> str:
    """
    Explain references in plain language.

    Example:
        'Temporal context: "tomorrow" refers to tomorrow (Saturday, May 31, 2025)'
    """
    parts = []
    for ref in references:
        if ref.resolved_date is None:
            continue

        date_str = format_long_date(ref.resolved_date)
        days_from_now = math.ceil((ref.resolved_date - now).total_seconds() / 86400)
        quoted = f'"{ref.original_text}"'

        if ref.resolved_date < now:
            if ref.recurrence:
                text = f"{quoted} refers to {date_str} [recurring {ref.recurrence.frequency.value}]"
            else:
                text = f"{quoted} referred to {date_str} ({abs(days_from_now)} days ago)"
        else:
            if days_from_now == 0:
                text = f"{quoted} refers to today ({date_str})"
            elif days_from_now == 1:
                text = f"{quoted} refers to tomorrow ({date_str})"
            else:
                text = f"{quoted} refers to {date_str} (in {days_from_now} days)"
            if ref.recurrence:
                text += f" [recurring {ref.recurrence.frequency.value}]"

        parts.append(text)

    return f"Temporal context: {'; '.join(parts)}" if parts else ""


class TemporalQuery(BaseModel):
    """A search query after temporal analysis."""

    original_query: str
    processed_query: str
    intent: TemporalIntent
    temporal_expressions: list[str] = Field(default_factory=list)
    has_temporal_refs: bool = False

    # Derived search options
    time_frame: TimeFrame = "all"
    temporal_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    include_expired_events: bool = False


def process_temporal_query(
    query: str,
    parser: TemporalExpressionParser,
    search_config: SearchConfig | None = None,
    now: datetime | None = None,
) -> TemporalQuery:
    """
    Analyze a search query for temporal expressions and intent.

    Queries that mention time get a higher temporal weight; queries about
    the past include expired events.
    """
    search_config = search_config or SearchConfig()
    parsed = parser.parse(query, now=now)
    intent = classify_intent(query, parsed.contains_temporal_refs)

    return TemporalQuery(
        original_query=query,
        processed_query=parsed.processed_content,
        intent=intent,
        temporal_expressions=[ref.original_text for ref in parsed.temporal_info],
        has_temporal_refs=parsed.contains_temporal_refs,
        time_frame="all" if intent == TemporalIntent.GENERAL else intent.value,
        temporal_weight=(
            search_config.temporal_query_weight
            if parsed.contains_temporal_refs
            else search_config.temporal_weight
        ),
        include_expired_events=intent == TemporalIntent.PAST,
    )
