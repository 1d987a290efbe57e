"""
Temporal reference models.

A temporal reference is one expression found in free text ("tomorrow",
"every monday", "July 9, 2025") together with the calendar date it resolves
to relative to the moment the text was written.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class TemporalKind(str, Enum):
    """How a temporal expression was phrased."""

    ABSOLUTE = "absolute"  # "July 9, 2025", "2025-07-09"
    RELATIVE = "relative"  # "tomorrow", "in 3 days", "next friday"
    RECURRING = "recurring"  # "every monday", "weekly"
    NONE = "none"


class RecurrenceFrequency(str, Enum):
    """Repeat interval of a recurring reference."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class RecurrenceRule(BaseModel):
    """When a recurring reference repeats."""

    frequency: RecurrenceFrequency
    day_of_week: int | None = Field(
        default=None,
        description="0-6 for Sunday-Saturday",
        ge=0,
        le=6,
    )
    day_of_month: int | None = Field(default=None, ge=1, le=31)
    month: int | None = Field(default=None, ge=1, le=12)


class TemporalReference(BaseModel):
    """A single temporal expression and its resolution."""

    original_text: str = Field(description="The matched span, e.g. 'tomorrow'")
    resolved_date: datetime | None = Field(
        default=None,
        description="Absolute date computed relative to the reference instant",
    )
    kind: TemporalKind = Field(default=TemporalKind.NONE)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    is_past: bool = Field(
        default=False,
        description="Whether the resolved date lies before 'now' at evaluation time",
    )
    days_since_storage: int = Field(
        default=0,
        description="Whole days between storage and evaluation",
    )
    recurrence: RecurrenceRule | None = Field(default=None)

    @model_validator(mode="after")
    def _check_resolution(self) -> "TemporalReference":
        if self.kind != TemporalKind.NONE and self.resolved_date is None:
            raise ValueError(f"{self.kind.value} reference requires resolved_date")
        return self

    @property
    def is_recurring(self) -> bool:
        """Recurring either by phrasing or because the event repeats yearly."""
        return self.recurrence is not None

    def evaluated_at(self, now: datetime, stored_at: datetime) -> "TemporalReference":
        """Return a copy with past/age fields recomputed for a new 'now'."""
        return self.model_copy(
            update={
                "is_past": bool(self.resolved_date and self.resolved_date < now),
                "days_since_storage": (now - stored_at).days,
            }
        )


class ProcessedTemporalContent(BaseModel):
    """Output of temporal parsing for one piece of content."""

    original_content: str
    processed_content: str = Field(
        description="Content with resolved dates annotated after relative phrases",
    )
    temporal_info: list[TemporalReference] = Field(default_factory=list)
    temporal_relevance_score: float = Field(default=0.0, ge=0.0, le=1.0)
    contains_temporal_refs: bool = False
    resolved_dates: list[datetime] = Field(default_factory=list)
    parse_failed: bool = Field(
        default=False,
        description="True when parsing raised and the neutral fallback was used",
    )
