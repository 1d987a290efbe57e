"""Data models for knowledge entries and temporal references."""

from temporal_knowledge.models.entry import (
    Actor,
    EntryIntent,
    KnowledgeEntry,
    SearchResult,
    is_superseded,
    utc_timestamp,
)
from temporal_knowledge.models.temporal import (
    ProcessedTemporalContent,
    RecurrenceFrequency,
    RecurrenceRule,
    TemporalKind,
    TemporalReference,
)

__all__ = [
    "Actor",
    "EntryIntent",
    "KnowledgeEntry",
    "SearchResult",
    "is_superseded",
    "utc_timestamp",
    "ProcessedTemporalContent",
    "RecurrenceFrequency",
    "RecurrenceRule",
    "TemporalKind",
    "TemporalReference",
]
