"""Temporal expression parsing and temporal reasoning."""

from temporal_knowledge.temporal.context import (
    TemporalIntent,
    TemporalQuery,
    classify_intent,
    create_temporal_context,
    earliest_next_occurrence,
    is_temporally_relevant,
    matches_intent,
    next_occurrence,
    process_temporal_query,
)
from temporal_knowledge.temporal.parser import TemporalExpressionParser

__all__ = [
    "TemporalExpressionParser",
    "TemporalIntent",
    "TemporalQuery",
    "classify_intent",
    "create_temporal_context",
    "earliest_next_occurrence",
    "is_temporally_relevant",
    "matches_intent",
    "next_occurrence",
    "process_temporal_query",
]
