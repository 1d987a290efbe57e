"""Maintenance jobs: batch reindexing and temporal backfill."""

from temporal_knowledge.maintenance.reindex import (
    ReindexResult,
    prepare_entry,
    reindex,
    repair_entry,
)

__all__ = [
    "ReindexResult",
    "reindex",
    "prepare_entry",
    "repair_entry",
]
