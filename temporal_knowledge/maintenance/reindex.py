"""
Batch reindexing and temporal backfill.

Repairs entries that were stored without temporal metadata or without a
vector (for example while the embedding provider was down). Entries are
embedded in small concurrent batches with a pause between batches to stay
under provider rate limits. Entries that already have both are never
selected, so running the job again is a no-op.
"""

import asyncio
import logging
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from temporal_knowledge.api.pipeline import EntryPipeline
from temporal_knowledge.config import MaintenanceConfig
from temporal_knowledge.errors import StorageError
from temporal_knowledge.models.entry import KnowledgeEntry

logger = logging.getLogger(__name__)

# Upper bound on entries selected by one run
MAX_ENTRIES_PER_RUN = 10_000


def _utcnow() -> datetime:
    """Get current UTC time (naive)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ReindexResult(BaseModel):
    """Result of a reindex run."""

    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: datetime | None = None

    scanned: int = 0
    temporal_backfilled: int = 0
    indexed: int = 0
    failed: int = 0
    batches: int = 0

    errors: list[str] = Field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()


async def prepare_entry(
    pipeline: EntryPipeline, entry: KnowledgeEntry
) -> tuple[KnowledgeEntry, bool, bool]:
    """
    Generate whatever an entry is missing, without writing it back.

    Returns:
        (repaired entry, temporal metadata generated, vector written)
    """
    backfilled = False
    if entry.temporal_processed_at is None:
        entry = pipeline.enrich(entry)
        backfilled = True

    indexed = False
    if not entry.is_indexed:
        entry = await pipeline.index_entry(entry)
        indexed = entry.is_indexed

    return entry, backfilled, indexed


async def repair_entry(pipeline: EntryPipeline, entry: KnowledgeEntry) -> tuple[bool, bool]:
    """
    Fill in whatever an entry is missing and save it.

    Returns:
        (temporal metadata generated, vector written)
    """
    entry, backfilled, indexed = await prepare_entry(pipeline, entry)
    if backfilled or indexed:
        await pipeline.store.upsert(entry)
    return backfilled, indexed


async def reindex(
    pipeline: EntryPipeline,
    account_id: str | None = None,
    config: MaintenanceConfig | None = None,
    limit: int = MAX_ENTRIES_PER_RUN,
) -> ReindexResult:
    """
    Backfill temporal metadata and vectors for unprocessed entries.

    Embedding within a batch runs concurrently. Writes back to the entry
    store are made one at a time, since the store shares one connection.

    Args:
        pipeline: Pipeline over the store, index and embedder to repair with
        account_id: Restrict to one account, or None for all
        config: Batch size and inter-batch delay
        limit: Maximum number of entries to look at

    Returns:
        ReindexResult with counts
    """
    config = config or MaintenanceConfig()
    result = ReindexResult()

    # Snapshot first, so entries that keep failing are not picked up again
    pending = await pipeline.store.list_unindexed(account_id, limit)
    result.scanned = len(pending)
    logger.info(f"Reindexing {len(pending)} entries in batches of {config.batch_size}")

    for start in range(0, len(pending), config.batch_size):
        if start:
            await asyncio.sleep(config.batch_delay_seconds)

        batch = pending[start : start + config.batch_size]
        outcomes = await asyncio.gather(
            *(prepare_entry(pipeline, entry) for entry in batch),
            return_exceptions=True,
        )
        result.batches += 1

        for entry, outcome in zip(batch, outcomes):
            error = None
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, StorageError):
                    raise outcome
                error = outcome
            else:
                repaired, backfilled, indexed = outcome
                if backfilled or indexed:
                    try:
                        await pipeline.store.upsert(repaired)
                    except StorageError as e:
                        error = e

            if error is not None:
                result.failed += 1
                result.errors.append(f"{entry.id}: {error}")
                logger.warning(f"Could not repair {entry}: {error}")
                continue

            result.temporal_backfilled += int(backfilled)
            result.indexed += int(indexed)
            if not indexed and not entry.is_indexed:
                result.failed += 1

        logger.debug(f"Batch {result.batches}: {start + len(batch)}/{len(pending)} entries done")

    result.completed_at = _utcnow()
    logger.info(
        f"Reindex complete: {result.temporal_backfilled} backfilled, "
        f"{result.indexed} indexed, {result.failed} still pending"
    )
    return result
