"""
Entry storage pipeline.

Turns a raw entry into a stored, searchable one: temporal parsing, enhanced
content, the primary record write and finally the vector. The primary write
always comes first and indexing failures never undo it; such entries keep
``is_indexed=False`` until a reindex repairs them.
"""

import logging
from datetime import datetime, timezone
from typing import Callable

from temporal_knowledge.encoding.embedder import KnowledgeEmbedder
from temporal_knowledge.encoding.enhancer import build_enhanced_content, display_name
from temporal_knowledge.encoding.synonyms import SynonymExpander
from temporal_knowledge.errors import EmbeddingError, InvalidEntryError, StorageError
from temporal_knowledge.models.entry import KnowledgeEntry
from temporal_knowledge.storage.base import BaseEntryStore, BaseVectorIndex
from temporal_knowledge.temporal.parser import TemporalExpressionParser

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Get current UTC time (naive)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def validate_entry(entry: KnowledgeEntry) -> None:
    """
    Reject entries missing the fields every operation relies on.

    Raises:
        InvalidEntryError: If account, author or content is blank
    """
    if not entry.account_id or not entry.account_id.strip():
        raise InvalidEntryError("Entry is missing an account id")
    if not entry.added_by or not entry.added_by.strip():
        raise InvalidEntryError(f"Entry {entry.id} is missing its author")
    if not entry.content or not entry.content.strip():
        raise InvalidEntryError(f"Entry {entry.id} has no content")


def index_metadata(entry: KnowledgeEntry) -> dict:
    """Flat metadata stored alongside an entry's vector."""
    return {
        "added_by": entry.added_by,
        "tags": entry.tags,
        "timestamp": entry.timestamp,
        "intent": entry.intent.value,
        "contains_temporal_refs": entry.contains_temporal_refs,
        "temporal_relevance_score": entry.temporal_relevance_score,
    }


class EntryPipeline:
    """Enriches, persists and indexes entries."""

    def __init__(
        self,
        store: BaseEntryStore,
        index: BaseVectorIndex,
        embedder: KnowledgeEmbedder,
        parser: TemporalExpressionParser | None = None,
        expander: SynonymExpander | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.index = index
        self.embedder = embedder
        self.parser = parser or TemporalExpressionParser(clock=clock)
        self.expander = expander or SynonymExpander()
        self._clock = clock or _utcnow

    def enrich(
        self,
        entry: KnowledgeEntry,
        reference_instant: datetime | None = None,
    ) -> KnowledgeEntry:
        """
        Regenerate temporal metadata and enhanced content.

        Relative phrases resolve against ``reference_instant``, by default
        the moment the entry was stored.
        """
        now = self._clock()
        stored_at = entry.created_at
        reference = reference_instant or stored_at

        processed = self.parser.parse(
            entry.content,
            reference_instant=reference,
            storage_instant=stored_at,
            now=now,
        )
        enhanced = build_enhanced_content(
            processed,
            display_name(entry.added_by, entry.added_by_name),
            reference,
            self.expander,
        )

        return entry.model_copy(
            update={
                "processed_content": processed.processed_content,
                "enhanced_content": enhanced,
                "temporal_info": processed.temporal_info,
                "resolved_dates": processed.resolved_dates,
                "temporal_relevance_score": processed.temporal_relevance_score,
                "contains_temporal_refs": processed.contains_temporal_refs,
                "temporal_processed_at": now,
                "concept_id": entry.concept_id or entry.id,
            }
        )

    async def index_entry(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        """
        Embed enhanced content and write the vector.

        Returns:
            The entry with ``is_indexed`` reflecting whether this succeeded
        """
        text = entry.enhanced_content or entry.content
        try:
            embedding = await self.embedder.embed_text(text)
            await self.index.upsert(
                entry.id,
                entry.account_id,
                embedding,
                document=text,
                metadata=index_metadata(entry),
            )
        except (EmbeddingError, StorageError) as e:
            logger.warning(f"Stored {entry} without a vector: {e}")
            return entry.model_copy(update={"is_indexed": False})

        return entry.model_copy(update={"is_indexed": True})

    async def save(
        self,
        entry: KnowledgeEntry,
        reference_instant: datetime | None = None,
    ) -> KnowledgeEntry:
        """
        Enrich, store and index an entry.

        Raises:
            InvalidEntryError: If required fields are missing
            StorageError: If the primary record could not be written
        """
        validate_entry(entry)

        entry = self.enrich(entry, reference_instant).model_copy(update={"is_indexed": False})
        await self.store.upsert(entry)

        indexed = await self.index_entry(entry)
        if indexed.is_indexed:
            await self.store.upsert(indexed)

        if indexed.contains_temporal_refs:
            logger.info(
                f"Stored {indexed} with {len(indexed.temporal_info)} temporal refs, "
                f"relevance {indexed.temporal_relevance_score:.2f}"
            )
        else:
            logger.info(f"Stored {indexed}")
        return indexed
