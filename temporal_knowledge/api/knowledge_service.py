"""
Knowledge Service - unified interface for one account's knowledge.

Provides a single entry point for:
- Storing entries with temporal parsing, enrichment and indexing
- Replacing facts through revision chains
- Shopping list purchases and clears
- Hybrid search with result caching
- Temporal listings and maintenance of stored scores
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import BaseModel, Field, ValidationError, field_validator

from temporal_knowledge.api.pipeline import EntryPipeline
from temporal_knowledge.config import KnowledgeConfig
from temporal_knowledge.encoding.embedder import KnowledgeEmbedder
from temporal_knowledge.encoding.synonyms import SynonymExpander
from temporal_knowledge.errors import EntryNotFoundError, InvalidEntryError, StorageError
from temporal_knowledge.models.entry import (
    Actor,
    EntryIntent,
    KnowledgeEntry,
    SearchResult,
    utc_timestamp,
)
from temporal_knowledge.retrieval.cache import QueryCache
from temporal_knowledge.retrieval.ranker import HybridRankingEngine, SearchOptions
from temporal_knowledge.revision.tracker import RevisionChain, RevisionChainTracker
from temporal_knowledge.shopping.items import extract_purchased_items
from temporal_knowledge.shopping.reconciler import (
    DEFAULT_LIST_TYPE,
    ClearOutcome,
    PurchaseOutcome,
    ShoppingListReconciler,
)
from temporal_knowledge.storage.base import BaseEntryStore, BaseVectorIndex
from temporal_knowledge.temporal.context import (
    TimeFrame,
    create_temporal_context,
    earliest_next_occurrence,
    is_temporally_relevant,
)
from temporal_knowledge.temporal.parser import TemporalExpressionParser

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Get current UTC time (naive)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class StoreRequest(BaseModel):
    """Request to store a new entry."""

    content: str = Field(min_length=1)
    intent: EntryIntent = EntryIntent.CREATE
    replaces: str | None = None
    timestamp: str | None = Field(
        default=None,
        description="Event time (ISO 8601); defaults to now",
    )
    tags: list[str] = Field(default_factory=list)
    items: list[str] | None = None
    list_type: str | None = None
    stored_at: datetime | None = Field(
        default=None,
        description="Storage instant reported by the client; relative dates resolve against it",
    )

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("content is blank")
        return value

    @field_validator("timestamp")
    @classmethod
    def _timestamp_is_iso(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        try:
            datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as e:
            raise ValueError(f"timestamp is not ISO 8601: {value}") from e
        return value.strip()


class KnowledgeService:
    """
    Knowledge operations for one account, performed as one user.

    Usage:
        async with await KnowledgeService.open(config, "acct-1", Actor(user_id="u1")) as svc:
            entry_id = await svc.process_and_store("Dad's bday tomorrow", tags=["family"])
            results = await svc.search("birthday")
    """

    def __init__(
        self,
        store: BaseEntryStore,
        index: BaseVectorIndex,
        embedder: KnowledgeEmbedder,
        account_id: str,
        actor: Actor,
        config: KnowledgeConfig | None = None,
        clock: Callable[[], datetime] | None = None,
        cache: QueryCache | None = None,
    ):
        if not account_id or not account_id.strip():
            raise InvalidEntryError("KnowledgeService needs an account id")
        if not actor.user_id or not actor.user_id.strip():
            raise InvalidEntryError("KnowledgeService needs an acting user id")

        self.config = config or KnowledgeConfig()
        self.store = store
        self.index = index
        self.embedder = embedder
        self.account_id = account_id
        self.actor = actor
        self._clock = clock or _utcnow

        self.parser = TemporalExpressionParser(self.config.temporal, clock=self._clock)
        self.expander = SynonymExpander()
        self.pipeline = EntryPipeline(
            store, index, embedder, self.parser, self.expander, clock=self._clock
        )
        self.tracker = RevisionChainTracker(store, account_id)
        self.reconciler = ShoppingListReconciler(
            store, account_id, self.store_entry, tracker=self.tracker, clock=self._clock
        )
        self.ranker = HybridRankingEngine(
            store,
            index,
            embedder,
            account_id,
            parser=self.parser,
            expander=self.expander,
            config=self.config.search,
            clock=self._clock,
        )
        self.cache = cache or QueryCache(
            account_id,
            default_ttl=self.config.cache.search_ttl_seconds,
            enabled=self.config.cache.enabled,
        )

    @classmethod
    async def open(
        cls,
        config: KnowledgeConfig,
        account_id: str,
        actor: Actor,
    ) -> "KnowledgeService":
        """Build a service over the configured sqlite store, chroma index and embedder."""
        from temporal_knowledge.storage.sqlite import SQLiteEntryStore
        from temporal_knowledge.storage.vector import ChromaVectorIndex

        store = SQLiteEntryStore(config.storage)
        index = ChromaVectorIndex(config.storage)
        await store.connect()
        await index.connect()
        embedder = KnowledgeEmbedder(config.embedding)
        return cls(store, index, embedder, account_id, actor, config=config)

    async def close(self) -> None:
        await self.embedder.close()
        await self.index.disconnect()
        await self.store.disconnect()

    async def __aenter__(self) -> "KnowledgeService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Storing
    # -------------------------------------------------------------------------

    async def process_and_store(
        self,
        content: str,
        intent: EntryIntent | str = EntryIntent.CREATE,
        replaces: str | None = None,
        timestamp: str | None = None,
        tags: list[str] | None = None,
        items: list[str] | None = None,
        list_type: str | None = None,
        stored_at: datetime | None = None,
    ) -> str:
        """
        Store a piece of knowledge.

        An entry naming ``replaces`` with an update, delete, purchase or
        clear intent first retires the entries it refers to. Purchases and
        clears without ``replaces`` go through list reconciliation.

        Args:
            content: Free text
            intent: What the user meant to do
            replaces: Id, concept id or concept tag of the fact being replaced
            timestamp: Event time (ISO 8601), defaults to now
            tags: Entry tags
            items: Shopping items, extracted from content if omitted
            list_type: List the items belong to
            stored_at: Client storage instant for relative date resolution

        Returns:
            Id of the stored entry (the record entry for purchases and clears)

        Raises:
            InvalidEntryError: If the request is malformed
            StorageError: If the entry could not be stored
        """
        try:
            request = StoreRequest(
                content=content,
                intent=intent,
                replaces=replaces,
                timestamp=timestamp,
                tags=tags or [],
                items=items,
                list_type=list_type,
                stored_at=stored_at,
            )
        except ValidationError as e:
            raise InvalidEntryError(f"Invalid store request: {e}") from e

        return await self.store_request(request)

    async def store_request(self, request: StoreRequest) -> str:
        """Store a validated request. See ``process_and_store``."""
        if not request.replaces:
            if request.intent == EntryIntent.PURCHASE:
                outcome = await self.handle_purchase(
                    request.items or extract_purchased_items(request.content), request.tags
                )
                return outcome.record.id
            if request.intent == EntryIntent.CLEAR_LIST:
                outcome = await self.clear_list(request.list_type or DEFAULT_LIST_TYPE)
                return outcome.record.id

        now = self._clock()
        stored_at = request.stored_at or now
        timestamp = request.timestamp or utc_timestamp(stored_at)

        entry = KnowledgeEntry(
            account_id=self.account_id,
            content=request.content,
            tags=request.tags,
            added_by=self.actor.user_id,
            added_by_name=self.actor.display_name,
            created_at=stored_at,
            updated_at=stored_at,
            timestamp=timestamp,
            replaces=request.replaces,
            intent=request.intent,
            items=request.items,
            list_type=request.list_type,
        )

        if request.replaces and request.intent != EntryIntent.CREATE:
            logger.debug(f"Processing {request.intent.value} replacing '{request.replaces}'")
            retired = await self.tracker.handle_replacement(request.replaces, timestamp)
            entry = self._inherit(entry, retired)

        saved = await self.store_entry(entry)
        return saved.id

    @staticmethod
    def _inherit(entry: KnowledgeEntry, retired: list[KnowledgeEntry]) -> KnowledgeEntry:
        """Carry the concept id, and tags if none were given, over from a predecessor."""
        if not retired:
            return entry

        predecessor = retired[0]
        update: dict[str, Any] = {"concept_id": predecessor.concept_id or predecessor.id}
        if not entry.tags:
            update["tags"] = predecessor.tags
        return entry.model_copy(update=update)

    async def store_entry(self, entry: KnowledgeEntry) -> KnowledgeEntry:
        """
        Run an entry through the storage pipeline.

        Returns:
            The entry as stored, with temporal metadata and index status
        """
        saved = await self.pipeline.save(entry)
        self.cache.invalidate_account()
        return saved

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    async def search(
        self,
        query: str,
        tags: list[str] | None = None,
        options: SearchOptions | None = None,
    ) -> list[SearchResult]:
        """
        Hybrid semantic + temporal search.

        Results of calls without options are cached until the next write.
        """
        if not query or not query.strip():
            return []

        key = self.cache.search_key(query, tags) if options is None else None
        if key is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug(f"Cache hit for '{query}'")
                return list(cached)

        results = await self.ranker.search(query, tags, options)

        if key is not None:
            self.cache.set(key, results)
        return results

    async def get_temporally_relevant(
        self,
        time_frame: TimeFrame = "all",
        limit: int = 20,
    ) -> list[SearchResult]:
        """
        Current entries with temporal references relevant to a time frame.

        Scored by temporal relevance alone, best first.
        """
        now = self._clock()
        results = []

        for entry in await self.store.list_current(self.account_id):
            if not entry.temporal_info:
                continue
            references, score = self.parser.reevaluate(entry.temporal_info, entry.created_at, now)
            relevant = is_temporally_relevant(
                references, now, time_frame, include_expired_events=time_frame == "past"
            )
            if not relevant:
                continue
            results.append(
                SearchResult(
                    entry=entry,
                    similarity=score,
                    semantic_similarity=0.0,
                    temporal_context=create_temporal_context(references, now),
                    is_temporally_relevant=True,
                    next_occurrence=earliest_next_occurrence(references, now),
                )
            )

        results.sort(key=lambda r: r.similarity, reverse=True)
        return results[:limit]

    # -------------------------------------------------------------------------
    # Shopping lists
    # -------------------------------------------------------------------------

    async def get_active_items(self) -> list[KnowledgeEntry]:
        return await self.reconciler.get_active_items()

    async def handle_purchase(
        self, purchased_items: list[str], tags: list[str] | None = None
    ) -> PurchaseOutcome:
        outcome = await self.reconciler.handle_purchase(purchased_items, tags or [], self.actor)
        self.cache.invalidate_account()
        return outcome

    async def clear_list(self, list_type: str = DEFAULT_LIST_TYPE) -> ClearOutcome:
        outcome = await self.reconciler.clear_list(list_type, self.actor)
        self.cache.invalidate_account()
        return outcome

    # -------------------------------------------------------------------------
    # Revisions
    # -------------------------------------------------------------------------

    async def get_revision_history(self, identifier: str) -> list[KnowledgeEntry]:
        return await self.tracker.get_revision_history(identifier)

    async def get_current_version(self, tag: str) -> list[KnowledgeEntry]:
        return await self.tracker.get_current_version(tag)

    async def get_chain(self, concept_id: str) -> RevisionChain:
        return await self.tracker.chain(concept_id)

    # -------------------------------------------------------------------------
    # Entries
    # -------------------------------------------------------------------------

    async def get_entry(self, entry_id: str) -> KnowledgeEntry:
        entry = await self.store.find_by_id(self.account_id, entry_id)
        if entry is None:
            raise EntryNotFoundError(f"Entry not found: {entry_id}")
        return entry

    async def get_recent(
        self, limit: int = 20, include_superseded: bool = False
    ) -> list[KnowledgeEntry]:
        key = self.cache.recent_key(limit, include_superseded)
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)

        entries = await self.store.list_recent(self.account_id, limit, include_superseded)
        self.cache.set(key, entries)
        return entries

    async def get_tag_stats(self) -> dict[str, int]:
        """Tag usage counts over current entries."""
        key = self.cache.tag_stats_key()
        cached = self.cache.get(key)
        if cached is not None:
            return dict(cached)

        stats = await self.store.tag_counts(self.account_id)
        self.cache.set(key, stats, ttl=self.config.cache.tag_stats_ttl_seconds)
        return stats

    async def update_entry(
        self,
        entry_id: str,
        content: str | None = None,
        tags: list[str] | None = None,
    ) -> KnowledgeEntry:
        """
        Edit an entry in place.

        Changing content regenerates temporal metadata, with relative dates
        resolved against the edit time, and the embedding.

        Raises:
            EntryNotFoundError: If the entry does not exist in this account
            InvalidEntryError: If the new content is blank
        """
        entry = await self.get_entry(entry_id)
        now = self._clock()

        data = entry.model_dump()
        data["updated_at"] = now
        if content is not None:
            if not content.strip():
                raise InvalidEntryError(f"Entry {entry_id} cannot be updated to blank content")
            data["content"] = content
        if tags is not None:
            data["tags"] = tags

        updated = await self.pipeline.save(KnowledgeEntry.model_validate(data), reference_instant=now)
        self.cache.invalidate_account()
        logger.info(f"Updated {updated}")
        return updated

    async def delete_entry(self, entry_id: str) -> None:
        """
        Delete an entry and its vector. Immediate and final.

        Raises:
            EntryNotFoundError: If the entry does not exist in this account
        """
        await self.get_entry(entry_id)
        await self.store.delete(entry_id)

        try:
            await self.index.delete(entry_id)
        except StorageError as e:
            logger.warning(f"Deleted entry {entry_id} but not its vector: {e}")

        self.cache.invalidate_account()
        logger.info(f"Deleted entry {entry_id}")

    async def refresh_temporal_scores(self) -> int:
        """
        Recompute stored temporal state of current entries as of now.

        Returns:
            Number of entries refreshed
        """
        now = self._clock()
        refreshed = 0

        for entry in await self.store.list_current(self.account_id):
            if not entry.temporal_info:
                continue
            references, score = self.parser.reevaluate(entry.temporal_info, entry.created_at, now)
            await self.store.upsert(
                entry.model_copy(
                    update={
                        "temporal_info": references,
                        "temporal_relevance_score": score,
                        "updated_at": now,
                    }
                )
            )
            refreshed += 1

        if refreshed:
            self.cache.invalidate_account()
        logger.info(f"Refreshed temporal scores of {refreshed} entries")
        return refreshed
