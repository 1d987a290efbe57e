"""
Hybrid search ranking.

Combines semantic similarity from the vector index with each entry's
temporal relevance, filters by tags and by the temporal intent of the query,
and relaxes the similarity threshold once when too few results come back.
If embedding or the vector index fails, search degrades to keyword matching
over current entries.
"""

import logging
from datetime import datetime, timezone
from typing import Callable

from pydantic import BaseModel, Field

from temporal_knowledge.config import SearchConfig
from temporal_knowledge.encoding.embedder import KnowledgeEmbedder
from temporal_knowledge.encoding.synonyms import SynonymExpander
from temporal_knowledge.errors import EmbeddingError, StorageError
from temporal_knowledge.models.entry import KnowledgeEntry, SearchResult, is_superseded
from temporal_knowledge.models.temporal import TemporalReference
from temporal_knowledge.storage.base import BaseEntryStore, BaseVectorIndex
from temporal_knowledge.temporal.context import (
    TemporalIntent,
    TemporalQuery,
    TimeFrame,
    create_temporal_context,
    earliest_next_occurrence,
    is_temporally_relevant,
    matches_intent,
    process_temporal_query,
)
from temporal_knowledge.temporal.parser import TemporalExpressionParser

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Get current UTC time (naive)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SearchOptions(BaseModel):
    """Per-call overrides for hybrid search. None means use the configured value."""

    match_threshold: float | None = Field(default=None, ge=0.0, le=1.0)
    match_count: int | None = Field(default=None, ge=1)
    min_results: int | None = Field(default=None, ge=0)
    result_cap: int | None = Field(default=None, ge=1)
    temporal_weight: float | None = Field(
        default=None,
        description="Weight of temporal relevance; derived from the query if None",
        ge=0.0,
        le=1.0,
    )
    time_frame: TimeFrame = Field(
        default="all",
        description="Drop results not relevant to this time frame",
    )
    include_expired_events: bool | None = Field(
        default=None,
        description="Keep past one-time events; derived from the query intent if None",
    )
    use_intent_filter: bool = True
    include_superseded: bool = False


class _Pass(BaseModel):
    """Parameters shared by every candidate in one ranking pass."""

    tags: set[str]
    weight: float
    intent: TemporalIntent
    time_frame: TimeFrame
    include_expired_events: bool
    include_superseded: bool
    now: datetime


class HybridRankingEngine:
    """
    Ranks entries by semantic similarity plus temporal relevance.

    combined = semantic * (1 - w) + temporal * w, with w raised for queries
    that mention time. Sorting is stable, so equal scores keep the vector
    index's order.
    """

    def __init__(
        self,
        store: BaseEntryStore,
        index: BaseVectorIndex,
        embedder: KnowledgeEmbedder,
        account_id: str,
        parser: TemporalExpressionParser | None = None,
        expander: SynonymExpander | None = None,
        config: SearchConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.index = index
        self.embedder = embedder
        self.account_id = account_id
        self.parser = parser or TemporalExpressionParser()
        self.expander = expander or SynonymExpander()
        self.config = config or SearchConfig()
        self._clock = clock or _utcnow

    def expand_query(self, query: str) -> list[str]:
        """Query terms plus every synonym of every term."""
        return self.expander.expand_text(query)

    async def search(
        self,
        query: str,
        tags: list[str] | None = None,
        options: SearchOptions | None = None,
    ) -> list[SearchResult]:
        """
        Hybrid search over the account's entries.

        Args:
            query: Free-text query
            tags: If given, results must share at least one tag
            options: Per-call overrides

        Returns:
            Results ordered by combined score, best first
        """
        options = options or SearchOptions()
        now = self._clock()

        temporal_query = process_temporal_query(query, self.parser, self.config, now)
        terms = self.expand_query(query)
        if len(terms) > len(query.split()):
            logger.debug(f"Expanded query '{query}' to {len(terms)} terms")

        params = self._pass_params(temporal_query, tags, options, now)
        threshold = (
            options.match_threshold
            if options.match_threshold is not None
            else self.config.match_threshold
        )
        count = options.match_count or self.config.match_count
        min_results = (
            options.min_results if options.min_results is not None else self.config.min_results
        )
        cap = options.result_cap or self.config.result_cap

        try:
            embedding = await self.embedder.embed_text(" ".join(terms))
            results = await self._ranked_pass(embedding, threshold, count, params)

            if len(results) < min_results:
                relaxed_threshold = max(
                    self.config.relaxed_threshold_floor,
                    threshold - self.config.relaxation_step,
                )
                relaxed_count = count * self.config.relaxed_count_multiplier
                logger.info(
                    f"Only {len(results)} results above {threshold:.2f}, "
                    f"retrying at {relaxed_threshold:.2f} with {relaxed_count} candidates"
                )
                results = await self._ranked_pass(
                    embedding, min(threshold, relaxed_threshold), relaxed_count, params
                )
        except (EmbeddingError, StorageError) as e:
            logger.warning(f"Vector search unavailable, falling back to keywords: {e}")
            results = await self.keyword_search(terms, params)

        logger.debug(f"Search for '{query}' returned {min(len(results), cap)} results")
        return results[:cap]

    def _pass_params(
        self,
        temporal_query: TemporalQuery,
        tags: list[str] | None,
        options: SearchOptions,
        now: datetime,
    ) -> _Pass:
        return _Pass(
            tags={t.strip().lower() for t in tags or [] if t and t.strip()},
            weight=(
                options.temporal_weight
                if options.temporal_weight is not None
                else temporal_query.temporal_weight
            ),
            intent=(
                temporal_query.intent if options.use_intent_filter else TemporalIntent.GENERAL
            ),
            time_frame=options.time_frame,
            include_expired_events=(
                options.include_expired_events
                if options.include_expired_events is not None
                else temporal_query.include_expired_events
            ),
            include_superseded=options.include_superseded,
            now=now,
        )

    async def _ranked_pass(
        self,
        embedding: list[float],
        threshold: float,
        count: int,
        params: _Pass,
    ) -> list[SearchResult]:
        candidates = await self.index.similarity_search(
            embedding, self.account_id, threshold, count
        )
        if not candidates:
            return []

        entries = await self.store.find_by_ids(self.account_id, [c[0] for c in candidates])
        by_id = {entry.id: entry for entry in entries}

        results = []
        for entry_id, similarity in candidates:
            entry = by_id.get(entry_id)
            if entry is None:
                # Index is only eventually consistent with the store
                logger.debug(f"Vector for {entry_id} has no stored entry, skipping")
                continue
            result = self._score(entry, similarity, params)
            if result is not None:
                results.append(result)

        # Stable: ties keep the index's order
        results.sort(key=lambda r: r.similarity, reverse=True)
        return results

    def _score(
        self,
        entry: KnowledgeEntry,
        semantic: float,
        params: _Pass,
    ) -> SearchResult | None:
        """Score one candidate, or None if a filter rejects it."""
        if not params.include_superseded and is_superseded(entry):
            return None
        if params.tags and not params.tags.intersection(entry.tags):
            return None

        references, temporal_score = self._temporal_state(entry, params.now)

        relevant = is_temporally_relevant(
            references, params.now, params.time_frame, params.include_expired_events
        )
        if params.time_frame != "all" and not relevant:
            return None
        if not matches_intent(references, params.intent, params.now):
            return None

        semantic = max(0.0, min(1.0, semantic))
        combined = semantic * (1 - params.weight) + temporal_score * params.weight

        return SearchResult(
            entry=entry,
            similarity=combined,
            semantic_similarity=semantic,
            temporal_context=create_temporal_context(references, params.now),
            is_temporally_relevant=relevant,
            next_occurrence=earliest_next_occurrence(references, params.now),
        )

    def _temporal_state(
        self, entry: KnowledgeEntry, now: datetime
    ) -> tuple[list[TemporalReference], float]:
        """References and relevance score of an entry as of now."""
        if not entry.temporal_info:
            # Keeps the neutral score of entries whose parsing failed
            return [], entry.temporal_relevance_score
        return self.parser.reevaluate(entry.temporal_info, entry.created_at, now)

    async def keyword_search(self, terms: list[str], params: _Pass) -> list[SearchResult]:
        """
        Case-insensitive term matching over current entries.

        The semantic part of the score is the share of terms found in the
        entry's content and tags.
        """
        if params.tags:
            entries = await self.store.find_current_by_any_tag(
                self.account_id, sorted(params.tags)
            )
            entries.reverse()
        else:
            entries = await self.store.list_current(self.account_id)

        terms = [t.lower() for t in terms if t]
        results = []
        for entry in entries:
            text = f"{entry.content} {' '.join(entry.tags)}".lower()
            matched = sum(1 for term in terms if term in text)
            if terms and not matched:
                continue
            result = self._score(entry, matched / len(terms) if terms else 0.0, params)
            if result is not None:
                results.append(result)

        results.sort(key=lambda r: r.similarity, reverse=True)
        return results
