"""
Temporal Knowledge - temporal-aware knowledge revision and hybrid search

A knowledge store for shared household/team facts implementing:
- Temporal expression parsing with resolved, annotated dates
- Revision chains that supersede facts without losing history
- Shopping list purchase and clear reconciliation
- Synonym-enriched content and query expansion
- Hybrid semantic + temporal ranking with keyword fallback

Quick Start:
    from temporal_knowledge import KnowledgeConfig, KnowledgeService, Actor

    service = await KnowledgeService.open(KnowledgeConfig(), "family", Actor(user_id="u1"))
    await service.process_and_store("Mom's birthday is on June 14", tags=["family"])
    await service.process_and_store(
        "We moved the family reunion to July 9",
        intent="update",
        replaces="family-reunion",
        tags=["family", "reunion"],
    )
    results = await service.search("bday")
    await service.close()
"""

from temporal_knowledge.config import KnowledgeConfig
from temporal_knowledge.errors import (
    EmbeddingError,
    EntryNotFoundError,
    InvalidEntryError,
    KnowledgeError,
    StorageError,
)
from temporal_knowledge.models.entry import (
    Actor,
    EntryIntent,
    KnowledgeEntry,
    SearchResult,
)
from temporal_knowledge.models.temporal import (
    ProcessedTemporalContent,
    TemporalKind,
    TemporalReference,
)
from temporal_knowledge.temporal.parser import TemporalExpressionParser
from temporal_knowledge.encoding.synonyms import SynonymExpander
from temporal_knowledge.revision.tracker import RevisionChain, RevisionChainTracker
from temporal_knowledge.shopping.reconciler import ShoppingListReconciler
from temporal_knowledge.retrieval.ranker import HybridRankingEngine, SearchOptions
from temporal_knowledge.api.knowledge_service import KnowledgeService

__version__ = "0.1.0"

__all__ = [
    "KnowledgeConfig",
    "EmbeddingError",
    "EntryNotFoundError",
    "InvalidEntryError",
    "KnowledgeError",
    "StorageError",
    "Actor",
    "EntryIntent",
    "KnowledgeEntry",
    "SearchResult",
    "ProcessedTemporalContent",
    "TemporalKind",
    "TemporalReference",
    "TemporalExpressionParser",
    "SynonymExpander",
    "RevisionChain",
    "RevisionChainTracker",
    "ShoppingListReconciler",
    "HybridRankingEngine",
    "SearchOptions",
    "KnowledgeService",
]
