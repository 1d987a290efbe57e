"""
Retrieval module.

Provides:
- Hybrid semantic + temporal ranking with synonym-expanded queries
- Keyword fallback search
- Query result caching
"""

from temporal_knowledge.retrieval.cache import QueryCache
from temporal_knowledge.retrieval.ranker import HybridRankingEngine, SearchOptions

__all__ = [
    "HybridRankingEngine",
    "QueryCache",
    "SearchOptions",
]
