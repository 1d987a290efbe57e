"""Revision chains: superseding entries without losing history."""

from temporal_knowledge.revision.tracker import (
    RevisionChain,
    RevisionChainTracker,
    tag_search_strategies,
)

__all__ = [
    "RevisionChain",
    "RevisionChainTracker",
    "tag_search_strategies",
]
