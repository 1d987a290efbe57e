"""
API module.

Provides the KnowledgeService facade and the entry storage pipeline it
shares with maintenance jobs.
"""

from temporal_knowledge.api.knowledge_service import KnowledgeService, StoreRequest
from temporal_knowledge.api.pipeline import EntryPipeline, index_metadata, validate_entry

__all__ = [
    "KnowledgeService",
    "StoreRequest",
    "EntryPipeline",
    "index_metadata",
    "validate_entry",
]
