"""
Storage module for knowledge entries.

Provides:
- SQLite entry store (primary records, tag and revision lookups)
- ChromaDB vector index (semantic similarity)
- In-memory numpy vector index
"""

from temporal_knowledge.storage.base import (
    BaseEntryStore,
    BaseVectorIndex,
    EntryNotFoundError,
    StorageError,
)
from temporal_knowledge.storage.sqlite import SQLiteEntryStore
from temporal_knowledge.storage.vector import ChromaVectorIndex, InMemoryVectorIndex

__all__ = [
    "BaseEntryStore",
    "BaseVectorIndex",
    "EntryNotFoundError",
    "StorageError",
    "SQLiteEntryStore",
    "ChromaVectorIndex",
    "InMemoryVectorIndex",
]
