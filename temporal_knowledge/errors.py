"""
Exception hierarchy.

Only InvalidEntryError is meant to reach callers of the service layer as a
hard failure. Parse degradation, lookup misses and embedding failures are
recovered where they happen.
"""


class KnowledgeError(Exception):
    """Base exception for the knowledge engine."""

    pass


class InvalidEntryError(KnowledgeError):
    """Raised when an operation is missing required account or entry fields."""

    pass


class StorageError(KnowledgeError):
    """Base exception for storage errors."""

    pass


class EntryNotFoundError(StorageError):
    """Raised when an entry is not found."""

    pass


class EmbeddingError(KnowledgeError):
    """Raised when an embedding provider fails to return a vector."""

    pass
