"""
Abstract base classes for storage backends.

Defines the query surface the revision tracker, shopping reconciler and
search engine need from the primary entry store and the secondary vector
index. The two stores are only eventually consistent: an entry may exist
in the entry store without a vector.
"""

from abc import ABC, abstractmethod
from typing import Any

from temporal_knowledge.errors import EntryNotFoundError, StorageError
from temporal_knowledge.models.entry import KnowledgeEntry

__all__ = [
    "BaseEntryStore",
    "BaseVectorIndex",
    "EntryNotFoundError",
    "StorageError",
]


class BaseEntryStore(ABC):
    """
    Abstract base class for durable knowledge entry storage.

    "Current" always means ``replaced_by`` is NULL. Implementations store
    None, absent and blank ``replaced_by``/``replaces`` values identically.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Initialize connection to storage backend."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to storage backend."""
        pass

    async def __aenter__(self) -> "BaseEntryStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()

    # Writes
    @abstractmethod
    async def upsert(self, entry: KnowledgeEntry) -> str:
        """
        Insert an entry or replace the stored version with the same id.

        Args:
            entry: The entry to store

        Returns:
            The ID of the stored entry
        """
        pass

    @abstractmethod
    async def mark_superseded(self, entry_id: str, replaced_by: str) -> bool:
        """
        Retire an entry by setting its ``replaced_by`` event time.

        Args:
            entry_id: The entry to retire
            replaced_by: Event time of the superseding entry

        Returns:
            True if updated, False if not found or already superseded
        """
        pass

    @abstractmethod
    async def delete(self, entry_id: str) -> bool:
        """
        Delete an entry permanently.

        Returns:
            True if deleted, False if not found
        """
        pass

    # Lookups
    @abstractmethod
    async def find_by_id(self, account_id: str, entry_id: str) -> KnowledgeEntry | None:
        """
        Read an entry by ID within an account.

        Returns:
            The entry if found, None otherwise
        """
        pass

    @abstractmethod
    async def find_by_ids(
        self, account_id: str, entry_ids: list[str]
    ) -> list[KnowledgeEntry]:
        """Read multiple entries, in no particular order."""
        pass

    @abstractmethod
    async def find_current_by_tag(self, account_id: str, tag: str) -> list[KnowledgeEntry]:
        """Current entries carrying a tag, oldest first."""
        pass

    @abstractmethod
    async def find_current_by_any_tag(
        self, account_id: str, tags: list[str]
    ) -> list[KnowledgeEntry]:
        """Current entries carrying at least one of the tags, oldest first."""
        pass

    @abstractmethod
    async def find_by_tag(self, account_id: str, tag: str) -> list[KnowledgeEntry]:
        """All entries carrying a tag, superseded ones included, oldest first."""
        pass

    @abstractmethod
    async def find_by_replaces(self, account_id: str, identifier: str) -> list[KnowledgeEntry]:
        """Entries whose ``replaces`` equals identifier, oldest first."""
        pass

    @abstractmethod
    async def find_by_concept(self, account_id: str, concept_id: str) -> list[KnowledgeEntry]:
        """Every revision sharing a concept id, ordered by event timestamp."""
        pass

    # Listings
    @abstractmethod
    async def list_current(
        self, account_id: str, limit: int | None = None
    ) -> list[KnowledgeEntry]:
        """Current entries, newest first."""
        pass

    @abstractmethod
    async def list_recent(
        self,
        account_id: str,
        limit: int = 20,
        include_superseded: bool = False,
    ) -> list[KnowledgeEntry]:
        """Most recently created entries, newest first."""
        pass

    @abstractmethod
    async def list_unindexed(
        self, account_id: str | None = None, limit: int = 100
    ) -> list[KnowledgeEntry]:
        """
        Entries missing temporal processing or a vector, oldest first.

        Args:
            account_id: Restrict to one account (None = all accounts)
            limit: Maximum entries to return
        """
        pass

    @abstractmethod
    async def tag_counts(self, account_id: str) -> dict[str, int]:
        """Number of current entries per tag."""
        pass


class BaseVectorIndex(ABC):
    """
    Abstract base class for the nearest-neighbor index over enhanced content.

    Returns candidate ids and similarity scores only; ranking beyond raw
    similarity is the search engine's job.
    """

    async def connect(self) -> None:
        """Initialize connection to the index."""
        pass

    async def disconnect(self) -> None:
        """Close connection to the index."""
        pass

    @abstractmethod
    async def upsert(
        self,
        entry_id: str,
        account_id: str,
        embedding: list[float],
        document: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """
        Add or replace the vector for an entry.

        Args:
            entry_id: Entry the vector belongs to
            account_id: Owning account, used to scope searches
            embedding: Vector of the entry's enhanced content
            document: The embedded text
            metadata: Flat scalar metadata
        """
        pass

    @abstractmethod
    async def similarity_search(
        self,
        embedding: list[float],
        account_id: str,
        threshold: float,
        count: int,
    ) -> list[tuple[str, float]]:
        """
        Nearest neighbors of a query vector within an account.

        Args:
            embedding: Query vector
            account_id: Account to search
            threshold: Minimum similarity (0-1)
            count: Maximum candidates

        Returns:
            (entry id, similarity) pairs, most similar first
        """
        pass

    @abstractmethod
    async def delete(self, entry_id: str) -> bool:
        """Remove the vector for an entry."""
        pass
