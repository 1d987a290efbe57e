"""
Vector index backends.

ChromaVectorIndex keeps entry vectors in a ChromaDB collection scoped by
account metadata. InMemoryVectorIndex does the same with numpy for tests
and single-process use.
"""

import logging
from typing import Any

import chromadb
import numpy as np
from chromadb.config import Settings

from temporal_knowledge.config import StorageConfig
from temporal_knowledge.storage.base import BaseVectorIndex, StorageError

logger = logging.getLogger(__name__)


def _flatten_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """Flatten metadata to the scalar values ChromaDB accepts."""
    flat = {}
    for key, value in metadata.items():
        if isinstance(value, list):
            # Convert lists to comma-separated strings
            if all(isinstance(v, (str, int, float)) for v in value):
                flat[key] = ",".join(str(v) for v in value)
        elif isinstance(value, (str, int, float, bool)):
            flat[key] = value
    return flat


class ChromaVectorIndex(BaseVectorIndex):
    """
    ChromaDB-based vector index for enhanced entry content.

    Supports:
    - Persistent or in-memory collections
    - Cosine similarity search filtered by account
    """

    def __init__(self, config: StorageConfig | None = None):
        """
        Initialize the vector index.

        Args:
            config: Storage configuration
        """
        self.config = config or StorageConfig()
        self._client: chromadb.ClientAPI | None = None
        self._collection: Any = None
        self._connected = False

    async def connect(self) -> None:
        """Initialize ChromaDB client and collection."""
        try:
            settings = Settings(anonymized_telemetry=False, allow_reset=True)
            persist_dir = self.config.chroma_persist_directory

            if persist_dir is None:
                self._client = chromadb.EphemeralClient(settings=settings)
            else:
                # Ensure directory exists
                persist_dir.mkdir(parents=True, exist_ok=True)
                self._client = chromadb.PersistentClient(
                    path=str(persist_dir),
                    settings=settings,
                )

            self._collection = self._client.get_or_create_collection(
                name=self.config.collection_name,
                metadata={"hnsw:space": self.config.hnsw_space},
            )
            self._connected = True
        except Exception as e:
            raise StorageError(f"Failed to connect to ChromaDB: {e}") from e

    async def disconnect(self) -> None:
        """Close ChromaDB connection."""
        # ChromaDB doesn't require explicit disconnection
        self._client = None
        self._collection = None
        self._connected = False

    def _ensure_connected(self) -> None:
        """Raise error if not connected."""
        if not self._connected or self._collection is None:
            raise StorageError("Not connected to vector index")

    async def upsert(
        self,
        entry_id: str,
        account_id: str,
        embedding: list[float],
        document: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Add or replace the vector for an entry."""
        self._ensure_connected()

        flat = _flatten_metadata(metadata or {})
        flat["account_id"] = account_id

        upsert_kwargs: dict[str, Any] = {
            "ids": [entry_id],
            "embeddings": [embedding],
            "metadatas": [flat],
        }
        if document:
            upsert_kwargs["documents"] = [document]

        try:
            self._collection.upsert(**upsert_kwargs)
        except Exception as e:
            raise StorageError(f"Failed to index entry {entry_id}: {e}") from e

    async def similarity_search(
        self,
        embedding: list[float],
        account_id: str,
        threshold: float,
        count: int,
    ) -> list[tuple[str, float]]:
        """Nearest neighbors within an account, similarity = 1 - distance."""
        self._ensure_connected()

        try:
            total = self._collection.count()
            if total == 0:
                return []

            result = self._collection.query(
                query_embeddings=[embedding],
                n_results=min(count, total),
                where={"account_id": {"$eq": account_id}},
                include=["distances"],
            )
        except Exception as e:
            raise StorageError(f"Failed to search: {e}") from e

        matches = []
        if result["ids"] and result["ids"][0]:
            for i, entry_id in enumerate(result["ids"][0]):
                similarity = 1 - result["distances"][0][i]
                if similarity >= threshold:
                    matches.append((entry_id, similarity))

        return matches

    async def delete(self, entry_id: str) -> bool:
        """Remove the vector for an entry."""
        self._ensure_connected()

        try:
            self._collection.delete(ids=[entry_id])
            return True
        except Exception as e:
            logger.warning(f"Failed to delete vector for {entry_id}: {e}")
            return False

    async def count(self) -> int:
        """Count vectors in the collection."""
        self._ensure_connected()
        return self._collection.count()


class InMemoryVectorIndex(BaseVectorIndex):
    """
    Process-local vector index using numpy cosine similarity.

    Ties keep insertion order.
    """

    def __init__(self) -> None:
        self._vectors: dict[str, np.ndarray] = {}
        self._accounts: dict[str, str] = {}
        self.documents: dict[str, str | None] = {}
        self.metadata: dict[str, dict[str, Any]] = {}

    async def upsert(
        self,
        entry_id: str,
        account_id: str,
        embedding: list[float],
        document: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        vector = np.asarray(embedding, dtype=np.float64)
        if vector.ndim != 1 or vector.size == 0:
            raise StorageError(f"Invalid embedding for entry {entry_id}")

        self._vectors[entry_id] = vector
        self._accounts[entry_id] = account_id
        self.documents[entry_id] = document
        self.metadata[entry_id] = dict(metadata or {})

    async def similarity_search(
        self,
        embedding: list[float],
        account_id: str,
        threshold: float,
        count: int,
    ) -> list[tuple[str, float]]:
        query = np.asarray(embedding, dtype=np.float64)
        query_norm = np.linalg.norm(query)
        if query_norm == 0:
            return []

        scored = []
        for entry_id, vector in self._vectors.items():
            if self._accounts[entry_id] != account_id or vector.shape != query.shape:
                continue
            norm = np.linalg.norm(vector)
            if norm == 0:
                continue
            similarity = float(np.dot(query, vector) / (query_norm * norm))
            if similarity >= threshold:
                scored.append((entry_id, similarity))

        scored.sort(key=lambda item: item[1], reverse=True)
        return scored[:count]

    async def delete(self, entry_id: str) -> bool:
        if entry_id not in self._vectors:
            return False
        del self._vectors[entry_id]
        del self._accounts[entry_id]
        self.documents.pop(entry_id, None)
        self.metadata.pop(entry_id, None)
        return True

    def __contains__(self, entry_id: str) -> bool:
        return entry_id in self._vectors

    def __len__(self) -> int:
        return len(self._vectors)
