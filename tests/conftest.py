"""
Pytest configuration and shared fixtures.
"""

import hashlib
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from temporal_knowledge.api.knowledge_service import KnowledgeService
from temporal_knowledge.config import EmbeddingConfig, StorageConfig
from temporal_knowledge.encoding.embedder import BaseEmbedder, KnowledgeEmbedder
from temporal_knowledge.encoding.synonyms import tokenize
from temporal_knowledge.models.entry import Actor
from temporal_knowledge.storage.sqlite import SQLiteEntryStore
from temporal_knowledge.storage.vector import InMemoryVectorIndex

# Friday
REFERENCE_INSTANT = datetime(2025, 5, 30, 12, 0, 0)
ACCOUNT_ID = "family-space"


class FakeClock:
    """Settable clock returning naive UTC datetimes."""

    def __init__(self, start: datetime = REFERENCE_INSTANT):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class BagOfWordsEmbedder(BaseEmbedder):
    """
    Deterministic embedder: token counts hashed into a fixed number of buckets.

    Texts sharing words get high cosine similarity, unrelated texts near zero.
    Set ``fail`` to simulate a provider outage.
    """

    def __init__(self, dimensions: int = 512):
        super().__init__(EmbeddingConfig(dimensions=dimensions))
        self.fail = False
        self.calls = 0

    async def embed(self, text: str) -> list[float]:
        self.calls += 1
        if self.fail:
            raise RuntimeError("embedding provider unavailable")

        vector = [0.0] * self.config.dimensions
        for token in tokenize(text):
            bucket = int(hashlib.md5(token.encode("utf-8")).hexdigest(), 16)
            vector[bucket % self.config.dimensions] += 1.0
        return vector


@pytest.fixture
def temp_directory():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clock():
    """Clock fixed at Friday 2025-05-30 12:00 until advanced."""
    return FakeClock()


@pytest.fixture
def storage_config(temp_directory):
    """Storage config with a temp sqlite path and an in-memory chroma client."""
    return StorageConfig(
        sqlite_path=temp_directory / "knowledge.db",
        chroma_persist_directory=None,
    )


@pytest.fixture
async def store(storage_config):
    """Create and connect a SQLite entry store."""
    store = SQLiteEntryStore(storage_config)
    await store.connect()
    yield store
    await store.disconnect()


@pytest.fixture
def vector_index():
    return InMemoryVectorIndex()


@pytest.fixture
def bow_embedder():
    return BagOfWordsEmbedder()


@pytest.fixture
def embedder(bow_embedder):
    return KnowledgeEmbedder(embedder=bow_embedder)


@pytest.fixture
def actor():
    return Actor(user_id="user-sam-0001", display_name="Sam")


@pytest.fixture
def service(store, vector_index, embedder, actor, clock):
    """KnowledgeService over sqlite, the in-memory index and the test embedder."""
    return KnowledgeService(
        store,
        vector_index,
        embedder,
        ACCOUNT_ID,
        actor,
        clock=clock,
    )
