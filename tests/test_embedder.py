"""
Tests for embedding providers and the caching embedder.
"""

import httpx
import pytest

from temporal_knowledge.config import EmbeddingConfig
from temporal_knowledge.encoding.embedder import (
    KnowledgeEmbedder,
    OllamaEmbedder,
    OpenAIEmbedder,
    SentenceTransformerEmbedder,
    clean_text,
    create_embedder,
)
from temporal_knowledge.errors import EmbeddingError


def ollama_with(handler) -> OllamaEmbedder:
    """Ollama embedder whose HTTP client is served by handler."""
    embedder = OllamaEmbedder(EmbeddingConfig(ollama_base_url="http://ollama.test/"))
    embedder._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return embedder


class TestOllamaEmbedder:
    """Tests for the Ollama provider."""

    @pytest.mark.asyncio
    async def test_embed(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = request.content
            return httpx.Response(200, json={"embedding": [0.1, 0.2, 0.3]})

        embedder = ollama_with(handler)
        try:
            assert await embedder.embed("hello") == [0.1, 0.2, 0.3]
        finally:
            await embedder.close()

        assert seen["url"] == "http://ollama.test/api/embeddings"
        assert b'"prompt":"hello"' in seen["body"].replace(b" ", b"")

    @pytest.mark.asyncio
    async def test_http_error(self):
        embedder = ollama_with(lambda request: httpx.Response(500))
        try:
            with pytest.raises(EmbeddingError):
                await embedder.embed("hello")
        finally:
            await embedder.close()

    @pytest.mark.asyncio
    async def test_empty_embedding(self):
        embedder = ollama_with(lambda request: httpx.Response(200, json={"embedding": []}))
        try:
            with pytest.raises(EmbeddingError):
                await embedder.embed("hello")
        finally:
            await embedder.close()


class TestKnowledgeEmbedder:
    """Tests for the caching wrapper."""

    @pytest.mark.asyncio
    async def test_cache(self, bow_embedder):
        embedder = KnowledgeEmbedder(embedder=bow_embedder)

        first = await embedder.embed_text("garden hose")
        second = await embedder.embed_text("garden hose")

        assert first == second
        assert bow_embedder.calls == 1

        await embedder.embed_text("garden hose", use_cache=False)
        assert bow_embedder.calls == 2

        embedder.clear_cache()
        await embedder.embed_text("garden hose")
        assert bow_embedder.calls == 3

    @pytest.mark.asyncio
    async def test_provider_errors_wrapped(self, bow_embedder):
        bow_embedder.fail = True
        embedder = KnowledgeEmbedder(embedder=bow_embedder)

        with pytest.raises(EmbeddingError, match="embedding provider unavailable"):
            await embedder.embed_text("garden hose")

    @pytest.mark.asyncio
    async def test_blank_text_rejected(self, embedder):
        with pytest.raises(EmbeddingError):
            await embedder.embed_text(" \n ")

    @pytest.mark.asyncio
    async def test_embed_batch(self, bow_embedder):
        vectors = await bow_embedder.embed_batch(["a", "b", "a"])

        assert len(vectors) == 3
        assert vectors[0] == vectors[2]


class TestFactory:
    """Tests for provider selection."""

    @pytest.mark.parametrize(
        "provider,cls",
        [
            ("ollama", OllamaEmbedder),
            ("openai", OpenAIEmbedder),
            ("sentence-transformers", SentenceTransformerEmbedder),
        ],
    )
    def test_create_embedder(self, provider, cls):
        assert isinstance(create_embedder(EmbeddingConfig(provider=provider)), cls)

    def test_clean_text(self):
        assert clean_text(" line one\nline two ") == "line one line two"
        assert len(clean_text("x" * 10_000)) == 8000
