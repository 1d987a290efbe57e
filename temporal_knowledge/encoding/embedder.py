"""
Embedding generation for enhanced entry content and search queries.

Supports multiple providers:
- Ollama (local, default)
- OpenAI
- Sentence Transformers (local)

Provider failures surface as EmbeddingError so callers can store entries
without a vector and repair the index later.
"""

import asyncio
import hashlib
import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from temporal_knowledge.config import EmbeddingConfig
from temporal_knowledge.errors import EmbeddingError

logger = logging.getLogger(__name__)

# Most embedding models truncate well below this
MAX_EMBED_CHARS = 8000


def clean_text(text: str) -> str:
    """Collapse newlines and cap the length of text sent to a provider."""
    return text.replace("\n", " ").strip()[:MAX_EMBED_CHARS]


class BaseEmbedder(ABC):
    """Abstract base class for embedding providers."""

    def __init__(self, config: EmbeddingConfig):
        self.config = config

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text."""
        pass

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts."""
        results = []
        batch_size = self.config.batch_size
        for i in range(0, len(texts), batch_size):
            batch = texts[i : i + batch_size]
            results.extend(await asyncio.gather(*(self.embed(t) for t in batch)))
        return results

    async def close(self) -> None:
        """Release provider resources."""
        pass


class OllamaEmbedder(BaseEmbedder):
    """
    Ollama-based embedder for local embedding generation.

    Uses Ollama's embedding API with models like:
    - nomic-embed-text (768 dimensions)
    - mxbai-embed-large (1024 dimensions)
    - all-minilm (384 dimensions)
    """

    def __init__(self, config: EmbeddingConfig):
        super().__init__(config)
        self.base_url = config.ollama_base_url.rstrip("/")
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout_seconds)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def embed(self, text: str) -> list[float]:
        """Generate embedding using Ollama."""
        client = await self._get_client()

        try:
            response = await client.post(
                f"{self.base_url}/api/embeddings",
                json={
                    "model": self.config.model,
                    "prompt": text,
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise EmbeddingError(f"Ollama embedding request failed: {e}") from e

        data = response.json()
        if not data.get("embedding"):
            raise EmbeddingError("No embedding returned from Ollama")
        return data["embedding"]

    async def __aenter__(self) -> "OllamaEmbedder":
        await self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class OpenAIEmbedder(BaseEmbedder):
    """
    OpenAI-based embedder.

    Uses OpenAI's embedding API with models like:
    - text-embedding-3-small (1536 dimensions)
    - text-embedding-3-large (3072 dimensions, reducible via dimensions)
    """

    def __init__(self, config: EmbeddingConfig):
        super().__init__(config)
        self._client: Any = None

    def _get_client(self) -> Any:
        """Get or create OpenAI client."""
        if self._client is None:
            try:
                from openai import AsyncOpenAI
                self._client = AsyncOpenAI(timeout=self.config.timeout_seconds)
            except ImportError:
                raise ImportError("openai package required for OpenAI embeddings")
        return self._client

    async def embed(self, text: str) -> list[float]:
        """Generate embedding using OpenAI."""
        return (await self.embed_batch([text]))[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts in one request."""
        client = self._get_client()

        try:
            response = await client.embeddings.create(
                model=self.config.model,
                input=texts,
                dimensions=self.config.dimensions,
                encoding_format="float",
            )
        except Exception as e:
            raise EmbeddingError(f"OpenAI embedding request failed: {e}") from e

        # Sort by index to maintain order
        sorted_data = sorted(response.data, key=lambda x: x.index)
        if len(sorted_data) != len(texts):
            raise EmbeddingError("OpenAI returned a different number of embeddings")
        return [item.embedding for item in sorted_data]

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


class SentenceTransformerEmbedder(BaseEmbedder):
    """
    Sentence Transformers embedder for fully local operation.

    Uses models like:
    - all-MiniLM-L6-v2 (384 dimensions)
    - all-mpnet-base-v2 (768 dimensions)
    """

    def __init__(self, config: EmbeddingConfig):
        super().__init__(config)
        self._model: Any = None

    def _get_model(self) -> Any:
        """Get or create the sentence transformer model."""
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
                self._model = SentenceTransformer(self.config.model)
            except ImportError:
                raise ImportError(
                    "sentence-transformers package required. "
                    "Install with: pip install sentence-transformers"
                )
        return self._model

    async def embed(self, text: str) -> list[float]:
        """Generate embedding using sentence transformers."""
        return (await self.embed_batch([text]))[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts."""
        model = self._get_model()

        # Run in thread pool since sentence-transformers is sync
        loop = asyncio.get_running_loop()
        embeddings = await loop.run_in_executor(
            None, lambda: model.encode(texts, convert_to_numpy=True)
        )

        return embeddings.tolist()


def create_embedder(config: EmbeddingConfig | None = None) -> BaseEmbedder:
    """
    Factory function to create the appropriate embedder.

    Args:
        config: Embedding configuration. Uses defaults if None.

    Returns:
        Configured embedder instance.
    """
    if config is None:
        config = EmbeddingConfig()

    providers = {
        "ollama": OllamaEmbedder,
        "openai": OpenAIEmbedder,
        "sentence-transformers": SentenceTransformerEmbedder,
    }

    embedder_class = providers.get(config.provider)
    if embedder_class is None:
        raise ValueError(f"Unknown embedding provider: {config.provider}")

    return embedder_class(config)


class KnowledgeEmbedder:
    """
    High-level embedder for entries and queries.

    Cleans text before sending it to the provider, caches vectors by text
    and turns every provider failure into EmbeddingError.
    """

    def __init__(
        self,
        config: EmbeddingConfig | None = None,
        embedder: BaseEmbedder | None = None,
    ):
        self.config = config or EmbeddingConfig()
        self._embedder = embedder or create_embedder(self.config)
        self._cache: dict[str, list[float]] = {}

    @staticmethod
    def _cache_key(text: str) -> str:
        return hashlib.sha256(text.encode("utf-8")).hexdigest()

    async def embed_text(self, text: str, use_cache: bool = True) -> list[float]:
        """
        Embed enhanced entry content or an expanded query.

        Raises:
            EmbeddingError: If the provider fails or returns nothing
        """
        text = clean_text(text)
        if not text:
            raise EmbeddingError("Cannot embed empty text")

        key = self._cache_key(text)
        if use_cache and key in self._cache:
            return self._cache[key]

        try:
            embedding = await self._embedder.embed(text)
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(f"Embedding failed: {e}") from e

        if not embedding:
            raise EmbeddingError("Provider returned an empty embedding")

        if use_cache:
            self._cache[key] = embedding
        return embedding

    def clear_cache(self) -> None:
        """Clear the embedding cache."""
        self._cache.clear()

    async def close(self) -> None:
        """Close the embedder resources."""
        await self._embedder.close()

    async def __aenter__(self) -> "KnowledgeEmbedder":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
