"""
Configuration management for the temporal knowledge engine.

Provides centralized configuration for:
- Temporal expression parsing and scoring
- Hybrid search thresholds and weights
- Storage backends
- Embedding providers
- Query caching
- Batch maintenance jobs
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field


class TemporalConfig(BaseModel):
    """Configuration for temporal expression parsing and relevance scoring."""

    # Confidence assigned per reference kind
    absolute_confidence: float = Field(
        default=0.9,
        description="Confidence for calendar dates written out in full",
        ge=0.0,
        le=1.0,
    )
    relative_confidence: float = Field(
        default=0.8,
        description="Confidence for relative phrases (tomorrow, in 3 days)",
        ge=0.0,
        le=1.0,
    )
    recurring_confidence: float = Field(
        default=0.8,
        description="Confidence for recurring phrases (every monday, weekly)",
        ge=0.0,
        le=1.0,
    )

    # Relevance score adjustments
    future_boost: float = Field(
        default=0.3,
        description="Added when a reference resolves strictly after now",
        ge=0.0,
        le=1.0,
    )
    recurring_boost: float = Field(
        default=0.2,
        description="Added when a reference recurs",
        ge=0.0,
        le=1.0,
    )
    week_old_penalty: float = Field(
        default=0.1,
        description="Subtracted for past one-time references stored 7-30 days ago",
        ge=0.0,
        le=1.0,
    )
    month_old_penalty: float = Field(
        default=0.2,
        description="Subtracted for past one-time references stored over 30 days ago",
        ge=0.0,
        le=1.0,
    )
    fallback_score: float = Field(
        default=0.5,
        description="Neutral score returned when parsing itself fails",
        ge=0.0,
        le=1.0,
    )

    # Absolute date parsing
    min_year: int = Field(
        default=1900,
        description="Dates in or before this year are discarded",
    )
    prefer_day_first: bool = Field(
        default=False,
        description="Read ambiguous numeric dates as D/M/Y instead of M/D/Y",
    )


class SearchConfig(BaseModel):
    """Configuration for hybrid search."""

    match_threshold: float = Field(
        default=0.5,
        description="Minimum semantic similarity for the primary pass",
        ge=0.0,
        le=1.0,
    )
    match_count: int = Field(
        default=25,
        description="Candidates requested from the vector index",
        ge=1,
    )
    min_results: int = Field(
        default=3,
        description="Below this many results the search is retried relaxed",
        ge=0,
    )
    relaxation_step: float = Field(
        default=0.2,
        description="How much the threshold drops on the relaxed pass",
        ge=0.0,
        le=1.0,
    )
    relaxed_threshold_floor: float = Field(
        default=0.3,
        description="The relaxed threshold never drops below this",
        ge=0.0,
        le=1.0,
    )
    relaxed_count_multiplier: int = Field(
        default=2,
        description="Candidate count multiplier for the relaxed pass",
        ge=1,
    )
    result_cap: int = Field(
        default=20,
        description="Maximum number of results returned",
        ge=1,
    )
    temporal_weight: float = Field(
        default=0.3,
        description="Weight of temporal relevance in the combined score",
        ge=0.0,
        le=1.0,
    )
    temporal_query_weight: float = Field(
        default=0.4,
        description="Weight used when the query itself contains temporal expressions",
        ge=0.0,
        le=1.0,
    )


class StorageConfig(BaseModel):
    """Configuration for storage backends."""

    # SQLite settings
    sqlite_path: Path = Field(
        default=Path("./data/knowledge.db"),
        description="Path to SQLite database file",
    )

    # Vector store settings
    chroma_persist_directory: Path | None = Field(
        default=Path("./data/chroma"),
        description="Directory for ChromaDB persistence (None = in-memory)",
    )
    collection_name: str = Field(
        default="knowledge_vectors",
        description="Collection holding entry embeddings",
    )
    hnsw_space: Literal["cosine", "l2", "ip"] = Field(
        default="cosine",
        description="Distance function used by the vector index",
    )


class EmbeddingConfig(BaseModel):
    """Configuration for embedding generation."""

    provider: Literal["openai", "ollama", "sentence-transformers"] = Field(
        default="ollama",
        description="Embedding provider (openai, ollama, or sentence-transformers)",
    )
    model: str = Field(
        default="nomic-embed-text",
        description="Embedding model name (e.g., nomic-embed-text for Ollama)",
    )
    dimensions: int = Field(
        default=768,
        description="Embedding vector dimensions (768 for nomic-embed-text)",
    )
    batch_size: int = Field(
        default=100,
        description="Batch size for embedding requests",
    )
    timeout_seconds: float = Field(
        default=60.0,
        description="HTTP timeout for remote embedding providers",
    )

    # Ollama-specific settings
    ollama_base_url: str = Field(
        default="http://localhost:11434",
        description="Ollama server base URL",
    )


class CacheConfig(BaseModel):
    """Configuration for the query result cache."""

    enabled: bool = Field(default=True, description="Cache search results")
    search_ttl_seconds: float = Field(
        default=120.0,
        description="Lifetime of cached search results",
        ge=0.0,
    )
    tag_stats_ttl_seconds: float = Field(
        default=600.0,
        description="Lifetime of cached tag statistics",
        ge=0.0,
    )


class MaintenanceConfig(BaseModel):
    """Configuration for batch re-embedding jobs."""

    batch_size: int = Field(
        default=5,
        description="Entries processed concurrently per batch",
        ge=1,
    )
    batch_delay_seconds: float = Field(
        default=1.0,
        description="Pause between batches to respect provider rate limits",
        ge=0.0,
    )


class KnowledgeConfig(BaseModel):
    """Master configuration for the temporal knowledge engine."""

    temporal: TemporalConfig = Field(default_factory=TemporalConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    maintenance: MaintenanceConfig = Field(default_factory=MaintenanceConfig)

    debug: bool = Field(
        default=False,
        description="Enable debug logging",
    )

    @classmethod
    def from_file(cls, path: Path) -> "KnowledgeConfig":
        """Load configuration from a JSON file."""
        import json

        if path.suffix == ".json":
            with open(path) as f:
                data = json.load(f)
            return cls.model_validate(data)
        else:
            raise ValueError(f"Unsupported config file format: {path.suffix}")

    def to_file(self, path: Path) -> None:
        """Save configuration to a JSON file."""
        import json

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2, default=str)
