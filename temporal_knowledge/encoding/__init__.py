"""
Encoding module for entry content.

Provides:
- Synonym expansion and content enrichment
- Enhanced content construction
- Embedding generation (Ollama, OpenAI, Sentence Transformers)
"""

from temporal_knowledge.encoding.embedder import (
    BaseEmbedder,
    KnowledgeEmbedder,
    OllamaEmbedder,
    OpenAIEmbedder,
    SentenceTransformerEmbedder,
    create_embedder,
)
from temporal_knowledge.encoding.enhancer import build_enhanced_content, display_name
from temporal_knowledge.encoding.synonyms import (
    SYNONYM_GROUPS,
    SynonymExpander,
    tokenize,
)

__all__ = [
    # Embedder base and implementations
    "BaseEmbedder",
    "KnowledgeEmbedder",
    "OllamaEmbedder",
    "OpenAIEmbedder",
    "SentenceTransformerEmbedder",
    "create_embedder",
    # Content enrichment
    "SYNONYM_GROUPS",
    "SynonymExpander",
    "tokenize",
    "build_enhanced_content",
    "display_name",
]
