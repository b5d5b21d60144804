"""
Embedding provider abstractions for capture-search.

Provides a protocol-based embedding interface with a remote adapter:
- OpenAIEmbeddingProvider: OpenAI API embeddings with truncation and retries
"""

from capture_search.embeddings.models import EmbeddingResult
from capture_search.embeddings.openai_embedding import OpenAIEmbeddingProvider
from capture_search.embeddings.protocol import EmbeddingProvider

__all__ = [
    "EmbeddingProvider",
    "EmbeddingResult",
    "OpenAIEmbeddingProvider",
]
