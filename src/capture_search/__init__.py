"""
capture-search: Semantic and full-text search over captured content.

Core components:
- embeddings: Embedding provider protocol and OpenAI client with retries
- storage: Vector index (Qdrant, in-memory) and content store (SQLAlchemy, in-memory)
- ingestion: Background embedding pipeline with status tracking
- search: Unified vector + lexical search with fallback and result merging
- models: Core data models (CapturedItem, SearchFilters, SearchResult, etc.)
"""

__version__ = "0.1.0"

from capture_search.config import Settings
from capture_search.ingestion import EmbeddingPipeline, EmbeddingPipelineInput, EmbeddingStats
from capture_search.models import (
    CapturedItem,
    SearchFilters,
    SearchHistoryEntry,
    SearchResponse,
    SearchResult,
)
from capture_search.search import SearchService

__all__ = [
    "__version__",
    # Models
    "CapturedItem",
    "SearchFilters",
    "SearchResult",
    "SearchResponse",
    "SearchHistoryEntry",
    # Services
    "EmbeddingPipeline",
    "EmbeddingPipelineInput",
    "EmbeddingStats",
    "SearchService",
    "Settings",
]
