"""Background embedding pipeline for captured items."""

from capture_search.ingestion.models import EmbeddingPipelineInput, EmbeddingStats
from capture_search.ingestion.pipeline import ContentLoader, EmbeddingPipeline

__all__ = [
    "EmbeddingPipeline",
    "EmbeddingPipelineInput",
    "EmbeddingStats",
    "ContentLoader",
]
