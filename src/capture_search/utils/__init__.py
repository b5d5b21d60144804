"""Utility functions for text extraction and result filtering."""

from capture_search.utils.filters import matches_filters
from capture_search.utils.terms import query_terms
from capture_search.utils.text_extraction import (
    extract_text_for_embedding,
    is_placeholder_text,
    validate_embedding_text,
)

__all__ = [
    "extract_text_for_embedding",
    "validate_embedding_text",
    "is_placeholder_text",
    "matches_filters",
    "query_terms",
]
