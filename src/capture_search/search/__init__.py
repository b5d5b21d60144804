"""Unified vector and full-text search."""

from capture_search.search.ranking import combine_and_deduplicate, normalize_scores
from capture_search.search.service import SearchService
from capture_search.search.snippets import generate_snippet

__all__ = [
    "SearchService",
    "normalize_scores",
    "combine_and_deduplicate",
    "generate_snippet",
]
