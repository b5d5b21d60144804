"""Excerpt generation for search results."""

from capture_search.models import CapturedItem

DEFAULT_SNIPPET_LENGTH = 200

# How far before the first matching term the excerpt window starts
CONTEXT_BEFORE_MATCH = 50


def truncate_text(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def generate_snippet(item: CapturedItem, query: str, max_length: int = DEFAULT_SNIPPET_LENGTH) -> str:
    """
    Build a short excerpt of an item around the query.

    Images and PDFs with an annotation show the annotation. Otherwise the
    excerpt is a window over title, annotation and extracted text starting
    shortly before the earliest query term, with "..." on clipped sides.

    Args:
        item: The captured item
        query: Search query (whitespace-separated terms)
        max_length: Maximum excerpt length before ellipsis markers

    Returns:
        The excerpt, or a bracketed placeholder when the item has no text
    """
    if item.content_type in ("image", "pdf") and item.annotation and item.annotation.strip():
        return truncate_text(item.annotation, max_length)

    searchable = " ".join(
        part for part in (item.title, item.annotation, item.extracted_text) if part
    )
    if not searchable.strip():
        return f"[{item.content_type} content - no excerpt available]"

    lowered = searchable.lower()
    positions = [lowered.find(term) for term in query.lower().split()]
    positions = [pos for pos in positions if pos != -1]

    if not positions:
        return truncate_text(searchable, max_length)

    best = min(positions)
    start = max(0, best - CONTEXT_BEFORE_MATCH)
    end = min(len(searchable), best + max_length - CONTEXT_BEFORE_MATCH)

    snippet = searchable[start:end]
    if start > 0:
        snippet = "..." + snippet
    if end < len(searchable):
        snippet = snippet + "..."

    return snippet.strip()
