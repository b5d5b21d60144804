"""Predicate shared by the in-memory store and the search service filter pass."""

from datetime import datetime, timezone
from typing import Iterable, Optional

from capture_search.models import SearchFilters


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are returned as is."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def matches_filters(
    filters: Optional[SearchFilters],
    *,
    content_type: str,
    tags: Iterable[str],
    created_at: datetime,
    source: Optional[str] = None,
) -> bool:
    """
    Check one item against SearchFilters.

    content_types is an allow-list, tags use AND semantics, date_from and
    date_to bound created_at inclusively, source is an exact match.
    """
    if filters is None:
        return True

    if filters.content_types and content_type not in filters.content_types:
        return False

    if filters.tags:
        item_tags = set(tags)
        if not all(tag in item_tags for tag in filters.tags):
            return False

    created = to_naive_utc(created_at)
    if filters.date_from is not None and created < to_naive_utc(filters.date_from):
        return False
    if filters.date_to is not None and created > to_naive_utc(filters.date_to):
        return False

    if filters.source and source != filters.source:
        return False

    return True
