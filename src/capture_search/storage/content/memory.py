"""
In-memory content storage implementation.

Provides a simple in-memory store for captured items, suitable for testing
and local development. For persistence, use the SQLAlchemy implementation.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from capture_search.models import (
    CapturedItem,
    EmbeddingStatus,
    SearchFilters,
    SearchHistoryEntry,
    can_transition,
)
from capture_search.utils.filters import matches_filters
from capture_search.utils.terms import query_terms

logger = logging.getLogger(__name__)


class InMemoryContentStore:
    """
    In-memory implementation of the ContentStore protocol.

    Lexical search matches every query term case-insensitively against
    title, annotation and extracted text, ranked by total term hits.
    Data is lost on restart.
    """

    def __init__(self):
        self._items: Dict[str, CapturedItem] = {}
        self._history: List[SearchHistoryEntry] = []

        logger.info("InMemoryContentStore initialized")

    def add_item(self, item: CapturedItem) -> str:
        """Store a captured item."""
        self._items[item.id] = item

        logger.info(f"Stored item {item.id} ({item.content_type}, owner={item.owner_id})")
        return item.id

    def get_by_id(self, item_id: str) -> Optional[CapturedItem]:
        return self._items.get(item_id)

    def delete_item(self, item_id: str) -> bool:
        if self._items.pop(item_id, None) is None:
            logger.warning(f"Item not found for deletion: {item_id}")
            return False

        logger.info(f"Deleted item {item_id}")
        return True

    def update_embedding_status(
        self,
        item_id: str,
        owner_id: Optional[str],
        status: EmbeddingStatus,
        force: bool = False,
    ) -> bool:
        item = self._items.get(item_id)
        if not item or (owner_id is not None and item.owner_id != owner_id):
            logger.warning(f"Cannot update embedding status of {item_id}: not found")
            return False

        if not can_transition(item.embedding_status, status, force=force):
            logger.warning(
                f"Refusing embedding status change for {item_id}: "
                f"{item.embedding_status} -> {status}"
            )
            return False

        item.embedding_status = status
        item.updated_at = datetime.now()

        logger.debug(f"Embedding status of {item_id} set to {status}")
        return True

    def list_by_embedding_status(
        self, status: EmbeddingStatus, limit: int = 10
    ) -> List[CapturedItem]:
        items = [item for item in self._items.values() if item.embedding_status == status]
        items.sort(key=lambda item: item.created_at)
        return items[:limit]

    def count_by_embedding_status(self, owner_id: Optional[str] = None) -> Dict[str, int]:
        counts = {"pending": 0, "completed": 0, "failed": 0}
        for item in self._items.values():
            if owner_id is not None and item.owner_id != owner_id:
                continue
            counts[item.embedding_status] += 1

        counts["total"] = sum(counts.values())
        return counts

    def search_by_text(
        self,
        query: str,
        limit: int = 10,
        filters: Optional[SearchFilters] = None,
    ) -> List[CapturedItem]:
        """Lexical search, best match first."""
        terms = [term.lower() for term in query_terms(query)]
        if not terms:
            return []

        scored = []
        for item in self._items.values():
            if not matches_filters(
                filters,
                content_type=item.content_type,
                tags=item.tags,
                created_at=item.created_at,
                source=item.source,
            ):
                continue

            haystack = " ".join(
                part for part in (item.title, item.annotation, item.extracted_text) if part
            ).lower()

            hits = [haystack.count(term) for term in terms]
            if all(hits):
                scored.append((sum(hits), item))

        # Most hits first, newest first on ties
        scored.sort(key=lambda pair: (pair[0], pair[1].created_at), reverse=True)

        results = [item for _, item in scored[:limit]]
        logger.debug(f"Lexical search for '{query}' returned {len(results)} items")
        return results

    def record_search_history(self, query: str, result_count: int) -> None:
        self._history.append(
            SearchHistoryEntry(
                id=len(self._history) + 1,
                query=query,
                results_count=result_count,
                created_at=datetime.now(),
            )
        )

    def get_search_history(self, limit: int = 10) -> List[SearchHistoryEntry]:
        return list(reversed(self._history))[:limit]

    def health_check(self) -> bool:
        return True

    def clear(self) -> None:
        """Clear ALL items and search history."""
        count = len(self._items)
        self._items.clear()
        self._history.clear()
        logger.info(f"Cleared all items ({count} total)")
