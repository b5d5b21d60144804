"""
Storage protocol definitions for the vector index and the content store.

These protocols define the interface that storage implementations must
provide. They are implementation-agnostic and can be backed by various
databases (Qdrant, SQLite/PostgreSQL via SQLAlchemy, in-memory, etc.).
"""

from typing import Dict, List, Optional, Protocol

from capture_search.models import (
    CapturedItem,
    EmbeddingStatus,
    SearchFilters,
    SearchHistoryEntry,
)
from capture_search.storage.vector.models import (
    IndexStats,
    VectorMetadata,
    VectorQueryResult,
    VectorRecord,
)


class VectorIndex(Protocol):
    """
    Protocol for a remote similarity-search index.

    Implementations lazily create their collection (cosine distance) on
    first use and raise IndexUnavailableError when the backend cannot be
    reached. They do not retry internally.
    """

    async def initialize(self) -> None:
        """
        Get or create the collection. Safe to call concurrently and repeatedly.

        Raises:
            IndexUnavailableError: If the backend cannot be reached
        """
        ...

    async def upsert(
        self,
        item_id: str,
        embedding: List[float],
        metadata: VectorMetadata,
        text: str,
    ) -> None:
        """
        Insert or replace the record for item_id.

        Args:
            item_id: Captured item id
            embedding: The embedding vector
            metadata: Metadata to store with the vector
            text: The text that was embedded
        """
        ...

    async def query(self, embedding: List[float], limit: int = 10) -> List[VectorQueryResult]:
        """
        Nearest-neighbor query.

        Args:
            embedding: Query vector
            limit: Maximum number of results

        Returns:
            Up to limit results ordered by descending similarity, empty if
            the collection is empty
        """
        ...

    async def delete(self, item_id: str) -> None:
        """Delete the record for item_id (no error if it does not exist)."""
        ...

    async def get(self, item_id: str) -> Optional[VectorRecord]:
        """Retrieve the record for item_id, or None if absent."""
        ...

    async def stats(self) -> IndexStats:
        """Collection count and connection state. Never raises."""
        ...

    async def health_check(self) -> bool:
        """Lightweight reachability check. Never raises."""
        ...


class ContentStore(Protocol):
    """
    Protocol for the relational store that owns captured items.

    Provides lexical full-text search, item lookup, embedding status
    tracking and search history.

    Methods are synchronous and may block on I/O; the pipeline and the
    search service call them through asyncio.to_thread, so implementations
    must be safe to call from worker threads.
    """

    def search_by_text(
        self,
        query: str,
        limit: int = 10,
        filters: Optional[SearchFilters] = None,
    ) -> List[CapturedItem]:
        """
        Lexical search ranked by the store's own relevance ordering.

        Args:
            query: Free-text query
            limit: Maximum number of results
            filters: Optional filters to push down into the query

        Returns:
            Matching items, best match first
        """
        ...

    def get_by_id(self, item_id: str) -> Optional[CapturedItem]:
        """Retrieve an item by id, or None if absent."""
        ...

    def update_embedding_status(
        self,
        item_id: str,
        owner_id: Optional[str],
        status: EmbeddingStatus,
        force: bool = False,
    ) -> bool:
        """
        Set an item's embedding status.

        Args:
            item_id: Item id
            owner_id: Owner the item must belong to (None skips the check)
            status: New status
            force: Allow completed -> pending (explicit reset)

        Returns:
            True if the status was written, False if the item was not found
            or the transition is not allowed
        """
        ...

    def record_search_history(self, query: str, result_count: int) -> None:
        """Append a search-history entry."""
        ...

    def get_search_history(self, limit: int = 10) -> List[SearchHistoryEntry]:
        """Most recent search-history entries, newest first."""
        ...

    def list_by_embedding_status(
        self, status: EmbeddingStatus, limit: int = 10
    ) -> List[CapturedItem]:
        """Items with the given embedding status, oldest first."""
        ...

    def count_by_embedding_status(self, owner_id: Optional[str] = None) -> Dict[str, int]:
        """
        Count items per embedding status.

        Returns:
            Dict with keys "total", "pending", "completed", "failed"
        """
        ...
