"""
In-memory vector index implementation.

Provides a simple in-memory index for embeddings and similarity search,
suitable for testing and development. For production, use the Qdrant
implementation.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from capture_search.exceptions import IndexUnavailableError
from capture_search.storage.vector.models import (
    IndexStats,
    VectorMetadata,
    VectorQueryResult,
    VectorRecord,
    distance_to_similarity,
)

logger = logging.getLogger(__name__)


def cosine_distance(vec1: List[float], vec2: List[float]) -> float:
    """Cosine distance in [0, 2] between two vectors."""
    if len(vec1) != len(vec2):
        raise ValueError("Vectors must have the same length")

    dot_product = sum(a * b for a, b in zip(vec1, vec2))
    magnitude1 = sum(a * a for a in vec1) ** 0.5
    magnitude2 = sum(b * b for b in vec2) ** 0.5

    if magnitude1 == 0 or magnitude2 == 0:
        return 1.0

    return 1.0 - dot_product / (magnitude1 * magnitude2)


class InMemoryVectorIndex:
    """
    In-memory implementation of the VectorIndex protocol.

    Stores records in a dict keyed by item id and answers queries with a
    brute-force cosine scan. Data is lost on restart.

    Set `available = False` to simulate an unreachable backend.
    """

    def __init__(self, collection_name: str = "knowledge_base"):
        self.collection_name = collection_name
        self.available = True
        self._records: Dict[str, VectorRecord] = {}
        self._initialized = False
        self._init_lock = asyncio.Lock()

        logger.info("InMemoryVectorIndex initialized")

    def _check_available(self) -> None:
        if not self.available:
            raise IndexUnavailableError("In-memory vector index marked unavailable")

    async def initialize(self) -> None:
        async with self._init_lock:
            self._check_available()
            if not self._initialized:
                self._initialized = True
                logger.debug(f"Collection {self.collection_name} ready (distance=cosine)")

    async def upsert(
        self,
        item_id: str,
        embedding: List[float],
        metadata: VectorMetadata,
        text: str,
    ) -> None:
        await self.initialize()
        self._records[item_id] = VectorRecord(
            id=item_id, embedding=list(embedding), metadata=metadata, text=text
        )
        logger.debug(f"Upserted {item_id}: '{text[:50]}...'")

    async def query(self, embedding: List[float], limit: int = 10) -> List[VectorQueryResult]:
        await self.initialize()

        scored = [
            (record, cosine_distance(embedding, record.embedding))
            for record in self._records.values()
        ]
        # Smallest distance first
        scored.sort(key=lambda pair: pair[1])

        results = [
            VectorQueryResult(
                id=record.id,
                score=distance_to_similarity(distance),
                metadata=record.metadata,
                text=record.text,
            )
            for record, distance in scored[:limit]
        ]

        logger.debug(f"{len(results)} results found (limit={limit})")
        return results

    async def delete(self, item_id: str) -> None:
        await self.initialize()
        self._records.pop(item_id, None)
        logger.debug(f"Deleted {item_id}")

    async def get(self, item_id: str) -> Optional[VectorRecord]:
        await self.initialize()
        return self._records.get(item_id)

    async def stats(self) -> IndexStats:
        if not self.available:
            return IndexStats(count=0, connected=False)
        return IndexStats(count=len(self._records), connected=True)

    async def health_check(self) -> bool:
        return self.available

    async def close(self) -> None:
        return None

    def clear(self) -> None:
        """Clear ALL records from the index."""
        count = len(self._records)
        self._records.clear()
        logger.info(f"Cleared all records ({count} total)")
