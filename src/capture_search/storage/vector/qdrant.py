import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import Distance, PointIdsList, PointStruct, VectorParams

from capture_search.exceptions import IndexUnavailableError
from capture_search.storage.vector.models import (
    IndexStats,
    VectorMetadata,
    VectorQueryResult,
    VectorRecord,
    distance_to_similarity,
)

logger = logging.getLogger(__name__)

# Qdrant only accepts UUIDs or unsigned ints as point ids, so item ids are
# mapped deterministically and the original id is kept in the payload.
POINT_ID_NAMESPACE = uuid.UUID("6f1c3b0e-8a4d-5c2e-9b7a-3d2f1e0c4b5a")

ITEM_ID_KEY = "item_id"
TEXT_KEY = "text"


def point_id_for(item_id: str) -> str:
    """Stable Qdrant point id for a captured item id."""
    return str(uuid.uuid5(POINT_ID_NAMESPACE, item_id))


class QdrantVectorIndex:
    def __init__(
        self,
        url: str = "http://localhost:6333",
        api_key: Optional[str] = None,
        collection_name: str = "knowledge_base",
        vector_size: int = 1536,
        timeout: Optional[int] = None,
        client: Optional[AsyncQdrantClient] = None,
    ):
        """
        Initialize the Qdrant vector index.

        The collection is not touched until first use.

        Args:
            url: Qdrant URL (default: http://localhost:6333)
            api_key: Qdrant API key for hosted instances
            collection_name: Collection name (default: knowledge_base)
            vector_size: Embedding dimension the collection is created with
            timeout: Request timeout in seconds
            client: Pre-built async client (mainly for tests)
        """
        self.client = client or AsyncQdrantClient(url=url, api_key=api_key, timeout=timeout)
        self.collection_name = collection_name
        self.vector_size = vector_size
        self._initialized = False
        self._connected = False
        self._init_lock = asyncio.Lock()

        logger.info(f"QdrantVectorIndex created (url={url}, collection={collection_name})")

    async def initialize(self) -> None:
        """Get or create the collection with cosine distance."""
        if self._initialized:
            return

        async with self._init_lock:
            # Another task may have finished while we waited on the lock
            if self._initialized:
                return

            try:
                if not await self.client.collection_exists(self.collection_name):
                    await self._create_collection()
            except IndexUnavailableError:
                raise
            except Exception as e:
                self._connected = False
                logger.error(f"Failed to initialize Qdrant collection {self.collection_name}: {e}")
                raise IndexUnavailableError(f"Vector index initialization failed: {e}") from e

            self._initialized = True
            self._connected = True
            logger.info(f"Qdrant collection ready: {self.collection_name} (distance=cosine)")

    async def _create_collection(self) -> None:
        try:
            await self.client.create_collection(
                collection_name=self.collection_name,
                vectors_config=VectorParams(size=self.vector_size, distance=Distance.COSINE),
            )
            logger.info(f"Created Qdrant collection {self.collection_name} (size={self.vector_size})")
        except Exception as e:
            # Another process may have created it between the check and the create
            if await self.client.collection_exists(self.collection_name):
                logger.debug(f"Collection {self.collection_name} created concurrently: {e}")
                return
            raise

    async def upsert(
        self,
        item_id: str,
        embedding: List[float],
        metadata: VectorMetadata,
        text: str,
    ) -> None:
        """Insert or replace the record for item_id."""
        await self.initialize()

        payload: Dict[str, Any] = metadata.to_payload()
        payload[ITEM_ID_KEY] = item_id
        payload[TEXT_KEY] = text

        try:
            await self.client.upsert(
                collection_name=self.collection_name,
                points=[PointStruct(id=point_id_for(item_id), vector=embedding, payload=payload)],
                wait=True,
            )
        except Exception as e:
            self._connected = False
            logger.error(f"Failed to upsert {item_id} into Qdrant: {e}")
            raise IndexUnavailableError(f"Failed to add document: {e}") from e

        logger.debug(f"Upserted {item_id}: '{text[:50]}...'")

    async def query(self, embedding: List[float], limit: int = 10) -> List[VectorQueryResult]:
        """Nearest neighbors by descending similarity."""
        await self.initialize()

        try:
            response = await self.client.query_points(
                collection_name=self.collection_name,
                query=embedding,
                limit=limit,
                with_payload=True,
                with_vectors=False,
            )
        except Exception as e:
            self._connected = False
            logger.error(f"Failed to query Qdrant: {e}")
            raise IndexUnavailableError(f"Failed to query documents: {e}") from e

        results = []
        for point in response.points:
            payload = dict(point.payload or {})
            item_id = payload.pop(ITEM_ID_KEY, None)
            text = payload.pop(TEXT_KEY, "")
            if not item_id:
                logger.warning(f"Skipping Qdrant point {point.id} without {ITEM_ID_KEY}")
                continue

            # Qdrant reports cosine similarity; cosine distance is 1 - score
            score = distance_to_similarity(1.0 - point.score)
            results.append(
                VectorQueryResult(
                    id=item_id,
                    score=score,
                    metadata=VectorMetadata.from_payload(payload),
                    text=text,
                )
            )

        logger.debug(f"Query completed: {len(results)} results (limit={limit})")
        return results

    async def delete(self, item_id: str) -> None:
        await self.initialize()

        try:
            await self.client.delete(
                collection_name=self.collection_name,
                points_selector=PointIdsList(points=[point_id_for(item_id)]),
                wait=True,
            )
        except Exception as e:
            self._connected = False
            logger.error(f"Failed to delete {item_id} from Qdrant: {e}")
            raise IndexUnavailableError(f"Failed to delete document: {e}") from e

        logger.debug(f"Deleted {item_id} from Qdrant")

    async def get(self, item_id: str) -> Optional[VectorRecord]:
        await self.initialize()

        try:
            points = await self.client.retrieve(
                collection_name=self.collection_name,
                ids=[point_id_for(item_id)],
                with_payload=True,
                with_vectors=True,
            )
        except Exception as e:
            self._connected = False
            logger.error(f"Failed to get {item_id} from Qdrant: {e}")
            raise IndexUnavailableError(f"Failed to get document: {e}") from e

        if not points:
            return None

        point = points[0]
        payload = dict(point.payload or {})
        payload.pop(ITEM_ID_KEY, None)
        text = payload.pop(TEXT_KEY, "")
        return VectorRecord(
            id=item_id,
            embedding=list(point.vector or []),
            metadata=VectorMetadata.from_payload(payload),
            text=text,
        )

    async def stats(self) -> IndexStats:
        try:
            await self.initialize()
            result = await self.client.count(collection_name=self.collection_name, exact=True)
        except Exception as e:
            logger.error(f"Failed to get collection stats: {e}")
            return IndexStats(count=0, connected=False)

        return IndexStats(count=result.count, connected=self._connected)

    async def health_check(self) -> bool:
        try:
            await self.initialize()
            await self.client.count(collection_name=self.collection_name, exact=False)
        except Exception as e:
            self._connected = False
            logger.debug(f"Qdrant health check failed: {e}")
            return False

        self._connected = True
        return True

    async def close(self) -> None:
        await self.client.close()
