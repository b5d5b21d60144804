"""
Embedding pipeline.

Turns a captured item into a vector in the index and tracks the outcome
in the item's embedding_status:

1. Check the embedding provider is configured
2. Extract text for the item's content type
3. Validate the text (no provider call for unusable text)
4. Generate the embedding
5. Upsert the vector with its metadata
6. Mark the item completed

Any failure marks the item failed. Nothing is raised back to the caller.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Awaitable, Callable, Dict, Optional, Set

from capture_search.embeddings.protocol import EmbeddingProvider
from capture_search.ingestion.models import EmbeddingPipelineInput, EmbeddingStats
from capture_search.models import CapturedItem, EmbeddingStatus
from capture_search.storage.protocols import ContentStore, VectorIndex
from capture_search.storage.vector.models import VectorMetadata
from capture_search.utils.text_extraction import (
    extract_text_for_embedding,
    is_placeholder_text,
    validate_embedding_text,
)

logger = logging.getLogger(__name__)

ContentLoader = Callable[[CapturedItem], Awaitable[Optional[EmbeddingPipelineInput]]]


class EmbeddingPipeline:
    """
    Orchestrates embedding generation and storage for captured items.

    Runs for different items may overlap; runs for the same item are
    serialized.

    Example:
        >>> pipeline = EmbeddingPipeline(provider, vector_index, content_store)
        >>> pipeline.process_content_async(EmbeddingPipelineInput(...))
        >>> await pipeline.drain()
    """

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        vector_index: VectorIndex,
        content_store: ContentStore,
        embed_placeholders: bool = False,
    ):
        """
        Initialize the embedding pipeline.

        Args:
            embedding_provider: Provider used to embed extracted text
            vector_index: Index the vectors are written to
            content_store: Store that owns embedding_status
            embed_placeholders: Embed binary items that only yield the
                generic "no description provided" text
        """
        self.embedding_provider = embedding_provider
        self.vector_index = vector_index
        self.content_store = content_store
        self.embed_placeholders = embed_placeholders

        self._tasks: Set[asyncio.Task] = set()
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_refs: Dict[str, int] = {}

        logger.info(f"EmbeddingPipeline initialized (embed_placeholders={embed_placeholders})")

    @asynccontextmanager
    async def _item_lock(self, item_id: str):
        lock = self._locks.get(item_id)
        if lock is None:
            lock = self._locks[item_id] = asyncio.Lock()
        self._lock_refs[item_id] = self._lock_refs.get(item_id, 0) + 1

        try:
            async with lock:
                yield
        finally:
            self._lock_refs[item_id] -= 1
            if self._lock_refs[item_id] == 0:
                del self._lock_refs[item_id]
                del self._locks[item_id]

    def process_content_async(self, pipeline_input: EmbeddingPipelineInput) -> None:
        """
        Schedule embedding generation in the background and return immediately.

        Must be called from within a running event loop. The outcome is only
        visible through the item's embedding_status.
        """
        logger.info(
            f"Starting async embedding generation for {pipeline_input.content_id} "
            f"({pipeline_input.content_type})"
        )

        task = asyncio.create_task(
            self.process_content(pipeline_input),
            name=f"embed-{pipeline_input.content_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def pending_tasks(self) -> int:
        """Number of background runs still in flight."""
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every in-flight background run to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def process_content(self, pipeline_input: EmbeddingPipelineInput) -> None:
        """Run the pipeline for one item, serialized per item id."""
        async with self._item_lock(pipeline_input.content_id):
            await self._process(pipeline_input)

    async def _mark(self, pipeline_input: EmbeddingPipelineInput, status: EmbeddingStatus) -> bool:
        return await asyncio.to_thread(
            self.content_store.update_embedding_status,
            pipeline_input.content_id,
            pipeline_input.owner_id,
            status,
        )

    async def _process(self, pipeline_input: EmbeddingPipelineInput) -> None:
        content_id = pipeline_input.content_id
        owner_id = pipeline_input.owner_id

        try:
            if not self.embedding_provider.is_available():
                logger.warning(
                    f"Embedding provider not available, cannot embed {content_id} "
                    f"(owner={owner_id})"
                )
                await self._mark(pipeline_input, "failed")
                return

            text = extract_text_for_embedding(
                pipeline_input.content_type,
                pipeline_input.content,
                annotation=pipeline_input.annotation,
                title=pipeline_input.title,
                original_filename=pipeline_input.original_filename,
            )
            logger.debug(f"Text extracted for {content_id} (length={len(text)})")

            if not validate_embedding_text(text) or (
                not self.embed_placeholders and is_placeholder_text(text)
            ):
                logger.warning(
                    f"Extracted text for {content_id} is not suitable for embedding "
                    f"(owner={owner_id}, length={len(text)})"
                )
                await self._mark(pipeline_input, "failed")
                return

            result = await self.embedding_provider.generate_embedding(text)
            logger.info(
                f"Embedding generated for {content_id} (dimensions={result.dimensions}, "
                f"truncated={result.truncated})"
            )

            metadata = VectorMetadata(
                owner_id=owner_id,
                content_type=pipeline_input.content_type,
                created_at=(pipeline_input.created_at or datetime.now()).isoformat(),
                title=pipeline_input.title or None,
                annotation=pipeline_input.annotation or None,
                tags=pipeline_input.tags or None,
                original_filename=pipeline_input.original_filename or None,
            )
            await self.vector_index.upsert(content_id, result.embedding, metadata, text)
            logger.info(f"Embedding stored in vector index for {content_id}")

            if not await self._mark(pipeline_input, "completed"):
                logger.warning(f"Could not mark {content_id} completed (owner={owner_id})")
                return

            logger.info(f"Embedding pipeline completed for {content_id} (owner={owner_id})")

        except Exception as e:
            logger.error(
                f"Embedding pipeline failed for {content_id} (owner={owner_id}): {e}",
                exc_info=True,
            )
            try:
                await self._mark(pipeline_input, "failed")
            except Exception as update_error:
                logger.error(
                    f"Failed to update embedding status of {content_id} to failed: "
                    f"{update_error}"
                )

    def _input_from_record(self, item: CapturedItem) -> Optional[EmbeddingPipelineInput]:
        if item.content_type == "text":
            if not item.extracted_text:
                return None
            content = item.extracted_text
        elif not (item.title or item.annotation or self.embed_placeholders):
            return None
        else:
            content = b""

        return EmbeddingPipelineInput(
            content_id=item.id,
            owner_id=item.owner_id,
            content_type=item.content_type,
            content=content,
            annotation=item.annotation,
            title=item.title,
            tags=item.tags,
            created_at=item.created_at,
        )

    async def retry_failed_embeddings(
        self, limit: int = 10, content_loader: Optional[ContentLoader] = None
    ) -> int:
        """
        Re-run the pipeline for items whose embedding failed.

        Each failed item is reset to pending and processed again, one at a
        time. Content comes from content_loader when given, otherwise it is
        rebuilt from the stored record (extracted_text for text items, title
        and annotation for binary items). Items whose content cannot be
        resolved stay failed.

        Args:
            limit: Maximum number of failed items to retry
            content_loader: Async callable returning the pipeline input for
                an item, or None if its content is gone

        Returns:
            Number of items reprocessed
        """
        logger.info(f"Starting retry of failed embeddings (limit={limit})")

        try:
            failed_items = await asyncio.to_thread(
                self.content_store.list_by_embedding_status, "failed", limit
            )
        except Exception as e:
            logger.error(f"Failed to list failed embeddings: {e}")
            return 0

        logger.info(f"Found {len(failed_items)} failed embeddings to retry")

        reprocessed = 0
        for item in failed_items:
            try:
                if content_loader is not None:
                    pipeline_input = await content_loader(item)
                else:
                    pipeline_input = self._input_from_record(item)
            except Exception as e:
                logger.error(f"Failed to load content of {item.id} for retry: {e}")
                continue

            if pipeline_input is None:
                logger.warning(
                    f"Cannot retry {item.id} (owner={item.owner_id}): content not available"
                )
                continue

            reset = await asyncio.to_thread(
                self.content_store.update_embedding_status, item.id, item.owner_id, "pending"
            )
            if not reset:
                logger.warning(f"Could not reset {item.id} to pending, skipping retry")
                continue

            logger.debug(f"Retrying embedding for {item.id} (owner={item.owner_id})")
            await self.process_content(pipeline_input)
            reprocessed += 1

        logger.info(f"Retried {reprocessed}/{len(failed_items)} failed embeddings")
        return reprocessed

    async def delete_embedding(self, content_id: str) -> None:
        """Remove an item's vector from the index (call when the item is deleted)."""
        try:
            await self.vector_index.delete(content_id)
        except Exception as e:
            logger.error(f"Failed to delete embedding for {content_id}: {e}")
            raise

        logger.info(f"Embedding deleted for {content_id}")

    def get_stats(self, owner_id: Optional[str] = None) -> EmbeddingStats:
        """Embedding status counts, optionally scoped to one owner."""
        try:
            counts = self.content_store.count_by_embedding_status(owner_id)
        except Exception as e:
            logger.error(f"Failed to get embedding stats: {e}")
            return EmbeddingStats()

        return EmbeddingStats(
            total=counts.get("total", 0),
            pending=counts.get("pending", 0),
            completed=counts.get("completed", 0),
            failed=counts.get("failed", 0),
        )
