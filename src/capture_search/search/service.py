"""
Unified search over the vector index and the lexical store.

Vector search runs first; lexical search serves as the fallback when the
vector path fails or finds nothing, or runs alongside it when results are
combined.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from capture_search.embeddings.protocol import EmbeddingProvider
from capture_search.exceptions import ProviderUnavailableError
from capture_search.models import (
    CapturedItem,
    SearchFilters,
    SearchHistoryEntry,
    SearchMethod,
    SearchResponse,
    SearchResult,
    SearchResultMetadata,
)
from capture_search.search.ranking import combine_and_deduplicate
from capture_search.search.snippets import DEFAULT_SNIPPET_LENGTH, generate_snippet
from capture_search.storage.protocols import ContentStore, VectorIndex
from capture_search.utils.filters import matches_filters

logger = logging.getLogger(__name__)

LEXICAL_SCORE = 1.0


class SearchService:
    """
    Search service combining semantic and full-text search.

    Example:
        >>> service = SearchService(content_store, provider, vector_index)
        >>> response = await service.search("machine learning", limit=5)
        >>> response.search_method
        'vector'
    """

    def __init__(
        self,
        content_store: ContentStore,
        embedding_provider: EmbeddingProvider,
        vector_index: VectorIndex,
    ):
        self.content_store = content_store
        self.embedding_provider = embedding_provider
        self.vector_index = vector_index

        logger.debug("SearchService initialized")

    def _to_result(
        self, item: CapturedItem, query: str, method: SearchMethod, score: float
    ) -> SearchResult:
        return SearchResult(
            id=item.id,
            title=item.title,
            excerpt=generate_snippet(item, query, DEFAULT_SNIPPET_LENGTH),
            content_type=item.content_type,
            relevance_score=max(0.0, min(1.0, score)),
            search_method=method,
            metadata=SearchResultMetadata(
                tags=item.tags,
                created_at=item.created_at,
                updated_at=item.updated_at,
                source=item.source,
                annotation=item.annotation,
            ),
        )

    def _load_items(self, item_ids: List[str]) -> Dict[str, CapturedItem]:
        items = {}
        for item_id in item_ids:
            item = self.content_store.get_by_id(item_id)
            if item is not None:
                items[item_id] = item
        return items

    async def perform_vector_search(self, query: str, limit: int = 10) -> List[SearchResult]:
        """
        Semantic search: embed the query and look up its nearest neighbors.

        Raises:
            ProviderUnavailableError: If the embedding provider is not configured
            CaptureSearchError: Provider or vector index failures
        """
        logger.debug(f"Performing vector search for '{query}' (limit={limit})")

        if not self.embedding_provider.is_available():
            raise ProviderUnavailableError("Embedding provider not available")

        try:
            embedding_result = await self.embedding_provider.generate_embedding(query)
            hits = await self.vector_index.query(embedding_result.embedding, limit)
        except Exception as e:
            logger.error(f"Vector search failed for '{query}': {e}")
            raise

        items = await asyncio.to_thread(self._load_items, [hit.id for hit in hits])

        results = []
        for hit in hits:
            item = items.get(hit.id)
            if item is None:
                logger.warning(f"Item {hit.id} found in vector index but not in content store")
                continue
            results.append(self._to_result(item, query, "vector", hit.score))

        logger.info(f"Vector search for '{query}' found {len(results)} results")
        return results

    async def perform_fts_search(
        self, query: str, limit: int = 10, filters: Optional[SearchFilters] = None
    ) -> List[SearchResult]:
        """
        Full-text search through the content store.

        Results keep the store's ranking and all carry a score of 1.0.
        """
        logger.debug(f"Performing lexical search for '{query}' (limit={limit})")

        try:
            items = await asyncio.to_thread(self.content_store.search_by_text, query, limit, filters)
        except Exception as e:
            logger.error(f"Lexical search failed for '{query}': {e}")
            raise

        logger.info(f"Lexical search for '{query}' found {len(items)} results")
        return [self._to_result(item, query, "fts", LEXICAL_SCORE) for item in items]

    def apply_filters(
        self, results: List[SearchResult], filters: Optional[SearchFilters]
    ) -> List[SearchResult]:
        """Drop results that don't match the filters, keeping order."""
        if filters is None or filters.is_empty():
            return results

        filtered = [
            r
            for r in results
            if matches_filters(
                filters,
                content_type=r.content_type,
                tags=r.metadata.tags,
                created_at=r.metadata.created_at,
                source=r.metadata.source,
            )
        ]

        logger.info(f"Filters applied: {len(results)} -> {len(filtered)} results")
        return filtered

    async def _vector_and_lexical(
        self, query: str, limit: int, filters: Optional[SearchFilters]
    ):
        vector_outcome, fts_outcome = await asyncio.gather(
            self.perform_vector_search(query, limit),
            self.perform_fts_search(query, limit, filters),
            return_exceptions=True,
        )
        for outcome in (vector_outcome, fts_outcome):
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                raise outcome
        return vector_outcome, fts_outcome

    async def search(
        self,
        query: str,
        limit: int = 10,
        filters: Optional[SearchFilters] = None,
        use_fallback: bool = True,
        combine_results: bool = False,
    ) -> SearchResponse:
        """
        Unified search with automatic fallback.

        Args:
            query: Free-text query
            limit: Maximum number of results
            filters: Optional filters applied to the final result set
            use_fallback: Fall back to lexical search when the vector path
                fails or finds nothing
            combine_results: Also run lexical search and merge both sets

        Returns:
            SearchResponse whose search_method reports which path served it

        Raises:
            CaptureSearchError: Vector path failure when use_fallback is False
        """
        logger.debug(
            f"Unified search starting for '{query}' (limit={limit}, "
            f"use_fallback={use_fallback}, combine_results={combine_results})"
        )

        vector_results: List[SearchResult] = []
        fts_results: Optional[List[SearchResult]] = None

        if combine_results:
            vector_outcome, fts_outcome = await self._vector_and_lexical(query, limit, filters)

            if isinstance(fts_outcome, Exception):
                logger.warning(f"Lexical search failed during combination: {fts_outcome}")
                fts_results = []
            else:
                fts_results = fts_outcome

            if isinstance(vector_outcome, Exception):
                if not use_fallback:
                    raise vector_outcome
                logger.warning(f"Vector search failed, using lexical results: {vector_outcome}")
                if isinstance(fts_outcome, Exception):
                    raise fts_outcome
            else:
                vector_results = vector_outcome
        else:
            try:
                vector_results = await self.perform_vector_search(query, limit)
            except Exception as e:
                if not use_fallback:
                    raise
                logger.warning(f"Vector search failed, falling back to lexical search: {e}")
                fts_results = await self.perform_fts_search(query, limit, filters)

            if vector_results:
                results = self.apply_filters(vector_results, filters)
                logger.info(f"Returning {len(results)} vector search results for '{query}'")
                return await self._respond(query, results, "vector")

        if not vector_results and use_fallback and fts_results is None:
            logger.info(f"Vector search returned no results for '{query}', falling back to lexical")
            fts_results = await self.perform_fts_search(query, limit, filters)

        method: SearchMethod
        if vector_results and fts_results:
            results = combine_and_deduplicate(vector_results, fts_results, limit)
            method = "combined"
        elif vector_results:
            results = vector_results
            method = "vector"
        elif fts_results is not None:
            results = fts_results
            method = "fts"
        else:
            results = []
            method = "vector"

        results = self.apply_filters(results, filters)

        logger.info(
            f"Unified search completed for '{query}': method={method}, results={len(results)}"
        )
        return await self._respond(query, results, method)

    async def _respond(
        self, query: str, results: List[SearchResult], method: SearchMethod
    ) -> SearchResponse:
        await self._record_history(query, len(results))
        return SearchResponse(
            query=query,
            results=results,
            search_method=method,
            total_results=len(results),
        )

    async def _record_history(self, query: str, result_count: int) -> None:
        try:
            await asyncio.to_thread(self.content_store.record_search_history, query, result_count)
            logger.debug(f"Search query logged: '{query}' ({result_count} results)")
        except Exception as e:
            logger.warning(f"Failed to log search query '{query}': {e}")

    def generate_snippet(
        self, item: CapturedItem, query: str, max_length: int = DEFAULT_SNIPPET_LENGTH
    ) -> str:
        return generate_snippet(item, query, max_length)

    def get_search_history(self, limit: int = 10) -> List[SearchHistoryEntry]:
        """Most recent searches, newest first."""
        return self.content_store.get_search_history(limit)

    async def health(self) -> Dict[str, bool]:
        """Availability of each backend the service depends on."""
        vector_ok = await self.vector_index.health_check()

        lexical_ok = True
        check = getattr(self.content_store, "health_check", None)
        if check is not None:
            lexical_ok = await asyncio.to_thread(check)

        return {
            "embedding_available": self.embedding_provider.is_available(),
            "vector_index": vector_ok,
            "lexical": lexical_ok,
        }
