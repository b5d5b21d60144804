"""
Composition root.

Builds every service once from Settings and wires them together by
reference. Applications own the returned Services object.

Example:
    >>> from capture_search.bootstrap import build_services, configure_logging
    >>> from capture_search.config import Settings
    >>> settings = Settings()
    >>> configure_logging(settings.log_level)
    >>> services = build_services(settings)
    >>> response = await services.search.search("machine learning")
    >>> await services.aclose()
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url

from capture_search.config import Settings
from capture_search.embeddings.openai_embedding import OpenAIEmbeddingProvider
from capture_search.ingestion.pipeline import ContentLoader, EmbeddingPipeline
from capture_search.search.service import SearchService
from capture_search.storage.content.sqlalchemy import SQLAlchemyContentStore
from capture_search.storage.vector.qdrant import QdrantVectorIndex

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a basic root handler for applications embedding the library."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def create_database_engine(database_url: str) -> Engine:
    """Create the SQLAlchemy engine, preparing the directory of a SQLite file."""
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        # Store calls are off-loaded to worker threads
        return create_engine(url, connect_args={"check_same_thread": False})

    return create_engine(url, pool_pre_ping=True)


@dataclass
class Services:
    settings: Settings
    embedding_provider: OpenAIEmbeddingProvider
    vector_index: QdrantVectorIndex
    content_store: SQLAlchemyContentStore
    pipeline: EmbeddingPipeline
    search: SearchService

    async def retry_failed_embeddings(self, content_loader: Optional[ContentLoader] = None) -> int:
        """Retry one batch (retry_batch_size) of failed embeddings."""
        return await self.pipeline.retry_failed_embeddings(
            limit=self.settings.retry_batch_size, content_loader=content_loader
        )

    async def aclose(self) -> None:
        """Wait for background embedding runs, then release connections."""
        await self.pipeline.drain()
        await self.vector_index.close()
        self.content_store.engine.dispose()
        logger.info("Services closed")


def build_services(settings: Optional[Settings] = None, engine: Optional[Engine] = None) -> Services:
    """
    Construct the provider, vector index, content store, pipeline and search service.

    Args:
        settings: Configuration (None = read from the environment)
        engine: Pre-built SQLAlchemy engine (None = create from database_url)
    """
    settings = settings or Settings()
    logger.info(f"Building services with settings: {settings.masked()}")

    embedding_provider = OpenAIEmbeddingProvider(
        api_key=settings.openai_api_key,
        model=settings.openai_embedding_model,
        base_url=settings.openai_base_url,
        dimensions=settings.embedding_dimensions,
        max_text_length=settings.embedding_max_text_length,
        max_retries=settings.embedding_max_retries,
        retry_delay=settings.embedding_retry_delay,
        timeout=settings.embedding_timeout,
    )

    vector_size = settings.embedding_dimensions or settings.vector_size
    vector_index = QdrantVectorIndex(
        url=settings.qdrant_url,
        api_key=settings.qdrant_api_key,
        collection_name=settings.vector_collection,
        vector_size=vector_size,
    )

    content_store = SQLAlchemyContentStore(engine or create_database_engine(settings.database_url))
    content_store.create_tables()

    pipeline = EmbeddingPipeline(
        embedding_provider,
        vector_index,
        content_store,
        embed_placeholders=settings.embed_placeholders,
    )
    search = SearchService(content_store, embedding_provider, vector_index)

    return Services(
        settings=settings,
        embedding_provider=embedding_provider,
        vector_index=vector_index,
        content_store=content_store,
        pipeline=pipeline,
        search=search,
    )
