"""Tests for the composition root."""

import logging

import pytest

from capture_search.bootstrap import build_services, configure_logging, create_database_engine
from capture_search.config import Settings
from capture_search.embeddings import OpenAIEmbeddingProvider
from capture_search.storage.content.sqlalchemy import SQLAlchemyContentStore
from capture_search.storage.vector.qdrant import QdrantVectorIndex


@pytest.fixture
def settings(tmp_path, monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    return Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'data' / 'metadata.db'}",
        vector_collection="test_kb",
        embedding_dimensions=768,
        retry_batch_size=5,
    )


def test_create_database_engine_makes_directory(tmp_path):
    engine = create_database_engine(f"sqlite:///{tmp_path / 'nested' / 'db.sqlite'}")

    assert (tmp_path / "nested").is_dir()
    engine.dispose()


@pytest.mark.asyncio
async def test_build_services_wires_components(settings, tmp_path):
    services = build_services(settings)

    try:
        assert isinstance(services.embedding_provider, OpenAIEmbeddingProvider)
        assert isinstance(services.vector_index, QdrantVectorIndex)
        assert isinstance(services.content_store, SQLAlchemyContentStore)

        assert not services.embedding_provider.is_available()
        assert services.vector_index.collection_name == "test_kb"
        assert services.vector_index.vector_size == 768

        # One instance of each collaborator shared by reference
        assert services.pipeline.content_store is services.content_store
        assert services.search.content_store is services.content_store
        assert services.pipeline.vector_index is services.search.vector_index
        assert services.pipeline.embedding_provider is services.search.embedding_provider

        assert (tmp_path / "data" / "metadata.db").exists()
        assert services.content_store.get_search_history() == []
    finally:
        await services.aclose()


@pytest.mark.asyncio
async def test_retry_uses_configured_batch_size(settings):
    services = build_services(settings)

    try:
        assert await services.retry_failed_embeddings() == 0
    finally:
        await services.aclose()


def test_configure_logging(monkeypatch):
    calls = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.update(kwargs))

    configure_logging("debug")

    assert calls["level"] == "DEBUG"
