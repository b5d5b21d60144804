"""
Unit tests for SearchService.

The content store is the in-memory implementation (wrapped in spies where
call counts matter); the embedding provider and vector index are mocked.
"""

import threading
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, Mock

import pytest
from sqlalchemy import create_engine

from capture_search.embeddings.models import EmbeddingResult
from capture_search.exceptions import IndexUnavailableError, ProviderUnavailableError
from capture_search.models import CapturedItem, SearchFilters
from capture_search.search.service import SearchService
from capture_search.storage.content.memory import InMemoryContentStore
from capture_search.storage.content.sqlalchemy import SQLAlchemyContentStore
from capture_search.storage.vector.memory import InMemoryVectorIndex
from capture_search.storage.vector.models import VectorMetadata, VectorQueryResult

BASE_TIME = datetime(2024, 3, 1, 12, 0)


def hit(item_id, score):
    return VectorQueryResult(
        id=item_id,
        score=score,
        metadata=VectorMetadata(content_type="text", created_at=BASE_TIME.isoformat()),
        text="",
    )


@pytest.fixture
def content_store():
    store = InMemoryContentStore()
    items = [
        CapturedItem(
            id="ml",
            owner_id="user1",
            content_type="text",
            title="Machine Learning Basics",
            extracted_text="Gradient descent and loss functions.",
            tags=["ml", "study"],
            source="web",
        ),
        CapturedItem(
            id="cooking",
            owner_id="user1",
            content_type="text",
            title="Pasta",
            extracted_text="Salt the water generously.",
            tags=["food"],
            source="api",
        ),
        CapturedItem(
            id="whiteboard",
            owner_id="user1",
            content_type="image",
            title="Whiteboard",
            annotation="Machine learning architecture sketch",
            tags=["ml"],
        ),
    ]
    for offset, item in enumerate(items):
        item.created_at = BASE_TIME + timedelta(days=offset)
        item.updated_at = item.created_at
        store.add_item(item)
    return store


@pytest.fixture
def store_spy(content_store):
    """Content store whose lexical search calls can be inspected."""
    content_store.search_by_text = Mock(wraps=content_store.search_by_text)
    content_store.record_search_history = Mock(wraps=content_store.record_search_history)
    return content_store


@pytest.fixture
def mock_provider():
    provider = Mock()
    provider.is_available = Mock(return_value=True)
    provider.generate_embedding = AsyncMock(
        return_value=EmbeddingResult(
            embedding=[1.0, 0.0, 0.0],
            dimensions=3,
            truncated=False,
            original_length=5,
            processed_length=5,
        )
    )
    return provider


@pytest.fixture
def mock_index():
    index = Mock()
    index.query = AsyncMock(return_value=[])
    index.health_check = AsyncMock(return_value=True)
    return index


@pytest.fixture
def service(store_spy, mock_provider, mock_index):
    return SearchService(store_spy, mock_provider, mock_index)


@pytest.mark.asyncio
async def test_vector_results_returned_without_lexical_search(service, store_spy, mock_index):
    mock_index.query.return_value = [hit("ml", 0.9), hit("whiteboard", 0.7)]

    response = await service.search("machine learning")

    assert response.search_method == "vector"
    assert response.total_results == 2
    assert [r.id for r in response.results] == ["ml", "whiteboard"]
    assert response.results[0].relevance_score == pytest.approx(0.9)
    assert all(r.search_method == "vector" for r in response.results)
    store_spy.search_by_text.assert_not_called()


@pytest.mark.asyncio
async def test_store_calls_run_off_the_event_loop(service, store_spy, mock_index):
    mock_index.query.return_value = [hit("ml", 0.9)]
    loop_thread = threading.get_ident()
    store_threads = []
    get_by_id = store_spy.get_by_id

    def tracked_get_by_id(item_id):
        store_threads.append(threading.get_ident())
        return get_by_id(item_id)

    store_spy.get_by_id = tracked_get_by_id
    store_spy.record_search_history.side_effect = (
        lambda *args: store_threads.append(threading.get_ident())
    )

    response = await service.search("machine learning")

    assert [r.id for r in response.results] == ["ml"]
    assert len(store_threads) == 2
    assert loop_thread not in store_threads

@pytest.mark.asyncio
async def test_result_fields(service, mock_index):
    mock_index.query.return_value = [hit("ml", 0.9)]

    response = await service.search("gradient")

    result = response.results[0]
    assert result.title == "Machine Learning Basics"
    assert result.content_type == "text"
    assert "Gradient descent" in result.excerpt
    assert result.metadata.tags == ["ml", "study"]
    assert result.metadata.source == "web"
    assert result.metadata.created_at == BASE_TIME


@pytest.mark.asyncio
async def test_vector_failure_falls_back_to_lexical(service, mock_index):
    mock_index.query.side_effect = IndexUnavailableError("Qdrant unreachable")

    response = await service.search("machine learning")

    assert response.search_method == "fts"
    assert {r.id for r in response.results} == {"ml", "whiteboard"}
    assert all(r.relevance_score == 1.0 for r in response.results)


@pytest.mark.asyncio
async def test_single_lexical_match(service, mock_index, content_store):
    content_store.delete_item("whiteboard")
    mock_index.query.side_effect = IndexUnavailableError("Qdrant unreachable")

    response = await service.search("machine learning")

    assert response.search_method == "fts"
    assert response.total_results == 1
    assert response.results[0].title == "Machine Learning Basics"


@pytest.mark.asyncio
async def test_vector_failure_without_fallback_propagates(service, mock_index):
    error = IndexUnavailableError("Qdrant unreachable")
    mock_index.query.side_effect = error

    with pytest.raises(IndexUnavailableError) as exc_info:
        await service.search("machine learning", use_fallback=False)

    assert exc_info.value is error


@pytest.mark.asyncio
async def test_provider_unavailable_falls_back(service, mock_provider, store_spy):
    mock_provider.is_available.return_value = False

    response = await service.search("pasta")

    assert response.search_method == "fts"
    assert [r.id for r in response.results] == ["cooking"]
    mock_provider.generate_embedding.assert_not_awaited()


@pytest.mark.asyncio
async def test_provider_unavailable_without_fallback(service, mock_provider):
    mock_provider.is_available.return_value = False

    with pytest.raises(ProviderUnavailableError):
        await service.search("pasta", use_fallback=False)


@pytest.mark.asyncio
async def test_empty_vector_results_fall_back(service, store_spy):
    response = await service.search("pasta")

    assert response.search_method == "fts"
    assert [r.id for r in response.results] == ["cooking"]
    store_spy.search_by_text.assert_called_once()


@pytest.mark.asyncio
async def test_empty_vector_results_without_fallback(service, store_spy):
    response = await service.search("pasta", use_fallback=False)

    assert response.search_method == "vector"
    assert response.total_results == 0
    store_spy.search_by_text.assert_not_called()


@pytest.mark.asyncio
async def test_combined_results(service, mock_index):
    mock_index.query.return_value = [hit("ml", 0.9), hit("cooking", 0.3)]

    response = await service.search("machine learning", combine_results=True)

    assert response.search_method == "combined"
    by_id = {r.id: r for r in response.results}
    assert set(by_id) == {"ml", "cooking", "whiteboard"}
    # ml: vector 1.0, lexical 1.0
    assert by_id["ml"].search_method == "combined"
    assert by_id["ml"].relevance_score == pytest.approx(1.0)
    assert by_id["cooking"].search_method == "vector"
    assert by_id["cooking"].relevance_score == pytest.approx(0.0)
    assert by_id["whiteboard"].search_method == "fts"
    scores = [r.relevance_score for r in response.results]
    assert scores == sorted(scores, reverse=True)


@pytest.mark.asyncio
async def test_combined_results_limit(service, mock_index):
    mock_index.query.return_value = [hit("ml", 0.9), hit("cooking", 0.3)]

    response = await service.search("machine learning", limit=2, combine_results=True)

    assert response.total_results == 2


@pytest.mark.asyncio
async def test_combined_lexical_failure_uses_vector_results(service, mock_index, store_spy):
    mock_index.query.return_value = [hit("cooking", 0.5)]
    store_spy.search_by_text.side_effect = RuntimeError("fts5 corrupted")

    response = await service.search("machine learning", combine_results=True)

    assert response.search_method == "vector"
    assert [r.id for r in response.results] == ["cooking"]


@pytest.mark.asyncio
async def test_combined_vector_failure_uses_lexical_results(service, mock_index):
    mock_index.query.side_effect = IndexUnavailableError("down")

    response = await service.search("pasta", combine_results=True)

    assert response.search_method == "fts"
    assert [r.id for r in response.results] == ["cooking"]


@pytest.mark.asyncio
async def test_combined_vector_failure_without_fallback(service, mock_index):
    mock_index.query.side_effect = IndexUnavailableError("down")

    with pytest.raises(IndexUnavailableError):
        await service.search("pasta", combine_results=True, use_fallback=False)


@pytest.mark.asyncio
async def test_filters_applied_to_vector_results(service, mock_index):
    mock_index.query.return_value = [hit("ml", 0.9), hit("whiteboard", 0.7), hit("cooking", 0.2)]

    response = await service.search("anything", filters=SearchFilters(content_types=["image"]))

    assert response.search_method == "vector"
    assert [r.id for r in response.results] == ["whiteboard"]


@pytest.mark.asyncio
async def test_filters_never_change_method(service, mock_index):
    mock_index.query.return_value = [hit("ml", 0.9)]

    response = await service.search("anything", filters=SearchFilters(tags=["food"]))

    assert response.search_method == "vector"
    assert response.total_results == 0


@pytest.mark.asyncio
async def test_filters_on_lexical_path(service, store_spy):
    filters = SearchFilters(
        tags=["ml"], date_from=BASE_TIME + timedelta(days=1), source=None
    )

    response = await service.search("machine", filters=filters)

    assert response.search_method == "fts"
    assert [r.id for r in response.results] == ["whiteboard"]
    # Filters are pushed down to the store as well
    assert store_spy.search_by_text.call_args.args[2] == filters


@pytest.mark.asyncio
async def test_hits_missing_from_store_are_skipped(service, mock_index):
    mock_index.query.return_value = [hit("deleted", 0.95), hit("ml", 0.9)]

    response = await service.search("machine")

    assert [r.id for r in response.results] == ["ml"]


@pytest.mark.asyncio
async def test_vector_scores_clamped(service, mock_index):
    mock_index.query.return_value = [hit("ml", 1.2)]

    response = await service.search("machine")

    assert response.results[0].relevance_score == 1.0


@pytest.mark.asyncio
async def test_search_history_recorded(service, store_spy, mock_index):
    mock_index.query.return_value = [hit("ml", 0.9)]
    await service.search("machine")
    await service.search("pasta", use_fallback=True, combine_results=True)

    history = service.get_search_history(limit=10)

    assert [(entry.query, entry.results_count) for entry in history] == [
        ("pasta", 2),
        ("machine", 1),
    ]


@pytest.mark.asyncio
async def test_search_history_failure_is_ignored(service, store_spy):
    store_spy.record_search_history.side_effect = RuntimeError("disk full")

    response = await service.search("pasta")

    assert response.total_results == 1


@pytest.mark.asyncio
async def test_failed_search_not_recorded(service, mock_index, store_spy):
    mock_index.query.side_effect = IndexUnavailableError("down")

    with pytest.raises(IndexUnavailableError):
        await service.search("pasta", use_fallback=False)

    store_spy.record_search_history.assert_not_called()


@pytest.mark.asyncio
async def test_health(service, mock_provider, mock_index):
    assert await service.health() == {
        "embedding_available": True,
        "vector_index": True,
        "lexical": True,
    }

    mock_provider.is_available.return_value = False
    mock_index.health_check.return_value = False

    health = await service.health()
    assert health["embedding_available"] is False
    assert health["vector_index"] is False


def test_generate_snippet_delegates(service, content_store):
    snippet = service.generate_snippet(content_store.get_by_id("ml"), "descent")

    assert "descent" in snippet


@pytest.mark.asyncio
async def test_search_with_sqlalchemy_store_and_memory_index(mock_provider, tmp_path):
    """End to end over SQLite FTS5 and the in-memory vector index."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'metadata.db'}",
        connect_args={"check_same_thread": False},
    )
    store = SQLAlchemyContentStore(engine)
    store.create_tables()
    store.add_item(
        CapturedItem(
            id="ml",
            content_type="text",
            title="Machine Learning Basics",
            extracted_text="Gradient descent.",
        )
    )
    store.add_item(
        CapturedItem(id="other", content_type="text", title="Groceries", extracted_text="Milk")
    )

    index = InMemoryVectorIndex()
    await index.upsert(
        "other",
        [0.0, 1.0, 0.0],
        VectorMetadata(content_type="text", created_at=BASE_TIME.isoformat()),
        "Groceries Milk",
    )

    service = SearchService(store, mock_provider, index)
    response = await service.search("machine learning", combine_results=True)

    assert response.search_method == "combined"
    by_id = {r.id: r for r in response.results}
    assert by_id["ml"].search_method == "fts"
    assert by_id["other"].search_method == "vector"
    assert by_id["other"].relevance_score == pytest.approx(1.0)
    assert store.get_search_history()[0].query == "machine learning"
