"""
Unit tests for in-memory vector index.

Tests upsert, similarity ordering, score conversion and outage simulation.
"""

import asyncio

import pytest

from capture_search.exceptions import IndexUnavailableError
from capture_search.storage.vector.memory import InMemoryVectorIndex, cosine_distance
from capture_search.storage.vector.models import VectorMetadata, distance_to_similarity


@pytest.fixture
def vector_index():
    """Create a fresh in-memory vector index."""
    return InMemoryVectorIndex()


@pytest.fixture
def sample_vectors():
    """Sample vectors for testing."""
    return {
        "vec1": [1.0, 0.0, 0.0],  # Orthogonal to vec2
        "vec2": [0.0, 1.0, 0.0],  # Orthogonal to vec1
        "vec3": [0.9, 0.1, 0.0],  # Similar to vec1
        "opposite": [-1.0, 0.0, 0.0],
    }


@pytest.fixture
def metadata():
    return VectorMetadata(
        owner_id="user1",
        content_type="text",
        created_at="2024-01-01T00:00:00",
        title="Note",
        tags=["ml"],
    )


def test_cosine_distance():
    assert cosine_distance([1.0, 0.0], [1.0, 0.0]) == pytest.approx(0.0)
    assert cosine_distance([1.0, 0.0], [0.0, 1.0]) == pytest.approx(1.0)
    assert cosine_distance([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(2.0)
    assert cosine_distance([0.0, 0.0], [1.0, 0.0]) == 1.0

    with pytest.raises(ValueError):
        cosine_distance([1.0], [1.0, 0.0])


def test_distance_to_similarity():
    assert distance_to_similarity(0.0) == 1.0
    assert distance_to_similarity(1.0) == 0.5
    assert distance_to_similarity(2.0) == 0.0
    # Clamped outside [0, 2]
    assert distance_to_similarity(-0.1) == 1.0
    assert distance_to_similarity(2.5) == 0.0


@pytest.mark.asyncio
async def test_query_empty_index(vector_index):
    assert await vector_index.query([1.0, 0.0, 0.0]) == []


@pytest.mark.asyncio
async def test_upsert_and_query_ordering(vector_index, sample_vectors, metadata):
    for key in ("vec1", "vec2", "vec3", "opposite"):
        await vector_index.upsert(key, sample_vectors[key], metadata, f"text {key}")

    results = await vector_index.query(sample_vectors["vec1"], limit=3)

    assert [r.id for r in results] == ["vec1", "vec3", "vec2"]
    assert results[0].score == pytest.approx(1.0)
    assert results[2].score == pytest.approx(0.5)
    assert all(0.0 <= r.score <= 1.0 for r in results)
    assert results[0].text == "text vec1"
    assert results[0].metadata.title == "Note"


@pytest.mark.asyncio
async def test_upsert_replaces(vector_index, sample_vectors, metadata):
    await vector_index.upsert("item1", sample_vectors["vec1"], metadata, "old")
    await vector_index.upsert("item1", sample_vectors["vec2"], metadata, "new")

    record = await vector_index.get("item1")
    stats = await vector_index.stats()

    assert record.embedding == sample_vectors["vec2"]
    assert record.text == "new"
    assert stats.count == 1


@pytest.mark.asyncio
async def test_delete(vector_index, sample_vectors, metadata):
    await vector_index.upsert("item1", sample_vectors["vec1"], metadata, "text")

    await vector_index.delete("item1")
    # Deleting a missing record is not an error
    await vector_index.delete("item1")

    assert await vector_index.get("item1") is None


@pytest.mark.asyncio
async def test_stats_and_health(vector_index, sample_vectors, metadata):
    await vector_index.upsert("item1", sample_vectors["vec1"], metadata, "text")

    stats = await vector_index.stats()
    assert stats.count == 1
    assert stats.connected is True
    assert await vector_index.health_check() is True


@pytest.mark.asyncio
async def test_unavailable_index(vector_index, sample_vectors, metadata):
    vector_index.available = False

    with pytest.raises(IndexUnavailableError):
        await vector_index.upsert("item1", sample_vectors["vec1"], metadata, "text")
    with pytest.raises(IndexUnavailableError):
        await vector_index.query(sample_vectors["vec1"])

    stats = await vector_index.stats()
    assert stats.count == 0
    assert stats.connected is False
    assert await vector_index.health_check() is False


@pytest.mark.asyncio
async def test_concurrent_initialize(vector_index):
    await asyncio.gather(*(vector_index.initialize() for _ in range(5)))

    assert (await vector_index.stats()).connected is True


@pytest.mark.asyncio
async def test_clear(vector_index, sample_vectors, metadata):
    await vector_index.upsert("item1", sample_vectors["vec1"], metadata, "text")

    vector_index.clear()

    assert (await vector_index.stats()).count == 0
