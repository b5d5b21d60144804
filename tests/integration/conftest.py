"""Fixtures and helpers for integration tests."""

import socket
from uuid import uuid4

import pytest
import pytest_asyncio

from capture_search.storage.vector.qdrant import QdrantVectorIndex


def is_service_available(host: str, port: int) -> bool:
    """Check if a service is available at host:port."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.settimeout(2)
            result = sock.connect_ex((host, port))
            return result == 0
    except OSError:
        return False


@pytest.fixture
def skip_if_no_qdrant():
    """Skip test if Qdrant is not available."""
    if not is_service_available("localhost", 6333):
        pytest.skip("Qdrant not available at localhost:6333")


@pytest_asyncio.fixture
async def qdrant_index(skip_if_no_qdrant):
    """Qdrant index on a throwaway collection, dropped afterwards."""
    index = QdrantVectorIndex(
        url="http://localhost:6333",
        collection_name=f"test_collection_{uuid4().hex[:8]}",
        vector_size=3,
    )
    yield index

    await index.client.delete_collection(index.collection_name)
    await index.close()
