"""
Storage protocols and implementations for captured content.

Provides protocol definitions for the vector index and the relational
content store, together with Qdrant, SQLAlchemy and in-memory backends.
"""

from capture_search.storage.content.memory import InMemoryContentStore
from capture_search.storage.content.sqlalchemy import SQLAlchemyContentStore
from capture_search.storage.protocols import ContentStore, VectorIndex
from capture_search.storage.vector.memory import InMemoryVectorIndex
from capture_search.storage.vector.qdrant import QdrantVectorIndex

__all__ = [
    "VectorIndex",
    "ContentStore",
    "InMemoryVectorIndex",
    "QdrantVectorIndex",
    "InMemoryContentStore",
    "SQLAlchemyContentStore",
]
