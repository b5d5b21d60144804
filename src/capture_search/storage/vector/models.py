"""
Models for vector storage.

Defines the data structures used by vector index implementations for
storing captured-item embeddings with their metadata and embedded text.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class VectorMetadata(BaseModel):
    """
    Metadata stored next to an embedding.

    The index treats metadata as a loose key/value bag; this model is the
    closed set of keys the library reads and writes. Unknown keys coming back
    from the index are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    owner_id: Optional[str] = None
    content_type: str
    created_at: str  # ISO format timestamp
    title: Optional[str] = None
    annotation: Optional[str] = None
    tags: Optional[List[str]] = None
    original_filename: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        """Plain dict for the index, with unset keys dropped."""
        return self.model_dump(exclude_none=True)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "VectorMetadata":
        return cls(**payload)


class VectorRecord(BaseModel):
    """
    A record in the vector index, keyed by the captured item's id.
    """

    id: str
    embedding: List[float]
    metadata: VectorMetadata
    text: str


class VectorQueryResult(BaseModel):
    """
    A nearest-neighbor hit.

    score is a similarity (1 = identical direction), converted from the
    index's cosine distance.
    """

    id: str
    score: float
    metadata: VectorMetadata
    text: str


@dataclass
class IndexStats:
    count: int = 0
    connected: bool = False


def distance_to_similarity(distance: float) -> float:
    """
    Convert a cosine distance in [0, 2] to a similarity.

    similarity = 1 - distance / 2, clamped to [0, 1].
    """
    similarity = 1.0 - distance / 2.0
    return max(0.0, min(1.0, similarity))
