from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

ContentType = Literal["text", "image", "pdf", "audio"]
EmbeddingStatus = Literal["pending", "completed", "failed"]
SearchMethod = Literal["vector", "fts", "combined"]

CONTENT_TYPES: tuple[str, ...] = ("text", "image", "pdf", "audio")

# Allowed embedding_status moves. Writing the current status again is always
# allowed so a pipeline re-run on the same item stays idempotent.
EMBEDDING_STATUS_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"completed", "failed"},
    "failed": {"pending"},
    "completed": set(),
}


def can_transition(current: str, new: str, force: bool = False) -> bool:
    """
    Check whether an item's embedding_status may move from current to new.

    completed -> pending is only allowed as an explicit reset (force=True).
    """
    if force or current == new:
        return True
    return new in EMBEDDING_STATUS_TRANSITIONS.get(current, set())


class CapturedItem(BaseModel):
    """A captured piece of content as stored by the relational store"""

    id: str = Field(..., description="Opaque unique identifier")
    owner_id: Optional[str] = Field(None, description="User this item belongs to")
    content_type: ContentType
    title: Optional[str] = None
    annotation: Optional[str] = Field(None, description="User-provided context")
    tags: List[str] = Field(default_factory=list, description="Ordered set of tags")
    extracted_text: Optional[str] = Field(None, description="Text content used for search")
    source: Optional[str] = Field(None, description="Origin of the capture (web, api, ...)")
    embedding_status: EmbeddingStatus = "pending"
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, tags: List[str]) -> List[str]:
        # Keep first occurrence order
        return list(dict.fromkeys(tags))


class SearchFilters(BaseModel):
    content_types: Optional[List[ContentType]] = Field(
        None, description="Allow-list of content types"
    )
    tags: Optional[List[str]] = Field(
        None, description="Tags a result must all carry (AND semantics)"
    )
    date_from: Optional[datetime] = Field(None, description="Inclusive lower bound on created_at")
    date_to: Optional[datetime] = Field(None, description="Inclusive upper bound on created_at")
    source: Optional[str] = Field(None, description="Exact source match")

    def is_empty(self) -> bool:
        return not (
            self.content_types
            or self.tags
            or self.date_from is not None
            or self.date_to is not None
            or self.source
        )


class SearchResultMetadata(BaseModel):
    tags: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    source: Optional[str] = None
    annotation: Optional[str] = None


class SearchResult(BaseModel):
    """A single ranked search hit, built fresh for every query"""

    id: str
    title: Optional[str] = None
    excerpt: str
    content_type: ContentType
    relevance_score: float = Field(..., description="Normalized relevance in [0, 1]")
    search_method: SearchMethod
    metadata: SearchResultMetadata


class SearchResponse(BaseModel):
    query: str
    results: List[SearchResult]
    search_method: SearchMethod
    total_results: int


class SearchHistoryEntry(BaseModel):
    id: int
    query: str
    results_count: int = 0
    created_at: datetime
