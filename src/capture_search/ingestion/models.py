"""
Models for the embedding pipeline.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field

from capture_search.models import ContentType


class EmbeddingPipelineInput(BaseModel):
    """Everything the pipeline needs to embed one captured item"""

    content_id: str
    owner_id: Optional[str] = None
    content_type: ContentType
    content: Union[str, bytes] = Field("", description="Text content or raw file bytes")
    annotation: Optional[str] = None
    title: Optional[str] = None
    original_filename: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = Field(
        None, description="Capture time stored in vector metadata (defaults to now)"
    )


@dataclass
class EmbeddingStats:
    """
    Embedding status counts.

    Attributes:
        total: Number of items considered
        pending: Items waiting for (or undergoing) embedding
        completed: Items with a vector in the index
        failed: Items whose last pipeline run failed
    """

    total: int = 0
    pending: int = 0
    completed: int = 0
    failed: int = 0
