"""Result types for the embedding provider."""

from dataclasses import dataclass, field
from typing import List


@dataclass
class EmbeddingResult:
    """
    Result of embedding one text.

    The truncation flag and the two lengths are reported for observability
    only; they are never persisted alongside the vector.

    Attributes:
        embedding: The embedding vector
        dimensions: Length of the vector
        truncated: Whether the input was cut to the provider's max length
        original_length: Character length of the input text
        processed_length: Character length actually sent to the provider
    """

    embedding: List[float] = field(default_factory=list)
    dimensions: int = 0
    truncated: bool = False
    original_length: int = 0
    processed_length: int = 0
