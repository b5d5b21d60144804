"""
Embedding provider protocol for capture-search.

Provides a unified interface for turning text into fixed-dimension vectors
through a remote embedding service.
"""

from typing import List, Protocol

from typing_extensions import runtime_checkable

from capture_search.embeddings.models import EmbeddingResult


@runtime_checkable
class EmbeddingProvider(Protocol):
    """
    Protocol for remote embedding providers.

    All implementations must:

    1. Report availability without raising (a missing credential is a
       pre-check, not an error)
    2. Truncate over-long input instead of rejecting it
    3. Own their retry and backoff policy for transient failures
    4. Process batches sequentially to respect shared rate limits

    Example:
        >>> provider = OpenAIEmbeddingProvider(api_key="sk-...")
        >>> if provider.is_available():
        ...     result = await provider.generate_embedding("Hello world")
        >>> len(result.embedding) == provider.dimension
        True
    """

    @property
    def dimension(self) -> int:
        """
        Vector dimension produced by this provider.

        Must match the size the vector index collection was created with.
        """
        ...

    @property
    def model_name(self) -> str:
        """Identifier of the embedding model."""
        ...

    def is_available(self) -> bool:
        """
        Whether a provider credential/configuration is present at all.

        Returns:
            True if embeddings can be requested
        """
        ...

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """
        Generate an embedding for a single text.

        Args:
            text: Text to embed (truncated if longer than the provider limit)

        Returns:
            EmbeddingResult with the vector and truncation details

        Raises:
            EmptyInputError: If text is empty after trimming
            ProviderUnavailableError: If no credential is configured
            ProviderError: On a non-transient provider failure
            ProviderExhaustedError: If every retry attempt failed
        """
        ...

    async def generate_embeddings(self, texts: List[str]) -> List[EmbeddingResult]:
        """
        Generate embeddings for several texts, one at a time.

        Args:
            texts: Texts to embed

        Returns:
            List of results in input order

        Raises:
            Any error from generate_embedding; the first failure aborts the batch
        """
        ...
