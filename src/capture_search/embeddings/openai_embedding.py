"""OpenAI embedding provider for capture-search."""

import asyncio
import logging
import os
from typing import Any, Awaitable, Callable, List, Optional

import openai
from openai import AsyncOpenAI

from capture_search.embeddings.models import EmbeddingResult
from capture_search.exceptions import (
    EmptyInputError,
    ProviderError,
    ProviderExhaustedError,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


def is_transient_error(error: BaseException) -> bool:
    """
    Whether an error from the embeddings API is worth retrying.

    Network failures, timeouts, rate limits (429) and server errors (5xx)
    are transient. Authentication failures, bad requests and malformed
    responses are not.
    """
    if isinstance(error, (openai.APIConnectionError, openai.RateLimitError)):
        return True
    if isinstance(error, openai.APIStatusError):
        return error.status_code in (408, 429) or error.status_code >= 500
    return isinstance(error, (asyncio.TimeoutError, ConnectionError))


class OpenAIEmbeddingProvider:
    """
    Embedding provider using OpenAI's embedding API.

    Supports OpenAI's embedding models via API:
    - text-embedding-3-small (1536 dims, configurable)
    - text-embedding-3-large (3072 dims)
    - text-embedding-ada-002 (1536 dims, legacy)

    Also compatible with OpenAI-compatible APIs (Azure, OpenRouter, etc.)
    through base_url.

    The SDK's own retries are disabled; this class retries transient failures
    with exponential backoff (retry_delay * 2**attempt) and fails fast on
    everything else.

    Example:
        >>> provider = OpenAIEmbeddingProvider(api_key="sk-...")
        >>> result = await provider.generate_embedding("I like pizza")
        >>> result.dimensions
        1536
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "text-embedding-3-small",
        base_url: Optional[str] = None,
        dimensions: Optional[int] = None,
        max_text_length: int = 8000,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
        client: Optional[Any] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize OpenAI embedding provider.

        Args:
            api_key: OpenAI API key (None = use OPENAI_API_KEY env var)
            model: OpenAI model name (default: text-embedding-3-small)
            base_url: Custom endpoint (None = official OpenAI)
            dimensions: Output dimension (only for text-embedding-3 models)
            max_text_length: Inputs longer than this many characters are truncated
            max_retries: Total attempts for transient failures
            retry_delay: Initial backoff delay in seconds, doubled per attempt
            timeout: Request timeout in seconds
            client: Pre-built AsyncOpenAI-compatible client (mainly for tests)
            sleep: Coroutine used to wait between retries
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")

        self._model = model
        self._dimensions = dimensions
        self._max_text_length = max_text_length
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._sleep = sleep

        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if client is not None:
            self._client = client
        elif api_key:
            self._client = AsyncOpenAI(
                api_key=api_key,
                base_url=base_url,
                timeout=timeout,
                max_retries=0,
            )
        else:
            self._client = None

        self._dimension = dimensions or DEFAULT_MODEL_DIMENSIONS.get(model, 0)

        if self._client is not None:
            logger.info(
                f"OpenAI embedding provider initialized: {model} "
                f"(max_text_length={max_text_length}, max_retries={max_retries})"
            )
        else:
            logger.warning(
                "OpenAI embedding provider initialized without API key. "
                "Embeddings will not be available."
            )

    @property
    def dimension(self) -> int:
        """Vector dimension produced by this model (0 until known)."""
        return self._dimension

    @property
    def model_name(self) -> str:
        """Identifier of the OpenAI model."""
        return self._model

    def is_available(self) -> bool:
        """Check if the provider is usable (API key configured)."""
        return self._client is not None

    def _truncate(self, text: str) -> str:
        if len(text) <= self._max_text_length:
            return text

        logger.warning(
            f"Text truncated for embedding generation: {len(text)} -> "
            f"{self._max_text_length} chars "
            f"({self._max_text_length / len(text) * 100:.2f}% kept)"
        )
        return text[: self._max_text_length]

    async def _request(self, text: str) -> List[float]:
        kwargs = {"model": self._model, "input": text, "encoding_format": "float"}
        if self._dimensions is not None:
            kwargs["dimensions"] = self._dimensions

        response = await self._client.embeddings.create(**kwargs)

        data = getattr(response, "data", None)
        embedding = data[0].embedding if data else None
        if not embedding or not isinstance(embedding, list):
            raise ProviderError("Invalid embedding response from OpenAI API")
        return embedding

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """
        Generate an embedding with truncation and retry handling.

        Args:
            text: Text to embed

        Returns:
            EmbeddingResult (truncated=True if the input exceeded max_text_length)

        Raises:
            ProviderUnavailableError: If no API key is configured
            EmptyInputError: If text is empty
            ProviderError: On non-transient failures (no retry)
            ProviderExhaustedError: When all attempts failed transiently
        """
        if self._client is None:
            raise ProviderUnavailableError(
                "OpenAI API key not configured. Cannot generate embeddings."
            )

        if not text or not text.strip():
            raise EmptyInputError("Cannot generate embedding for empty text")

        processed = self._truncate(text)
        truncated = len(processed) < len(text)
        last_error: Optional[BaseException] = None

        for attempt in range(self._max_retries):
            try:
                logger.debug(
                    f"Generating embedding (attempt {attempt + 1}/{self._max_retries}, "
                    f"length={len(processed)}, truncated={truncated})"
                )
                embedding = await self._request(processed)
            except ProviderError:
                raise
            except Exception as e:
                last_error = e
                if not is_transient_error(e):
                    logger.error(f"Failed to generate embedding: {e}")
                    raise ProviderError(f"Failed to generate embedding: {e}") from e

                if isinstance(e, openai.RateLimitError):
                    logger.warning(
                        f"OpenAI rate limit hit (attempt {attempt + 1}/{self._max_retries}): {e}"
                    )
                else:
                    logger.warning(
                        f"Transient error generating embedding "
                        f"(attempt {attempt + 1}/{self._max_retries}): {e}"
                    )

                if attempt == self._max_retries - 1:
                    break

                delay = self._retry_delay * (2**attempt)
                logger.debug(f"Retrying after {delay:.2f}s")
                await self._sleep(delay)
                continue

            if not self._dimension:
                self._dimension = len(embedding)

            logger.debug(f"Embedding generated: {len(embedding)} dimensions ({self._model})")
            return EmbeddingResult(
                embedding=embedding,
                dimensions=len(embedding),
                truncated=truncated,
                original_length=len(text),
                processed_length=len(processed),
            )

        logger.error(
            f"Failed to generate embedding after {self._max_retries} attempts: {last_error}"
        )
        raise ProviderExhaustedError(self._max_retries, last_error) from last_error

    async def generate_embeddings(self, texts: List[str]) -> List[EmbeddingResult]:
        """
        Generate embeddings for multiple texts sequentially.

        Texts are embedded one at a time to stay within rate limits shared
        with other callers. Any failure aborts the batch.

        Args:
            texts: List of texts to embed

        Returns:
            List of EmbeddingResult (same order as input)

        Raises:
            EmptyInputError: If texts is empty
        """
        if self._client is None:
            raise ProviderUnavailableError(
                "OpenAI API key not configured. Cannot generate embeddings."
            )

        if not texts:
            raise EmptyInputError("Cannot generate embeddings for empty batch")

        logger.debug(f"Generating embeddings for batch of {len(texts)}")

        results = []
        for index, text in enumerate(texts):
            try:
                results.append(await self.generate_embedding(text))
            except Exception as e:
                logger.error(f"Failed to generate embedding in batch at index {index}: {e}")
                raise

        logger.debug(f"Batch embedding generation completed: {len(results)} embeddings")
        return results
