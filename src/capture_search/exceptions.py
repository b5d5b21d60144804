"""
Exception hierarchy for capture-search.

Every error raised by the library derives from CaptureSearchError so callers
can catch the whole family at once. The subclasses map onto how each failure
is handled:

- EmptyInputError: caller error, never retried
- ValidationFailedError: extracted text unusable, no provider call is made
- ProviderUnavailableError: no provider credential configured (a pre-check)
- ProviderError: non-transient provider failure, raised without retry
- ProviderExhaustedError: every retry attempt failed
- IndexUnavailableError: the vector backend could not be reached
"""

from typing import Optional


class CaptureSearchError(Exception):
    """Base exception for all capture-search errors."""


class EmptyInputError(CaptureSearchError, ValueError):
    """Raised when text to embed is empty after trimming."""


class ValidationFailedError(CaptureSearchError, ValueError):
    """Raised when extracted text is not suitable for embedding."""


class ProviderUnavailableError(CaptureSearchError):
    """Raised when the embedding provider has no credential configured."""


class ProviderError(CaptureSearchError):
    """Raised when the embedding provider fails with a non-transient error."""


class ProviderExhaustedError(ProviderError):
    """
    Raised when all retry attempts against the embedding provider failed.

    Attributes:
        attempts: Number of attempts made
        last_error: The underlying error from the final attempt
    """

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        self.attempts = attempts
        self.last_error = last_error
        detail = str(last_error) if last_error else "Unknown error"
        super().__init__(f"Failed to generate embedding after {attempts} attempts: {detail}")


class IndexUnavailableError(CaptureSearchError):
    """Raised when the vector index cannot be reached or rejects an operation."""
