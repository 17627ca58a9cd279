"""Custom exception hierarchy for roomrag.

All application exceptions inherit from :class:`RoomRagError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "chromadb", "whisper") caused the failure.

The hierarchy is organized by concern:

    RoomRagError  (base -- catch-all for any roomrag error)
    +-- ConfigurationError       (startup / missing config / dimension mismatch)
    +-- ProviderUnavailableError (external service down / unreachable)
    +-- RateLimitError           (provider rate-limit exceeded)
    +-- ProviderTimeoutError     (external call exceeded its deadline)
    +-- LLMError                 (any chat / streaming call failure)
    +-- TranscriptionError       (speech-to-text failure)
    +-- RAGError                 (embedding or vector-store failure)
    +-- DownloadError            (object storage fetch failure)
    +-- AccessDeniedError        (caller is not allowed in the room)

Configuration errors are fatal and never retried.  Timeouts, rate limits and
unavailable providers are transient: single-item callers receive them and
decide on retry, bulk jobs record them as strings and keep going.
"""


class RoomRagError(Exception):
    """Base exception for all roomrag errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets for log
    output, e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------

class ConfigurationError(RoomRagError):
    """Raised when configuration is invalid or missing.

    Includes embedding-dimension mismatches between the embedding model and
    the vector store: every query would return garbage, so this is fatal.
    """

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------

class ProviderUnavailableError(RoomRagError):
    """Raised when an external service or provider is unreachable."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(RoomRagError):
    """Raised when an API rate limit is exceeded.

    Callers should back off or record the failure and move on.
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderTimeoutError(RoomRagError):
    """Raised when an external call does not finish within its deadline."""

    def __init__(
        self,
        message: str = "External call timed out",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(RoomRagError):
    """Raised when an LLM chat or streaming call fails."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class TranscriptionError(RoomRagError):
    """Raised when audio transcription fails."""

    def __init__(
        self,
        message: str = "Audio transcription failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DownloadError(RoomRagError):
    """Raised when raw file bytes cannot be fetched from object storage."""

    def __init__(
        self,
        message: str = "File download failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# RAG / vector-store errors
# ---------------------------------------------------------------------------

class RAGError(RoomRagError):
    """Raised when a RAG operation fails (embedding or vector store)."""

    def __init__(
        self,
        message: str = "RAG operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Access control
# ---------------------------------------------------------------------------

class AccessDeniedError(RoomRagError):
    """Raised when the access policy rejects a caller for a room."""

    def __init__(
        self,
        message: str = "Access denied",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
