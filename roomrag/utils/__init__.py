"""Utility modules for roomrag.

- **errors** -- Domain-specific exception hierarchy rooted at RoomRagError;
  provider adapters wrap SDK exceptions in these so callers never import
  a vendor SDK just to catch its errors.
- **concurrency** -- per-key asyncio locks, deadline wrapping for external
  calls, and semaphore-bounded fan-out.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

from roomrag.utils.concurrency import KeyedLock, throttled_gather, with_timeout
from roomrag.utils.errors import (
    AccessDeniedError,
    ConfigurationError,
    DownloadError,
    LLMError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    RAGError,
    RateLimitError,
    RoomRagError,
    TranscriptionError,
)
from roomrag.utils.logging import configure_logging, get_logger

__all__ = [
    "AccessDeniedError",
    "ConfigurationError",
    "DownloadError",
    "KeyedLock",
    "LLMError",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "RAGError",
    "RateLimitError",
    "RoomRagError",
    "TranscriptionError",
    "configure_logging",
    "get_logger",
    "throttled_gather",
    "with_timeout",
]
