"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Supports both real OpenAI and OpenAI-compatible providers (TogetherAI,
Fireworks, vLLM) via custom ``base_url`` and model name settings.
"""

from __future__ import annotations

import openai
import structlog

from roomrag.config.settings import Settings
from roomrag.interfaces.embedding_provider import IEmbeddingProvider
from roomrag.utils.errors import ProviderTimeoutError, RAGError, RateLimitError, RoomRagError

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_BATCH_LIMIT = 2048

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
    "intfloat/multilingual-e5-large-instruct": 1024,
}


def wrap_embedding_error(exc: openai.APIError, provider_name: str) -> RoomRagError:
    """Map an SDK exception onto the roomrag hierarchy."""
    if isinstance(exc, openai.APITimeoutError):
        return ProviderTimeoutError(message=f"{provider_name} request timed out", provider_name=provider_name)
    if isinstance(exc, openai.RateLimitError):
        return RateLimitError(message=f"{provider_name} rate limit exceeded", provider_name=provider_name)
    return RAGError(message=f"{provider_name} API error: {exc}", provider_name=provider_name)


async def embed_in_batches(
    client: openai.AsyncOpenAI,
    model: str,
    texts: list[str],
    batch_limit: int,
    provider_name: str,
) -> list[list[float]]:
    """Embed *texts* in order, ``batch_limit`` inputs per API call."""
    all_embeddings: list[list[float]] = []
    try:
        for start in range(0, len(texts), batch_limit):
            batch = texts[start : start + batch_limit]
            response = await client.embeddings.create(input=batch, model=model)
            # The API tags each vector with its input index.
            ordered = sorted(response.data, key=lambda item: item.index)
            all_embeddings.extend(item.embedding for item in ordered)
            logger.info(
                "embedding_batch",
                model=model,
                provider=provider_name,
                batch_size=len(batch),
                tokens=response.usage.total_tokens if response.usage else None,
            )
    except openai.APIError as exc:
        raise wrap_embedding_error(exc, provider_name) from exc
    return all_embeddings


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Uses ``text-embedding-3-small`` (1536 dims) by default.  Unknown models
    on a custom endpoint are assumed to produce 768-dim vectors.
    """

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key
        client_kwargs: dict = {
            "api_key": self._api_key or "unset",
            "timeout": openai.Timeout(25.0, connect=5.0),
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._model = settings.openai_embedding_model or "text-embedding-3-small"
        self._dimension = _MODEL_DIMENSIONS.get(self._model, 768)
        self._provider_label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Splits into batches of 2048 when the input exceeds the per-call limit.
        """
        if not texts:
            return []
        return await embed_in_batches(
            self._client, self._model, texts, _OPENAI_BATCH_LIMIT, self._provider_label
        )

    async def embed_single(self, text: str) -> list[float]:
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)
