"""OpenAI-compatible LLM provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`, both
as a single completion and as a token stream.  When a custom
``openai_base_url`` is configured (TogetherAI, vLLM, Fireworks, ...), the
client points at that URL instead of the default OpenAI endpoint.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import openai
import structlog

from roomrag.config.settings import Settings
from roomrag.interfaces.llm_provider import ILLMProvider
from roomrag.models.llm import ChatMessage, LLMConfig
from roomrag.utils.errors import LLMError, ProviderTimeoutError, RateLimitError, RoomRagError

logger = structlog.get_logger(logger_name=__name__)


def wrap_openai_error(exc: openai.APIError, provider_name: str) -> RoomRagError:
    """Map an SDK exception onto the roomrag hierarchy."""
    if isinstance(exc, openai.APITimeoutError):
        return ProviderTimeoutError(message=f"{provider_name} request timed out", provider_name=provider_name)
    if isinstance(exc, openai.RateLimitError):
        return RateLimitError(message=f"{provider_name} rate limit exceeded", provider_name=provider_name)
    return LLMError(message=f"{provider_name} API error: {exc}", provider_name=provider_name)


class OpenAILLMProvider(ILLMProvider):
    """LLM provider backed by an OpenAI-compatible chat completions API.

    Uses ``gpt-4o-mini`` by default; ``openai_chat_model`` overrides it,
    and ``LLMConfig.model_name`` overrides both for one call.
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
        self._model = settings.openai_chat_model or "gpt-4o-mini"
        self._provider_label = "openai-compatible" if settings.openai_base_url else "openai"

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def chat(
        self,
        messages: list[ChatMessage],
        config: LLMConfig | None = None,
    ) -> str:
        """Generate one complete response via the chat completions API."""
        cfg = config or LLMConfig()
        model = cfg.model_name or self._model
        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=[m.to_openai() for m in messages],
                temperature=cfg.temperature,
                max_tokens=cfg.max_tokens,
            )
        except openai.APIError as exc:
            raise wrap_openai_error(exc, self.get_provider_name()) from exc

        content = response.choices[0].message.content if response.choices else None
        if content is None:
            raise LLMError(
                message=f"{self._provider_label} returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "llm_chat_completion",
            model=model,
            provider=self._provider_label,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content

    async def chat_stream(
        self,
        messages: list[ChatMessage],
        config: LLMConfig | None = None,
    ) -> AsyncIterator[str]:
        """Yield content deltas as the model produces them.

        The HTTP stream is closed when the generator finishes or is closed
        early by the consumer.
        """
        cfg = config or LLMConfig()
        model = cfg.model_name or self._model
        try:
            stream = await self._client.chat.completions.create(
                model=model,
                messages=[m.to_openai() for m in messages],
                temperature=cfg.temperature,
                max_tokens=cfg.max_tokens,
                stream=True,
            )
        except openai.APIError as exc:
            raise wrap_openai_error(exc, self.get_provider_name()) from exc

        try:
            async for event in stream:
                if not event.choices:
                    continue
                delta = event.choices[0].delta.content
                if delta:
                    yield delta
        except openai.APIError as exc:
            raise wrap_openai_error(exc, self.get_provider_name()) from exc
        finally:
            await stream.close()

        logger.debug("llm_stream_complete", model=model, provider=self._provider_label)

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured (doesn't verify it works)."""
        return bool(self._api_key)

    async def validate_credentials(self) -> bool:
        """List models to verify the API key without incurring inference costs."""
        if not self.is_available():
            return False
        try:
            await self._client.models.list()
            return True
        except openai.APIError:
            return False

    def get_provider_name(self) -> str:
        return self._provider_label
