"""Abstract base class for LLM chat providers.

Defines the contract for chat completion, both as one response and as an
incremental token stream.  Implementations may wrap OpenAI, an
OpenAI-compatible endpoint, or a local Ollama server.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from roomrag.models.llm import ChatMessage, LLMConfig


# Concrete implementations: OpenAILLMProvider, OllamaLLMProvider
# Located in: roomrag/providers/llm/
class ILLMProvider(ABC):
    """Contract for the LLM used to generate answers."""

    @abstractmethod
    async def chat(
        self,
        messages: list[ChatMessage],
        config: LLMConfig | None = None,
    ) -> str:
        """Generate one complete response.

        Parameters
        ----------
        messages:
            Ordered conversation, usually one system and one user message.
        config:
            Generation parameters.  ``None`` uses provider defaults.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        roomrag.utils.errors.LLMError
            If the API call fails or returns an empty response.
        """

    @abstractmethod
    def chat_stream(
        self,
        messages: list[ChatMessage],
        config: LLMConfig | None = None,
    ) -> AsyncIterator[str]:
        """Stream the response as text fragments, in generation order.

        Implementations are async generators.  Closing the iterator
        (``aclose()``) must release the underlying HTTP stream so no further
        tokens are requested.

        Raises
        ------
        roomrag.utils.errors.LLMError
            If the stream cannot be opened or breaks mid-way.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this LLM provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (no network call)."""

    @abstractmethod
    async def validate_credentials(self) -> bool:
        """Perform a lightweight API call to confirm the provider answers."""
