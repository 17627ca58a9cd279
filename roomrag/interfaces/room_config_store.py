"""Abstract base class for per-room generation settings.

Rooms may carry their own assistant settings (model, temperature, token
budget).  The RAG service asks this store before every answer; rooms
without settings fall back to the service-wide :class:`LLMConfig`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from roomrag.models.llm import LLMConfig


class IRoomConfigStore(ABC):
    """Contract for looking up a room's generation settings."""

    @abstractmethod
    async def get_llm_config(self, room_id: str) -> LLMConfig | None:
        """Return the room's settings, or ``None`` when it has none."""
