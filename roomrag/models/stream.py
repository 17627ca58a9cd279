"""Typed events of the streaming answer protocol.

A stream always starts with exactly one ``sources`` event, carries zero or
more ``chunk`` events in generation order, and ends with exactly one
terminal event, ``done`` or ``error``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from roomrag.models.rag import RAGSource


class StreamEventType(str, Enum):
    SOURCES = "sources"
    CHUNK = "chunk"
    DONE = "done"
    ERROR = "error"


class StreamEvent(BaseModel):
    """One event of an answer stream."""

    model_config = ConfigDict(frozen=True)

    type: StreamEventType
    sources: list[RAGSource] = Field(default_factory=list)
    text: str = Field(default="", description="Fragment for chunk events; final text for no-context done.")
    error: str | None = None
    confidence: float = 0.0
    used_semantic_retrieval: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.type in (StreamEventType.DONE, StreamEventType.ERROR)

    @classmethod
    def for_sources(
        cls,
        sources: list[RAGSource],
        confidence: float = 0.0,
        used_semantic_retrieval: bool = False,
    ) -> StreamEvent:
        return cls(
            type=StreamEventType.SOURCES,
            sources=sources,
            confidence=confidence,
            used_semantic_retrieval=used_semantic_retrieval,
        )

    @classmethod
    def for_chunk(cls, text: str) -> StreamEvent:
        return cls(type=StreamEventType.CHUNK, text=text)

    @classmethod
    def for_done(cls, text: str = "") -> StreamEvent:
        return cls(type=StreamEventType.DONE, text=text)

    @classmethod
    def for_error(cls, message: str) -> StreamEvent:
        return cls(type=StreamEventType.ERROR, error=message)

    def to_payload(self) -> dict[str, Any]:
        """Return the ``{"type": ..., "data": ...}`` dict sent to SSE clients."""
        if self.type is StreamEventType.SOURCES:
            data: Any = [s.model_dump(mode="json") for s in self.sources]
        elif self.type is StreamEventType.CHUNK:
            data = self.text
        elif self.type is StreamEventType.ERROR:
            data = self.error
        else:
            data = self.text or None
        return {"type": self.type.value, "data": data}
