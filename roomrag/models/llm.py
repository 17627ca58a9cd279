"""Request models for chat-completion calls."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str

    def to_openai(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class LLMConfig(BaseModel):
    """Generation parameters for one chat call.

    ``model_name`` of ``None`` means "use the provider's configured default".
    """

    model_config = ConfigDict(frozen=True)

    model_name: str | None = None
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2000, ge=1)
