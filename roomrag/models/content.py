"""Content-store records consumed by the RAG layer.

These mirror what the chat platform persists (rooms, messages,
attachments) but only carry the fields retrieval and indexing read.
"""

from __future__ import annotations

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from roomrag.models.llm import LLMConfig

_ItemT = TypeVar("_ItemT")


class Room(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    org_id: str
    name: str = ""
    llm_config: LLMConfig | None = Field(
        default=None, description="Room-specific generation settings, when the room has any."
    )


class Message(BaseModel):
    """A persisted chat message."""

    model_config = ConfigDict(frozen=True)

    id: str
    room_id: str
    org_id: str
    user_id: str
    content: str = ""
    created_at: datetime
    thread_id: str | None = None


class Attachment(BaseModel):
    """A file uploaded alongside a message; bytes live in object storage."""

    model_config = ConfigDict(frozen=True)

    id: str
    message_id: str
    room_id: str
    org_id: str
    file_id: str = Field(description="Object-storage key used to presign a download URL.")
    file_name: str
    mime_type: str
    file_size: int = Field(default=0, ge=0)


class Page(BaseModel, Generic[_ItemT]):
    """One page of a cursor-paginated listing.

    ``next_cursor`` is ``None`` on the last page.
    """

    model_config = ConfigDict(frozen=True)

    items: list[_ItemT] = Field(default_factory=list)
    next_cursor: str | None = None
