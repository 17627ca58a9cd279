"""Abstract base class for the chat platform's content store.

The content store persists rooms, messages and attachments.  The RAG layer
only reads from it: paginated listings for bulk indexing, the newest
messages for recency context, and attachment lookups for file ingestion.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from roomrag.models.content import Attachment, Message, Page, Room


class IContentStore(ABC):
    """Read-only contract over rooms, messages and attachments."""

    @abstractmethod
    async def list_rooms(
        self,
        org_id: str,
        cursor: str | None = None,
        limit: int = 100,
    ) -> Page[Room]:
        """Return one page of rooms in an organization.

        Pass the returned ``next_cursor`` back in to fetch the next page;
        ``None`` marks the last page.
        """

    @abstractmethod
    async def list_messages(
        self,
        room_id: str,
        cursor: str | None = None,
        limit: int = 100,
    ) -> Page[Message]:
        """Return one page of a room's messages, newest first."""

    @abstractmethod
    async def get_attachment(self, attachment_id: str) -> Attachment | None:
        """Return an attachment by id, or ``None`` if it does not exist."""
