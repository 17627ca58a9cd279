"""Content store backed by a JSON export of a chat workspace.

Lets the CLI index and query a workspace without access to the live
database.  The export is a single JSON object::

    {
      "rooms":       [{"id": "...", "org_id": "...", "name": "...",
                       "llm_config": {"model_name": "...", "temperature": 0.3}}],
      "messages":    [{"id": "...", "room_id": "...", "user_id": "...",
                       "content": "...", "created_at": "2024-05-01T10:00:00Z"}],
      "attachments": [{"id": "...", "message_id": "...", "room_id": "...",
                       "file_id": "...", "file_name": "...", "mime_type": "..."}]
    }

A room's optional ``llm_config`` is served through :class:`IRoomConfigStore`.
Messages and attachments without an ``org_id`` inherit their room's.
Cursors are stringified offsets.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog

from roomrag.interfaces.content_store import IContentStore
from roomrag.interfaces.room_config_store import IRoomConfigStore
from roomrag.models.content import Attachment, Message, Page, Room
from roomrag.models.llm import LLMConfig
from roomrag.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


class JsonExportContentStore(IContentStore, IRoomConfigStore):
    """Read-only content and room-settings store over an in-memory export."""

    def __init__(
        self,
        rooms: list[Room],
        messages: list[Message],
        attachments: list[Attachment] | None = None,
    ) -> None:
        self._rooms = list(rooms)
        self._messages_by_room: dict[str, list[Message]] = {}
        for message in messages:
            self._messages_by_room.setdefault(message.room_id, []).append(message)
        for room_messages in self._messages_by_room.values():
            room_messages.sort(key=lambda m: m.created_at, reverse=True)
        self._attachments = {a.id: a for a in attachments or []}

    @classmethod
    def from_file(cls, path: str | Path) -> JsonExportContentStore:
        """Load an export file.

        Raises
        ------
        ConfigurationError
            If the file is missing or not a valid export.
        """
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(message=f"Cannot read export {path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigurationError(message=f"Export {path} must be a JSON object")
        return cls.from_dict(raw)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> JsonExportContentStore:
        rooms = [Room.model_validate(r) for r in raw.get("rooms", [])]
        room_orgs = {room.id: room.org_id for room in rooms}

        def _with_org(record: dict[str, Any]) -> dict[str, Any]:
            if record.get("org_id"):
                return record
            return {**record, "org_id": room_orgs.get(record.get("room_id", ""), "")}

        messages = [Message.model_validate(_with_org(m)) for m in raw.get("messages", [])]
        attachments = [Attachment.model_validate(_with_org(a)) for a in raw.get("attachments", [])]
        logger.info(
            "content_export_loaded",
            rooms=len(rooms),
            messages=len(messages),
            attachments=len(attachments),
        )
        return cls(rooms, messages, attachments)

    async def list_rooms(
        self,
        org_id: str,
        cursor: str | None = None,
        limit: int = 100,
    ) -> Page[Room]:
        rooms = [r for r in self._rooms if r.org_id == org_id]
        return self._page(rooms, cursor, limit)

    async def list_messages(
        self,
        room_id: str,
        cursor: str | None = None,
        limit: int = 100,
    ) -> Page[Message]:
        return self._page(self._messages_by_room.get(room_id, []), cursor, limit)

    async def get_attachment(self, attachment_id: str) -> Attachment | None:
        return self._attachments.get(attachment_id)

    async def get_llm_config(self, room_id: str) -> LLMConfig | None:
        room = next((r for r in self._rooms if r.id == room_id), None)
        return room.llm_config if room is not None else None

    @staticmethod
    def _page(items: list, cursor: str | None, limit: int) -> Page:  # noqa: ANN001
        start = int(cursor) if cursor else 0
        end = start + limit
        next_cursor = str(end) if end < len(items) else None
        return Page(items=items[start:end], next_cursor=next_cursor)
