"""Abstract base class for room access checks."""

from __future__ import annotations

from abc import ABC, abstractmethod


class IAccessPolicy(ABC):
    """Contract for membership checks gating who may ask questions in a room."""

    @abstractmethod
    async def ensure_member(self, room_id: str, user_id: str) -> None:
        """Return normally if *user_id* belongs to *room_id*.

        Raises
        ------
        roomrag.utils.errors.AccessDeniedError
            If the user is not a member of the room.
        """
