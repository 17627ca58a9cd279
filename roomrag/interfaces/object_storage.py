"""Abstract base class for object storage (raw file bytes)."""

from __future__ import annotations

from abc import ABC, abstractmethod


class IObjectStorage(ABC):
    """Contract for presigning downloads of uploaded files."""

    @abstractmethod
    async def get_presigned_url(self, file_id: str) -> str:
        """Return a time-limited URL from which the file's bytes can be fetched.

        Raises
        ------
        roomrag.utils.errors.DownloadError
            If the storage backend cannot presign the object.
        """
