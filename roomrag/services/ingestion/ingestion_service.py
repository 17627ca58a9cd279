"""Event-driven ingestion of chat content into the vector store.

Pipeline stages for a file: **presign -> download -> process -> embed -> store**.
Messages skip the first three stages and are indexed as a single chunk.

The :class:`IngestionService` coordinates the collaborators (object
storage, downloader, processor registry, embedding indexer) without any of
them knowing about each other.  Data problems with one file (unsupported
type, missing record, failed download, nothing extracted) are returned in
an :class:`AttachmentIndexResult`; provider failures (embedding, vector
store, transcription) propagate so the caller can retry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from roomrag.models.content import Attachment, Message
from roomrag.models.rag import (
    AttachmentIndexResult,
    DocumentMetadata,
    IndexDocumentResult,
    IndexRequest,
    SourceType,
    TenantScope,
)
from roomrag.services.ingestion.document_processors.registry import ProcessorRegistry
from roomrag.services.ingestion.embedding_indexer import EmbeddingIndexer
from roomrag.utils.concurrency import with_timeout
from roomrag.utils.errors import DownloadError

if TYPE_CHECKING:
    from roomrag.interfaces.content_store import IContentStore
    from roomrag.interfaces.object_storage import IObjectStorage
    from roomrag.providers.storage.http_file_downloader import HttpFileDownloader

logger = structlog.get_logger(logger_name=__name__)


def message_index_request(message: Message) -> IndexRequest:
    """Build the index request for a chat message."""
    metadata: dict[str, Any] = {
        "user_id": message.user_id,
        "created_at": message.created_at.isoformat(),
    }
    if message.thread_id:
        metadata["thread_id"] = message.thread_id
    return IndexRequest(
        source_type=SourceType.MESSAGE,
        source_id=message.id,
        scope=TenantScope(org_id=message.org_id, room_id=message.room_id),
        content=message.content,
        metadata=metadata,
    )


class IngestionService:
    """Turns chat events into indexed chunks.

    Parameters
    ----------
    indexer:
        Writes chunks for a source.
    registry:
        Picks the document processor for a file's mime type.
    content_store:
        Looks up attachments by id.  Optional; only needed by
        :meth:`index_attachment_by_id`.
    object_storage:
        Presigns download URLs for attachments.
    downloader:
        Fetches the bytes behind a presigned URL.
    call_timeout:
        Deadline in seconds for the content-store and presign calls.
    """

    def __init__(
        self,
        indexer: EmbeddingIndexer,
        registry: ProcessorRegistry,
        content_store: IContentStore | None = None,
        object_storage: IObjectStorage | None = None,
        downloader: HttpFileDownloader | None = None,
        call_timeout: float | None = 30.0,
    ) -> None:
        self._indexer = indexer
        self._registry = registry
        self._content_store = content_store
        self._object_storage = object_storage
        self._downloader = downloader
        self._call_timeout = call_timeout

    @property
    def registry(self) -> ProcessorRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def on_message_created(self, message: Message) -> bool:
        """Index a new chat message; returns ``True`` if a chunk was written."""
        return await self._indexer.index_short_text(message_index_request(message))

    async def on_attachment_uploaded(self, attachment: Attachment) -> AttachmentIndexResult:
        """Download, process and index an uploaded file."""
        if not self._registry.can_process(attachment.mime_type):
            logger.info(
                "attachment_unsupported_type",
                attachment_id=attachment.id,
                mime_type=attachment.mime_type,
            )
            return AttachmentIndexResult(
                success=False,
                error=f"Unsupported file type: {attachment.mime_type}",
            )
        if self._object_storage is None or self._downloader is None:
            return AttachmentIndexResult(
                success=False, error="Object storage is not configured"
            )

        try:
            url = await with_timeout(
                self._object_storage.get_presigned_url(attachment.file_id),
                self._call_timeout,
                "get_presigned_url",
            )
            data = await self._downloader.fetch(url)
        except DownloadError as exc:
            logger.warning(
                "attachment_download_failed",
                attachment_id=attachment.id,
                error=str(exc),
            )
            return AttachmentIndexResult(success=False, error=str(exc))

        result = await self.index_file_bytes(
            data,
            file_name=attachment.file_name,
            mime_type=attachment.mime_type,
            source_type=SourceType.ATTACHMENT,
            source_id=attachment.id,
            scope=TenantScope(org_id=attachment.org_id, room_id=attachment.room_id),
            metadata={
                "message_id": attachment.message_id,
                "file_id": attachment.file_id,
            },
        )
        if result.chunks_created == 0:
            return AttachmentIndexResult(success=False, error="No content extracted from file")
        return AttachmentIndexResult(success=True, chunks_created=result.chunks_created)

    async def index_attachment_by_id(self, attachment_id: str) -> AttachmentIndexResult:
        """Look the attachment up in the content store, then index it."""
        if self._content_store is None:
            return AttachmentIndexResult(success=False, error="Content store is not configured")
        attachment = await with_timeout(
            self._content_store.get_attachment(attachment_id),
            self._call_timeout,
            "get_attachment",
        )
        if attachment is None:
            return AttachmentIndexResult(success=False, error="Attachment not found")
        return await self.on_attachment_uploaded(attachment)

    async def index_file_bytes(
        self,
        data: bytes,
        file_name: str,
        mime_type: str,
        source_type: SourceType,
        source_id: str,
        scope: TenantScope,
        metadata: dict[str, Any] | None = None,
    ) -> IndexDocumentResult:
        """Process raw file bytes and replace the source's chunk set.

        A file that yields no chunks leaves the source with no chunks.
        """
        doc_meta = DocumentMetadata(
            file_name=file_name,
            mime_type=mime_type,
            size=len(data),
            source_id=source_id,
            room_id=scope.room_id,
            org_id=scope.org_id,
        )
        processed = await self._registry.process(data, doc_meta)
        request = IndexRequest(
            source_type=source_type,
            source_id=source_id,
            scope=scope,
            metadata=dict(metadata or {}),
        )
        result = await self._indexer.index_processed(request, processed)

        logger.info(
            "file_indexed",
            source_type=source_type.value,
            source_id=source_id,
            file_name=file_name,
            mime_type=mime_type,
            chunks=result.chunks_created,
        )
        return result
