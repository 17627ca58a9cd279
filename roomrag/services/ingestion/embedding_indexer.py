"""Embedding indexer: chunk -> embed -> store for one logical source.

Owns the re-index / delete lifecycle of a source's chunk set.  A source is
a chat message, an attachment, or a standalone document, identified by
``(source_type, source_id)``.

Lifecycle rules
---------------
- **Full re-index** (``index_document`` / ``index_processed``): the new
  chunk set is embedded first with one batched call (vector ``i`` belongs
  to chunk ``i``), then swapped in with the store's ``replace_source``.
  A failed embedding call therefore leaves the previous chunk set intact.
  An empty chunk set just removes stale chunks.
- **Short text** (``index_short_text``): chat messages below a minimum
  length are skipped, and a message that already has a chunk is not
  embedded again (messages are immutable once indexed).
- Every mutation of one source runs under that source's lock, so two
  re-indexes of the same source never interleave; different sources are
  indexed concurrently.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog

from roomrag.interfaces.embedding_provider import IEmbeddingProvider
from roomrag.interfaces.vector_store_provider import IVectorStoreProvider
from roomrag.models.rag import (
    DocumentChunk,
    IndexDocumentResult,
    IndexRequest,
    ProcessedChunk,
    RoomStats,
    SourceType,
)
from roomrag.services.ingestion.chunker import TextChunker
from roomrag.utils.concurrency import KeyedLock, with_timeout
from roomrag.utils.errors import ConfigurationError, RAGError

logger = structlog.get_logger(logger_name=__name__)


def chunk_id_for(source_type: SourceType, source_id: str, chunk_index: int) -> str:
    """Deterministic chunk id, so re-running an index converges on the same rows."""
    return f"{source_type.value}:{source_id}:{chunk_index}"


class EmbeddingIndexer:
    """Indexes sources into the vector store.

    Parameters
    ----------
    embedding_provider:
        Produces vectors; its dimension must match the store's.
    vector_store:
        Destination of the chunks.
    chunker:
        Splits document content into windows.
    min_short_text_length:
        Messages with fewer stripped characters are not indexed.
    call_timeout:
        Deadline in seconds for each embedding or store call.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        chunker: TextChunker,
        min_short_text_length: int = 10,
        call_timeout: float | None = 30.0,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._chunker = chunker
        self._min_short_text_length = min_short_text_length
        self._call_timeout = call_timeout
        self._source_locks = KeyedLock()

    @property
    def min_short_text_length(self) -> int:
        return self._min_short_text_length

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def accepts_short_text(self, content: str | None) -> bool:
        """Return ``True`` if *content* is long enough to be worth indexing."""
        return bool(content) and len(content.strip()) >= self._min_short_text_length

    async def index_document(
        self,
        request: IndexRequest,
        chunk_size: int | None = None,
        overlap: int | None = None,
    ) -> IndexDocumentResult:
        """Chunk ``request.content`` and replace the source's chunk set.

        Raises
        ------
        ConfigurationError
            If the embedding dimension does not match the provider's.
        RAGError, RateLimitError, ProviderTimeoutError
            Provider failures propagate to the caller.
        """
        segments = self._chunker.chunk(request.content, chunk_size, overlap)
        metadatas = [dict(request.metadata) for _ in segments]
        return await self._replace(request, segments, metadatas)

    async def index_processed(
        self,
        request: IndexRequest,
        chunks: list[ProcessedChunk],
    ) -> IndexDocumentResult:
        """Replace the source's chunk set with processor output.

        ``request.content`` is ignored; the processor already chunked the
        file.  Processor metadata wins over request metadata on key clashes.
        """
        ordered = sorted(chunks, key=lambda c: c.chunk_index)
        segments = [c.content for c in ordered]
        metadatas = [{**request.metadata, **c.metadata} for c in ordered]
        return await self._replace(request, segments, metadatas)

    async def index_short_text(self, request: IndexRequest) -> bool:
        """Index a chat message as a single chunk.

        Returns
        -------
        bool
            ``True`` if a chunk was written, ``False`` if the message was
            too short or already indexed.
        """
        if not self.accepts_short_text(request.content):
            logger.debug(
                "short_text_skipped_too_short",
                source_id=request.source_id,
                length=len(request.content.strip()),
            )
            return False

        key = (request.source_type, request.source_id)
        async with self._source_locks.hold(key):
            exists = await self._timed(
                self._vector_store.exists_for_source(request.source_type, request.source_id),
                "exists_for_source",
            )
            if exists:
                logger.debug("short_text_skipped_exists", source_id=request.source_id)
                return False

            vector = await self._timed(
                self._embedding_provider.embed_single(request.content),
                "embed_single",
            )
            self._check_dimensions([vector])

            chunk = DocumentChunk(
                chunk_id=chunk_id_for(request.source_type, request.source_id, 0),
                source_type=request.source_type,
                source_id=request.source_id,
                scope=request.scope,
                content=request.content,
                chunk_index=0,
                chunk_total=1,
                embedding=vector,
                metadata=dict(request.metadata),
            )
            await self._timed(self._vector_store.upsert_chunks([chunk]), "upsert_chunks")

        logger.info(
            "short_text_indexed",
            source_type=request.source_type.value,
            source_id=request.source_id,
            room_id=request.scope.room_id,
        )
        return True

    async def delete_by_source(self, source_type: SourceType, source_id: str) -> int:
        """Remove every chunk of one source."""
        async with self._source_locks.hold((source_type, source_id)):
            deleted = await self._timed(
                self._vector_store.delete_by_source(source_type, source_id),
                "delete_by_source",
            )
        logger.info(
            "source_embeddings_deleted",
            source_type=source_type.value,
            source_id=source_id,
            deleted=deleted,
        )
        return deleted

    async def delete_by_room(self, room_id: str) -> int:
        """Remove every chunk of a room."""
        deleted = await self._timed(self._vector_store.delete_by_scope(room_id), "delete_by_scope")
        logger.info("room_embeddings_deleted", room_id=room_id, deleted=deleted)
        return deleted

    async def get_room_stats(self, room_id: str) -> RoomStats:
        total = await self._timed(self._vector_store.count_by_scope(room_id), "count_by_scope")
        return RoomStats(total_embeddings=total)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _replace(
        self,
        request: IndexRequest,
        segments: list[str],
        metadatas: list[dict[str, Any]],
    ) -> IndexDocumentResult:
        key = (request.source_type, request.source_id)
        async with self._source_locks.hold(key):
            if not segments:
                removed = await self._timed(
                    self._vector_store.delete_by_source(request.source_type, request.source_id),
                    "delete_by_source",
                )
                logger.info(
                    "document_index_empty",
                    source_type=request.source_type.value,
                    source_id=request.source_id,
                    stale_removed=removed,
                )
                return IndexDocumentResult(chunks_created=0)

            embeddings = await self._timed(
                self._embedding_provider.embed(segments), "embed_batch"
            )
            if len(embeddings) != len(segments):
                raise RAGError(
                    message=(
                        f"Embedding count mismatch: {len(segments)} chunks but "
                        f"{len(embeddings)} vectors"
                    ),
                    provider_name=self._embedding_provider.get_provider_name(),
                )
            self._check_dimensions(embeddings)

            created_at = datetime.now(timezone.utc)
            total = len(segments)
            chunks = [
                DocumentChunk(
                    chunk_id=chunk_id_for(request.source_type, request.source_id, index),
                    source_type=request.source_type,
                    source_id=request.source_id,
                    scope=request.scope,
                    content=segment,
                    chunk_index=index,
                    chunk_total=total,
                    embedding=vector,
                    metadata=metadata,
                    created_at=created_at,
                )
                for index, (segment, vector, metadata) in enumerate(
                    zip(segments, embeddings, metadatas, strict=True)
                )
            ]
            written = await self._timed(
                self._vector_store.replace_source(request.source_type, request.source_id, chunks),
                "replace_source",
            )

        logger.info(
            "document_indexed",
            source_type=request.source_type.value,
            source_id=request.source_id,
            room_id=request.scope.room_id,
            chunks=written,
        )
        return IndexDocumentResult(chunks_created=written)

    def _check_dimensions(self, vectors: list[list[float]]) -> None:
        expected = self._embedding_provider.get_dimension()
        for vector in vectors:
            if len(vector) != expected:
                raise ConfigurationError(
                    message=(
                        f"Embedding dimension mismatch: provider declares {expected} "
                        f"but returned a {len(vector)}-dim vector"
                    ),
                    provider_name=self._embedding_provider.get_provider_name(),
                )

    async def _timed(self, awaitable, operation: str):  # noqa: ANN001, ANN202
        return await with_timeout(awaitable, self._call_timeout, operation)
