"""In-process vector store using numpy cosine similarity.

Used by tests and for ephemeral runs (``VECTOR_STORE_BACKEND=memory``).
Nothing is persisted.  All mutations run under one ``asyncio.Lock``, so
``replace_source`` is atomic with respect to concurrent searches.
"""

from __future__ import annotations

import asyncio

import numpy as np
import structlog

from roomrag.interfaces.vector_store_provider import IVectorStoreProvider
from roomrag.models.rag import DocumentChunk, SearchFilters, SearchResult, SourceType
from roomrag.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


class InMemoryVectorStore(IVectorStoreProvider):
    """Dict-backed vector store.

    The dimension is fixed by the constructor or, when omitted, by the
    first chunk written.
    """

    def __init__(self, dimension: int | None = None) -> None:
        self._dimension = dimension
        self._chunks: dict[str, DocumentChunk] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._chunks)

    async def upsert_chunks(self, chunks: list[DocumentChunk]) -> int:
        async with self._lock:
            self._check_dimensions(chunks)
            for chunk in chunks:
                self._chunks[chunk.chunk_id] = chunk
        return len(chunks)

    async def replace_source(
        self,
        source_type: SourceType,
        source_id: str,
        chunks: list[DocumentChunk],
    ) -> int:
        async with self._lock:
            self._check_dimensions(chunks)
            self._remove(lambda c: c.source_type is source_type and c.source_id == source_id)
            for chunk in chunks:
                self._chunks[chunk.chunk_id] = chunk
        return len(chunks)

    async def delete_by_source(self, source_type: SourceType, source_id: str) -> int:
        async with self._lock:
            return self._remove(
                lambda c: c.source_type is source_type and c.source_id == source_id
            )

    async def delete_by_scope(self, room_id: str) -> int:
        async with self._lock:
            return self._remove(lambda c: c.scope.room_id == room_id)

    async def similarity_search(
        self,
        query_vector: list[float],
        filters: SearchFilters,
    ) -> list[SearchResult]:
        async with self._lock:
            candidates = [c for c in self._chunks.values() if filters.matches(c)]
        if not candidates:
            return []

        query = np.asarray(query_vector, dtype=np.float64)
        matrix = np.asarray([c.embedding for c in candidates], dtype=np.float64)
        if matrix.shape[1] != query.shape[0]:
            raise ConfigurationError(
                message=(
                    f"Query vector has {query.shape[0]} dimensions, "
                    f"stored vectors have {matrix.shape[1]}"
                ),
                provider_name=self.get_provider_name(),
            )
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        with np.errstate(divide="ignore", invalid="ignore"):
            scores = np.where(norms > 0, matrix @ query / norms, 0.0)
        scores = np.clip(scores, 0.0, 1.0)

        results = [
            SearchResult(chunk=chunk, similarity=float(score))
            for chunk, score in zip(candidates, scores)
            if score >= filters.min_similarity
        ]
        results.sort(key=lambda r: (r.similarity, r.chunk.created_at), reverse=True)
        return results[: filters.limit]

    async def count_by_scope(self, room_id: str) -> int:
        return sum(1 for c in self._chunks.values() if c.scope.room_id == room_id)

    async def exists_for_source(self, source_type: SourceType, source_id: str) -> bool:
        return any(
            c.source_type is source_type and c.source_id == source_id
            for c in self._chunks.values()
        )

    def get_provider_name(self) -> str:
        return "memory"

    def is_available(self) -> bool:
        return True

    # ------------------------------------------------------------------
    # Internals (callers hold the lock)
    # ------------------------------------------------------------------

    def _check_dimensions(self, chunks: list[DocumentChunk]) -> None:
        for chunk in chunks:
            if self._dimension is None:
                self._dimension = len(chunk.embedding)
            if len(chunk.embedding) != self._dimension:
                raise ConfigurationError(
                    message=(
                        f"Chunk {chunk.chunk_id} has a {len(chunk.embedding)}-dim embedding, "
                        f"store expects {self._dimension}"
                    ),
                    provider_name=self.get_provider_name(),
                )

    def _remove(self, predicate) -> int:  # noqa: ANN001
        doomed = [cid for cid, chunk in self._chunks.items() if predicate(chunk)]
        for cid in doomed:
            del self._chunks[cid]
        if doomed:
            logger.debug("memory_store_deleted", count=len(doomed))
        return len(doomed)
