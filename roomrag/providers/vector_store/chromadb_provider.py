"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement
:class:`IVectorStoreProvider`.  Uses cosine distance; similarity is
reported as ``1 - distance`` clamped to ``[0, 1]``.  Fully local, no
external service required.

Each chunk is one Chroma record keyed by ``chunk_id``.  Tenant scope,
source identity and position are stored as flat metadata so every read and
delete can be expressed as a ``where`` clause.  The free-form chunk
metadata bag is serialized to JSON under ``metadata_json`` because Chroma
metadata values must be scalars.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

import chromadb
import structlog

from roomrag.interfaces.vector_store_provider import IVectorStoreProvider
from roomrag.models.rag import DocumentChunk, SearchFilters, SearchResult, SourceType, TenantScope
from roomrag.utils.errors import ConfigurationError, RAGError

logger = structlog.get_logger(logger_name=__name__)

# Over-fetch factor: the store ranks, the service re-filters.
_FETCH_MULTIPLIER = 3


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    roomrag always passes pre-computed embeddings, so ChromaDB's built-in
    embedding is never invoked.  Without this, ChromaDB downloads its
    default ONNX model on collection creation.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "roomrag uses pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store backed by ChromaDB with local persistence.

    Parameters
    ----------
    persist_directory:
        Where ChromaDB keeps its SQLite and index files.
    collection_name:
        Collection holding every tenant's chunks.
    dimension:
        Expected embedding dimension.  When given, writes with a different
        dimension and a pre-existing collection of a different dimension
        raise :class:`ConfigurationError`.

    ``replace_source`` is a delete followed by an upsert and is not atomic
    for concurrent readers; the indexer serializes writers per source.
    """

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "roomrag_chunks",
        dimension: int | None = None,
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._dimension = dimension
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # Collections created by other ChromaDB versions may carry a
        # persisted embedding function that conflicts with the no-op one.
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )
        self._validate_embedding_dimensions()

    # ------------------------------------------------------------------
    # Startup validation
    # ------------------------------------------------------------------

    def _validate_embedding_dimensions(self) -> None:
        """Compare one stored vector with the expected dimension; fail fast."""
        if self._dimension is None:
            return
        try:
            if self._collection.count() == 0:
                return
            sample = self._collection.peek(limit=1)
            embeddings = sample.get("embeddings") if sample else None
            if embeddings is None or len(embeddings) == 0:
                return
            stored_dim = len(embeddings[0])
        except Exception as exc:
            logger.warning("embedding_dimension_check_skipped", error=str(exc))
            return

        if stored_dim != self._dimension:
            logger.error(
                "embedding_dimension_mismatch",
                stored_dim=stored_dim,
                expected_dim=self._dimension,
            )
            raise ConfigurationError(
                message=(
                    f"Embedding dimension mismatch: collection '{self._collection_name}' "
                    f"has {stored_dim}-dim vectors but the embedding provider produces "
                    f"{self._dimension}-dim vectors"
                ),
                provider_name=self.get_provider_name(),
            )
        logger.info("embedding_dimension_validated", dimension=stored_dim)

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def upsert_chunks(self, chunks: list[DocumentChunk], batch_size: int = 500) -> int:
        """Upsert pre-embedded chunks in batches of *batch_size*."""
        if not chunks:
            return 0
        self._check_dimensions(chunks)
        try:
            for start in range(0, len(chunks), batch_size):
                batch = chunks[start : start + batch_size]
                self._collection.upsert(
                    ids=[c.chunk_id for c in batch],
                    embeddings=[c.embedding for c in batch],
                    documents=[c.content for c in batch],
                    metadatas=[self._chunk_to_metadata(c) for c in batch],
                )
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("chromadb_upsert_chunks", count=len(chunks))
        return len(chunks)

    async def replace_source(
        self,
        source_type: SourceType,
        source_id: str,
        chunks: list[DocumentChunk],
    ) -> int:
        self._check_dimensions(chunks)
        await self.delete_by_source(source_type, source_id)
        return await self.upsert_chunks(chunks)

    async def delete_by_source(self, source_type: SourceType, source_id: str) -> int:
        return self._delete_where(self._source_where(source_type, source_id), "delete_by_source")

    async def delete_by_scope(self, room_id: str) -> int:
        return self._delete_where({"room_id": room_id}, "delete_by_scope")

    async def similarity_search(
        self,
        query_vector: list[float],
        filters: SearchFilters,
    ) -> list[SearchResult]:
        """Query the collection restricted by scope and source types."""
        try:
            total = self._collection.count()
            if total == 0:
                return []
            kwargs: dict[str, Any] = {
                "query_embeddings": [query_vector],
                "n_results": min(total, filters.limit * _FETCH_MULTIPLIER),
                "include": ["documents", "metadatas", "distances"],
            }
            where = self._translate_filters(filters)
            if where:
                kwargs["where"] = where
            results = self._collection.query(**kwargs)
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results["ids"] or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        documents = results["documents"][0] if results["documents"] else [""] * len(ids)
        metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(ids)
        distances = results["distances"][0] if results["distances"] else [1.0] * len(ids)

        matches: list[SearchResult] = []
        for chunk_id, text, meta, distance in zip(ids, documents, metadatas, distances, strict=True):
            similarity = max(0.0, min(1.0, 1.0 - distance))
            if similarity < filters.min_similarity:
                continue
            matches.append(
                SearchResult(chunk=self._metadata_to_chunk(chunk_id, meta, text), similarity=similarity)
            )

        matches.sort(key=lambda r: (r.similarity, r.chunk.created_at), reverse=True)
        matches = matches[: filters.limit]
        logger.debug(
            "chromadb_query",
            raw_results=len(ids),
            results_count=len(matches),
            top_score=matches[0].similarity if matches else 0.0,
        )
        return matches

    async def count_by_scope(self, room_id: str) -> int:
        try:
            existing = self._collection.get(where={"room_id": room_id}, include=[])
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB count failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return len(existing["ids"]) if existing["ids"] else 0

    async def exists_for_source(self, source_type: SourceType, source_id: str) -> bool:
        try:
            existing = self._collection.get(
                where=self._source_where(source_type, source_id), limit=1, include=[]
            )
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB lookup failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return bool(existing["ids"])

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB collection is accessible."""
        try:
            self._collection.count()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _check_dimensions(self, chunks: list[DocumentChunk]) -> None:
        if self._dimension is None:
            return
        for chunk in chunks:
            if len(chunk.embedding) != self._dimension:
                raise ConfigurationError(
                    message=(
                        f"Chunk {chunk.chunk_id} has a {len(chunk.embedding)}-dim embedding, "
                        f"collection expects {self._dimension}"
                    ),
                    provider_name=self.get_provider_name(),
                )

    def _delete_where(self, where: dict[str, Any], operation: str) -> int:
        try:
            existing = self._collection.get(where=where, include=[])
            count = len(existing["ids"]) if existing["ids"] else 0
            if count > 0:
                self._collection.delete(ids=existing["ids"])
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB {operation} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info(f"chromadb_{operation}", where=where, deleted_count=count)
        return count

    @staticmethod
    def _source_where(source_type: SourceType, source_id: str) -> dict[str, Any]:
        return {"$and": [{"source_type": source_type.value}, {"source_id": source_id}]}

    @staticmethod
    def _translate_filters(filters: SearchFilters) -> dict[str, Any] | None:
        """Translate search filters into a ChromaDB ``where`` clause."""
        clauses: list[dict[str, Any]] = []
        if filters.org_id:
            clauses.append({"org_id": filters.org_id})
        if len(filters.room_ids) == 1:
            clauses.append({"room_id": filters.room_ids[0]})
        elif filters.room_ids:
            clauses.append({"room_id": {"$in": list(filters.room_ids)}})
        if filters.source_types:
            clauses.append({"source_type": {"$in": [t.value for t in filters.source_types]}})

        if not clauses:
            return None
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}

    @staticmethod
    def _chunk_to_metadata(chunk: DocumentChunk) -> dict[str, str | int | float | bool]:
        """Flatten a chunk into ChromaDB-compatible scalar metadata."""
        created_at = chunk.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return {
            "org_id": chunk.scope.org_id,
            "room_id": chunk.scope.room_id,
            "source_type": chunk.source_type.value,
            "source_id": chunk.source_id,
            "chunk_index": chunk.chunk_index,
            "chunk_total": chunk.chunk_total,
            "created_at": created_at.isoformat(),
            "created_at_ts": created_at.timestamp(),
            "metadata_json": json.dumps(chunk.metadata, default=str),
        }

    @staticmethod
    def _metadata_to_chunk(chunk_id: str, meta: dict[str, Any], text: str) -> DocumentChunk:
        """Rebuild a chunk (without its vector) from stored metadata."""
        raw_created = meta.get("created_at")
        created_at = (
            datetime.fromisoformat(raw_created) if raw_created else datetime.now(timezone.utc)
        )
        try:
            extra = json.loads(meta.get("metadata_json") or "{}")
        except json.JSONDecodeError:
            extra = {}
        return DocumentChunk(
            chunk_id=chunk_id,
            source_type=SourceType(meta.get("source_type", SourceType.DOCUMENT.value)),
            source_id=meta.get("source_id", ""),
            scope=TenantScope(org_id=meta.get("org_id", ""), room_id=meta.get("room_id", "")),
            content=text or "",
            chunk_index=int(meta.get("chunk_index", 0)),
            chunk_total=int(meta.get("chunk_total", 1)),
            metadata=extra,
            created_at=created_at,
        )
