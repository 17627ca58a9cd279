"""Abstract base class for vector-store service providers.

Defines the narrow access pattern the RAG layer needs: write a source's
chunks, replace them, delete by source or room, count, and rank stored
vectors against a query vector under tenant-scope filters.  Backend
specifics (ChromaDB collections, SQL, pgvector) stay inside the adapter.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from roomrag.models.rag import DocumentChunk, SearchFilters, SearchResult, SourceType


# Concrete implementations (roomrag/providers/vector_store/):
#   ChromaDBProvider    -- persistent, cosine-space collection on local disk
#   InMemoryVectorStore -- numpy cosine over an in-process dict; tests and
#                          ephemeral runs
class IVectorStoreProvider(ABC):
    """Contract for the vector store shared by indexing and search.

    All methods are async so network-backed stores never block the loop.
    Every chunk carries its tenant scope; :meth:`similarity_search` must
    never return a chunk outside ``filters``.
    """

    @abstractmethod
    async def upsert_chunks(self, chunks: list[DocumentChunk]) -> int:
        """Insert or overwrite *chunks* keyed by ``chunk_id``.

        Every chunk must carry an embedding of the store's dimension.

        Returns
        -------
        int
            Number of chunks written.

        Raises
        ------
        roomrag.utils.errors.ConfigurationError
            If an embedding's dimension differs from the store's.
        roomrag.utils.errors.RAGError
            If the write fails.
        """

    @abstractmethod
    async def replace_source(
        self,
        source_type: SourceType,
        source_id: str,
        chunks: list[DocumentChunk],
    ) -> int:
        """Replace every chunk of ``(source_type, source_id)`` with *chunks*.

        Stores that support it do this atomically with respect to readers.
        Stores that cannot must document it; the indexer serializes calls
        per source either way.  An empty *chunks* list just deletes.

        Returns
        -------
        int
            Number of chunks written.
        """

    @abstractmethod
    async def delete_by_source(self, source_type: SourceType, source_id: str) -> int:
        """Delete all chunks of one source and return how many were removed."""

    @abstractmethod
    async def delete_by_scope(self, room_id: str) -> int:
        """Delete all chunks of a room and return how many were removed."""

    @abstractmethod
    async def similarity_search(
        self,
        query_vector: list[float],
        filters: SearchFilters,
    ) -> list[SearchResult]:
        """Rank stored chunks against *query_vector*.

        Parameters
        ----------
        query_vector:
            Embedding of the query; same dimension as stored vectors.
        filters:
            Tenant scope, optional source types, ``limit`` and
            ``min_similarity``.

        Returns
        -------
        list[SearchResult]
            At most ``filters.limit`` results with
            ``similarity >= filters.min_similarity``, ordered by similarity
            descending, ties broken by newer ``created_at`` first.
        """

    @abstractmethod
    async def count_by_scope(self, room_id: str) -> int:
        """Return the number of chunks stored for a room."""

    @abstractmethod
    async def exists_for_source(self, source_type: SourceType, source_id: str) -> bool:
        """Return ``True`` if at least one chunk exists for the source."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"chromadb"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store is reachable."""
