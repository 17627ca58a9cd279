"""Similarity search over indexed chunks.

Embeds a query once and ranks stored chunks against it within a tenant
scope.  The vector store does the heavy lifting; this service re-applies
the result contract (similarity floor, scope, ordering, limit) so callers
get the same guarantees whichever backend is configured.
"""

from __future__ import annotations

import structlog

from roomrag.interfaces.embedding_provider import IEmbeddingProvider
from roomrag.interfaces.vector_store_provider import IVectorStoreProvider
from roomrag.models.rag import SearchFilters, SearchResult
from roomrag.utils.concurrency import with_timeout
from roomrag.utils.errors import ConfigurationError
from roomrag.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)


class SimilaritySearchService:
    """Ranks room content against a natural-language query.

    Parameters
    ----------
    embedding_provider:
        Must be the same provider (model and dimension) used at index time.
    vector_store:
        Store holding the indexed chunks.
    call_timeout:
        Deadline in seconds for the embedding and store calls.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        call_timeout: float | None = 30.0,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._call_timeout = call_timeout

    async def search(self, query_text: str, filters: SearchFilters) -> list[SearchResult]:
        """Return the chunks most similar to *query_text*.

        Returns
        -------
        list[SearchResult]
            At most ``filters.limit`` results, each inside the filter's scope
            with ``similarity >= filters.min_similarity``, ordered by
            similarity descending and newest first on ties.  A blank query
            returns ``[]`` without calling any provider.

        Raises
        ------
        ConfigurationError
            If the query vector's dimension differs from the provider's.
        """
        if not query_text or not query_text.strip():
            return []

        vector = await with_timeout(
            self._embedding_provider.embed_single(query_text),
            self._call_timeout,
            "embed_query",
            provider_name=self._embedding_provider.get_provider_name(),
        )
        expected = self._embedding_provider.get_dimension()
        if len(vector) != expected:
            raise ConfigurationError(
                message=(
                    f"Query embedding has {len(vector)} dimensions, "
                    f"expected {expected}"
                ),
                provider_name=self._embedding_provider.get_provider_name(),
            )

        raw = await with_timeout(
            self._vector_store.similarity_search(vector, filters),
            self._call_timeout,
            "similarity_search",
            provider_name=self._vector_store.get_provider_name(),
        )

        results = [
            r for r in raw
            if r.similarity >= filters.min_similarity and filters.matches(r.chunk)
        ]
        # Two stable sorts: newest first, then by similarity.
        results.sort(key=lambda r: r.chunk.created_at, reverse=True)
        results.sort(key=lambda r: r.similarity, reverse=True)
        results = results[: filters.limit]

        logger.debug(
            "similarity_search_complete",
            query=query_text[:80],
            candidates=len(raw),
            returned=len(results),
            top_similarity=results[0].similarity if results else None,
        )
        return results
