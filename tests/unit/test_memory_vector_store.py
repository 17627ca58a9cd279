"""Unit tests for the numpy-backed in-memory vector store."""

from __future__ import annotations

import pytest

from roomrag.models.rag import SearchFilters, SourceType
from roomrag.providers.vector_store.memory_store import InMemoryVectorStore
from roomrag.utils.errors import ConfigurationError
from tests.conftest import ORG_ID, ROOM_ID, make_chunk


def _filters(**overrides) -> SearchFilters:
    values = {"org_id": ORG_ID, "room_ids": [ROOM_ID], "limit": 10, "min_similarity": 0.0}
    values.update(overrides)
    return SearchFilters(**values)


class TestWrites:
    @pytest.mark.asyncio
    async def test_upsert_overwrites_by_chunk_id(self) -> None:
        store = InMemoryVectorStore()
        await store.upsert_chunks([make_chunk("m1", "first version")])
        await store.upsert_chunks([make_chunk("m1", "second version")])

        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_dimension_fixed_by_first_write(self) -> None:
        store = InMemoryVectorStore()
        await store.upsert_chunks([make_chunk("m1", "hello", embedding=[1.0, 0.0])])

        with pytest.raises(ConfigurationError):
            await store.upsert_chunks([make_chunk("m2", "world", embedding=[1.0, 0.0, 0.0])])

    @pytest.mark.asyncio
    async def test_replace_source_swaps_whole_chunk_set(self) -> None:
        store = InMemoryVectorStore()
        await store.upsert_chunks(
            [
                make_chunk("d1", "part one", source_type=SourceType.DOCUMENT, chunk_index=0, chunk_total=2),
                make_chunk("d1", "part two", source_type=SourceType.DOCUMENT, chunk_index=1, chunk_total=2),
                make_chunk("m1", "unrelated message"),
            ]
        )

        written = await store.replace_source(
            SourceType.DOCUMENT,
            "d1",
            [make_chunk("d1", "rewritten", source_type=SourceType.DOCUMENT)],
        )

        assert written == 1
        assert len(store) == 2
        assert await store.exists_for_source(SourceType.DOCUMENT, "d1") is True
        assert await store.exists_for_source(SourceType.MESSAGE, "m1") is True

    @pytest.mark.asyncio
    async def test_delete_by_source_is_type_aware(self) -> None:
        store = InMemoryVectorStore()
        await store.upsert_chunks(
            [
                make_chunk("x1", "message x1"),
                make_chunk("x1", "document x1", source_type=SourceType.DOCUMENT),
            ]
        )

        assert await store.delete_by_source(SourceType.MESSAGE, "x1") == 1
        assert await store.exists_for_source(SourceType.MESSAGE, "x1") is False
        assert await store.exists_for_source(SourceType.DOCUMENT, "x1") is True

    @pytest.mark.asyncio
    async def test_delete_and_count_by_scope(self) -> None:
        store = InMemoryVectorStore()
        await store.upsert_chunks(
            [
                make_chunk("m1", "room one a"),
                make_chunk("m2", "room one b"),
                make_chunk("m3", "room two", room_id="room-2"),
            ]
        )

        assert await store.count_by_scope(ROOM_ID) == 2
        assert await store.delete_by_scope(ROOM_ID) == 2
        assert await store.count_by_scope(ROOM_ID) == 0
        assert await store.count_by_scope("room-2") == 1


class TestSimilaritySearch:
    @pytest.mark.asyncio
    async def test_empty_store_returns_nothing(self) -> None:
        store = InMemoryVectorStore()
        assert await store.similarity_search([1.0, 0.0], _filters()) == []

    @pytest.mark.asyncio
    async def test_ranks_by_cosine_similarity(self) -> None:
        store = InMemoryVectorStore()
        await store.upsert_chunks(
            [
                make_chunk("far", "far", embedding=[0.0, 1.0]),
                make_chunk("near", "near", embedding=[1.0, 0.1]),
                make_chunk("exact", "exact", embedding=[2.0, 0.0]),
            ]
        )

        results = await store.similarity_search([1.0, 0.0], _filters())

        assert [r.chunk.source_id for r in results] == ["exact", "near", "far"]
        assert results[0].similarity == pytest.approx(1.0)
        assert results[2].similarity == pytest.approx(0.0)

    @pytest.mark.asyncio
    async def test_negative_similarity_is_clamped(self) -> None:
        store = InMemoryVectorStore()
        await store.upsert_chunks([make_chunk("opposite", "opp", embedding=[-1.0, 0.0])])

        results = await store.similarity_search([1.0, 0.0], _filters())
        assert results[0].similarity == 0.0

    @pytest.mark.asyncio
    async def test_threshold_limit_and_scope(self) -> None:
        store = InMemoryVectorStore()
        await store.upsert_chunks(
            [
                make_chunk("a", "a", embedding=[1.0, 0.0]),
                make_chunk("b", "b", embedding=[1.0, 0.05]),
                make_chunk("c", "c", embedding=[0.0, 1.0]),
                make_chunk("other-room", "o", room_id="room-2", embedding=[1.0, 0.0]),
                make_chunk("other-org", "o", org_id="org-2", embedding=[1.0, 0.0]),
            ]
        )

        results = await store.similarity_search([1.0, 0.0], _filters(min_similarity=0.5, limit=1))

        assert len(results) == 1
        assert results[0].chunk.source_id == "a"

    @pytest.mark.asyncio
    async def test_source_type_filter(self) -> None:
        store = InMemoryVectorStore()
        await store.upsert_chunks(
            [
                make_chunk("m", "m", embedding=[1.0, 0.0]),
                make_chunk("d", "d", source_type=SourceType.DOCUMENT, embedding=[1.0, 0.0]),
            ]
        )

        results = await store.similarity_search(
            [1.0, 0.0], _filters(source_types=[SourceType.DOCUMENT])
        )
        assert [r.chunk.source_id for r in results] == ["d"]

    @pytest.mark.asyncio
    async def test_ties_broken_by_recency(self) -> None:
        store = InMemoryVectorStore()
        await store.upsert_chunks(
            [
                make_chunk("older", "older", minutes=0, embedding=[1.0, 0.0]),
                make_chunk("newer", "newer", minutes=30, embedding=[1.0, 0.0]),
            ]
        )

        results = await store.similarity_search([1.0, 0.0], _filters())
        assert [r.chunk.source_id for r in results] == ["newer", "older"]

    @pytest.mark.asyncio
    async def test_query_dimension_mismatch(self) -> None:
        store = InMemoryVectorStore()
        await store.upsert_chunks([make_chunk("m", "m", embedding=[1.0, 0.0])])

        with pytest.raises(ConfigurationError):
            await store.similarity_search([1.0, 0.0, 0.0], _filters())

    def test_provider_metadata(self) -> None:
        store = InMemoryVectorStore()
        assert store.get_provider_name() == "memory"
        assert store.is_available() is True
