"""Unit tests for the composition root."""

from __future__ import annotations

import pytest

from roomrag.config.settings import Settings
from roomrag.main import build_components
from roomrag.models.content import Room
from roomrag.models.llm import LLMConfig
from roomrag.providers.content.json_export_content_store import JsonExportContentStore
from roomrag.providers.llm.ollama_provider import OllamaLLMProvider
from roomrag.providers.vector_store.memory_store import InMemoryVectorStore
from roomrag.utils.errors import ConfigurationError
from tests.conftest import FakeEmbeddingProvider, FakeLLM


def _settings(**values) -> Settings:
    return Settings(_env_file=None, **values)


class TestBuildComponents:
    @pytest.mark.asyncio
    async def test_memory_backend_wiring(self) -> None:
        components = build_components(
            settings=_settings(openai_api_key="", vector_store_backend="memory"),
            config={"chunking": {"pdf": {"chunk_size": 1500, "overlap": 300}}},
            embedding_provider=FakeEmbeddingProvider(),
            llm=FakeLLM(),
        )
        try:
            assert isinstance(components.vector_store, InMemoryVectorStore)
            assert components.transcriber is None
            assert components.registry.can_process("application/pdf")
            assert components.registry.can_process("text/markdown")
            assert components.registry.can_process("video/mp4")
            assert (await components.rag_service.get_room_stats("r1")).total_embeddings == 0
        finally:
            await components.aclose()

    @pytest.mark.asyncio
    async def test_key_enables_whisper(self) -> None:
        components = build_components(
            settings=_settings(openai_api_key="sk-test", vector_store_backend="memory"),
            config={},
            embedding_provider=FakeEmbeddingProvider(),
            llm=FakeLLM(),
        )
        try:
            assert components.transcriber is not None
            assert components.transcriber.get_provider_name() == "whisper_api"
            assert components.registry.can_process("audio/mpeg")
        finally:
            await components.aclose()

    @pytest.mark.asyncio
    async def test_default_window_comes_from_config(self) -> None:
        components = build_components(
            settings=_settings(vector_store_backend="memory", chunk_size=900),
            config={"chunking": {"default": {"chunk_size": 400, "overlap": 40}}},
            embedding_provider=FakeEmbeddingProvider(),
            llm=FakeLLM(),
        )
        try:
            assert components.indexer._chunker.chunk_size == 400
            assert components.indexer._chunker.overlap == 40
        finally:
            await components.aclose()

    @pytest.mark.asyncio
    async def test_default_window_falls_back_to_settings(self) -> None:
        components = build_components(
            settings=_settings(vector_store_backend="memory", chunk_size=900, chunk_overlap=100),
            config={"chunking": {"pdf": {"chunk_size": 1500, "overlap": 300}}},
            embedding_provider=FakeEmbeddingProvider(),
            llm=FakeLLM(),
        )
        try:
            assert components.indexer._chunker.chunk_size == 900
            assert components.indexer._chunker.overlap == 100
        finally:
            await components.aclose()

    @pytest.mark.asyncio
    async def test_content_store_supplies_room_settings(self) -> None:
        store = JsonExportContentStore(
            rooms=[Room(id="r1", org_id="o1", llm_config=LLMConfig(model_name="room-model"))],
            messages=[],
        )
        components = build_components(
            settings=_settings(vector_store_backend="memory"),
            content_store=store,
            config={},
            embedding_provider=FakeEmbeddingProvider(),
            llm=FakeLLM(),
        )
        try:
            assert components.rag_service._room_config_store is store
        finally:
            await components.aclose()

    def test_unknown_backend(self) -> None:
        with pytest.raises(ConfigurationError):
            build_components(
                settings=_settings(vector_store_backend="pinecone"),
                config={},
                embedding_provider=FakeEmbeddingProvider(),
                llm=FakeLLM(),
            )

    @pytest.mark.asyncio
    async def test_ollama_is_the_llm_without_key(self) -> None:
        components = build_components(
            settings=_settings(openai_api_key="", vector_store_backend="memory"),
            config={},
            embedding_provider=FakeEmbeddingProvider(),
        )
        try:
            assert isinstance(components.llm, OllamaLLMProvider)
        finally:
            await components.aclose()
