"""Unit tests for AnswerStreamCoordinator -- the sources/chunk/terminal event protocol."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pytest

from roomrag.models.llm import ChatMessage, LLMConfig
from roomrag.models.rag import AskOptions
from roomrag.models.stream import StreamEvent, StreamEventType
from roomrag.providers.content.json_export_content_store import JsonExportContentStore
from roomrag.services.answer_stream import USER_ERROR_MESSAGE, AnswerStreamCoordinator
from roomrag.services.rag_service import NO_CONTEXT_ANSWER, RAGService
from roomrag.services.similarity_search import SimilaritySearchService
from roomrag.utils.errors import LLMError
from tests.conftest import ORG_ID, ROOM_ID, FakeLLM

_QUESTION = "The product launch is scheduled for Friday at noon"


async def _drain(stream: AsyncIterator[StreamEvent]) -> list[StreamEvent]:
    return [event async for event in stream]


def _types(events: list[StreamEvent]) -> list[StreamEventType]:
    return [e.type for e in events]


async def _index_room(rag_service: RAGService, sample_messages) -> None:  # noqa: ANN001
    for message in sample_messages:
        await rag_service.index_message(message)


class TestEventOrder:
    @pytest.mark.asyncio
    async def test_successful_stream(self, rag_service: RAGService, sample_messages) -> None:
        await _index_room(rag_service, sample_messages)
        coordinator = AnswerStreamCoordinator(rag_service, idle_timeout=None)

        events = await _drain(coordinator.stream(ROOM_ID, ORG_ID, _QUESTION))

        assert _types(events) == [
            StreamEventType.SOURCES,
            StreamEventType.CHUNK,
            StreamEventType.CHUNK,
            StreamEventType.CHUNK,
            StreamEventType.DONE,
        ]
        assert events[0].sources[0].id == "m2"
        assert events[0].used_semantic_retrieval is True
        assert "".join(e.text for e in events if e.type is StreamEventType.CHUNK) == (
            "The launch is on Friday."
        )
        assert events[-1].is_terminal

    @pytest.mark.asyncio
    async def test_call_settings_reach_the_stream(
        self, rag_service: RAGService, fake_llm: FakeLLM, sample_messages  # noqa: ANN001
    ) -> None:
        await _index_room(rag_service, sample_messages)
        coordinator = AnswerStreamCoordinator(rag_service, idle_timeout=None)
        per_call = LLMConfig(model_name="stream-model", temperature=0.1)

        await _drain(coordinator.stream(ROOM_ID, ORG_ID, _QUESTION, AskOptions(llm_config=per_call)))

        assert fake_llm.configs[-1] == per_call

    @pytest.mark.asyncio
    async def test_empty_fragments_are_skipped(
        self, rag_service: RAGService, fake_llm: FakeLLM
    ) -> None:
        fake_llm.fragments = ["", "Hello", "", " world"]
        coordinator = AnswerStreamCoordinator(rag_service, idle_timeout=None)

        events = await _drain(coordinator.stream(ROOM_ID, ORG_ID, "anything new today?"))

        assert [e.text for e in events if e.type is StreamEventType.CHUNK] == ["Hello", " world"]

    @pytest.mark.asyncio
    async def test_no_context_emits_sources_then_done(
        self, search_service: SimilaritySearchService, fake_llm: FakeLLM
    ) -> None:
        service = RAGService(
            search_service, fake_llm, JsonExportContentStore([], []), call_timeout=None
        )
        coordinator = AnswerStreamCoordinator(service, idle_timeout=None)

        events = await _drain(coordinator.stream(ROOM_ID, ORG_ID, "what did we decide?"))

        assert _types(events) == [StreamEventType.SOURCES, StreamEventType.DONE]
        assert events[0].sources == []
        assert events[1].text == NO_CONTEXT_ANSWER
        assert fake_llm.chat_calls == []


class TestFailures:
    @pytest.mark.asyncio
    async def test_midstream_failure_ends_with_error(
        self, rag_service: RAGService, fake_llm: FakeLLM
    ) -> None:
        fake_llm.fail_after = 1
        coordinator = AnswerStreamCoordinator(rag_service, idle_timeout=None)

        events = await _drain(coordinator.stream(ROOM_ID, ORG_ID, "what is the plan?"))

        assert _types(events) == [
            StreamEventType.SOURCES,
            StreamEventType.CHUNK,
            StreamEventType.ERROR,
        ]
        assert events[-1].error.startswith(USER_ERROR_MESSAGE)
        assert "LLMError" in events[-1].error
        assert fake_llm.stream_closed is True

    @pytest.mark.asyncio
    async def test_context_failure_emits_empty_sources_then_error(
        self, rag_service: RAGService
    ) -> None:
        coordinator = AnswerStreamCoordinator(rag_service, idle_timeout=None)

        events = await _drain(coordinator.stream(ROOM_ID, ORG_ID, "?"))

        assert _types(events) == [StreamEventType.SOURCES, StreamEventType.ERROR]
        assert events[0].sources == []
        assert "ValueError" in events[1].error

    @pytest.mark.asyncio
    async def test_stalled_stream_times_out(self, rag_service: RAGService) -> None:
        class _StallingLLM(FakeLLM):
            async def chat_stream(
                self, messages: list[ChatMessage], config: LLMConfig | None = None
            ) -> AsyncIterator[str]:
                yield "partial"
                await asyncio.sleep(10)
                yield "never"

        coordinator = AnswerStreamCoordinator(rag_service, llm=_StallingLLM(), idle_timeout=0.05)

        events = await _drain(coordinator.stream(ROOM_ID, ORG_ID, "what is the plan?"))

        assert _types(events) == [
            StreamEventType.SOURCES,
            StreamEventType.CHUNK,
            StreamEventType.ERROR,
        ]
        assert "ProviderTimeoutError" in events[-1].error


class TestCancellation:
    @pytest.mark.asyncio
    async def test_closing_consumer_closes_upstream(
        self, rag_service: RAGService, fake_llm: FakeLLM
    ) -> None:
        fake_llm.fragments = [f"token{i} " for i in range(50)]
        coordinator = AnswerStreamCoordinator(rag_service, idle_timeout=None)

        stream = coordinator.stream(ROOM_ID, ORG_ID, "what is the plan?")
        received = []
        async for event in stream:
            received.append(event)
            if len(received) == 3:
                break
        await stream.aclose()

        assert fake_llm.stream_closed is True
        assert fake_llm.yielded < 50


class TestCollect:
    @pytest.mark.asyncio
    async def test_collect_joins_chunks(self, rag_service: RAGService, sample_messages) -> None:
        await _index_room(rag_service, sample_messages)
        coordinator = AnswerStreamCoordinator(rag_service, idle_timeout=None)

        result = await coordinator.collect(ROOM_ID, ORG_ID, _QUESTION)

        assert result.answer == "The launch is on Friday."
        assert result.sources[0].id == "m2"
        assert result.used_semantic_retrieval is True

    @pytest.mark.asyncio
    async def test_collect_raises_on_error_event(
        self, rag_service: RAGService, fake_llm: FakeLLM
    ) -> None:
        fake_llm.fail_after = 0
        coordinator = AnswerStreamCoordinator(rag_service, idle_timeout=None)

        with pytest.raises(LLMError):
            await coordinator.collect(ROOM_ID, ORG_ID, "what is the plan?")


class TestPayload:
    def test_payload_shapes(self) -> None:
        assert StreamEvent.for_chunk("hi").to_payload() == {"type": "chunk", "data": "hi"}
        assert StreamEvent.for_done().to_payload() == {"type": "done", "data": None}
        assert StreamEvent.for_error("bad").to_payload() == {"type": "error", "data": "bad"}
        assert StreamEvent.for_sources([]).to_payload() == {"type": "sources", "data": []}
