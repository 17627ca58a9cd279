"""Unit tests for the OpenAI-compatible adapters and the HTTP file downloader.

The SDK client is replaced by a mock after construction, so no network
access is needed.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from roomrag.config.settings import Settings
from roomrag.models.llm import ChatMessage, LLMConfig
from roomrag.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from roomrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from roomrag.providers.llm.ollama_provider import OllamaLLMProvider
from roomrag.providers.llm.openai_provider import OpenAILLMProvider
from roomrag.providers.storage.http_file_downloader import HttpFileDownloader
from roomrag.providers.transcription.whisper_api_provider import WhisperAPIProvider
from roomrag.utils.errors import (
    DownloadError,
    LLMError,
    ProviderTimeoutError,
    RAGError,
    RateLimitError,
    TranscriptionError,
)

_REQUEST = httpx.Request("POST", "https://api.example.com/v1/chat/completions")


def _settings(**overrides) -> Settings:
    values = {"openai_api_key": "sk-test", "openai_base_url": ""}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def _completion(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(total_tokens=42),
    )


def _delta(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


class _FakeStream:
    """Async-iterable stand-in for the SDK's streaming response."""

    def __init__(self, events: list, error: Exception | None = None) -> None:
        self._events = events
        self._error = error
        self.closed = False

    def __aiter__(self):  # noqa: ANN204
        return self._iterate()

    async def _iterate(self):  # noqa: ANN202
        for event in self._events:
            yield event
        if self._error is not None:
            raise self._error

    async def close(self) -> None:
        self.closed = True


def _mock_client(provider, create: AsyncMock) -> MagicMock:  # noqa: ANN001
    client = MagicMock()
    client.chat.completions.create = create
    provider._client = client
    return client


_MESSAGES = [ChatMessage(role="system", content="Be brief."), ChatMessage(role="user", content="Hi?")]


# ── Chat ──────────────────────────────────────────────────


class TestOpenAIChat:
    @pytest.mark.asyncio
    async def test_returns_content(self) -> None:
        provider = OpenAILLMProvider(_settings())
        create = AsyncMock(return_value=_completion("Hello."))
        _mock_client(provider, create)

        answer = await provider.chat(_MESSAGES, LLMConfig(temperature=0.1, max_tokens=50))

        assert answer == "Hello."
        kwargs = create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["temperature"] == 0.1
        assert kwargs["max_tokens"] == 50
        assert kwargs["messages"] == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Hi?"},
        ]

    @pytest.mark.asyncio
    async def test_config_model_overrides_default(self) -> None:
        provider = OpenAILLMProvider(_settings(openai_chat_model="gpt-4o"))
        create = AsyncMock(return_value=_completion("ok"))
        _mock_client(provider, create)

        await provider.chat(_MESSAGES, LLMConfig(model_name="custom-model"))

        assert create.await_args.kwargs["model"] == "custom-model"

    @pytest.mark.asyncio
    async def test_empty_content_raises(self) -> None:
        provider = OpenAILLMProvider(_settings())
        _mock_client(provider, AsyncMock(return_value=_completion(None)))

        with pytest.raises(LLMError, match="empty response"):
            await provider.chat(_MESSAGES)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("sdk_error", "expected"),
        [
            (openai.APITimeoutError(request=_REQUEST), ProviderTimeoutError),
            (
                openai.RateLimitError(
                    "slow down", response=httpx.Response(429, request=_REQUEST), body=None
                ),
                RateLimitError,
            ),
            (openai.APIConnectionError(request=_REQUEST), LLMError),
        ],
    )
    async def test_sdk_errors_are_wrapped(self, sdk_error: Exception, expected: type) -> None:
        provider = OpenAILLMProvider(_settings())
        _mock_client(provider, AsyncMock(side_effect=sdk_error))

        with pytest.raises(expected) as info:
            await provider.chat(_MESSAGES)
        assert info.value.provider_name == "openai"

    def test_labels(self) -> None:
        assert OpenAILLMProvider(_settings()).get_provider_name() == "openai"
        custom = OpenAILLMProvider(_settings(openai_base_url="https://llm.internal/v1"))
        assert custom.get_provider_name() == "openai-compatible"
        assert OpenAILLMProvider(_settings(openai_api_key="")).is_available() is False

    def test_empty_key_builds_unavailable_provider(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        provider = OpenAILLMProvider(_settings(openai_api_key=""))

        assert provider.is_available() is False
        assert provider.get_provider_name() == "openai"


class TestOpenAIChatStream:
    @pytest.mark.asyncio
    async def test_yields_non_empty_deltas_and_closes(self) -> None:
        provider = OpenAILLMProvider(_settings())
        stream = _FakeStream(
            [_delta("The "), SimpleNamespace(choices=[]), _delta(None), _delta("answer")]
        )
        create = AsyncMock(return_value=stream)
        _mock_client(provider, create)

        fragments = [f async for f in provider.chat_stream(_MESSAGES)]

        assert fragments == ["The ", "answer"]
        assert create.await_args.kwargs["stream"] is True
        assert stream.closed is True

    @pytest.mark.asyncio
    async def test_early_close_closes_http_stream(self) -> None:
        provider = OpenAILLMProvider(_settings())
        stream = _FakeStream([_delta(f"t{i}") for i in range(10)])
        _mock_client(provider, AsyncMock(return_value=stream))

        generator = provider.chat_stream(_MESSAGES)
        assert await generator.__anext__() == "t0"
        await generator.aclose()

        assert stream.closed is True

    @pytest.mark.asyncio
    async def test_midstream_sdk_error_is_wrapped(self) -> None:
        provider = OpenAILLMProvider(_settings())
        stream = _FakeStream([_delta("partial")], error=openai.APIConnectionError(request=_REQUEST))
        _mock_client(provider, AsyncMock(return_value=stream))

        received = []
        with pytest.raises(LLMError):
            async for fragment in provider.chat_stream(_MESSAGES):
                received.append(fragment)

        assert received == ["partial"]
        assert stream.closed is True


class TestOllama:
    def test_points_at_local_server(self) -> None:
        provider = OllamaLLMProvider(_settings(ollama_base_url="http://ollama:11434/"))

        assert provider.get_provider_name() == "ollama"
        assert provider.is_available() is True
        assert str(provider._client.base_url).rstrip("/") == "http://ollama:11434/v1"
        assert provider._model == "llama3.1"


# ── Embeddings ────────────────────────────────────────────


class TestOpenAIEmbeddings:
    @pytest.mark.asyncio
    async def test_vectors_follow_input_order(self) -> None:
        provider = OpenAIEmbeddingProvider(_settings())
        response = SimpleNamespace(
            data=[
                SimpleNamespace(index=1, embedding=[0.0, 1.0]),
                SimpleNamespace(index=0, embedding=[1.0, 0.0]),
            ],
            usage=None,
        )
        client = MagicMock()
        client.embeddings.create = AsyncMock(return_value=response)
        provider._client = client

        vectors = await provider.embed(["first", "second"])

        assert vectors == [[1.0, 0.0], [0.0, 1.0]]
        client.embeddings.create.assert_awaited_once_with(
            input=["first", "second"], model="text-embedding-3-small"
        )

    @pytest.mark.asyncio
    async def test_empty_input_makes_no_call(self) -> None:
        provider = OpenAIEmbeddingProvider(_settings())
        provider._client = MagicMock()

        assert await provider.embed([]) == []
        provider._client.embeddings.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_api_error_becomes_rag_error(self) -> None:
        provider = OpenAIEmbeddingProvider(_settings())
        client = MagicMock()
        client.embeddings.create = AsyncMock(side_effect=openai.APIConnectionError(request=_REQUEST))
        provider._client = client

        with pytest.raises(RAGError):
            await provider.embed(["text"])

    def test_dimensions_and_labels(self) -> None:
        assert OpenAIEmbeddingProvider(_settings()).get_dimension() == 1536
        large = OpenAIEmbeddingProvider(_settings(openai_embedding_model="text-embedding-3-large"))
        assert large.get_dimension() == 3072
        custom = OpenAIEmbeddingProvider(
            _settings(openai_base_url="https://emb.internal/v1", openai_embedding_model="my-model")
        )
        assert custom.get_dimension() == 768
        assert custom.get_provider_name() == "openai-compatible_embedding"

    def test_empty_key_builds_unavailable_provider(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        provider = OpenAIEmbeddingProvider(_settings(openai_api_key=""))

        assert provider.is_available() is False
        assert provider.get_dimension() == 1536

    def test_nomic(self) -> None:
        provider = NomicEmbeddingProvider(_settings())
        assert provider.get_dimension() == 768
        assert provider.get_provider_name() == "nomic_embedding"


# ── Transcription ─────────────────────────────────────────


class TestWhisper:
    @pytest.mark.asyncio
    async def test_transcribes_text_response(self) -> None:
        provider = WhisperAPIProvider(api_key="sk-test")
        client = MagicMock()
        client.audio.transcriptions.create = AsyncMock(return_value="hello from the standup")
        provider._client = client

        result = await provider.transcribe(b"\x00\x01", "standup.m4a", language="en")

        assert result.text == "hello from the standup"
        assert result.model == "whisper-1"
        kwargs = client.audio.transcriptions.create.await_args.kwargs
        assert kwargs["file"].name == "standup.m4a"
        assert kwargs["language"] == "en"
        assert kwargs["response_format"] == "text"

    @pytest.mark.asyncio
    async def test_api_error_becomes_transcription_error(self) -> None:
        provider = WhisperAPIProvider(api_key="sk-test")
        client = MagicMock()
        client.audio.transcriptions.create = AsyncMock(
            side_effect=openai.APIConnectionError(request=_REQUEST)
        )
        provider._client = client

        with pytest.raises(TranscriptionError):
            await provider.transcribe(b"\x00", "clip.mp3")

    def test_without_key_is_unavailable(self) -> None:
        assert WhisperAPIProvider(api_key="").is_available() is False


# ── Downloads ─────────────────────────────────────────────


def _downloader(handler, max_bytes: int = 1024) -> HttpFileDownloader:  # noqa: ANN001
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpFileDownloader(client, timeout=5.0, max_bytes=max_bytes)


class TestHttpFileDownloader:
    @pytest.mark.asyncio
    async def test_returns_body(self) -> None:
        downloader = _downloader(lambda request: httpx.Response(200, content=b"file bytes"))

        assert await downloader.fetch("https://files.example.com/a") == b"file bytes"

    @pytest.mark.asyncio
    async def test_http_error_status(self) -> None:
        downloader = _downloader(lambda request: httpx.Response(403, content=b"denied"))

        with pytest.raises(DownloadError, match="HTTP 403"):
            await downloader.fetch("https://files.example.com/a")

    @pytest.mark.asyncio
    async def test_oversized_body_is_rejected(self) -> None:
        downloader = _downloader(lambda request: httpx.Response(200, content=b"x" * 2048))

        with pytest.raises(DownloadError, match="exceeds"):
            await downloader.fetch("https://files.example.com/big")

    @pytest.mark.asyncio
    async def test_transport_error(self) -> None:
        def _refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(DownloadError, match="connection refused"):
            await _downloader(_refuse).fetch("https://files.example.com/a")
