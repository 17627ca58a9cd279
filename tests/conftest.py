"""Shared pytest fixtures for the roomrag test suite."""

from __future__ import annotations

import hashlib
import re
from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone

import pytest

from roomrag.interfaces.access_policy import IAccessPolicy
from roomrag.interfaces.embedding_provider import IEmbeddingProvider
from roomrag.interfaces.llm_provider import ILLMProvider
from roomrag.models.content import Attachment, Message, Room
from roomrag.models.llm import ChatMessage, LLMConfig
from roomrag.models.rag import DocumentChunk, SourceType, TenantScope
from roomrag.providers.content.json_export_content_store import JsonExportContentStore
from roomrag.providers.vector_store.memory_store import InMemoryVectorStore
from roomrag.services.bulk_indexer import BulkIndexer
from roomrag.services.ingestion.chunker import TextChunker
from roomrag.services.ingestion.document_processors import ProcessorRegistry, TextProcessor
from roomrag.services.ingestion.embedding_indexer import EmbeddingIndexer
from roomrag.services.ingestion.ingestion_service import IngestionService
from roomrag.services.rag_service import RAGService
from roomrag.services.similarity_search import SimilaritySearchService
from roomrag.utils.errors import AccessDeniedError, LLMError

ORG_ID = "org-1"
ROOM_ID = "room-1"
BASE_TIME = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)

# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------

_EMBEDDING_DIM = 256


def _bag_of_words_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Deterministic unit vector: every lower-cased word is hashed into a bucket.

    Texts sharing most of their words score close to 1.0 against each other;
    texts with disjoint vocabularies score close to 0.0.
    """
    values = [0.0] * dim
    for word in re.findall(r"[a-z0-9]+", text.lower()):
        bucket = int.from_bytes(hashlib.sha256(word.encode("utf-8")).digest()[:4], "little") % dim
        values[bucket] += 1.0
    magnitude = sum(v * v for v in values) ** 0.5
    if magnitude == 0:
        values[0] = 1.0
        return values
    return [v / magnitude for v in values]


class FakeEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests.

    ``fail_with`` makes every call raise; ``dimension_override`` makes the
    returned vectors disagree with :meth:`get_dimension`.
    """

    def __init__(self, dimension: int = _EMBEDDING_DIM) -> None:
        self._dimension = dimension
        self.batches: list[list[str]] = []
        self.fail_with: Exception | None = None
        self.dimension_override: int | None = None

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if self.fail_with is not None:
            raise self.fail_with
        self.batches.append(list(texts))
        dim = self.dimension_override or self._dimension
        return [_bag_of_words_vector(t, dim) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return (await self.embed([text]))[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "fake-embedding"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# LLM
# ---------------------------------------------------------------------------


class FakeLLM(ILLMProvider):
    """Scripted chat provider.

    ``replies`` are returned by :meth:`chat` in order (exceptions are raised),
    then ``default_reply`` forever.  :meth:`chat_stream` yields ``fragments`` and raises
    ``stream_error`` after ``fail_after`` fragments when both are set.
    """

    def __init__(
        self,
        default_reply: str = "The launch is on Friday.",
        replies: list[str | Exception] | None = None,
        fragments: list[str] | None = None,
    ) -> None:
        self.default_reply = default_reply
        self.replies = list(replies or [])
        self.fragments = list(fragments if fragments is not None else ["The launch ", "is on ", "Friday."])
        self.chat_calls: list[list[ChatMessage]] = []
        self.configs: list[LLMConfig | None] = []
        self.chat_error: Exception | None = None
        self.stream_error: Exception | None = None
        self.fail_after: int | None = None
        self.yielded = 0
        self.stream_closed = False

    async def chat(
        self,
        messages: list[ChatMessage],
        config: LLMConfig | None = None,
    ) -> str:
        self.chat_calls.append(list(messages))
        self.configs.append(config)
        if self.chat_error is not None:
            raise self.chat_error
        if self.replies:
            reply = self.replies.pop(0)
            if isinstance(reply, Exception):
                raise reply
            return reply
        return self.default_reply

    async def chat_stream(
        self,
        messages: list[ChatMessage],
        config: LLMConfig | None = None,
    ) -> AsyncIterator[str]:
        self.chat_calls.append(list(messages))
        self.configs.append(config)
        try:
            for index, fragment in enumerate(self.fragments):
                if self.fail_after is not None and index >= self.fail_after:
                    raise self.stream_error or LLMError(message="stream broke")
                self.yielded += 1
                yield fragment
        finally:
            self.stream_closed = True

    def get_provider_name(self) -> str:
        return "fake-llm"

    def is_available(self) -> bool:
        return True

    async def validate_credentials(self) -> bool:
        return True


class MembersOnlyPolicy(IAccessPolicy):
    def __init__(self, members: dict[str, set[str]]) -> None:
        self._members = members

    async def ensure_member(self, room_id: str, user_id: str) -> None:
        if user_id not in self._members.get(room_id, set()):
            raise AccessDeniedError(message=f"User {user_id} is not a member of room {room_id}")


# ---------------------------------------------------------------------------
# Record builders
# ---------------------------------------------------------------------------


def make_message(
    message_id: str,
    content: str,
    minutes: int = 0,
    room_id: str = ROOM_ID,
    org_id: str = ORG_ID,
    user_id: str = "user-1",
) -> Message:
    """Build a message created *minutes* after ``BASE_TIME``."""
    return Message(
        id=message_id,
        room_id=room_id,
        org_id=org_id,
        user_id=user_id,
        content=content,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


def make_attachment(
    attachment_id: str = "att-1",
    mime_type: str = "text/plain",
    file_name: str = "notes.txt",
) -> Attachment:
    return Attachment(
        id=attachment_id,
        message_id="msg-with-file",
        room_id=ROOM_ID,
        org_id=ORG_ID,
        file_id=f"files/{attachment_id}",
        file_name=file_name,
        mime_type=mime_type,
    )


def make_chunk(
    source_id: str,
    content: str,
    room_id: str = ROOM_ID,
    org_id: str = ORG_ID,
    source_type: SourceType = SourceType.MESSAGE,
    chunk_index: int = 0,
    chunk_total: int = 1,
    minutes: int = 0,
    embedding: list[float] | None = None,
) -> DocumentChunk:
    """Build a chunk whose embedding is the fake provider's vector for *content*."""
    return DocumentChunk(
        chunk_id=f"{source_type.value}:{source_id}:{chunk_index}",
        source_type=source_type,
        source_id=source_id,
        scope=TenantScope(org_id=org_id, room_id=room_id),
        content=content,
        chunk_index=chunk_index,
        chunk_total=chunk_total,
        embedding=embedding if embedding is not None else _bag_of_words_vector(content),
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def embedding_provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore(dimension=_EMBEDDING_DIM)


@pytest.fixture
def chunker() -> TextChunker:
    return TextChunker(chunk_size=1000, overlap=200)


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def indexer(
    embedding_provider: FakeEmbeddingProvider,
    vector_store: InMemoryVectorStore,
    chunker: TextChunker,
) -> EmbeddingIndexer:
    return EmbeddingIndexer(
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        chunker=chunker,
        min_short_text_length=10,
        call_timeout=None,
    )


@pytest.fixture
def search_service(
    embedding_provider: FakeEmbeddingProvider,
    vector_store: InMemoryVectorStore,
) -> SimilaritySearchService:
    return SimilaritySearchService(embedding_provider, vector_store, call_timeout=None)


@pytest.fixture
def sample_messages() -> list[Message]:
    """A small room conversation, oldest first."""
    return [
        make_message("m1", "Morning everyone, coffee machine is broken again", minutes=0),
        make_message("m2", "The product launch is scheduled for Friday at noon", minutes=5),
        make_message("m3", "Remember to update the release notes before launch", minutes=10),
        make_message("m4", "ok", minutes=15),
        make_message("m5", "Lunch order: pizza for the whole team today", minutes=20),
    ]


@pytest.fixture
def content_store(sample_messages: list[Message]) -> JsonExportContentStore:
    rooms = [
        Room(id=ROOM_ID, org_id=ORG_ID, name="general"),
        Room(id="room-2", org_id=ORG_ID, name="random"),
    ]
    return JsonExportContentStore(rooms=rooms, messages=sample_messages)


@pytest.fixture
def registry(chunker: TextChunker) -> ProcessorRegistry:
    return ProcessorRegistry([TextProcessor(chunker)])


@pytest.fixture
def ingestion(
    indexer: EmbeddingIndexer,
    registry: ProcessorRegistry,
    content_store: JsonExportContentStore,
) -> IngestionService:
    return IngestionService(
        indexer=indexer,
        registry=registry,
        content_store=content_store,
        call_timeout=None,
    )


@pytest.fixture
def bulk_indexer(
    indexer: EmbeddingIndexer,
    content_store: JsonExportContentStore,
) -> BulkIndexer:
    return BulkIndexer(indexer=indexer, content_store=content_store, call_timeout=None)


@pytest.fixture
def rag_service(
    search_service: SimilaritySearchService,
    fake_llm: FakeLLM,
    content_store: JsonExportContentStore,
    indexer: EmbeddingIndexer,
    bulk_indexer: BulkIndexer,
    ingestion: IngestionService,
) -> RAGService:
    return RAGService(
        search=search_service,
        llm=fake_llm,
        content_store=content_store,
        indexer=indexer,
        bulk_indexer=bulk_indexer,
        ingestion=ingestion,
        call_timeout=None,
    )
