"""Room-scoped question answering with a recency fallback.

Answers a question asked inside a room from two kinds of context:

  1. SEMANTIC  -- chunks of the room's messages and files whose embeddings
                  are close to the question (similarity search).
  2. RECENCY   -- the room's newest messages, always fetched.  They top up
                  the semantic context, or replace it entirely when nothing
                  clears the similarity floor (fresh rooms, vague questions,
                  or content that has not been indexed yet).

When both are empty the LLM is not called and a fixed no-context answer is
returned.  :meth:`RAGService.prepare` does everything up to the generation
call so the streaming coordinator can reuse it unchanged.

The service also fronts the maintenance operations (index a message, an
attachment, a room, a whole organization; clear and count a room) by
delegating to the indexing components it is built with.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field

import structlog

from roomrag.interfaces.access_policy import IAccessPolicy
from roomrag.interfaces.content_store import IContentStore
from roomrag.interfaces.llm_provider import ILLMProvider
from roomrag.interfaces.room_config_store import IRoomConfigStore
from roomrag.models.content import Message
from roomrag.models.llm import ChatMessage, LLMConfig
from roomrag.models.rag import (
    AskOptions,
    AttachmentIndexResult,
    BulkIndexingResult,
    IndexingResult,
    RAGQueryResult,
    RAGSource,
    RoomStats,
    SearchFilters,
    SearchResult,
    SourceType,
)
from roomrag.services.bulk_indexer import BulkIndexer
from roomrag.services.ingestion.embedding_indexer import EmbeddingIndexer
from roomrag.services.ingestion.ingestion_service import IngestionService
from roomrag.services.similarity_search import SimilaritySearchService
from roomrag.utils.concurrency import with_timeout
from roomrag.utils.errors import ConfigurationError, RoomRagError
from roomrag.utils.logging import bind_tenant, get_logger

logger: structlog.BoundLogger = get_logger(__name__)

NO_CONTEXT_ANSWER = (
    "I couldn't find any messages or documents in this room that help answer "
    "that question yet."
)

_MIN_QUESTION_LENGTH = 3
_FALLBACK_SOURCE_COUNT = 3
_SOURCE_PREVIEW_CHARS = 200


@dataclass(frozen=True)
class PreparedAnswer:
    """Everything resolved before the generation call.

    ``messages`` is empty when there is no context at all; callers then
    answer with :data:`NO_CONTEXT_ANSWER` instead of calling the LLM.
    """

    messages: list[ChatMessage] = field(default_factory=list)
    sources: list[RAGSource] = field(default_factory=list)
    confidence: float = 0.0
    used_semantic_retrieval: bool = False
    llm_config: LLMConfig = field(default_factory=LLMConfig)

    @property
    def no_context(self) -> bool:
        return not self.messages


class RAGService:
    """Answers questions about a room's conversation and files.

    Parameters
    ----------
    search:
        Similarity search over indexed chunks.
    llm:
        Chat provider used for the answer and for picking fallback sources.
    content_store:
        Source of the room's recent messages.
    indexer, bulk_indexer, ingestion:
        Indexing components behind the maintenance API.  Each is optional;
        calling a maintenance method whose component is missing raises
        :class:`ConfigurationError`.
    access_policy:
        Consulted when a question carries a ``user_id``.
    default_options:
        Used when ``ask`` is called without options.
    llm_config:
        Generation parameters for the answer call when neither the call
        (``AskOptions.llm_config``) nor the room supplies its own.
    room_config_store:
        Per-room generation settings, consulted on every question.
    recency_top_up:
        Recent messages appended after semantic matches, skipping duplicates.
    recent_context_lines:
        Recent messages rendered in the prompt context.
    call_timeout:
        Deadline in seconds for the content-store and non-streaming chat calls.
    """

    _SYSTEM_PROMPT = (
        "You are an AI assistant that answers questions about a team chat room "
        "using the conversation and documents provided as context.\n\n"
        "Rules:\n"
        "- Answer only from the information in the provided context\n"
        "- If the context does not contain the answer, say so plainly\n"
        "- Keep answers short, concise and accurate\n"
        "- When several sources are relevant, combine them\n"
        "- Answer in the language of the question"
    )

    _SOURCE_PICK_PROMPT = (
        "You select which chat messages best support answering a question. "
        "Reply with JSON only, in the form "
        '{"source_ids": ["<message id>", ...]}, listing between 1 and 3 ids '
        "taken from the messages below, most relevant first."
    )

    def __init__(
        self,
        search: SimilaritySearchService,
        llm: ILLMProvider,
        content_store: IContentStore,
        indexer: EmbeddingIndexer | None = None,
        bulk_indexer: BulkIndexer | None = None,
        ingestion: IngestionService | None = None,
        access_policy: IAccessPolicy | None = None,
        default_options: AskOptions | None = None,
        llm_config: LLMConfig | None = None,
        room_config_store: IRoomConfigStore | None = None,
        recency_top_up: int = 5,
        recent_context_lines: int = 10,
        call_timeout: float | None = 30.0,
    ) -> None:
        self._search = search
        self._llm = llm
        self._content_store = content_store
        self._indexer = indexer
        self._bulk_indexer = bulk_indexer
        self._ingestion = ingestion
        self._access_policy = access_policy
        self._default_options = default_options or AskOptions()
        self._llm_config = llm_config or LLMConfig()
        self._room_config_store = room_config_store
        self._recency_top_up = recency_top_up
        self._recent_context_lines = recent_context_lines
        self._call_timeout = call_timeout

    @property
    def llm(self) -> ILLMProvider:
        return self._llm

    # ------------------------------------------------------------------
    # Query API
    # ------------------------------------------------------------------

    async def ask(
        self,
        room_id: str,
        org_id: str,
        question: str,
        options: AskOptions | None = None,
    ) -> RAGQueryResult:
        """Answer *question* from the room's indexed and recent content.

        Raises
        ------
        ValueError
            If the question has fewer than three non-space characters.
        AccessDeniedError
            If ``options.user_id`` is not a member of the room.
        LLMError, RAGError, ProviderTimeoutError
            Provider failures propagate.
        """
        prepared = await self.prepare(room_id, org_id, question, options)
        if prepared.no_context:
            return RAGQueryResult(answer=NO_CONTEXT_ANSWER, sources=[], confidence=0.0)

        answer = await with_timeout(
            self._llm.chat(prepared.messages, prepared.llm_config),
            self._call_timeout,
            "chat",
            provider_name=self._llm.get_provider_name(),
        )
        logger.info(
            "rag_answer_generated",
            room_id=room_id,
            sources=len(prepared.sources),
            confidence=round(prepared.confidence, 3),
            used_semantic_retrieval=prepared.used_semantic_retrieval,
        )
        return RAGQueryResult(
            answer=answer,
            sources=prepared.sources,
            confidence=prepared.confidence,
            used_semantic_retrieval=prepared.used_semantic_retrieval,
        )

    async def prepare(
        self,
        room_id: str,
        org_id: str,
        question: str,
        options: AskOptions | None = None,
    ) -> PreparedAnswer:
        """Resolve context, sources and prompt for *question* without generating."""
        with bind_tenant(org_id, room_id):
            return await self._prepare(room_id, org_id, question, options)

    async def _prepare(
        self,
        room_id: str,
        org_id: str,
        question: str,
        options: AskOptions | None,
    ) -> PreparedAnswer:
        opts = options or self._default_options
        question = (question or "").strip()
        if len(question) < _MIN_QUESTION_LENGTH:
            raise ValueError(
                f"Question must be at least {_MIN_QUESTION_LENGTH} characters long"
            )
        if opts.user_id and self._access_policy is not None:
            await self._access_policy.ensure_member(room_id, opts.user_id)

        logger.info("rag_question_received", room_id=room_id, question=question[:80])
        llm_config = await self._resolve_llm_config(room_id, opts)

        # SEMANTIC
        source_types = [SourceType.MESSAGE]
        if opts.include_attachments:
            source_types += [SourceType.ATTACHMENT, SourceType.DOCUMENT]
        semantic = await self._search.search(
            question,
            SearchFilters(
                org_id=org_id,
                room_ids=[room_id],
                source_types=source_types,
                limit=opts.max_sources,
                min_similarity=opts.min_similarity,
            ),
        )

        # RECENCY
        recent = await self._recent_messages(room_id, opts.recent_message_count)

        if not semantic and not recent:
            logger.info("rag_no_context", room_id=room_id)
            return PreparedAnswer(llm_config=llm_config)

        if semantic:
            seen = {r.chunk.source_id for r in semantic}
            top_up = [m for m in recent if m.id not in seen][: self._recency_top_up]
            context = self.build_context(semantic, top_up)
            sources = [self._semantic_source(r) for r in semantic[: opts.max_sources]]
            confidence = sum(r.similarity for r in semantic) / len(semantic)
        else:
            context = self.build_context([], recent)
            sources = await self._pick_fallback_sources(question, recent, llm_config)
            confidence = 0.0

        logger.debug(
            "rag_context_built",
            room_id=room_id,
            semantic_matches=len(semantic),
            recent_messages=len(recent),
            context_chars=len(context),
        )

        system_prompt = opts.system_prompt or self._SYSTEM_PROMPT
        messages = [
            ChatMessage(role="system", content=system_prompt),
            ChatMessage(role="user", content=f"Context:\n{context}\n\nQuestion: {question}"),
        ]
        return PreparedAnswer(
            messages=messages,
            sources=sources,
            confidence=confidence,
            used_semantic_retrieval=bool(semantic),
            llm_config=llm_config,
        )

    def build_context(self, semantic: list[SearchResult], recent: list[Message]) -> str:
        """Render semantic matches and recent messages as the prompt context."""
        parts: list[str] = []
        if semantic:
            parts.append("=== Relevant Context (Semantic Search) ===")
            for result in semantic:
                label = "Message" if result.chunk.source_type is SourceType.MESSAGE else "Document"
                parts.append(f"[{label}] (relevance: {result.similarity * 100:.1f}%)")
                parts.append(result.chunk.content)
                parts.append("")
        if recent:
            parts.append("=== Recent Messages ===")
            for msg in recent[: self._recent_context_lines]:
                parts.append(f"[{msg.created_at.isoformat()}] User {msg.user_id}: {msg.content}")
        return "\n".join(parts)

    # ------------------------------------------------------------------
    # Maintenance API
    # ------------------------------------------------------------------

    async def index_message(self, message: Message) -> bool:
        return await self._require(self._ingestion, "ingestion").on_message_created(message)

    async def index_attachment(self, attachment_id: str) -> AttachmentIndexResult:
        return await self._require(self._ingestion, "ingestion").index_attachment_by_id(
            attachment_id
        )

    async def index_room(self, room_id: str, org_id: str) -> IndexingResult:
        return await self._require(self._bulk_indexer, "bulk_indexer").index_room(room_id, org_id)

    async def index_all_rooms(self, org_id: str) -> BulkIndexingResult:
        return await self._require(self._bulk_indexer, "bulk_indexer").index_all_rooms(org_id)

    async def clear_room_embeddings(self, room_id: str) -> int:
        return await self._require(self._indexer, "indexer").delete_by_room(room_id)

    async def get_room_stats(self, room_id: str) -> RoomStats:
        return await self._require(self._indexer, "indexer").get_room_stats(room_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _resolve_llm_config(self, room_id: str, opts: AskOptions) -> LLMConfig:
        """Per-call settings win, then the room's, then the service default."""
        if opts.llm_config is not None:
            return opts.llm_config
        if self._room_config_store is None:
            return self._llm_config
        room_config = await with_timeout(
            self._room_config_store.get_llm_config(room_id),
            self._call_timeout,
            "get_room_llm_config",
        )
        return room_config or self._llm_config

    async def _recent_messages(self, room_id: str, count: int) -> list[Message]:
        if count <= 0:
            return []
        page = await with_timeout(
            self._content_store.list_messages(room_id, limit=count),
            self._call_timeout,
            "list_recent_messages",
        )
        return [m for m in page.items if m.content and m.content.strip()][:count]

    async def _pick_fallback_sources(
        self, question: str, recent: list[Message], llm_config: LLMConfig
    ) -> list[RAGSource]:
        """Ask the LLM which recent messages support the answer.

        Falls back to the newest messages when the pick fails or names no
        known id.
        """
        by_id = {m.id: m for m in recent}
        listing = "\n".join(
            f"[{m.id}] User {m.user_id}: {m.content[:_SOURCE_PREVIEW_CHARS]}" for m in recent
        )
        picked: list[Message] = []
        try:
            raw = await with_timeout(
                self._llm.chat(
                    [
                        ChatMessage(role="system", content=self._SOURCE_PICK_PROMPT),
                        ChatMessage(
                            role="user",
                            content=f"Messages:\n{listing}\n\nQuestion: {question}",
                        ),
                    ],
                    LLMConfig(
                        model_name=llm_config.model_name,
                        temperature=0.0,
                        max_tokens=200,
                    ),
                ),
                self._call_timeout,
                "pick_fallback_sources",
                provider_name=self._llm.get_provider_name(),
            )
            for source_id in self._parse_source_ids(raw):
                message = by_id.get(source_id)
                if message is not None and message not in picked:
                    picked.append(message)
        except RoomRagError as exc:
            logger.warning("rag_source_pick_failed", error=str(exc))

        if not picked:
            picked = recent[:_FALLBACK_SOURCE_COUNT]
        return [self._message_source(m) for m in picked[:_FALLBACK_SOURCE_COUNT]]

    @staticmethod
    def _parse_source_ids(raw: str) -> list[str]:
        """Extract ``source_ids`` from the LLM reply; ``[]`` if it is not usable JSON."""
        match = re.search(r"\{[\s\S]*\}", raw or "")
        if not match:
            return []
        try:
            data = json.loads(match.group())
        except json.JSONDecodeError:
            return []
        ids = data.get("source_ids") if isinstance(data, dict) else None
        if not isinstance(ids, list):
            return []
        return [str(i) for i in ids]

    @staticmethod
    def _preview(content: str) -> str:
        if len(content) > _SOURCE_PREVIEW_CHARS:
            return content[:_SOURCE_PREVIEW_CHARS] + "..."
        return content

    def _semantic_source(self, result: SearchResult) -> RAGSource:
        chunk = result.chunk
        return RAGSource(
            type=chunk.source_type,
            id=chunk.source_id,
            content=self._preview(chunk.content),
            score=result.similarity,
            metadata=dict(chunk.metadata),
        )

    def _message_source(self, message: Message) -> RAGSource:
        return RAGSource(
            type=SourceType.MESSAGE,
            id=message.id,
            content=self._preview(message.content),
            score=0.0,
            metadata={
                "user_id": message.user_id,
                "created_at": message.created_at.isoformat(),
            },
        )

    @staticmethod
    def _require(component, name: str):  # noqa: ANN001, ANN205
        if component is None:
            raise ConfigurationError(message=f"RAGService was built without a {name}")
        return component
