"""roomrag composition root.

Wires providers and services together via constructor injection.  The
chat platform (or the CLI) supplies its own content store, object storage
and access policy; everything else is built from :class:`Settings` and
``config/config.yaml``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from roomrag.config.loader import chunking_table, load_config
from roomrag.config.settings import Settings
from roomrag.interfaces.access_policy import IAccessPolicy
from roomrag.interfaces.content_store import IContentStore
from roomrag.interfaces.embedding_provider import IEmbeddingProvider
from roomrag.interfaces.llm_provider import ILLMProvider
from roomrag.interfaces.object_storage import IObjectStorage
from roomrag.interfaces.room_config_store import IRoomConfigStore
from roomrag.interfaces.transcription_provider import ITranscriptionProvider
from roomrag.interfaces.vector_store_provider import IVectorStoreProvider
from roomrag.models.llm import LLMConfig
from roomrag.models.rag import AskOptions
from roomrag.providers.content.json_export_content_store import JsonExportContentStore
from roomrag.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from roomrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from roomrag.providers.llm.ollama_provider import OllamaLLMProvider
from roomrag.providers.llm.openai_provider import OpenAILLMProvider
from roomrag.providers.storage.http_file_downloader import HttpFileDownloader
from roomrag.providers.transcription.whisper_api_provider import WhisperAPIProvider
from roomrag.providers.vector_store.chromadb_provider import ChromaDBProvider
from roomrag.providers.vector_store.memory_store import InMemoryVectorStore
from roomrag.services.answer_stream import AnswerStreamCoordinator
from roomrag.services.bulk_indexer import BulkIndexer
from roomrag.services.ingestion.chunker import TextChunker
from roomrag.services.ingestion.document_processors import (
    AudioProcessor,
    PdfProcessor,
    ProcessorRegistry,
    TextProcessor,
    VideoProcessor,
)
from roomrag.services.ingestion.embedding_indexer import EmbeddingIndexer
from roomrag.services.ingestion.ingestion_service import IngestionService
from roomrag.services.rag_service import RAGService
from roomrag.services.similarity_search import SimilaritySearchService
from roomrag.utils.errors import ConfigurationError
from roomrag.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_llm_provider(app_settings: Settings) -> ILLMProvider:
    """OpenAI (or an OpenAI-compatible endpoint) when a key is set, else Ollama."""
    if app_settings.openai_api_key:
        return OpenAILLMProvider(settings=app_settings)
    return OllamaLLMProvider(settings=app_settings)


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    """Select the first available embedding provider.

    Priority: OpenAI/OpenAI-compatible (if API key set) -> Nomic/Ollama (if reachable).

    Raises
    ------
    ConfigurationError
        If neither is usable.
    """
    if app_settings.openai_api_key:
        provider: IEmbeddingProvider = OpenAIEmbeddingProvider(settings=app_settings)
        if provider.is_available():
            return provider

    provider = NomicEmbeddingProvider(settings=app_settings)
    if provider.is_available():
        return provider

    raise ConfigurationError(
        message="No embedding provider available: set OPENAI_API_KEY or run Ollama with nomic-embed-text"
    )


def _build_vector_store(app_settings: Settings, dimension: int) -> IVectorStoreProvider:
    backend = app_settings.vector_store_backend.lower()
    if backend == "memory":
        return InMemoryVectorStore(dimension=dimension)
    if backend == "chromadb":
        return ChromaDBProvider(
            persist_directory=app_settings.chromadb_persist_dir,
            collection_name=app_settings.chromadb_collection,
            dimension=dimension,
        )
    raise ConfigurationError(message=f"Unknown VECTOR_STORE_BACKEND: {backend}")


def _build_transcriber(app_settings: Settings) -> ITranscriptionProvider | None:
    if not app_settings.openai_api_key:
        return None
    return WhisperAPIProvider(
        api_key=app_settings.openai_api_key,
        model=app_settings.openai_transcription_model,
        base_url=app_settings.openai_base_url,
    )


# ---------------------------------------------------------------------------
# Full assembly
# ---------------------------------------------------------------------------


@dataclass
class Components:
    """Every long-lived object the application needs."""

    settings: Settings
    config: dict[str, Any]
    http_client: httpx.AsyncClient
    llm: ILLMProvider
    embedding_provider: IEmbeddingProvider
    vector_store: IVectorStoreProvider
    transcriber: ITranscriptionProvider | None
    content_store: IContentStore
    registry: ProcessorRegistry
    indexer: EmbeddingIndexer
    search: SimilaritySearchService
    ingestion: IngestionService
    bulk_indexer: BulkIndexer
    rag_service: RAGService
    answer_stream: AnswerStreamCoordinator

    async def aclose(self) -> None:
        await self.http_client.aclose()


def build_components(
    settings: Settings | None = None,
    content_store: IContentStore | None = None,
    object_storage: IObjectStorage | None = None,
    access_policy: IAccessPolicy | None = None,
    room_config_store: IRoomConfigStore | None = None,
    config: dict[str, Any] | None = None,
    embedding_provider: IEmbeddingProvider | None = None,
    llm: ILLMProvider | None = None,
    vector_store: IVectorStoreProvider | None = None,
) -> Components:
    """Construct providers and services.

    Parameters
    ----------
    settings:
        Application settings; read from the environment when omitted.
    content_store:
        Rooms and messages.  Defaults to an empty store.
    object_storage:
        Presigns attachment downloads.  Attachment ingestion reports an
        error result when omitted.
    access_policy:
        Room membership checks for questions carrying a ``user_id``.
    room_config_store:
        Per-room generation settings.  Defaults to the content store when it
        also implements :class:`IRoomConfigStore`.
    config:
        Resolved YAML config; loaded from ``config/config.yaml`` when omitted.
    embedding_provider, llm, vector_store:
        Pre-built providers, mainly for tests.
    """
    app_settings = settings or Settings()
    app_config = config if config is not None else load_config(settings=app_settings)
    timeout = app_settings.external_call_timeout

    http_client = httpx.AsyncClient(timeout=app_settings.download_timeout)
    primary_llm = llm or _build_llm_provider(app_settings)
    embedder = embedding_provider or _build_embedding_provider(app_settings)
    store = vector_store or _build_vector_store(app_settings, embedder.get_dimension())
    transcriber = _build_transcriber(app_settings)
    contents = content_store or JsonExportContentStore(rooms=[], messages=[])
    if room_config_store is None and isinstance(contents, IRoomConfigStore):
        room_config_store = contents

    # -- Ingestion --
    table = chunking_table(app_config)
    chunker = TextChunker(
        **table.get(
            "default",
            {"chunk_size": app_settings.chunk_size, "overlap": app_settings.chunk_overlap},
        )
    )
    registry = ProcessorRegistry(
        [
            TextProcessor(chunker, **table.get("text", {})),
            PdfProcessor(chunker, **table.get("pdf", {})),
            AudioProcessor(chunker, transcriber, **table.get("audio", {})),
            VideoProcessor(chunker, transcriber, **table.get("video", {})),
        ]
    )
    indexer = EmbeddingIndexer(
        embedding_provider=embedder,
        vector_store=store,
        chunker=chunker,
        min_short_text_length=app_settings.min_short_text_length,
        call_timeout=timeout,
    )
    ingestion = IngestionService(
        indexer=indexer,
        registry=registry,
        content_store=contents,
        object_storage=object_storage,
        downloader=HttpFileDownloader(
            http_client,
            timeout=app_settings.download_timeout,
            max_bytes=app_settings.max_download_bytes,
        ),
        call_timeout=timeout,
    )
    bulk_indexer = BulkIndexer(
        indexer=indexer,
        content_store=contents,
        concurrency=app_settings.index_concurrency,
        call_timeout=timeout,
    )

    # -- Retrieval --
    search = SimilaritySearchService(embedder, store, call_timeout=timeout)
    retrieval_cfg = app_config.get("retrieval", {})
    rag_service = RAGService(
        search=search,
        llm=primary_llm,
        content_store=contents,
        indexer=indexer,
        bulk_indexer=bulk_indexer,
        ingestion=ingestion,
        access_policy=access_policy,
        default_options=AskOptions(
            max_sources=app_settings.search_limit,
            min_similarity=app_settings.qa_min_similarity,
            recent_message_count=app_settings.recent_message_count,
        ),
        llm_config=LLMConfig(
            temperature=app_settings.llm_temperature,
            max_tokens=app_settings.llm_max_tokens,
        ),
        room_config_store=room_config_store,
        recency_top_up=int(retrieval_cfg.get("recency_top_up", 5)),
        recent_context_lines=int(retrieval_cfg.get("recent_context_lines", 10)),
        call_timeout=timeout,
    )
    answer_stream = AnswerStreamCoordinator(
        rag_service, idle_timeout=app_settings.stream_idle_timeout
    )

    _logger.info(
        "components_built",
        llm=primary_llm.get_provider_name(),
        embedding_provider=embedder.get_provider_name(),
        dimension=embedder.get_dimension(),
        vector_store=store.get_provider_name(),
        transcription=transcriber.get_provider_name() if transcriber else None,
        supported_types=len(registry.supported_types()),
    )

    return Components(
        settings=app_settings,
        config=app_config,
        http_client=http_client,
        llm=primary_llm,
        embedding_provider=embedder,
        vector_store=store,
        transcriber=transcriber,
        content_store=contents,
        registry=registry,
        indexer=indexer,
        search=search,
        ingestion=ingestion,
        bulk_indexer=bulk_indexer,
        rag_service=rag_service,
        answer_stream=answer_stream,
    )
