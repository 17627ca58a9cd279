"""Pydantic models shared across roomrag."""

from roomrag.models.content import Attachment, Message, Page, Room
from roomrag.models.llm import ChatMessage, LLMConfig
from roomrag.models.rag import (
    AskOptions,
    AttachmentIndexResult,
    BulkIndexingResult,
    DocumentChunk,
    DocumentMetadata,
    IndexDocumentResult,
    IndexingResult,
    IndexRequest,
    ProcessedChunk,
    RAGQueryResult,
    RAGSource,
    RoomStats,
    SearchFilters,
    SearchResult,
    SourceType,
    TenantScope,
)
from roomrag.models.stream import StreamEvent, StreamEventType

__all__ = [
    "AskOptions",
    "Attachment",
    "AttachmentIndexResult",
    "BulkIndexingResult",
    "ChatMessage",
    "DocumentChunk",
    "DocumentMetadata",
    "IndexDocumentResult",
    "IndexRequest",
    "IndexingResult",
    "LLMConfig",
    "Message",
    "Page",
    "ProcessedChunk",
    "RAGQueryResult",
    "RAGSource",
    "Room",
    "RoomStats",
    "SearchFilters",
    "SearchResult",
    "SourceType",
    "StreamEvent",
    "StreamEventType",
    "TenantScope",
]
