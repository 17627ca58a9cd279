"""RAG data models for room-scoped retrieval.

Defines Pydantic v2 models for indexed chunks, search filters and results,
answer payloads, and indexing counters.  Value objects use frozen config;
the batch counters (:class:`IndexingResult`, :class:`BulkIndexingResult`)
are mutable because jobs accumulate into them item by item.

Data flow overview:

    1. INGESTION: a message or attachment is cleaned and split into chunks.
    2. EMBEDDING: each chunk is turned into a fixed-dimension vector.
    3. STORAGE: chunks + vectors are written to the vector store, tagged
       with their tenant scope (org, room) and position among siblings.
    4. RETRIEVAL: a question is embedded and compared against the stored
       vectors of the same room; results above a similarity floor win.
    5. GENERATION: the winning chunks (plus recent messages) become the
       context of one LLM call.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from roomrag.models.llm import LLMConfig


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SourceType(str, Enum):
    """Origin kind of an indexed chunk."""

    MESSAGE = "message"
    ATTACHMENT = "attachment"
    DOCUMENT = "document"


class TenantScope(BaseModel):
    """The ``(org_id, room_id)`` pair bounding visibility of indexed content."""

    model_config = ConfigDict(frozen=True)

    org_id: str = Field(description="Organization (tenant) identifier.")
    room_id: str = Field(description="Room identifier within the organization.")


# ---------------------------------------------------------------------------
# DocumentChunk -- the atomic indexed unit.
# ---------------------------------------------------------------------------
class DocumentChunk(BaseModel):
    """A bounded text segment plus its embedding and position metadata.

    Chunks from the same source share ``source_type`` and ``source_id``;
    ``chunk_index`` / ``chunk_total`` give the position among those
    siblings.  Chunks are never updated in place: a re-index replaces the
    whole sibling set.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description="Unique identifier for this chunk.")
    source_type: SourceType = Field(description="Origin kind of the chunk.")
    source_id: str = Field(description="Identifier of the originating message or file.")
    scope: TenantScope = Field(description="Tenant scope the chunk belongs to.")
    content: str = Field(description="The chunk's text.")
    chunk_index: int = Field(ge=0, description="0-based position among sibling chunks.")
    chunk_total: int = Field(ge=1, description="Total number of sibling chunks.")
    embedding: list[float] = Field(
        default_factory=list,
        description="Embedding vector; empty on read paths that do not load vectors.",
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form bag (author id, timestamps, file name, ...), never interpreted.",
    )
    created_at: datetime = Field(
        default_factory=_utcnow,
        description="When the chunk was written; used as the ranking tie-breaker.",
    )

    @model_validator(mode="after")
    def _check_position(self) -> DocumentChunk:
        if self.chunk_index >= self.chunk_total:
            raise ValueError(
                f"chunk_index {self.chunk_index} out of range for chunk_total {self.chunk_total}"
            )
        return self


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------
class SearchFilters(BaseModel):
    """Restrictions applied to a similarity search.

    At least one tenant-scope value (``org_id`` or ``room_ids``) is required
    so that no query can run unscoped across tenants.
    """

    model_config = ConfigDict(frozen=True)

    org_id: str | None = Field(default=None, description="Restrict to one organization.")
    room_ids: list[str] = Field(default_factory=list, description="Restrict to these rooms.")
    source_types: list[SourceType] = Field(
        default_factory=list,
        description="Restrict to these source types; empty means all types.",
    )
    limit: int = Field(default=10, ge=1, description="Maximum number of results.")
    min_similarity: float = Field(
        default=0.7, ge=0.0, le=1.0, description="Results below this score are excluded."
    )

    @model_validator(mode="after")
    def _require_scope(self) -> SearchFilters:
        if not self.org_id and not self.room_ids:
            raise ValueError("search filters must name an org_id or at least one room_id")
        return self

    def matches(self, chunk: DocumentChunk) -> bool:
        """Return ``True`` if *chunk* lies inside this filter's scope and types."""
        if self.org_id and chunk.scope.org_id != self.org_id:
            return False
        if self.room_ids and chunk.scope.room_id not in self.room_ids:
            return False
        if self.source_types and chunk.source_type not in self.source_types:
            return False
        return True


class SearchResult(BaseModel):
    """A chunk ranked against one query vector."""

    model_config = ConfigDict(frozen=True)

    chunk: DocumentChunk
    similarity: float = Field(ge=0.0, le=1.0, description="Cosine similarity clamped to [0, 1].")


# ---------------------------------------------------------------------------
# Answers
# ---------------------------------------------------------------------------
class RAGSource(BaseModel):
    """A display-ready citation for an answer."""

    model_config = ConfigDict(frozen=True)

    type: SourceType
    id: str
    content: str = Field(description="Source text truncated for display.")
    score: float = Field(ge=0.0, le=1.0)
    metadata: dict[str, Any] = Field(default_factory=dict)


class RAGQueryResult(BaseModel):
    """The outcome of one ``ask`` call."""

    model_config = ConfigDict(frozen=True)

    answer: str
    sources: list[RAGSource] = Field(default_factory=list)
    confidence: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Mean similarity of the semantic matches used; 0 on the recency fallback.",
    )
    used_semantic_retrieval: bool = False


class AskOptions(BaseModel):
    """Per-call knobs for ``ask`` and its streaming variant."""

    model_config = ConfigDict(frozen=True)

    max_sources: int = Field(default=10, ge=1)
    min_similarity: float = Field(default=0.6, ge=0.0, le=1.0)
    include_attachments: bool = True
    recent_message_count: int = Field(default=20, ge=0)
    user_id: str | None = Field(
        default=None, description="When set, the access policy is consulted."
    )
    system_prompt: str | None = Field(
        default=None, description="Replaces the default system prompt."
    )
    llm_config: LLMConfig | None = Field(
        default=None,
        description="Generation settings for this call; wins over the room's and the service's.",
    )


# ---------------------------------------------------------------------------
# Indexing
# ---------------------------------------------------------------------------
class IndexRequest(BaseModel):
    """Everything the indexer needs to know about one logical source."""

    model_config = ConfigDict(frozen=True)

    source_type: SourceType
    source_id: str
    scope: TenantScope
    content: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


class IndexDocumentResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    chunks_created: int = Field(ge=0)


class AttachmentIndexResult(BaseModel):
    """Outcome of indexing one attachment; data errors live in ``error``."""

    model_config = ConfigDict(frozen=True)

    success: bool
    chunks_created: int = 0
    error: str | None = None


class RoomStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_embeddings: int = Field(ge=0)


class IndexingResult(BaseModel):
    """Counters for one room's indexing pass.

    ``errors`` holds one human-readable string per failed item, up to a
    cap; failures past the cap are only counted in ``errors_dropped``.  A
    failed item never aborts the pass.
    """

    indexed: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)
    errors_dropped: int = 0

    def record_error(self, error: str, limit: int) -> None:
        if len(self.errors) < limit:
            self.errors.append(error)
        else:
            self.errors_dropped += 1


class BulkIndexingResult(BaseModel):
    """Counters for an organization-wide indexing job."""

    total_rooms: int = 0
    successful_rooms: int = 0
    total_indexed: int = 0
    total_skipped: int = 0
    errors: list[str] = Field(default_factory=list)
    errors_dropped: int = 0


# ---------------------------------------------------------------------------
# Document processing
# ---------------------------------------------------------------------------
class DocumentMetadata(BaseModel):
    """Describes the raw file handed to a document processor."""

    model_config = ConfigDict(frozen=True)

    file_name: str
    mime_type: str
    size: int = Field(default=0, ge=0)
    source_id: str
    room_id: str | None = None
    org_id: str | None = None


class ProcessedChunk(BaseModel):
    """A chunk of cleaned text emitted by a document processor, not yet embedded."""

    model_config = ConfigDict(frozen=True)

    content: str
    chunk_index: int = Field(ge=0)
    chunk_total: int = Field(ge=1)
    metadata: dict[str, Any] = Field(default_factory=dict)
