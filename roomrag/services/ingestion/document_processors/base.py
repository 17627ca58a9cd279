"""Common base for mime-type-specific document processors.

A processor turns raw file bytes into cleaned text and hands it to the
:class:`~roomrag.services.ingestion.chunker.TextChunker`.  Each variant
declares the mime types it handles; the
:class:`~roomrag.services.ingestion.document_processors.registry.ProcessorRegistry`
picks one per file.  Processors keep no per-call state, so one instance
may process many documents concurrently.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any

from roomrag.models.rag import DocumentMetadata, ProcessedChunk
from roomrag.services.ingestion.chunker import TextChunker

# NUL and other C0 control characters except \t, \n and \r.
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_MULTI_SPACE = re.compile(r"[ \t\f\v]+")
_MULTI_NEWLINE = re.compile(r"\n{3,}")


def clean_text(text: str, strip_lines: bool = False) -> str:
    """Normalize extracted text before chunking.

    Removes control characters, collapses runs of spaces and tabs to one
    space and three or more newlines to a paragraph break.  With
    *strip_lines* every line is also stripped (transcripts keep their
    line structure but lose ragged indentation).
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _CONTROL_CHARS.sub("", text)
    text = _MULTI_SPACE.sub(" ", text)
    if strip_lines:
        text = "\n".join(line.strip() for line in text.split("\n"))
    text = _MULTI_NEWLINE.sub("\n\n", text)
    return text.strip()


class DocumentProcessor(ABC):
    """Capability ``{can_process, process, supported_types}`` for one file family.

    Parameters
    ----------
    chunker:
        Shared chunker.
    chunk_size, overlap:
        Per-type window overrides; ``None`` keeps the chunker's defaults.
    """

    #: Recorded as ``processor_type`` in every chunk's metadata.
    processor_type: str = "base"

    def __init__(
        self,
        chunker: TextChunker,
        chunk_size: int | None = None,
        overlap: int | None = None,
    ) -> None:
        self._chunker = chunker
        self._chunk_size = chunk_size
        self._overlap = overlap

    @abstractmethod
    def supported_types(self) -> list[str]:
        """Return the explicitly supported mime types."""

    def can_process(self, mime_type: str) -> bool:
        """Return ``True`` if this processor handles *mime_type*."""
        return normalize_mime(mime_type) in self.supported_types()

    @abstractmethod
    async def process(self, data: bytes, metadata: DocumentMetadata) -> list[ProcessedChunk]:
        """Turn raw bytes into chunks.  Returns ``[]`` when nothing is extractable."""

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _build_chunks(
        self,
        text: str,
        metadata: DocumentMetadata,
        extra: dict[str, Any] | None = None,
    ) -> list[ProcessedChunk]:
        """Chunk cleaned *text* and attach per-chunk metadata."""
        segments = self._chunker.chunk(text, self._chunk_size, self._overlap)
        total = len(segments)
        base_meta: dict[str, Any] = {
            "file_name": metadata.file_name,
            "mime_type": metadata.mime_type,
            "source_id": metadata.source_id,
            "processor_type": self.processor_type,
        }
        if extra:
            base_meta.update(extra)
        return [
            ProcessedChunk(
                content=segment,
                chunk_index=index,
                chunk_total=total,
                metadata=dict(base_meta),
            )
            for index, segment in enumerate(segments)
        ]


def normalize_mime(mime_type: str) -> str:
    """Lower-case and drop parameters: ``"Text/HTML; charset=utf-8"`` -> ``"text/html"``."""
    return mime_type.split(";", 1)[0].strip().lower()
