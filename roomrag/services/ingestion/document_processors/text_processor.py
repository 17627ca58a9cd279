"""Document processor for text-like files (plain, markdown, CSV, HTML, JSON, XML).

Decodes bytes as UTF-8 (undecodable bytes become U+FFFD rather than
failing the upload), strips markup from HTML with BeautifulSoup, cleans
whitespace and control characters, then chunks.
"""

from __future__ import annotations

from bs4 import BeautifulSoup
import structlog

from roomrag.models.rag import DocumentMetadata, ProcessedChunk
from roomrag.services.ingestion.document_processors.base import (
    DocumentProcessor,
    clean_text,
    normalize_mime,
)

logger = structlog.get_logger(logger_name=__name__)

_SUPPORTED_TYPES: list[str] = [
    "text/plain",
    "text/markdown",
    "text/x-markdown",
    "text/csv",
    "text/html",
    "application/xhtml+xml",
    "text/xml",
    "application/json",
    "application/xml",
]

_HTML_TYPES = frozenset({"text/html", "application/xhtml+xml"})


class TextProcessor(DocumentProcessor):
    """Handles any ``text/*`` type plus JSON and XML."""

    processor_type = "text"

    def supported_types(self) -> list[str]:
        return list(_SUPPORTED_TYPES)

    def can_process(self, mime_type: str) -> bool:
        mime = normalize_mime(mime_type)
        return mime.startswith("text/") or mime in _SUPPORTED_TYPES

    async def process(self, data: bytes, metadata: DocumentMetadata) -> list[ProcessedChunk]:
        """Decode, clean and chunk a text document."""
        raw = data.decode("utf-8", errors="replace")
        if normalize_mime(metadata.mime_type) in _HTML_TYPES:
            raw = self._html_to_text(raw)

        text = clean_text(raw)
        if not text:
            logger.info(
                "text_processor_empty",
                file_name=metadata.file_name,
                source_id=metadata.source_id,
            )
            return []

        chunks = self._build_chunks(text, metadata)
        logger.info(
            "text_processed",
            file_name=metadata.file_name,
            mime_type=metadata.mime_type,
            characters=len(text),
            chunks=len(chunks),
        )
        return chunks

    @staticmethod
    def _html_to_text(html: str) -> str:
        soup = BeautifulSoup(html, "html.parser")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        return soup.get_text(separator="\n")
