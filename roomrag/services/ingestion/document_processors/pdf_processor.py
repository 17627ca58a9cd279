"""Document processor for PDF files.

Reads PDFs from memory using PyMuPDF (fitz), extracts text page by page,
joins pages with a paragraph break, cleans and chunks.  Works for
text-based PDFs and scanned PDFs carrying an OCR text layer; a PDF with
no extractable text yields no chunks.
"""

from __future__ import annotations

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from roomrag.models.rag import DocumentMetadata, ProcessedChunk
from roomrag.services.ingestion.document_processors.base import DocumentProcessor, clean_text

logger = structlog.get_logger(logger_name=__name__)


class PdfProcessor(DocumentProcessor):
    """Handles ``application/pdf``."""

    processor_type = "pdf"

    def supported_types(self) -> list[str]:
        return ["application/pdf"]

    async def process(self, data: bytes, metadata: DocumentMetadata) -> list[ProcessedChunk]:
        """Extract, clean and chunk the text layer of a PDF."""
        pages = self._extract_pages(data, metadata)
        if not pages:
            return []

        text = clean_text("\n\n".join(pages))
        if not text:
            return []

        chunks = self._build_chunks(text, metadata, {"page_count": len(pages)})
        logger.info(
            "pdf_processed",
            file_name=metadata.file_name,
            pages=len(pages),
            chunks=len(chunks),
        )
        return chunks

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _extract_pages(data: bytes, metadata: DocumentMetadata) -> list[str]:
        """Return the non-empty text of each page, in page order."""
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except (RuntimeError, ValueError) as exc:  # FileDataError is a RuntimeError
            logger.warning(
                "pdf_open_failed",
                file_name=metadata.file_name,
                source_id=metadata.source_id,
                error=str(exc),
            )
            return []

        pages: list[str] = []
        try:
            for page in doc:
                text = page.get_text("text").strip()
                if text:
                    pages.append(text)
        finally:
            doc.close()

        if not pages:
            logger.warning("pdf_no_text_extracted", file_name=metadata.file_name)
        return pages
