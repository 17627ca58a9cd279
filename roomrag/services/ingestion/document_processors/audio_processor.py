"""Document processor for audio files: transcribe, clean, chunk.

The transcription provider is injected once at startup.  ``None`` (no
credentials configured) or an unavailable provider is a normal state: the
processor logs a warning and returns no chunks instead of failing the
whole ingestion.  Errors from a configured provider propagate so the
caller can retry or record them.
"""

from __future__ import annotations

import structlog

from roomrag.interfaces.transcription_provider import ITranscriptionProvider
from roomrag.models.rag import DocumentMetadata, ProcessedChunk
from roomrag.services.ingestion.chunker import TextChunker
from roomrag.services.ingestion.document_processors.base import (
    DocumentProcessor,
    clean_text,
    normalize_mime,
)

logger = structlog.get_logger(logger_name=__name__)

_SUPPORTED_TYPES: list[str] = [
    "audio/mpeg",
    "audio/mp4",
    "audio/x-m4a",
    "audio/m4a",
    "audio/wav",
    "audio/x-wav",
    "audio/webm",
    "audio/ogg",
    "audio/flac",
    "audio/x-flac",
    "audio/aac",
]


class AudioProcessor(DocumentProcessor):
    """Handles any ``audio/*`` type via speech-to-text.

    Parameters
    ----------
    chunker:
        Shared chunker.
    transcriber:
        Speech-to-text provider, or ``None`` when transcription is not
        configured.
    chunk_size, overlap:
        Per-type window overrides.
    """

    processor_type = "audio"

    def __init__(
        self,
        chunker: TextChunker,
        transcriber: ITranscriptionProvider | None,
        chunk_size: int | None = None,
        overlap: int | None = None,
    ) -> None:
        super().__init__(chunker, chunk_size=chunk_size, overlap=overlap)
        self._transcriber = transcriber

    def supported_types(self) -> list[str]:
        return list(_SUPPORTED_TYPES)

    def can_process(self, mime_type: str) -> bool:
        mime = normalize_mime(mime_type)
        return mime.startswith("audio/") or mime in _SUPPORTED_TYPES

    @property
    def is_configured(self) -> bool:
        return self._transcriber is not None and self._transcriber.is_available()

    async def process(self, data: bytes, metadata: DocumentMetadata) -> list[ProcessedChunk]:
        """Transcribe *data* and chunk the cleaned transcript."""
        if not self._transcriber_ready(metadata):
            return []
        return await self._transcribe_and_chunk(data, metadata.file_name, metadata)

    # ------------------------------------------------------------------
    # Shared with VideoProcessor
    # ------------------------------------------------------------------

    def _transcriber_ready(self, metadata: DocumentMetadata) -> bool:
        if self._transcriber is None or not self._transcriber.is_available():
            logger.warning(
                f"{self.processor_type}_transcription_unavailable",
                file_name=metadata.file_name,
                source_id=metadata.source_id,
            )
            return False
        return True

    async def _transcribe_and_chunk(
        self,
        audio: bytes,
        upload_name: str,
        metadata: DocumentMetadata,
    ) -> list[ProcessedChunk]:
        result = await self._transcriber.transcribe(audio, upload_name)
        transcript = clean_text(result.text, strip_lines=True)
        if not transcript:
            logger.info(
                f"{self.processor_type}_transcript_empty",
                file_name=metadata.file_name,
                source_id=metadata.source_id,
            )
            return []

        extra = {"transcription_model": result.model}
        if result.language:
            extra["language"] = result.language
        chunks = self._build_chunks(transcript, metadata, extra)

        logger.info(
            f"{self.processor_type}_processed",
            file_name=metadata.file_name,
            transcription_model=result.model,
            characters=len(transcript),
            chunks=len(chunks),
        )
        return chunks
