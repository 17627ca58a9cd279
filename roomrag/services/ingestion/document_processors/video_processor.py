"""Document processor for video files: extract the audio track, transcribe, chunk.

The audio track is pulled out with the ``ffmpeg`` binary (mono, 16 kHz,
128 kbit/s mp3) inside a private temp directory that is always removed
afterwards; video bytes are never kept on disk.  The transcript then goes
through the same cleaning and chunking as an audio upload.

Like audio, missing pieces are a normal state: no transcriber, or no
``ffmpeg`` on the PATH, yields no chunks.  A video ffmpeg cannot decode
also yields no chunks.  Errors from a configured transcriber propagate.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import subprocess
import tempfile
from collections.abc import Callable

import structlog

from roomrag.interfaces.transcription_provider import ITranscriptionProvider
from roomrag.models.rag import DocumentMetadata, ProcessedChunk
from roomrag.services.ingestion.chunker import TextChunker
from roomrag.services.ingestion.document_processors.audio_processor import AudioProcessor
from roomrag.services.ingestion.document_processors.base import normalize_mime

logger = structlog.get_logger(logger_name=__name__)

_SUPPORTED_TYPES: list[str] = [
    "video/mp4",
    "video/webm",
    "video/quicktime",
    "video/x-msvideo",
    "video/x-matroska",
    "video/mpeg",
]

_EXTRACT_TIMEOUT_SECONDS = 300


def extract_audio_track(video: bytes, file_name: str) -> bytes:
    """Return the audio track of *video* as mp3 bytes.

    Blocking; run it in a worker thread.

    Raises
    ------
    OSError
        If ``ffmpeg`` cannot be started.
    subprocess.SubprocessError
        If ``ffmpeg`` fails or times out.
    """
    temp_dir = tempfile.mkdtemp(prefix="roomrag_video_")
    ext = os.path.splitext(file_name)[1] or ".mp4"
    input_path = os.path.join(temp_dir, f"input{ext}")
    output_path = os.path.join(temp_dir, "audio.mp3")
    try:
        with open(input_path, "wb") as f:
            f.write(video)
        subprocess.run(
            [
                "ffmpeg", "-y", "-i", input_path,
                "-vn", "-acodec", "libmp3lame", "-b:a", "128k",
                "-ac", "1", "-ar", "16000",
                output_path,
            ],
            capture_output=True,
            timeout=_EXTRACT_TIMEOUT_SECONDS,
            check=True,
        )
        with open(output_path, "rb") as f:
            return f.read()
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)


class VideoProcessor(AudioProcessor):
    """Handles any ``video/*`` type by transcribing its audio track.

    Parameters
    ----------
    chunker:
        Shared chunker.
    transcriber:
        Speech-to-text provider, or ``None`` when transcription is not
        configured.
    chunk_size, overlap:
        Per-type window overrides.
    audio_extractor:
        ``(video_bytes, file_name) -> audio_bytes``.  Defaults to
        :func:`extract_audio_track`, which needs ``ffmpeg`` on the PATH.
    """

    processor_type = "video"

    def __init__(
        self,
        chunker: TextChunker,
        transcriber: ITranscriptionProvider | None,
        chunk_size: int | None = None,
        overlap: int | None = None,
        audio_extractor: Callable[[bytes, str], bytes] | None = None,
    ) -> None:
        super().__init__(chunker, transcriber, chunk_size=chunk_size, overlap=overlap)
        self._audio_extractor = audio_extractor

    def supported_types(self) -> list[str]:
        return list(_SUPPORTED_TYPES)

    def can_process(self, mime_type: str) -> bool:
        return normalize_mime(mime_type).startswith("video/")

    @property
    def is_configured(self) -> bool:
        return super().is_configured and self._resolve_extractor() is not None

    async def process(self, data: bytes, metadata: DocumentMetadata) -> list[ProcessedChunk]:
        """Extract the audio track of *data*, transcribe and chunk it."""
        if not self._transcriber_ready(metadata):
            return []

        extractor = self._resolve_extractor()
        if extractor is None:
            logger.warning(
                "ffmpeg_not_installed",
                file_name=metadata.file_name,
                source_id=metadata.source_id,
            )
            return []

        try:
            audio = await asyncio.to_thread(extractor, data, metadata.file_name)
        except (OSError, subprocess.SubprocessError) as exc:
            logger.warning(
                "video_audio_extraction_failed",
                file_name=metadata.file_name,
                source_id=metadata.source_id,
                error=str(exc)[:200],
            )
            return []

        if not audio:
            logger.info(
                "video_without_audio",
                file_name=metadata.file_name,
                source_id=metadata.source_id,
            )
            return []

        stem = os.path.splitext(metadata.file_name)[0] or "video"
        return await self._transcribe_and_chunk(audio, f"{stem}.mp3", metadata)

    def _resolve_extractor(self) -> Callable[[bytes, str], bytes] | None:
        if self._audio_extractor is not None:
            return self._audio_extractor
        if shutil.which("ffmpeg") is None:
            return None
        return extract_audio_track
