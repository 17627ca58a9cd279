"""OpenAI Whisper API transcription provider.

Cloud speech-to-text used by the audio document processor.  Audio bytes
are uploaded as an in-memory file; the API handles all decoding, so no
ffmpeg is needed locally.  Max file size is 25 MB per request.
"""

from __future__ import annotations

import io

import openai
import structlog

from roomrag.interfaces.transcription_provider import (
    ITranscriptionProvider,
    TranscriptionResult,
)
from roomrag.utils.errors import TranscriptionError

logger = structlog.get_logger(logger_name=__name__)


class WhisperAPIProvider(ITranscriptionProvider):
    """Transcription via the OpenAI Whisper API.

    Parameters
    ----------
    api_key:
        OpenAI API key.  An empty key makes the provider unavailable.
    model:
        Transcription model, ``whisper-1`` by default.
    base_url:
        Optional OpenAI-compatible endpoint.
    """

    def __init__(self, api_key: str, model: str = "whisper-1", base_url: str = "") -> None:
        self._api_key = api_key
        self._model = model or "whisper-1"
        client_kwargs: dict = {
            "api_key": api_key or "unset",
            "timeout": openai.Timeout(120.0, connect=5.0),
        }
        if base_url:
            client_kwargs["base_url"] = base_url
        self._client = openai.AsyncOpenAI(**client_kwargs)

    async def transcribe(
        self,
        audio: bytes,
        file_name: str,
        language: str | None = None,
    ) -> TranscriptionResult:
        """Transcribe audio using the Whisper API."""
        buffer = io.BytesIO(audio)
        # The API detects the container format from the upload's name.
        buffer.name = file_name or "audio.mp3"

        kwargs: dict = {
            "model": self._model,
            "file": buffer,
            "response_format": "text",
        }
        if language:
            kwargs["language"] = language

        try:
            response = await self._client.audio.transcriptions.create(**kwargs)
        except openai.APIError as exc:
            raise TranscriptionError(
                message=f"Whisper API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        # response_format="text" returns a plain string.
        text = response if isinstance(response, str) else getattr(response, "text", "")
        logger.info(
            "whisper_api_transcription_complete",
            model=self._model,
            file_name=file_name,
            characters=len(text),
        )
        return TranscriptionResult(text=text, model=self._model, language=language)

    def get_model_name(self) -> str:
        return self._model

    def get_provider_name(self) -> str:
        return "whisper_api"

    def is_available(self) -> bool:
        return bool(self._api_key)
