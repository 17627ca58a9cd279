"""Abstract base class for audio transcription providers.

Concrete implementations wrap a specific speech-to-text backend behind
this interface so the audio document processor does not need to know which
backend is in use.  The provider is built once at startup; when no backend
is configured the processor receives ``None`` and yields no chunks.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict, Field


class TranscriptionResult(BaseModel):
    """Immutable result from an audio transcription."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Full transcribed text.")
    model: str = Field(description="Model that produced the transcript, e.g. 'whisper-1'.")
    language: str | None = Field(default=None, description="Language code, when known.")


class ITranscriptionProvider(ABC):
    """Contract for speech-to-text backends."""

    @abstractmethod
    async def transcribe(
        self,
        audio: bytes,
        file_name: str,
        language: str | None = None,
    ) -> TranscriptionResult:
        """Transcribe raw audio bytes to text.

        Parameters
        ----------
        audio:
            The encoded audio file (mp3, m4a, wav, ...).
        file_name:
            Original file name; backends use its extension to detect the
            container format.
        language:
            Optional ISO 639-1 language code.  ``None`` lets the backend
            auto-detect.

        Raises
        ------
        roomrag.utils.errors.TranscriptionError
            If the backend call fails.
        """

    @abstractmethod
    def get_model_name(self) -> str:
        """Return the transcription model identifier recorded in chunk metadata."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable name for this provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return True if the provider is ready to accept transcription requests."""
