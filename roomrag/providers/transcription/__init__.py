"""Speech-to-text adapters used by the audio document processor."""

from roomrag.providers.transcription.whisper_api_provider import WhisperAPIProvider

__all__ = ["WhisperAPIProvider"]
