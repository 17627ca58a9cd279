"""Application settings loaded from environment variables via pydantic-settings.

Configuration is read from two sources, in priority order:

  1. Environment variables, e.g. ``OPENAI_API_KEY=sk-abc123`` (always wins)
  2. A ``.env`` file in the working directory (local development)

Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``.  Defaults are
used when neither source sets a value.  An empty string means "not
configured": provider selection in ``roomrag/main.py`` skips it.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """roomrag application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # === LLM / embedding providers ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoints (TogetherAI, vLLM, ...)
    openai_chat_model: str = "gpt-4o-mini"
    openai_embedding_model: str = "text-embedding-3-small"
    openai_transcription_model: str = "whisper-1"
    ollama_base_url: str = "http://localhost:11434"
    ollama_chat_model: str = "llama3.1"

    # === Vector store ===
    vector_store_backend: str = "chromadb"  # "chromadb" or "memory"
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "roomrag_chunks"

    # === Chunking / indexing ===
    chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)
    min_short_text_length: int = 10
    index_concurrency: int = Field(default=4, ge=1)

    # === Retrieval ===
    search_limit: int = Field(default=10, ge=1)
    search_min_similarity: float = Field(default=0.7, ge=0.0, le=1.0)
    qa_min_similarity: float = Field(default=0.6, ge=0.0, le=1.0)
    recent_message_count: int = Field(default=20, ge=0)

    # === Generation ===
    llm_temperature: float = 0.7
    llm_max_tokens: int = 2000

    # === Timeouts / limits (seconds, bytes) ===
    external_call_timeout: float = 30.0
    stream_idle_timeout: float = 60.0
    download_timeout: float = 60.0
    max_download_bytes: int = 50 * 1024 * 1024

    # === App ===
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return LLM provider names that have usable configuration."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.ollama_base_url:
            providers.append("ollama")
        return providers
