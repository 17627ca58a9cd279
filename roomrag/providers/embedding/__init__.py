"""Embedding provider adapters.

- OpenAIEmbeddingProvider -- text-embedding-3-small (1536 dims), API key required
- NomicEmbeddingProvider  -- nomic-embed-text via a local Ollama server (768 dims)
"""

from roomrag.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from roomrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["NomicEmbeddingProvider", "OpenAIEmbeddingProvider"]
