"""Public interface definitions for all external collaborators.

Every external API or service is accessed through the abstract base
classes in this package.  Concrete adapters implement them and are wired
together in ``roomrag/main.py``; unit tests inject mocks or the in-memory
implementations instead.

CONCRETE PROVIDER MAP:
    Interface               ->  Concrete implementations (in roomrag/providers/)
    -----------------------------------------------------------------------
    ILLMProvider            ->  OpenAILLMProvider, OllamaLLMProvider
    IEmbeddingProvider      ->  OpenAIEmbeddingProvider, NomicEmbeddingProvider
    ITranscriptionProvider  ->  WhisperAPIProvider
    IVectorStoreProvider    ->  ChromaDBProvider, InMemoryVectorStore
    IContentStore           ->  JsonExportContentStore
    IObjectStorage          ->  supplied by the hosting platform
    IAccessPolicy           ->  supplied by the hosting platform
"""

from roomrag.interfaces.access_policy import IAccessPolicy
from roomrag.interfaces.content_store import IContentStore
from roomrag.interfaces.embedding_provider import IEmbeddingProvider
from roomrag.interfaces.llm_provider import ILLMProvider
from roomrag.interfaces.object_storage import IObjectStorage
from roomrag.interfaces.transcription_provider import ITranscriptionProvider, TranscriptionResult
from roomrag.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IAccessPolicy",
    "IContentStore",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IObjectStorage",
    "ITranscriptionProvider",
    "IVectorStoreProvider",
    "TranscriptionResult",
]
