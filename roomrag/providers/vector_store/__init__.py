"""Vector store provider implementations.

- ChromaDBProvider    -- persistent, cosine-space collection on local disk
                         (CHROMADB_PERSIST_DIR, default ./data/chromadb)
- InMemoryVectorStore -- numpy cosine over an in-process dict; tests and
                         ephemeral runs

To swap in another vector database, implement IVectorStoreProvider and
select it in roomrag/main.py.
"""

from roomrag.providers.vector_store.chromadb_provider import ChromaDBProvider
from roomrag.providers.vector_store.memory_store import InMemoryVectorStore

__all__ = ["ChromaDBProvider", "InMemoryVectorStore"]
