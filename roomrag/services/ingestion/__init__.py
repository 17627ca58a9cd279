"""Ingestion pipeline for room content.

Pipeline stages overview:

1. **Process** (document_processors/) -- format-specific readers turn raw
   uploads (text, HTML, PDF, audio) into cleaned, chunked text.

2. **Chunk** (chunker.py / TextChunker) -- splits text into overlapping
   character windows, cutting at paragraph, line or sentence boundaries
   where one falls in the second half of the window.

3. **Embed + Store** (embedding_indexer.py / EmbeddingIndexer) -- embeds
   each chunk set in one batched call and swaps it into the vector store,
   one source at a time.

The IngestionService reacts to chat events (message created, attachment
uploaded) and drives the stages above.
"""

from roomrag.services.ingestion.chunker import TextChunker
from roomrag.services.ingestion.embedding_indexer import EmbeddingIndexer
from roomrag.services.ingestion.ingestion_service import (
    IngestionService,
    message_index_request,
)

__all__ = [
    "EmbeddingIndexer",
    "IngestionService",
    "TextChunker",
    "message_index_request",
]
