"""Retrieval and indexing services.

- ``ingestion/``         -- chunking, document processors, embedding indexer
- ``similarity_search``  -- query embedding and ranked, scoped search
- ``rag_service``        -- question answering with recency fallback
- ``answer_stream``      -- the same answers as a typed event stream
- ``bulk_indexer``       -- room- and organization-wide re-index jobs
"""
