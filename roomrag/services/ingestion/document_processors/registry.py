"""Mime-type keyed registry of document processors.

Adding a file family means registering one more processor; nothing else
dispatches on mime type.  Processors are consulted in registration order
and the first one whose ``can_process`` accepts the type wins.
"""

from __future__ import annotations

import structlog

from roomrag.models.rag import DocumentMetadata, ProcessedChunk
from roomrag.services.ingestion.document_processors.base import DocumentProcessor

logger = structlog.get_logger(logger_name=__name__)


class ProcessorRegistry:
    """Selects a :class:`DocumentProcessor` per mime type."""

    def __init__(self, processors: list[DocumentProcessor] | None = None) -> None:
        self._processors: list[DocumentProcessor] = list(processors or [])

    def register(self, processor: DocumentProcessor) -> None:
        self._processors.append(processor)

    def find(self, mime_type: str) -> DocumentProcessor | None:
        """Return the first processor accepting *mime_type*, or ``None``."""
        for processor in self._processors:
            if processor.can_process(mime_type):
                return processor
        return None

    def can_process(self, mime_type: str) -> bool:
        return self.find(mime_type) is not None

    def supported_types(self) -> list[str]:
        """Union of the explicit types of all processors, in registration order."""
        seen: list[str] = []
        for processor in self._processors:
            for mime in processor.supported_types():
                if mime not in seen:
                    seen.append(mime)
        return seen

    async def process(self, data: bytes, metadata: DocumentMetadata) -> list[ProcessedChunk]:
        """Run the matching processor; unmatched mime types yield ``[]``."""
        processor = self.find(metadata.mime_type)
        if processor is None:
            logger.info(
                "unsupported_mime_type",
                mime_type=metadata.mime_type,
                file_name=metadata.file_name,
            )
            return []
        return await processor.process(data, metadata)
