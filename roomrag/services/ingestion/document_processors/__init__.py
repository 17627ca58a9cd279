"""Document processors for the ingestion pipeline.

Each processor converts one family of uploaded files into cleaned,
chunked text ready for embedding:

- **TextProcessor**  -- ``text/*``, JSON and XML; HTML stripped via BeautifulSoup
- **AudioProcessor** -- ``audio/*`` via an injected speech-to-text provider
- **PdfProcessor**   -- ``application/pdf`` via PyMuPDF page extraction
- **VideoProcessor** -- ``video/*``: ffmpeg audio extraction, then the audio path

``ProcessorRegistry`` picks the processor for a mime type.
"""

from roomrag.services.ingestion.document_processors.audio_processor import AudioProcessor
from roomrag.services.ingestion.document_processors.base import DocumentProcessor, clean_text
from roomrag.services.ingestion.document_processors.pdf_processor import PdfProcessor
from roomrag.services.ingestion.document_processors.registry import ProcessorRegistry
from roomrag.services.ingestion.document_processors.text_processor import TextProcessor
from roomrag.services.ingestion.document_processors.video_processor import VideoProcessor

__all__ = [
    "AudioProcessor",
    "DocumentProcessor",
    "PdfProcessor",
    "ProcessorRegistry",
    "TextProcessor",
    "VideoProcessor",
    "clean_text",
]
