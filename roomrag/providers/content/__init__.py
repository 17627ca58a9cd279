"""Content-store adapters."""

from roomrag.providers.content.json_export_content_store import JsonExportContentStore

__all__ = ["JsonExportContentStore"]
