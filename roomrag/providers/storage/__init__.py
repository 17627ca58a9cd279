"""File download adapters."""

from roomrag.providers.storage.http_file_downloader import HttpFileDownloader

__all__ = ["HttpFileDownloader"]
