"""Downloads uploaded files from presigned object-storage URLs.

The ``httpx.AsyncClient`` is injected for testability and connection
pooling.  The body is streamed and the download aborted as soon as it
exceeds ``max_bytes``, so an oversized upload never lands in memory whole.
"""

from __future__ import annotations

import httpx
import structlog

from roomrag.utils.errors import DownloadError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MAX_BYTES = 50 * 1024 * 1024


class HttpFileDownloader:
    """Fetches raw file bytes over HTTP(S).

    Parameters
    ----------
    http_client:
        Shared async client.
    timeout:
        Per-request timeout in seconds.
    max_bytes:
        Downloads larger than this raise :class:`DownloadError`.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        timeout: float = 60.0,
        max_bytes: int = _DEFAULT_MAX_BYTES,
    ) -> None:
        self._http = http_client
        self._timeout = timeout
        self._max_bytes = max_bytes

    async def fetch(self, url: str) -> bytes:
        """Return the body at *url*.

        Raises
        ------
        DownloadError
            On transport errors, non-2xx responses, or bodies over the size cap.
        """
        try:
            async with self._http.stream(
                "GET", url, timeout=self._timeout, follow_redirects=True
            ) as response:
                if response.status_code >= 400:
                    raise DownloadError(
                        message=f"Download failed with HTTP {response.status_code}",
                        provider_name=self.get_provider_name(),
                    )
                declared = response.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > self._max_bytes:
                    raise DownloadError(
                        message=f"File exceeds {self._max_bytes} bytes",
                        provider_name=self.get_provider_name(),
                    )

                body = bytearray()
                async for part in response.aiter_bytes():
                    body.extend(part)
                    if len(body) > self._max_bytes:
                        raise DownloadError(
                            message=f"File exceeds {self._max_bytes} bytes",
                            provider_name=self.get_provider_name(),
                        )
        except httpx.HTTPError as exc:
            logger.warning("file_download_failed", error=str(exc))
            raise DownloadError(
                message=f"Download failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.debug("file_downloaded", size=len(body))
        return bytes(body)

    def get_provider_name(self) -> str:
        return "http"
