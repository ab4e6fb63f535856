"""Source fetching over HTTP(S) or from local ``file://`` URLs."""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

import httpx

from mediahub.core.config import settings
from mediahub.modules.transcoding.errors import DownloadFailure

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


def _local_path(url: str) -> Optional[Path]:
    parsed = urlparse(url)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    return None


def tool_input(url: str) -> str:
    """What to hand ffmpeg or ffprobe as input for ``url``."""
    local = _local_path(url)
    return str(local) if local is not None else url


class SourceFetcher:
    """Retrieves original asset bytes, following redirects."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout if timeout is not None else settings.SOURCE_FETCH_TIMEOUT_SECONDS
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            follow_redirects=True,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def fetch_bytes(self, url: str) -> bytes:
        """Fetch a whole asset into memory.

        Raises:
            DownloadFailure: On any transport error or non-2xx final response
        """
        local = _local_path(url)
        if local is not None:
            try:
                return await asyncio.to_thread(local.read_bytes)
            except OSError as e:
                raise DownloadFailure(url, str(e)) from e

        try:
            async with self._client() as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DownloadFailure(url, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise DownloadFailure(url, str(e)) from e

        logger.debug(f"Fetched {len(response.content)} bytes from {url}")
        return response.content

    async def download_to_file(self, url: str, destination: Path) -> int:
        """Stream an asset to ``destination``.

        Returns:
            Number of bytes written

        Raises:
            DownloadFailure: On any transport or filesystem error
        """
        local = _local_path(url)
        if local is not None:
            try:
                await asyncio.to_thread(shutil.copyfile, local, destination)
                return destination.stat().st_size
            except OSError as e:
                raise DownloadFailure(url, str(e)) from e

        written = 0
        try:
            async with self._client() as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()
                    f = await asyncio.to_thread(open, destination, "wb")
                    try:
                        async for chunk in response.aiter_bytes(CHUNK_SIZE):
                            await asyncio.to_thread(f.write, chunk)
                            written += len(chunk)
                    finally:
                        await asyncio.to_thread(f.close)
        except httpx.HTTPStatusError as e:
            raise DownloadFailure(url, f"HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, OSError) as e:
            raise DownloadFailure(url, str(e)) from e

        logger.info(f"Downloaded {written} bytes from {url}")
        return written
