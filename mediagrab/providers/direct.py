"""Plain HTTP download for URLs that point straight at a media file."""

import time
from pathlib import Path
from typing import Optional

import httpx
import structlog

from mediagrab.models.video import TempFile
from mediagrab.providers.exceptions import (
    EmptyOrMissingFileError,
    MediaFetchError,
    OperationTimeoutError,
)
from mediagrab.providers.tempfiles import file_size, scoped_stem

logger = structlog.get_logger(__name__)


class DirectFetcher:
    """Streams a direct media URL into a temp file without invoking yt-dlp."""

    def __init__(
        self,
        temp_dir: str,
        user_agent: str,
        connect_timeout: float = 30.0,
        read_timeout: float = 120.0,
        chunk_size: int = 8192,
        progress_interval: int = 1024 * 1024,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            temp_dir: Directory for temp files
            user_agent: User-Agent header sent to origin servers
            connect_timeout: Seconds allowed to establish the connection
            read_timeout: Seconds allowed between received chunks
            chunk_size: Bytes per streamed chunk
            progress_interval: Bytes between progress log events
            transport: Optional httpx transport (used by tests)
        """
        self.temp_dir = temp_dir
        self.user_agent = user_agent
        self.timeout = httpx.Timeout(read_timeout, connect=connect_timeout)
        self.chunk_size = chunk_size
        self.progress_interval = progress_interval
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers={"User-Agent": self.user_agent},
            timeout=self.timeout,
            follow_redirects=True,
            transport=self.transport,
        )

    async def _stream_to(self, url: str, path: Path) -> int:
        total = 0
        next_report = self.progress_interval
        async with self._client() as client:
            async with client.stream("GET", url) as response:
                response.raise_for_status()
                with path.open("wb") as f:
                    async for chunk in response.aiter_bytes(self.chunk_size):
                        f.write(chunk)
                        total += len(chunk)
                        if total >= next_report:
                            logger.info(
                                "direct_fetch_progress",
                                url=url,
                                downloaded_kb=total // 1024,
                            )
                            next_report += self.progress_interval
        return total

    async def fetch(self, url: str, ext: str = ".mp4") -> TempFile:
        """
        Download a direct media URL.

        Args:
            url: URL of the media file
            ext: Extension of the temp file, with leading dot

        Returns:
            Validated temp file; the caller owns deletion

        Raises:
            OperationTimeoutError: If connecting or reading timed out
            MediaFetchError: On HTTP status, network or disk errors
            EmptyOrMissingFileError: If the body was empty
        """
        start = time.monotonic()
        logger.info("direct_fetch_started", url=url)

        with scoped_stem(self.temp_dir, "video") as stem:
            path = stem.with_name(f"{stem.name}{ext}")
            try:
                await self._stream_to(url, path)
            except httpx.TimeoutException as e:
                logger.warning("direct_fetch_timeout", url=url, error=str(e))
                raise OperationTimeoutError(f"Direct download timed out: {e}")
            except httpx.HTTPStatusError as e:
                logger.warning(
                    "direct_fetch_http_error", url=url, status=e.response.status_code
                )
                raise MediaFetchError(
                    f"Origin server returned HTTP {e.response.status_code} for {url}"
                )
            except (httpx.HTTPError, OSError) as e:
                logger.warning("direct_fetch_failed", url=url, error=str(e))
                raise MediaFetchError(f"Direct download failed: {e}")

            size = file_size(path)
            if not size:
                raise EmptyOrMissingFileError(f"Direct download of {url} produced an empty file")

        logger.info(
            "direct_fetch_completed",
            url=url,
            path=str(path),
            file_size=size,
            duration=round(time.monotonic() - start, 3),
        )
        return TempFile(path=path, size=size, ext=ext.lstrip("."))
