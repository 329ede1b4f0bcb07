"""Download orchestration.

Routes a URL to the direct fetcher or to yt-dlp, runs the download under
an overall timeout and validates the produced file. Every failure path
deletes the temp file before the error propagates; on success the caller
owns the returned TempFile.
"""

import asyncio
import time
from pathlib import Path
from typing import Callable, List, Optional

import structlog

from mediagrab.core.metrics import MetricsCollector
from mediagrab.core.process import ProcessResult, run_process
from mediagrab.models.video import TempFile
from mediagrab.providers.commands import CommandBuilder, Operation
from mediagrab.providers.direct import DirectFetcher
from mediagrab.providers.domains import DomainClassifier
from mediagrab.providers.exceptions import (
    EmptyOrMissingFileError,
    ExtractorNotFoundError,
    MediaError,
    NonZeroExitError,
    OperationTimeoutError,
)
from mediagrab.providers.tempfiles import discard_stem, file_size, scoped_stem

logger = structlog.get_logger(__name__)

DEFAULT_VIDEO_EXT = "mp4"


def resolve_output_path(stem: Path, result: ProcessResult, default_ext: str) -> Path:
    """Find the file yt-dlp wrote for a stem.

    yt-dlp prints the final path (``--print after_move:filepath``). Only a
    printed path inside the allocated stem is trusted; otherwise the
    expected ``<stem>.<default_ext>`` is used.
    """
    prefix = str(stem) + "."
    for line in reversed(result.output):
        candidate = line.strip()
        if candidate.startswith(prefix) and not candidate.endswith(".part"):
            return Path(candidate)
    return stem.with_name(f"{stem.name}.{default_ext}")


class DownloadOrchestrator:
    """Downloads video or audio into validated temp files."""

    def __init__(
        self,
        commands: CommandBuilder,
        classifier: DomainClassifier,
        direct_fetcher: DirectFetcher,
        temp_dir: str,
        timeout: float = 600.0,
        error_tail_lines: int = 20,
    ):
        self.commands = commands
        self.classifier = classifier
        self.direct_fetcher = direct_fetcher
        self.temp_dir = temp_dir
        self.timeout = timeout
        self.error_tail_lines = error_tail_lines

    async def download_video(self, url: str) -> TempFile:
        """
        Download a video.

        Direct media links are fetched over HTTP; everything else goes
        through yt-dlp.

        Raises:
            OperationTimeoutError: If the download exceeded its timeout
            NonZeroExitError: If yt-dlp reported failure
            EmptyOrMissingFileError: If no non-empty file was produced
            MediaFetchError: If the direct HTTP fetch failed
            ExtractorNotFoundError: If yt-dlp cannot be started
        """
        ext = self.classifier.media_extension(url)
        if ext is not None:
            logger.info("download_routed", url=url, route="direct")
            return await self._fetch_direct(url, ext)

        logger.info("download_routed", url=url, route="extractor")
        return await self._run_extractor(
            url,
            Operation.VIDEO,
            prefix="video",
            default_ext=DEFAULT_VIDEO_EXT,
            build=lambda stem: self.commands.video(url, str(stem)),
        )

    async def download_audio(self, url: str, audio_format: str = "mp3") -> TempFile:
        """
        Download audio and transcode it to ``audio_format`` via yt-dlp.

        Raises:
            OperationTimeoutError: If the download exceeded its timeout
            NonZeroExitError: If yt-dlp reported failure
            EmptyOrMissingFileError: If no non-empty file was produced
            ExtractorNotFoundError: If yt-dlp cannot be started
        """
        return await self._run_extractor(
            url,
            Operation.AUDIO,
            prefix="audio",
            default_ext=audio_format,
            build=lambda stem: self.commands.audio(url, str(stem), audio_format),
        )

    async def _fetch_direct(self, url: str, ext: str) -> TempFile:
        try:
            temp_file = await asyncio.wait_for(
                self.direct_fetcher.fetch(url, ext), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            MetricsCollector.record_download("direct", "failed")
            raise OperationTimeoutError(f"Direct download timed out after {self.timeout:g}s")
        except MediaError:
            MetricsCollector.record_download("direct", "failed")
            raise
        MetricsCollector.record_download("direct", "success", temp_file.size)
        return temp_file

    async def _run_extractor(
        self,
        url: str,
        operation: Operation,
        prefix: str,
        default_ext: str,
        build: Callable[[Path], List[str]],
    ) -> TempFile:
        start = time.monotonic()
        try:
            with scoped_stem(self.temp_dir, prefix) as stem:
                cmd: List[str] = build(stem)
                logger.info("download_started", url=url, operation=operation.value, command=cmd)
                result = await self._run(cmd, operation)
                temp_file = self._validate(stem, result, default_ext)
                discard_stem(stem, keep=temp_file.path)
        except MediaError as e:
            MetricsCollector.record_download("extractor", "failed")
            logger.warning(
                "download_failed",
                url=url,
                operation=operation.value,
                error_type=type(e).__name__,
                duration=round(time.monotonic() - start, 3),
            )
            raise

        MetricsCollector.record_download("extractor", "success", temp_file.size)
        logger.info(
            "download_completed",
            url=url,
            operation=operation.value,
            path=str(temp_file.path),
            file_size=temp_file.size,
            duration=round(time.monotonic() - start, 3),
        )
        return temp_file

    async def _run(self, cmd: List[str], operation: Operation) -> ProcessResult:
        try:
            return await run_process(
                cmd,
                self.timeout,
                operation=operation.value,
                capture_lines=max(self.error_tail_lines, 1) * 5,
                line_sink=_log_progress,
            )
        except FileNotFoundError:
            logger.error("extractor_not_found", path=cmd[0])
            raise ExtractorNotFoundError(f"{cmd[0]} is not installed or not in PATH")
        except OSError as e:
            logger.error("extractor_spawn_failed", path=cmd[0], error=str(e))
            raise ExtractorNotFoundError(f"{cmd[0]} could not be started: {e}")

    def _validate(self, stem: Path, result: ProcessResult, default_ext: str) -> TempFile:
        """Check post-conditions; raising here lets scoped_stem clean up."""
        tail = result.tail(self.error_tail_lines)
        if result.timed_out:
            raise OperationTimeoutError(f"Download timed out after {self.timeout:g}s", tail)
        if result.exit_status != 0:
            raise NonZeroExitError(result.exit_status, tail)

        path = resolve_output_path(stem, result, default_ext)
        size: Optional[int] = file_size(path)
        if size is None:
            raise EmptyOrMissingFileError(f"Downloaded file is missing: {path.name}", tail)
        if size == 0:
            raise EmptyOrMissingFileError(f"Downloaded file is empty: {path.name}", tail)

        return TempFile(path=path, size=size, ext=path.suffix.lstrip(".") or default_ext)


def _log_progress(line: str) -> None:
    logger.debug("extractor_output", line=line)
