"""Video metadata extraction through ``yt-dlp --dump-json``."""

import json
import math
from typing import Any, Dict, List, Optional

import structlog

from mediagrab.core.process import run_process
from mediagrab.models.video import UNKNOWN_TITLE, Format, VideoInfo
from mediagrab.providers.commands import CommandBuilder, Operation
from mediagrab.providers.exceptions import (
    ExtractorNotFoundError,
    MalformedOutputError,
    OperationTimeoutError,
)
from mediagrab.providers.formats import DEFAULT_MAX_FORMATS, select_formats

logger = structlog.get_logger(__name__)

# Characters of unparseable output surfaced in errors
EXCERPT_LENGTH = 200

# Output lines kept from one metadata run
DEFAULT_CAPTURE_LINES = 100


def _log_line(line: str) -> None:
    # The JSON body is one long line; only its start goes to the log.
    logger.debug("extractor_output", line=line[:EXCERPT_LENGTH])


def _string(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _duration(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return 0
    try:
        seconds = float(value)
    except (ValueError, OverflowError):
        return 0
    if not math.isfinite(seconds):
        return 0
    return max(int(seconds), 0)


def parse_metadata(output: str) -> Dict[str, Any]:
    """Decode the JSON object at the start of extractor output.

    Args:
        output: Combined stdout/stderr of ``yt-dlp --dump-json``

    Returns:
        The decoded object

    Raises:
        MalformedOutputError: If the output does not start with a JSON object
    """
    text = output.strip()
    if not text.startswith("{"):
        raise MalformedOutputError(
            "Invalid response from extractor", excerpt=text[:EXCERPT_LENGTH]
        )

    try:
        # Only the first object is decoded; trailing diagnostics are ignored.
        data, _ = json.JSONDecoder().raw_decode(text)
    except json.JSONDecodeError as e:
        raise MalformedOutputError(
            f"Failed to parse extractor output ({e.msg})", excerpt=text[:EXCERPT_LENGTH]
        )

    if not isinstance(data, dict):
        raise MalformedOutputError("Extractor output is not an object", excerpt=text[:EXCERPT_LENGTH])
    return data


def build_video_info(data: Dict[str, Any], max_formats: int = DEFAULT_MAX_FORMATS) -> VideoInfo:
    """Map decoded metadata to VideoInfo, applying defaults for missing fields."""
    raw_formats = data.get("formats")
    formats: List[Format] = select_formats(
        raw_formats if isinstance(raw_formats, list) else None, max_formats
    )
    return VideoInfo(
        title=_string(data.get("title")) or UNKNOWN_TITLE,
        duration=_duration(data.get("duration")),
        thumbnail=_string(data.get("thumbnail")),
        formats=tuple(formats),
    )


class MetadataExtractor:
    """Runs yt-dlp in metadata mode and produces VideoInfo records."""

    def __init__(
        self,
        commands: CommandBuilder,
        timeout: float = 120.0,
        max_formats: int = DEFAULT_MAX_FORMATS,
        stream_limit: int = 64 * 1024 * 1024,
        capture_lines: int = DEFAULT_CAPTURE_LINES,
    ):
        self.commands = commands
        self.timeout = timeout
        self.max_formats = max_formats
        self.stream_limit = stream_limit
        self.capture_lines = capture_lines

    async def extract_info(self, url: str) -> VideoInfo:
        """
        Extract video metadata.

        Args:
            url: Video page URL

        Returns:
            VideoInfo with ranked formats

        Raises:
            ExtractorNotFoundError: If yt-dlp cannot be started
            OperationTimeoutError: If yt-dlp exceeds the metadata timeout
            MalformedOutputError: If yt-dlp did not print a JSON object
        """
        cmd = self.commands.metadata(url)
        logger.info("metadata_extraction_started", url=url, command=cmd)

        try:
            result = await run_process(
                cmd,
                self.timeout,
                operation=Operation.METADATA.value,
                stream_limit=self.stream_limit,
                capture_lines=self.capture_lines,
                line_sink=_log_line,
            )
        except FileNotFoundError:
            logger.error("extractor_not_found", path=cmd[0])
            raise ExtractorNotFoundError(f"{cmd[0]} is not installed or not in PATH")
        except OSError as e:
            logger.error("extractor_spawn_failed", path=cmd[0], error=str(e))
            raise ExtractorNotFoundError(f"{cmd[0]} could not be started: {e}")

        if result.timed_out:
            raise OperationTimeoutError(
                f"Metadata extraction timed out after {self.timeout:g}s", result.tail(5)
            )

        try:
            data = parse_metadata(result.text)
        except MalformedOutputError as e:
            logger.error(
                "metadata_output_invalid",
                url=url,
                exit_status=result.exit_status,
                output_length=len(result.text),
                excerpt=e.excerpt,
            )
            raise

        if result.exit_status != 0:
            logger.warning(
                "metadata_nonzero_exit_with_output", url=url, exit_status=result.exit_status
            )

        info = build_video_info(data, self.max_formats)
        logger.info(
            "metadata_extracted",
            url=url,
            title=info.title,
            duration=info.duration,
            format_count=len(info.formats),
            elapsed=round(result.duration, 3),
        )
        return info

    async def get_formats(self, url: str) -> List[Format]:
        """List the ranked formats of a video (same derivation as extract_info)."""
        info = await self.extract_info(url)
        return list(info.formats)
