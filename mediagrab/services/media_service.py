"""Media service facade.

Assembles the extraction engine from the startup configuration and
exposes the four operations the API needs.
"""

from pathlib import Path
from typing import List, Optional

import httpx
import structlog

from mediagrab import __version__
from mediagrab.core.config import Config
from mediagrab.core.startup import RuntimeEnvironment
from mediagrab.core.validation import URLValidator, validate_audio_format
from mediagrab.models.video import Format, TempFile, VideoInfo
from mediagrab.providers.commands import CommandBuilder
from mediagrab.providers.direct import DirectFetcher
from mediagrab.providers.domains import DomainClassifier
from mediagrab.providers.downloader import DownloadOrchestrator
from mediagrab.providers.exceptions import InvalidURLError
from mediagrab.providers.metadata import MetadataExtractor

logger = structlog.get_logger(__name__)


class MediaService:
    """Entry point for metadata extraction and downloads."""

    def __init__(
        self,
        extractor: MetadataExtractor,
        downloader: DownloadOrchestrator,
        default_audio_format: str = "mp3",
        url_validator: Optional[URLValidator] = None,
    ):
        self.extractor = extractor
        self.downloader = downloader
        self.default_audio_format = default_audio_format
        self.url_validator = url_validator or URLValidator()

    @classmethod
    def from_config(
        cls,
        config: Config,
        environment: RuntimeEnvironment,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "MediaService":
        """Build the service graph from immutable startup state."""
        temp_dir = str(Path(environment.temp_dir).resolve())
        classifier = DomainClassifier(
            config.extractor.script_runtime_domains,
            config.direct_fetch.extensions,
            script_runtime_enabled=environment.script_runtime is not None,
        )
        commands = CommandBuilder(
            environment.extractor_path,
            classifier,
            script_runtime=environment.script_runtime,
            video_format=config.downloads.video_format,
        )
        direct_cfg = config.direct_fetch
        fetcher = DirectFetcher(
            temp_dir,
            user_agent=direct_cfg.user_agent or f"mediagrab/{__version__}",
            connect_timeout=direct_cfg.connect_timeout,
            read_timeout=direct_cfg.read_timeout,
            chunk_size=direct_cfg.chunk_size,
            progress_interval=direct_cfg.progress_interval,
            transport=transport,
        )
        extractor = MetadataExtractor(
            commands,
            timeout=config.timeouts.metadata,
            max_formats=config.formats.max_formats,
            stream_limit=config.extractor.stream_limit,
            capture_lines=config.extractor.metadata_capture_lines,
        )
        downloader = DownloadOrchestrator(
            commands,
            classifier,
            fetcher,
            temp_dir,
            timeout=config.timeouts.download,
            error_tail_lines=config.downloads.error_tail_lines,
        )
        logger.info(
            "media_service_configured",
            extractor=environment.extractor_path,
            script_runtime=environment.script_runtime,
            temp_dir=temp_dir,
            metadata_timeout=config.timeouts.metadata,
            download_timeout=config.timeouts.download,
        )
        return cls(
            extractor,
            downloader,
            default_audio_format=config.downloads.default_audio_format,
        )

    def _check_url(self, url: str) -> str:
        validation = self.url_validator.validate(url)
        if not validation.is_valid:
            raise InvalidURLError(validation.error_message or "Invalid URL")
        return validation.sanitized_value or url

    async def extract_info(self, url: str) -> VideoInfo:
        return await self.extractor.extract_info(self._check_url(url))

    async def get_formats(self, url: str) -> List[Format]:
        return await self.extractor.get_formats(self._check_url(url))

    async def download_video(self, url: str) -> TempFile:
        return await self.downloader.download_video(self._check_url(url))

    async def download_audio(self, url: str, audio_format: Optional[str] = None) -> TempFile:
        url = self._check_url(url)
        fmt = validate_audio_format(audio_format or self.default_audio_format)
        return await self.downloader.download_audio(url, fmt)


_media_service: Optional[MediaService] = None


def configure_media_service(
    config: Config,
    environment: RuntimeEnvironment,
) -> MediaService:
    """Create the process-wide media service (called once at startup)."""
    global _media_service
    _media_service = MediaService.from_config(config, environment)
    return _media_service


def get_media_service() -> MediaService:
    """Get the configured media service instance."""
    if _media_service is None:
        raise RuntimeError("Media service not configured")
    return _media_service
