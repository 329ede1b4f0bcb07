"""Video data models shared by the extraction engine and the API."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import structlog

logger = structlog.get_logger(__name__)

UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_FORMAT_ID = "unknown"
UNKNOWN_RESOLUTION = "unknown"
AUDIO_ONLY_RESOLUTION = "audio only"


@dataclass(frozen=True)
class Format:
    """One candidate media stream offered for a video."""

    format_id: str
    ext: str
    resolution: str  # "1080p", "1920x1080", "128kbps", "audio only"
    filesize: Optional[int] = None  # bytes
    audio_only: bool = False


@dataclass(frozen=True)
class VideoInfo:
    """Video metadata with a ranked format list."""

    title: str = UNKNOWN_TITLE
    duration: int = 0  # seconds
    thumbnail: Optional[str] = None
    formats: Tuple[Format, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class TempFile:
    """A validated download result on local disk.

    The caller owns the file and must call discard() once the contents
    have been consumed.
    """

    path: Path
    size: int
    ext: str

    def discard(self) -> None:
        """Delete the file, ignoring a file that is already gone."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("temp_file_delete_failed", path=str(self.path), error=str(e))
            return
        logger.debug("temp_file_deleted", path=str(self.path))
