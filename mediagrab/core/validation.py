"""Input validation utilities for the API layer."""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional

import structlog

from mediagrab.providers.exceptions import InvalidAudioFormatError

logger = structlog.get_logger(__name__)


class AudioFormat(str, Enum):
    """Audio formats yt-dlp can extract to (--audio-format)."""

    MP3 = "mp3"
    M4A = "m4a"
    AAC = "aac"
    FLAC = "flac"
    OPUS = "opus"
    VORBIS = "vorbis"
    WAV = "wav"
    ALAC = "alac"


@dataclass(frozen=True)
class ValidationResult:
    """Result of a validation operation."""

    is_valid: bool
    error_message: Optional[str] = None
    sanitized_value: Optional[str] = None


class URLValidator:
    """Validates that a URL is an http(s) URL."""

    # Dangerous URL schemes that should always be rejected
    DANGEROUS_SCHEMES: FrozenSet[str] = frozenset(
        {
            "javascript",
            "data",
            "file",
            "vbscript",
            "about",
        }
    )

    def validate(self, url: Optional[str]) -> ValidationResult:
        """Validate a URL.

        Args:
            url: URL to validate

        Returns:
            ValidationResult with validation status and any error message
        """
        if not url or not isinstance(url, str):
            return ValidationResult(
                is_valid=False, error_message="URL is required and must be a string"
            )

        url = url.strip()
        if not url:
            return ValidationResult(is_valid=False, error_message="URL cannot be empty")

        scheme = url.split(":", 1)[0].lower() if ":" in url else ""
        if scheme in self.DANGEROUS_SCHEMES:
            logger.warning("Dangerous URL scheme detected", url=url, scheme=scheme)
            return ValidationResult(
                is_valid=False, error_message=f"URL scheme '{scheme}' is not allowed"
            )

        if not url.startswith("http"):
            return ValidationResult(is_valid=False, error_message="Invalid URL: must start with http")

        if any(ch.isspace() for ch in url):
            return ValidationResult(is_valid=False, error_message="URL must not contain whitespace")

        return ValidationResult(is_valid=True, sanitized_value=url)


def validate_audio_format(value: str) -> str:
    """Normalize an audio format name.

    Raises:
        InvalidAudioFormatError: If the format is not supported
    """
    try:
        return AudioFormat(value.strip().lower()).value
    except ValueError:
        valid = ", ".join(f.value for f in AudioFormat)
        raise InvalidAudioFormatError(f"Invalid audio format '{value}'. Valid options: {valid}")
