"""Format filtering and ranking.

Turns the raw ``formats`` array of yt-dlp metadata into a short, ordered
list a client can pick from: audio entries first, then video entries from
lowest to highest quality tier.
"""

import math
import re
from typing import Any, Dict, List, Optional, Sequence

from mediagrab.models.video import (
    AUDIO_ONLY_RESOLUTION,
    UNKNOWN_FORMAT_ID,
    UNKNOWN_RESOLUTION,
    Format,
)

DEFAULT_MAX_FORMATS = 10

# yt-dlp names thumbnail sprite formats sb0, sb1, ...
STORYBOARD_PREFIX = "sb"

AUDIO_TIER = 0

# Quality tier by picture height
QUALITY_TIERS: Dict[int, int] = {
    144: 1,
    240: 2,
    360: 3,
    480: 4,
    720: 5,
    1080: 6,
    1440: 7,
    2160: 8,
}
UNRANKED_TIER = max(QUALITY_TIERS.values()) + 1

_WIDTH_HEIGHT = re.compile(r"^\s*(\d+)\s*x\s*(\d+)\s*$", re.IGNORECASE)
_HEIGHT_P = re.compile(r"^\s*(\d+)p", re.IGNORECASE)


def _has_codec(value: Any) -> bool:
    return isinstance(value, str) and value.strip() not in ("", "none")


def _number(value: Any) -> Optional[float]:
    """Finite float for a JSON number or numeric string, else None."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    # NaN and Infinity are valid JSON to Python but never a real size or bitrate
    return number if math.isfinite(number) else None


def is_audio_only(raw: Dict[str, Any]) -> bool:
    """Classify a raw format record as audio-only.

    A record is audio-only when it carries no video codec and either says so
    explicitly (``vcodec == "none"``) or reports an audio bitrate or codec.
    """
    vcodec = raw.get("vcodec")
    if _has_codec(vcodec):
        return False
    if vcodec == "none":
        return True
    return _number(raw.get("abr")) is not None or _has_codec(raw.get("acodec"))


def resolution_label(raw: Dict[str, Any], audio_only: bool) -> str:
    """Human-readable resolution label for a raw format record."""
    if audio_only:
        abr = _number(raw.get("abr"))
        if abr is not None and abr > 0:
            return f"{round(abr)}kbps"
        return AUDIO_ONLY_RESOLUTION

    resolution = raw.get("resolution")
    if isinstance(resolution, str) and resolution.strip():
        return resolution.strip()
    return UNKNOWN_RESOLUTION


def quality_tier(label: str) -> int:
    """Ordinal used for sorting video entries; unknown labels rank last."""
    match = _WIDTH_HEIGHT.match(label)
    if match:
        # Portrait video reports WxH with the larger side second
        short_side = min(int(match.group(1)), int(match.group(2)))
        return QUALITY_TIERS.get(short_side, UNRANKED_TIER)
    match = _HEIGHT_P.match(label)
    if match:
        return QUALITY_TIERS.get(int(match.group(1)), UNRANKED_TIER)
    return UNRANKED_TIER


def _filesize(raw: Dict[str, Any]) -> Optional[int]:
    for key in ("filesize", "filesize_approx"):
        size = _number(raw.get(key))
        if size is not None and size >= 0:
            return int(size)
    return None


def _parse_format(raw: Dict[str, Any]) -> Optional[Format]:
    ext = raw.get("ext")
    if not isinstance(ext, str) or not ext:
        return None

    format_id = raw.get("format_id")
    format_id = str(format_id) if format_id not in (None, "") else UNKNOWN_FORMAT_ID
    if format_id.startswith(STORYBOARD_PREFIX):
        return None

    audio_only = is_audio_only(raw)
    label = resolution_label(raw, audio_only)
    if label == UNKNOWN_RESOLUTION:
        return None

    return Format(
        format_id=format_id,
        ext=ext,
        resolution=label,
        filesize=_filesize(raw),
        audio_only=audio_only,
    )


def _sort_key(fmt: Format) -> int:
    if fmt.audio_only:
        return AUDIO_TIER
    return quality_tier(fmt.resolution)


def select_formats(
    raw_formats: Optional[Sequence[Any]], limit: int = DEFAULT_MAX_FORMATS
) -> List[Format]:
    """Filter, classify, rank and truncate raw yt-dlp format records.

    Args:
        raw_formats: The ``formats`` array from ``--dump-json`` output
        limit: Maximum number of formats returned

    Returns:
        Formats with audio entries first (in source order), then video
        entries by ascending quality tier (stable within a tier).
    """
    if not raw_formats:
        return []

    parsed = [
        fmt
        for fmt in (_parse_format(raw) for raw in raw_formats if isinstance(raw, dict))
        if fmt is not None
    ]
    parsed.sort(key=_sort_key)
    return parsed[: max(limit, 0)]
