"""URL classification for routing and command building."""

from typing import Iterable, Optional, Tuple
from urllib.parse import urlparse

import structlog

logger = structlog.get_logger(__name__)


def _hostname(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def _path(url: str) -> str:
    try:
        return urlparse(url).path.lower()
    except ValueError:
        return ""


class DomainClassifier:
    """Decides how a URL must be handled.

    Args:
        script_runtime_domains: Hosts (and their subdomains) whose pages need
            a JavaScript runtime for yt-dlp to resolve playable streams.
        direct_extensions: Container extensions fetchable over plain HTTP.
        script_runtime_enabled: When False no URL requires the runtime.
    """

    def __init__(
        self,
        script_runtime_domains: Iterable[str],
        direct_extensions: Iterable[str],
        script_runtime_enabled: bool = True,
    ):
        self.script_runtime_domains: Tuple[str, ...] = tuple(
            d.lower().lstrip(".") for d in script_runtime_domains
        )
        self.direct_extensions: Tuple[str, ...] = tuple(e.lower() for e in direct_extensions)
        self.script_runtime_enabled = script_runtime_enabled

    def needs_script_runtime(self, url: str) -> bool:
        """True if the URL host is on the script runtime allow-list."""
        if not self.script_runtime_enabled:
            return False
        host = _hostname(url)
        if not host:
            return False
        return any(host == d or host.endswith(f".{d}") for d in self.script_runtime_domains)

    def media_extension(self, url: str) -> Optional[str]:
        """Return the recognized container extension of the URL path, if any."""
        path = _path(url)
        for ext in self.direct_extensions:
            if path.endswith(ext):
                return ext
        return None

    def is_direct_media(self, url: str) -> bool:
        """True if the URL points straight at a container file."""
        return self.media_extension(url) is not None
