"""Service layer implementations."""

from mediagrab.services.media_service import (
    MediaService,
    configure_media_service,
    get_media_service,
)

__all__ = [
    "MediaService",
    "configure_media_service",
    "get_media_service",
]
