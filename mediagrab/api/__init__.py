"""API endpoints."""

from mediagrab.api import download, health, metrics, video

__all__ = [
    "download",
    "health",
    "metrics",
    "video",
]
