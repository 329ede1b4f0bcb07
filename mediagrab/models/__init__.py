"""Data models for the application."""

from mediagrab.models.video import Format, TempFile, VideoInfo

__all__ = [
    "Format",
    "TempFile",
    "VideoInfo",
]
