"""HTTP service for video metadata and downloads backed by yt-dlp."""

__version__ = "1.0.0"
