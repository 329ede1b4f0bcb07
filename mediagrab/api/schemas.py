"""Response schemas for API endpoints.

This module provides Pydantic models for response serialization with
OpenAPI examples. Video payload fields use camelCase on the wire.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from mediagrab.models.video import Format, VideoInfo


class FormatResponse(BaseModel):
    """One downloadable format."""

    model_config = ConfigDict(populate_by_name=True)

    format_id: str = Field(..., alias="formatId", examples=["22"])
    ext: str = Field(..., examples=["mp4"])
    resolution: str = Field(..., examples=["1280x720", "720p", "128kbps", "audio only"])
    filesize: Optional[int] = Field(None, description="Size in bytes", examples=[52428800])
    audio_only: bool = Field(False, alias="audioOnly", examples=[False])

    @classmethod
    def from_model(cls, fmt: Format) -> "FormatResponse":
        return cls(
            format_id=fmt.format_id,
            ext=fmt.ext,
            resolution=fmt.resolution,
            filesize=fmt.filesize,
            audio_only=fmt.audio_only,
        )


class VideoInfoResponse(BaseModel):
    """Video metadata response."""

    title: str = Field(..., examples=["Rick Astley - Never Gonna Give You Up"])
    duration: int = Field(..., description="Duration in seconds", examples=[212])
    thumbnail: Optional[str] = Field(
        None, examples=["https://i.ytimg.com/vi/dQw4w9WgXcQ/maxresdefault.jpg"]
    )
    formats: List[FormatResponse] = Field(
        default_factory=list, description="Audio formats first, then video by ascending quality"
    )

    @classmethod
    def from_model(cls, info: VideoInfo) -> "VideoInfoResponse":
        return cls(
            title=info.title,
            duration=info.duration,
            thumbnail=info.thumbnail,
            formats=[FormatResponse.from_model(f) for f in info.formats],
        )


class ErrorDetail(BaseModel):
    """Error response details."""

    error_code: str = Field(..., examples=["INVALID_URL"])
    message: str = Field(..., examples=["Invalid URL: must start with http"])
    details: Optional[str] = Field(None, description="Captured extractor output, if any")
    timestamp: str = Field(..., examples=["2025-01-06T10:30:00Z"])
    request_id: Optional[str] = Field(None, examples=["req_3f2a9c1b7d4e"])
    suggestion: Optional[str] = Field(
        None, examples=["Provide a full http(s) URL in the 'url' query parameter"]
    )


class ComponentHealth(BaseModel):
    """Health status of a single component."""

    status: Literal["healthy", "unhealthy"]
    version: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["healthy", "unhealthy"]
    timestamp: str
    version: str
    uptime_seconds: float
    components: Dict[str, ComponentHealth]


class LivenessResponse(BaseModel):
    """Liveness check response."""

    status: Literal["alive"] = "alive"


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    status: Literal["ready", "not_ready"]
    ready: bool
    message: Optional[str] = None
