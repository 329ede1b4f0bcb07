"""Video metadata endpoints."""

from typing import Any, List

import structlog
from fastapi import APIRouter, Depends, Query

from mediagrab.api.schemas import ErrorDetail, FormatResponse, VideoInfoResponse
from mediagrab.services.media_service import MediaService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/video", tags=["video"])

ERROR_RESPONSES: dict = {
    400: {"model": ErrorDetail, "description": "Invalid URL"},
    502: {"model": ErrorDetail, "description": "Extractor failed or returned bad output"},
    503: {"model": ErrorDetail, "description": "Extractor unavailable"},
    504: {"model": ErrorDetail, "description": "Extractor timed out"},
}


# Dependency placeholder for the media service
async def get_media_service() -> MediaService:
    """Get media service instance."""
    raise NotImplementedError("Media service dependency not configured")


@router.get(
    "/info",
    response_model=VideoInfoResponse,
    response_model_by_alias=True,
    responses=ERROR_RESPONSES,
)
async def get_video_info(
    url: str = Query(..., description="Video URL"),  # noqa: B008
    service: MediaService = Depends(get_media_service),  # noqa: B008
) -> Any:
    """
    Get video metadata.

    Returns title, duration, thumbnail and up to ten ranked formats:
    audio entries first, then video entries by ascending quality.
    """
    logger.info("video_info_requested", url=url)
    info = await service.extract_info(url)
    logger.info("video_info_retrieved", title=info.title, format_count=len(info.formats))
    return VideoInfoResponse.from_model(info)


@router.get(
    "/formats",
    response_model=List[FormatResponse],
    response_model_by_alias=True,
    responses=ERROR_RESPONSES,
)
async def get_video_formats(
    url: str = Query(..., description="Video URL"),  # noqa: B008
    service: MediaService = Depends(get_media_service),  # noqa: B008
) -> Any:
    """Get the ranked format list for a video."""
    logger.info("formats_requested", url=url)
    formats = await service.get_formats(url)
    logger.info("formats_retrieved", url=url, total_formats=len(formats))
    return [FormatResponse.from_model(f) for f in formats]
