"""Download endpoints.

Both endpoints block until the file is complete on local disk, then stream
it back as an attachment. The temp file is deleted by a background task
once the body has been sent.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from mediagrab.api.schemas import ErrorDetail
from mediagrab.models.video import TempFile
from mediagrab.services.media_service import MediaService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/video", tags=["download"])

DOWNLOAD_RESPONSES: dict = {
    200: {
        "content": {"application/octet-stream": {}},
        "description": "The downloaded file as an attachment",
    },
    400: {"model": ErrorDetail, "description": "Invalid URL or audio format"},
    502: {"model": ErrorDetail, "description": "Download failed"},
    503: {"model": ErrorDetail, "description": "Extractor unavailable"},
    504: {"model": ErrorDetail, "description": "Download timed out"},
}


# Dependency placeholder for the media service
async def get_media_service() -> MediaService:
    """Get media service instance."""
    raise NotImplementedError("Media service dependency not configured")


def attachment(temp_file: TempFile, basename: str) -> FileResponse:
    """Stream a temp file as ``<basename>.<ext>`` and delete it afterwards."""
    filename = f"{basename}.{temp_file.ext}"
    logger.info(
        "download_streaming",
        path=str(temp_file.path),
        filename=filename,
        file_size=temp_file.size,
    )
    return FileResponse(
        path=temp_file.path,
        media_type="application/octet-stream",
        filename=filename,
        background=BackgroundTask(temp_file.discard),
    )


@router.get("/download", response_class=FileResponse, responses=DOWNLOAD_RESPONSES)
async def download_video(
    url: str = Query(..., description="Video URL or direct media link"),  # noqa: B008
    service: MediaService = Depends(get_media_service),  # noqa: B008
) -> FileResponse:
    """
    Download a video.

    Direct links to .mp4, .webm or .mkv files are fetched over HTTP;
    everything else goes through yt-dlp. Responds with
    ``Content-Disposition: attachment; filename="video.<ext>"``.
    """
    logger.info("video_download_requested", url=url)
    temp_file = await service.download_video(url)
    return attachment(temp_file, "video")


@router.get("/download/audio", response_class=FileResponse, responses=DOWNLOAD_RESPONSES)
async def download_audio(
    url: str = Query(..., description="Video URL"),  # noqa: B008
    audio_format: Optional[str] = Query(  # noqa: B008
        None,
        alias="format",
        description="Target audio format",
        examples=["mp3", "m4a", "opus"],
    ),
    service: MediaService = Depends(get_media_service),  # noqa: B008
) -> FileResponse:
    """
    Download audio only, transcoded to the requested format (mp3 by default).

    Responds with ``Content-Disposition: attachment; filename="audio.<ext>"``.
    """
    logger.info("audio_download_requested", url=url, audio_format=audio_format)
    temp_file = await service.download_audio(url, audio_format)
    return attachment(temp_file, "audio")
