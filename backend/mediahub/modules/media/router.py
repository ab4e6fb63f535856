"""Media API router.

Read-time access to derivatives plus the reprocess trigger. Upload intake
lives with the upload handler, which calls ``MediaService.register_upload``.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from mediahub.core.database import get_db
from mediahub.modules.media.schemas import (
    MediaResponse,
    ProcessingStatusResponse,
    ReprocessResponse,
    StreamUrlResponse,
)
from mediahub.modules.media.service import (
    MediaNotFoundError,
    MediaService,
    NotAVideoError,
    ProcessingAlreadyRunningError,
    ProcessingDispatchError,
)
from mediahub.modules.transcoding.models import DEFAULT_QUALITY, ORIGINAL_QUALITY
from mediahub.modules.transcoding.schemas import QualityOption

router = APIRouter(prefix="/media", tags=["media"])

QUALITY_PATTERN = f"^(1080p|720p|480p|{ORIGINAL_QUALITY})$"


def get_media_service(db: AsyncSession = Depends(get_db)) -> MediaService:
    return MediaService(db)


@router.get("/{media_id}", response_model=MediaResponse)
async def get_media(
    media_id: uuid.UUID,
    service: MediaService = Depends(get_media_service),
):
    try:
        media = await service.get_media(media_id)
    except MediaNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return MediaResponse.model_validate(media)


@router.get("/{media_id}/stream", response_model=StreamUrlResponse)
async def get_stream_url(
    media_id: uuid.UUID,
    quality: str = Query(DEFAULT_QUALITY, pattern=QUALITY_PATTERN),
    service: MediaService = Depends(get_media_service),
):
    """Playback URL at the requested quality, falling back to the best available."""
    try:
        return await service.get_stream_url(media_id, quality)
    except MediaNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/{media_id}/qualities", response_model=list[QualityOption])
async def get_available_qualities(
    media_id: uuid.UUID,
    service: MediaService = Depends(get_media_service),
):
    try:
        return await service.get_available_qualities(media_id)
    except MediaNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("/{media_id}/processing-status", response_model=ProcessingStatusResponse)
async def get_processing_status(
    media_id: uuid.UUID,
    service: MediaService = Depends(get_media_service),
):
    try:
        return await service.get_processing_status(media_id)
    except MediaNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.post(
    "/{media_id}/reprocess",
    response_model=ReprocessResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def reprocess_video(
    media_id: uuid.UUID,
    service: MediaService = Depends(get_media_service),
):
    """Re-run transcoding for a video that is not currently processing."""
    try:
        media = await service.reprocess(media_id)
    except MediaNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except NotAVideoError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ProcessingAlreadyRunningError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except ProcessingDispatchError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return ReprocessResponse(media_id=media.id, processing_status=media.processing_status)
