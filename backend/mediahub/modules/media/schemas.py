"""Pydantic schemas for media records."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from mediahub.modules.media.models import MediaType
from mediahub.modules.transcoding.models import ProcessingStatus
from mediahub.modules.transcoding.schemas import QualityOption, VideoVersion


class UploadedAsset(BaseModel):
    """An original that has already been stored by the upload handler."""
    media_type: MediaType
    url: str = Field(..., description="Public URL of the stored original")
    owner_id: str
    filename: str
    storage_key: Optional[str] = None
    mimetype: Optional[str] = None
    size: Optional[int] = Field(None, ge=0)
    metadata: Optional[dict] = None


class MediaResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    type: MediaType
    url: str
    owner_id: str
    filename: str
    mimetype: Optional[str] = None
    size: Optional[int] = None
    thumbnail_url: Optional[str] = None
    thumbnail_key: Optional[str] = None
    video_versions: list[VideoVersion] = Field(default_factory=list)
    processing_status: Optional[ProcessingStatus] = None
    created_at: Optional[datetime] = None


class ProcessingStatusResponse(BaseModel):
    media_id: uuid.UUID
    processing_status: Optional[ProcessingStatus] = None
    video_versions: list[VideoVersion] = Field(default_factory=list)
    available_qualities: list[QualityOption] = Field(default_factory=list)


class StreamUrlResponse(BaseModel):
    media_id: uuid.UUID
    quality: str
    url: str


class ReprocessResponse(BaseModel):
    media_id: uuid.UUID
    processing_status: ProcessingStatus
