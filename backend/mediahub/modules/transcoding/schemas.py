"""Pydantic schemas for video derivatives."""

from typing import Optional

from pydantic import BaseModel, Field


class VideoVersion(BaseModel):
    """One stored variant, as persisted in ``video_versions``."""
    quality: str
    label: str
    url: str
    key: str
    width: int
    height: int
    size: int = Field(..., ge=0, description="Size in bytes")


class ProcessingResult(BaseModel):
    """Terminal outcome handed to the completion callback."""
    success: bool
    versions: list[VideoVersion] = Field(default_factory=list)
    error: Optional[str] = None
    original_resolution: Optional[str] = None
    duration: Optional[float] = None


class QualityOption(BaseModel):
    """A quality a client can ask for."""
    quality: str
    label: str
    url: str
    width: Optional[int] = None
    height: Optional[int] = None
