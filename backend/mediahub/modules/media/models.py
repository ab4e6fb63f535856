"""Database model for uploaded media."""

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Enum as SQLEnum,
    String,
    Uuid,
)

from mediahub.core.database import Base
from mediahub.modules.transcoding.models import ProcessingStatus


class MediaType(str, Enum):
    """Kind of uploaded asset."""
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Media(Base):
    """An uploaded asset and its derivatives."""
    __tablename__ = "media"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    type = Column(
        SQLEnum(MediaType, name="media_type", values_callable=_enum_values),
        nullable=False,
    )
    url = Column(String(2048), nullable=False)
    storage_key = Column(String(1024), nullable=True)
    owner_id = Column(String(64), nullable=False, index=True)
    filename = Column(String(512), nullable=False)
    mimetype = Column(String(255), nullable=True)
    size = Column(BigInteger, nullable=True)  # bytes
    media_metadata = Column("metadata", JSON, nullable=True)

    # Derivatives
    thumbnail_url = Column(String(2048), nullable=True)
    thumbnail_key = Column(String(1024), nullable=True)
    video_versions = Column(JSON, nullable=False, default=list)

    # Video only; null for images and audio
    processing_status = Column(
        SQLEnum(ProcessingStatus, name="processing_status", values_callable=_enum_values),
        nullable=True,
        index=True,
    )

    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def is_video(self) -> bool:
        return self.type == MediaType.VIDEO

    def __repr__(self) -> str:
        status = self.processing_status.value if self.processing_status else "-"
        return f"<Media {self.id} - {self.type.value} - {status}>"
