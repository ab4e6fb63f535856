"""Repository for media records."""

import uuid
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mediahub.modules.media.models import Media, MediaType, utcnow
from mediahub.modules.transcoding.models import ProcessingStatus
from mediahub.modules.transcoding.schemas import ProcessingResult


def merge_source_facts(metadata: Optional[dict], result: ProcessingResult) -> Optional[dict]:
    """Fold a job's probed resolution and duration into stored metadata."""
    merged = dict(metadata or {})
    if result.original_resolution:
        merged["original_resolution"] = result.original_resolution
        width, _, height = result.original_resolution.partition("x")
        if width.isdigit() and height.isdigit():
            merged.setdefault("width", int(width))
            merged.setdefault("height", int(height))
    if result.duration is not None:
        merged.setdefault("duration", result.duration)
    return merged or metadata


class MediaRepository:
    """Repository for Media operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        media_type: MediaType,
        url: str,
        owner_id: str,
        filename: str,
        storage_key: Optional[str] = None,
        mimetype: Optional[str] = None,
        size: Optional[int] = None,
        media_metadata: Optional[dict] = None,
        thumbnail_url: Optional[str] = None,
        thumbnail_key: Optional[str] = None,
        media_id: Optional[uuid.UUID] = None,
    ) -> Media:
        """Create a media record.

        Videos start with ``processing`` status; other types carry none.
        """
        media = Media(
            id=media_id or uuid.uuid4(),
            type=media_type,
            url=url,
            owner_id=owner_id,
            filename=filename,
            storage_key=storage_key,
            mimetype=mimetype,
            size=size,
            media_metadata=media_metadata,
            thumbnail_url=thumbnail_url,
            thumbnail_key=thumbnail_key,
            video_versions=[],
            processing_status=(
                ProcessingStatus.PROCESSING if media_type == MediaType.VIDEO else None
            ),
        )
        self.session.add(media)
        await self.session.flush()
        return media

    async def get_by_id(self, media_id: uuid.UUID) -> Optional[Media]:
        """Get an active media record by ID."""
        result = await self.session.execute(
            select(Media).where(Media.id == media_id, Media.active.is_(True))
        )
        return result.scalar_one_or_none()

    async def mark_processing(self, media: Media) -> Media:
        media.processing_status = ProcessingStatus.PROCESSING
        await self.session.flush()
        return media

    async def save_processing_result(
        self,
        media_id: uuid.UUID,
        result: ProcessingResult,
    ) -> bool:
        """Write the variant list, terminal status and probed source facts.

        The write is a single UPDATE; the stored metadata is read first so
        the resolution and duration found by the job are merged into it.

        Returns:
            False when the record no longer exists
        """
        current = await self.session.execute(
            select(Media.media_metadata).where(Media.id == media_id)
        )
        row = current.first()
        if row is None:
            return False

        status = ProcessingStatus.COMPLETED if result.success else ProcessingStatus.FAILED
        outcome = await self.session.execute(
            update(Media)
            .where(Media.id == media_id)
            .values(
                video_versions=[v.model_dump() for v in result.versions],
                processing_status=status,
                media_metadata=merge_source_facts(row[0], result),
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        return outcome.rowcount > 0

    async def list_by_status(
        self,
        status: ProcessingStatus,
        limit: int = 100,
    ) -> list[Media]:
        result = await self.session.execute(
            select(Media)
            .where(Media.processing_status == status, Media.active.is_(True))
            .order_by(Media.created_at)
            .limit(limit)
        )
        return list(result.scalars().all())
