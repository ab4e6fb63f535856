"""Media service: upload registration, reprocessing and quality lookup."""

import asyncio
import logging
import uuid
import weakref
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mediahub.core.config import settings
from mediahub.core.database import async_session_maker
from mediahub.core.logging import log_error
from mediahub.modules.media.metadata import MetadataExtractor
from mediahub.modules.media.models import Media, MediaType
from mediahub.modules.media.repository import MediaRepository
from mediahub.modules.media.schemas import (
    ProcessingStatusResponse,
    StreamUrlResponse,
    UploadedAsset,
)
from mediahub.modules.thumbnail.generator import ThumbnailGenerator, ThumbnailRequest
from mediahub.modules.transcoding.models import DEFAULT_QUALITY, ORIGINAL_QUALITY, ProcessingStatus
from mediahub.modules.transcoding.resolver import available_qualities, resolve_quality_url
from mediahub.modules.transcoding.schemas import ProcessingResult, QualityOption
from mediahub.modules.transcoding.service import (
    CompletionCallback,
    ProcessingJob,
    VideoProcessor,
    start_video_processing,
)

logger = logging.getLogger(__name__)


class MediaServiceError(Exception):
    """Base exception for media service errors."""

    pass


class MediaNotFoundError(MediaServiceError):
    """Raised when media is not found."""

    pass


class ProcessingAlreadyRunningError(MediaServiceError):
    """Raised when a video is already being processed."""

    pass


class NotAVideoError(MediaServiceError):
    """Raised when a video-only operation targets another media type."""

    pass


class ProcessingDispatchError(MediaServiceError):
    """Raised when a job could not be handed to the processing backend."""

    pass


# One lock per media id while someone holds it; entries vanish afterwards.
_media_locks: "weakref.WeakValueDictionary[uuid.UUID, asyncio.Lock]" = weakref.WeakValueDictionary()


def _media_lock(media_id: uuid.UUID) -> asyncio.Lock:
    lock = _media_locks.get(media_id)
    if lock is None:
        lock = asyncio.Lock()
        _media_locks[media_id] = lock
    return lock


def persist_processing_result(
    media_id: uuid.UUID,
    session_factory: async_sessionmaker = async_session_maker,
) -> CompletionCallback:
    """Completion callback writing a job's outcome with its own session."""

    async def on_complete(result: ProcessingResult) -> None:
        async with session_factory() as session:
            found = await MediaRepository(session).save_processing_result(media_id, result)
            await session.commit()
        if not found:
            log_error(logger, f"Media {media_id} disappeared before its result was saved")

    return on_complete


def _launch(
    media: Media,
    processor: Optional[VideoProcessor],
    on_complete: CompletionCallback,
) -> Optional[asyncio.Task]:
    if settings.PROCESSING_BACKEND == "celery":
        from mediahub.modules.transcoding.tasks import process_video_task

        process_video_task.delay(str(media.id))
        return None

    job = ProcessingJob(
        source_url=media.url,
        owner_id=media.owner_id,
        filename=media.filename,
        media_id=str(media.id),
    )
    return start_video_processing(job, on_complete, processor)


async def dispatch_processing(
    media: Media,
    processor: Optional[VideoProcessor] = None,
    session_factory: async_sessionmaker = async_session_maker,
) -> Optional[asyncio.Task]:
    """Hand a video to the configured processing backend.

    The record is already committed as ``processing``. If the backend
    refuses the job, the failure is persisted through the completion
    callback so the record ends ``failed`` and can be reprocessed.

    Returns the background task for the inline backend, ``None`` for Celery.

    Raises:
        ProcessingDispatchError: The backend did not accept the job
    """
    on_complete = persist_processing_result(media.id, session_factory)
    try:
        return _launch(media, processor, on_complete)
    except Exception as e:
        log_error(logger, f"Could not dispatch processing for media {media.id}", exception=e)
        await on_complete(
            ProcessingResult(success=False, error=f"Processing could not be started: {e}")
        )
        raise ProcessingDispatchError(f"Processing could not be started for media {media.id}") from e


class MediaService:
    """Service for media records and their derivatives."""

    def __init__(
        self,
        session: AsyncSession,
        thumbnails: Optional[ThumbnailGenerator] = None,
        processor: Optional[VideoProcessor] = None,
        session_factory: async_sessionmaker = async_session_maker,
        metadata: Optional[MetadataExtractor] = None,
    ):
        self.session = session
        self.repository = MediaRepository(session)
        self._thumbnails = thumbnails
        self._metadata = metadata
        self.processor = processor
        self.session_factory = session_factory
        self.last_dispatch: Optional[asyncio.Task] = None

    @property
    def thumbnails(self) -> ThumbnailGenerator:
        if self._thumbnails is None:
            self._thumbnails = ThumbnailGenerator()
        return self._thumbnails

    @property
    def metadata(self) -> MetadataExtractor:
        if self._metadata is None:
            self._metadata = MetadataExtractor()
        return self._metadata

    async def register_upload(self, asset: UploadedAsset) -> Media:
        """Record an uploaded original.

        The thumbnail and the technical metadata are read first, both
        best-effort. Caller-supplied metadata keys win over extracted ones.
        Videos are committed with ``processing`` status and then handed to
        the processing backend; if the backend refuses the job the record
        is returned already marked ``failed``.
        """
        thumbnail, extracted = await asyncio.gather(
            self.thumbnails.generate_thumbnail(
                ThumbnailRequest(
                    media_type=asset.media_type,
                    url=asset.url,
                    owner_id=asset.owner_id,
                    filename=asset.filename,
                )
            ),
            self.metadata.extract(asset.media_type, asset.url),
        )
        media_metadata = {**(extracted or {}), **(asset.metadata or {})} or None

        media = await self.repository.create(
            media_type=asset.media_type,
            url=asset.url,
            owner_id=asset.owner_id,
            filename=asset.filename,
            storage_key=asset.storage_key,
            mimetype=asset.mimetype,
            size=asset.size,
            media_metadata=media_metadata,
            thumbnail_url=thumbnail.url,
            thumbnail_key=thumbnail.key,
        )
        await self.session.commit()

        if media.is_video:
            try:
                self.last_dispatch = await dispatch_processing(
                    media, self.processor, self.session_factory
                )
            except ProcessingDispatchError:
                await self.session.refresh(media)

        logger.info(f"Registered {media.type.value} {media.id} for owner {media.owner_id}")
        return media

    async def get_media(self, media_id: uuid.UUID) -> Media:
        media = await self.repository.get_by_id(media_id)
        if media is None:
            raise MediaNotFoundError(f"Media {media_id} not found")
        return media

    async def reprocess(self, media_id: uuid.UUID) -> Media:
        """Re-run video processing against the stored original.

        Raises:
            MediaNotFoundError: Unknown media
            NotAVideoError: Media is not a video
            ProcessingAlreadyRunningError: A job is already in flight
            ProcessingDispatchError: The backend refused the job; the record
                is left ``failed``
        """
        async with _media_lock(media_id):
            media = await self.get_media(media_id)
            if not media.is_video:
                raise NotAVideoError(f"Media {media_id} is not a video")
            if media.processing_status == ProcessingStatus.PROCESSING:
                raise ProcessingAlreadyRunningError(f"Media {media_id} is already being processed")

            await self.repository.mark_processing(media)
            await self.session.commit()

        self.last_dispatch = await dispatch_processing(media, self.processor, self.session_factory)
        logger.info(f"Reprocessing media {media_id}")
        return media

    async def get_processing_status(self, media_id: uuid.UUID) -> ProcessingStatusResponse:
        media = await self.get_media(media_id)
        return ProcessingStatusResponse(
            media_id=media.id,
            processing_status=media.processing_status,
            video_versions=media.video_versions or [],
            available_qualities=self._qualities(media),
        )

    async def get_stream_url(
        self,
        media_id: uuid.UUID,
        quality: str = DEFAULT_QUALITY,
    ) -> StreamUrlResponse:
        """URL to play ``media_id`` at ``quality``, with fallback."""
        media = await self.get_media(media_id)
        if media.type != MediaType.VIDEO:
            return StreamUrlResponse(media_id=media.id, quality=ORIGINAL_QUALITY, url=media.url)

        url = resolve_quality_url(quality, media.video_versions, media.url)
        return StreamUrlResponse(media_id=media.id, quality=quality, url=url)

    async def get_available_qualities(self, media_id: uuid.UUID) -> list[QualityOption]:
        media = await self.get_media(media_id)
        return self._qualities(media)

    def _qualities(self, media: Media) -> list[QualityOption]:
        """Playable qualities of a video; other media types have none."""
        if not media.is_video:
            return []
        metadata = media.media_metadata or {}
        return available_qualities(
            media.video_versions,
            media.url,
            metadata.get("width"),
            metadata.get("height"),
        )
