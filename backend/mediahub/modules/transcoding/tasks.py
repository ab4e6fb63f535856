"""Celery tasks for video processing.

Used when ``PROCESSING_BACKEND=celery``: the API commits the ``processing``
status and enqueues the media id; the worker runs the same pipeline and
persists through the same completion callback as the inline backend.
"""

import asyncio
import logging
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from mediahub.core.celery_app import celery_app
from mediahub.core.database import async_session_maker, engine
from mediahub.modules.media.repository import MediaRepository
from mediahub.modules.media.service import persist_processing_result
from mediahub.modules.transcoding.schemas import ProcessingResult
from mediahub.modules.transcoding.service import (
    ProcessingJob,
    VideoProcessor,
    process_and_report,
)

logger = logging.getLogger(__name__)


async def process_media(
    media_id: str,
    session_factory: async_sessionmaker = async_session_maker,
    processor: Optional[VideoProcessor] = None,
) -> ProcessingResult:
    """Load a media record and run its processing job to completion."""
    async with session_factory() as session:
        media = await MediaRepository(session).get_by_id(uuid.UUID(media_id))

    if media is None:
        logger.warning(f"Media {media_id} not found; nothing to process")
        return ProcessingResult(success=False, error=f"Media {media_id} not found")

    job = ProcessingJob(
        source_url=media.url,
        owner_id=media.owner_id,
        filename=media.filename,
        media_id=str(media.id),
    )
    return await process_and_report(
        job,
        persist_processing_result(media.id, session_factory),
        processor,
    )


async def _run_in_worker(media_id: str) -> ProcessingResult:
    try:
        return await process_media(media_id)
    finally:
        # Pooled connections belong to this event loop, which is about to close
        await engine.dispose()


@celery_app.task(name="mediahub.process_video")
def process_video_task(media_id: str) -> dict:
    """Transcode a stored video into its quality ladder.

    Args:
        media_id: UUID of the media record

    Returns:
        The processing result as a dict
    """
    result = asyncio.run(_run_in_worker(media_id))
    return result.model_dump()
