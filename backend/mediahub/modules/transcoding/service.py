"""Video processing orchestration.

A job downloads the source once, probes it, plans the quality ladder, then
encodes and uploads each tier in turn. Tier failures are logged and skipped;
anything that goes wrong outside a tier fails the whole job. The outcome is
delivered exactly once to a completion callback, which persists it.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional
from urllib.parse import urlparse

from mediahub.core.logging import correlation_scope, log_error, log_info
from mediahub.modules.transcoding.errors import MediaProcessingError, ProbeFailure
from mediahub.modules.transcoding.fetcher import SourceFetcher
from mediahub.modules.transcoding.ffmpeg import TranscodedTier, VideoTranscoder
from mediahub.modules.transcoding.ladder import plan_quality_ladder
from mediahub.modules.transcoding.probe import MediaProber
from mediahub.modules.transcoding.schemas import ProcessingResult, VideoVersion
from mediahub.modules.transcoding.scratch import scratch_dir
from mediahub.modules.transcoding.uploader import (
    VARIANT_CATEGORY,
    DerivativeUploader,
    build_storage_key,
)

logger = logging.getLogger(__name__)

VARIANT_CONTENT_TYPE = "video/mp4"

CompletionCallback = Callable[[ProcessingResult], Awaitable[None]]


@dataclass
class ProcessingJob:
    """Everything one run needs. Not persisted."""
    source_url: str
    owner_id: str
    filename: str
    media_id: str


class VideoProcessor:
    """Runs the derivative pipeline for one video."""

    def __init__(
        self,
        fetcher: Optional[SourceFetcher] = None,
        prober: Optional[MediaProber] = None,
        transcoder: Optional[VideoTranscoder] = None,
        uploader: Optional[DerivativeUploader] = None,
        scratch_directory: Optional[str] = None,
    ):
        self.fetcher = fetcher or SourceFetcher()
        self.prober = prober or MediaProber()
        self.transcoder = transcoder or VideoTranscoder()
        self.uploader = uploader or DerivativeUploader()
        self.scratch_directory = scratch_directory

    async def run(self, job: ProcessingJob) -> ProcessingResult:
        """Run the pipeline, turning job-level errors into a failed result."""
        try:
            return await self._run_pipeline(job)
        except Exception as e:
            log_error(logger, f"Processing failed for media {job.media_id}: {e}", exception=e)
            return ProcessingResult(success=False, error=str(e))

    async def _run_pipeline(self, job: ProcessingJob) -> ProcessingResult:
        with scratch_dir(self.scratch_directory) as workdir:
            source_path = workdir / f"source{_source_suffix(job)}"
            await self.fetcher.download_to_file(job.source_url, source_path)

            probe = await self.prober.probe(str(source_path))
            if not probe.width or not probe.height:
                raise ProbeFailure(f"No video stream found in {job.filename}")

            tiers = plan_quality_ladder(probe.width, probe.height)
            log_info(
                logger,
                f"Source {probe.resolution}, {probe.duration}s; "
                f"planned {', '.join(t.quality.value for t in tiers)}",
                media_id=job.media_id,
            )

            versions: list[VideoVersion] = []
            async for outcome in self.transcoder.transcode_ladder(source_path, tiers, probe, workdir):
                if not outcome.succeeded:
                    continue
                version = await self._upload_variant(job, outcome.result)
                if version is not None:
                    versions.append(version)

        log_info(logger, f"Processing finished: {len(versions)}/{len(tiers)} variants", media_id=job.media_id)

        return ProcessingResult(
            success=bool(versions),
            versions=versions,
            error=None if versions else "No quality variant could be produced",
            original_resolution=probe.resolution,
            duration=probe.duration,
        )

    async def _upload_variant(
        self,
        job: ProcessingJob,
        encoded: TranscodedTier,
    ) -> Optional[VideoVersion]:
        quality = encoded.tier.quality.value
        key = build_storage_key(job.owner_id, VARIANT_CATEGORY, quality, job.filename, "mp4")
        try:
            uploaded = await self.uploader.upload(encoded.output_path, key, VARIANT_CONTENT_TYPE)
        except MediaProcessingError as e:
            log_error(logger, f"Tier {quality} upload failed: {e}", quality=quality)
            return None
        except Exception as e:
            log_error(logger, f"Tier {quality} upload failed", exception=e, quality=quality)
            return None
        finally:
            encoded.output_path.unlink(missing_ok=True)

        return VideoVersion(
            quality=quality,
            label=encoded.tier.label,
            url=uploaded.url,
            key=uploaded.key,
            width=encoded.width,
            height=encoded.height,
            size=uploaded.size,
        )


def _source_suffix(job: ProcessingJob) -> str:
    return Path(urlparse(job.source_url).path).suffix or Path(job.filename).suffix


# In-flight background jobs, kept referenced until they finish
_running_jobs: set[asyncio.Task] = set()


async def process_and_report(
    job: ProcessingJob,
    on_complete: CompletionCallback,
    processor: Optional[VideoProcessor] = None,
) -> ProcessingResult:
    """Run a job and hand its result to ``on_complete`` exactly once.

    Errors raised by ``on_complete`` are logged and not retried.
    """
    processor = processor or VideoProcessor()
    with correlation_scope(job.media_id):
        log_info(logger, f"Processing started for {job.filename}", media_id=job.media_id)
        result = await processor.run(job)
        try:
            await on_complete(result)
        except Exception as e:
            log_error(logger, f"Could not persist processing result for media {job.media_id}", exception=e)
        return result


def start_video_processing(
    job: ProcessingJob,
    on_complete: CompletionCallback,
    processor: Optional[VideoProcessor] = None,
) -> asyncio.Task:
    """Launch a job in the background and return immediately.

    Must be called from a running event loop. The returned task can be
    awaited by callers that want the result; nothing requires it.
    """
    task = asyncio.create_task(
        process_and_report(job, on_complete, processor),
        name=f"process-video-{job.media_id}",
    )
    _running_jobs.add(task)
    task.add_done_callback(_running_jobs.discard)
    return task


async def wait_for_running_jobs() -> None:
    """Block until every job started in this process has reported."""
    if _running_jobs:
        await asyncio.gather(*_running_jobs, return_exceptions=True)
