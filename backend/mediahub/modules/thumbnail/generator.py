"""Thumbnail generation dispatched on media type.

Every asset gets at most one square WebP preview:

* images are fetched and cropped directly
* videos contribute the frame at half their duration
* audio contributes its embedded cover art, when there is any

``generate_thumbnail`` is best-effort and never raises; callers store
whatever it returns, including the empty result.
"""

import asyncio
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional

from PIL import Image

from mediahub.core.config import settings
from mediahub.core.logging import log_warning
from mediahub.modules.media.models import MediaType
from mediahub.modules.transcoding.errors import (
    EncodeFailure,
    ThumbnailUnavailable,
)
from mediahub.modules.transcoding.fetcher import SourceFetcher, tool_input
from mediahub.modules.transcoding.ffmpeg import run_ffmpeg_once
from mediahub.modules.transcoding.probe import MediaProber
from mediahub.modules.transcoding.scratch import scratch_file
from mediahub.modules.transcoding.uploader import (
    THUMBNAIL_CATEGORY,
    DerivativeUploader,
    build_storage_key,
)

logger = logging.getLogger(__name__)

THUMBNAIL_CONTENT_TYPE = "image/webp"

ToolRunner = Callable[[list[str], float], Awaitable[None]]


@dataclass
class ThumbnailRequest:
    media_type: MediaType
    url: str
    owner_id: str
    filename: str


@dataclass
class ThumbnailResult:
    """Stored thumbnail, or both fields ``None`` when there is none."""
    url: Optional[str] = None
    key: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.url is not None


def frame_timestamp(duration: Optional[float]) -> float:
    """Seek position for a video's preview frame."""
    if not duration or duration < 1:
        return 0.5
    return duration / 2


class ThumbnailGenerator:
    """Builds and stores thumbnails."""

    def __init__(
        self,
        fetcher: Optional[SourceFetcher] = None,
        prober: Optional[MediaProber] = None,
        uploader: Optional[DerivativeUploader] = None,
        ffmpeg_path: Optional[str] = None,
        size: Optional[int] = None,
        quality: Optional[int] = None,
        frame_timeout: Optional[float] = None,
        cover_timeout: Optional[float] = None,
        tool_runner: Optional[ToolRunner] = None,
        scratch_directory: Optional[str] = None,
    ):
        self.fetcher = fetcher or SourceFetcher()
        self.prober = prober or MediaProber()
        self.uploader = uploader or DerivativeUploader()
        self.ffmpeg_path = ffmpeg_path or settings.FFMPEG_PATH
        self.size = size or settings.THUMBNAIL_SIZE
        self.quality = quality or settings.THUMBNAIL_QUALITY
        self.frame_timeout = (
            frame_timeout if frame_timeout is not None else settings.THUMBNAIL_FRAME_TIMEOUT_SECONDS
        )
        self.cover_timeout = (
            cover_timeout if cover_timeout is not None else settings.THUMBNAIL_COVER_TIMEOUT_SECONDS
        )
        self.tool_runner = tool_runner or run_ffmpeg_once
        self.scratch_directory = scratch_directory

        self._handlers: dict[MediaType, Callable[[str], Awaitable[bytes]]] = {
            MediaType.IMAGE: self._from_image,
            MediaType.VIDEO: self._from_video,
            MediaType.AUDIO: self._from_audio,
        }

    async def generate_thumbnail(self, request: ThumbnailRequest) -> ThumbnailResult:
        """Build and upload a thumbnail; an empty result on any failure."""
        try:
            data = await self.create_thumbnail(request)
            key = build_storage_key(
                request.owner_id,
                THUMBNAIL_CATEGORY,
                f"thumb_{self.size}",
                request.filename,
                "webp",
            )
            uploaded = await self.uploader.upload(data, key, THUMBNAIL_CONTENT_TYPE)
        except ThumbnailUnavailable as e:
            logger.info(f"No thumbnail for {request.filename}: {e}")
            return ThumbnailResult()
        except Exception as e:
            log_warning(logger, f"Thumbnail generation failed for {request.filename}: {e}")
            return ThumbnailResult()

        return ThumbnailResult(url=uploaded.url, key=uploaded.key)

    async def create_thumbnail(self, request: ThumbnailRequest) -> bytes:
        """Encoded WebP bytes for the request.

        Raises:
            ThumbnailUnavailable: Nothing to build a preview from
        """
        try:
            handler = self._handlers[MediaType(request.media_type)]
        except (KeyError, ValueError):
            raise ThumbnailUnavailable(f"Unsupported media type: {request.media_type}")
        return await handler(request.url)

    def render(self, image_data: bytes) -> bytes:
        """Center-crop to a square and encode as WebP."""
        with Image.open(io.BytesIO(image_data)) as image:
            image.load()
            if image.mode not in ("RGB", "RGBA"):
                image = image.convert("RGBA" if "A" in image.getbands() else "RGB")
            image = self._resize_and_crop(image)

            output = io.BytesIO()
            image.save(output, format="WEBP", quality=self.quality)
            return output.getvalue()

    def _resize_and_crop(self, image: Image.Image) -> Image.Image:
        target = self.size
        image_ratio = image.width / image.height

        if image_ratio > 1:
            new_height = target
            new_width = max(target, round(target * image_ratio))
            image = image.resize((new_width, new_height), Image.Resampling.LANCZOS)
            left = (new_width - target) // 2
            return image.crop((left, 0, left + target, target))

        new_width = target
        new_height = max(target, round(target / image_ratio))
        image = image.resize((new_width, new_height), Image.Resampling.LANCZOS)
        top = (new_height - target) // 2
        return image.crop((0, top, target, top + target))

    async def _from_image(self, url: str) -> bytes:
        data = await self.fetcher.fetch_bytes(url)
        return await asyncio.to_thread(self.render, data)

    async def _from_video(self, url: str) -> bytes:
        probe = await self.prober.probe(tool_input(url))
        timestamp = frame_timestamp(probe.duration)

        cmd = [
            self.ffmpeg_path,
            "-v", "error",
            "-ss", f"{timestamp:.3f}",
            "-i", tool_input(url),
            "-frames:v", "1",
            "-y",
        ]
        return await self._extract_and_render(cmd, ".jpg", self.frame_timeout)

    async def _from_audio(self, url: str) -> bytes:
        probe = await self.prober.probe(tool_input(url))
        cover = probe.cover_art_stream()
        if cover is None:
            raise ThumbnailUnavailable("No embedded cover art")

        cmd = [
            self.ffmpeg_path,
            "-v", "error",
            "-i", tool_input(url),
            "-map", f"0:{cover.get('index', 0)}",
            "-frames:v", "1",
            "-y",
        ]
        return await self._extract_and_render(cmd, ".png", self.cover_timeout)

    async def _extract_and_render(self, cmd: list[str], suffix: str, timeout: float) -> bytes:
        with scratch_file(suffix, self.scratch_directory) as frame_path:
            try:
                await self.tool_runner([*cmd, str(frame_path)], timeout)
            except EncodeFailure as e:
                raise ThumbnailUnavailable(f"Frame extraction failed: {e}") from e

            data = await asyncio.to_thread(_read_nonempty, frame_path)
            return await asyncio.to_thread(self.render, data)


def _read_nonempty(path: Path) -> bytes:
    data = path.read_bytes()
    if not data:
        raise ThumbnailUnavailable("ffmpeg wrote an empty frame")
    return data

