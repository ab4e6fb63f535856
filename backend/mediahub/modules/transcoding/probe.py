"""Source probing with ffprobe."""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Optional

from mediahub.core.config import settings
from mediahub.modules.transcoding.errors import ProbeFailure

logger = logging.getLogger(__name__)

# Image codecs that audio containers use for embedded cover art
COVER_ART_CODECS = frozenset({"mjpeg", "png", "bmp"})


@dataclass
class ProbeResult:
    """What ffprobe reported about a source."""
    duration: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None
    has_audio: bool = False
    bitrate: Optional[int] = None
    streams: list[dict] = field(default_factory=list)
    tags: dict[str, str] = field(default_factory=dict)

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"

    def video_stream(self) -> Optional[dict]:
        """First real video stream; attached pictures are cover art, not video."""
        return next(
            (s for s in self.streams if s.get("codec_type") == "video"
             and not (s.get("disposition") or {}).get("attached_pic")),
            None,
        )

    def audio_stream(self) -> Optional[dict]:
        return next((s for s in self.streams if s.get("codec_type") == "audio"), None)

    def cover_art_stream(self) -> Optional[dict]:
        """First video-typed stream carrying an image codec, if any."""
        for stream in self.streams:
            if (
                stream.get("codec_type") == "video"
                and stream.get("codec_name") in COVER_ART_CODECS
            ):
                return stream
        return None

    @classmethod
    def from_ffprobe(cls, metadata: dict) -> "ProbeResult":
        """Build a result from ffprobe's ``-print_format json`` output."""
        fmt = metadata.get("format") or {}
        streams = metadata.get("streams") or []

        result = cls(
            duration=_to_float(fmt.get("duration")),
            bitrate=_to_int(fmt.get("bit_rate")),
            streams=streams,
            tags={str(k).lower(): v for k, v in (fmt.get("tags") or {}).items()},
        )
        video_stream = result.video_stream()
        if video_stream:
            result.width = video_stream.get("width")
            result.height = video_stream.get("height")
        result.has_audio = result.audio_stream() is not None
        return result


def _to_float(value) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _to_int(value) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class MediaProber:
    """Runs ffprobe against a URL or local path."""

    def __init__(
        self,
        ffprobe_path: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.ffprobe_path = ffprobe_path or settings.FFPROBE_PATH
        self.timeout = timeout if timeout is not None else settings.PROBE_TIMEOUT_SECONDS

    def build_probe_command(self, source: str) -> list[str]:
        return [
            self.ffprobe_path,
            "-v", "error",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            source,
        ]

    async def probe(self, source: str) -> ProbeResult:
        """Probe a source.

        Raises:
            ProbeFailure: ffprobe is missing, failed, timed out or printed
                something that is not JSON
        """
        cmd = self.build_probe_command(source)

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ProbeFailure(f"Could not start ffprobe: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise ProbeFailure(f"ffprobe timed out after {self.timeout:g}s on {source}")

        if process.returncode != 0:
            raise ProbeFailure(
                f"ffprobe exited with {process.returncode}: "
                f"{stderr.decode(errors='replace').strip()[-500:]}"
            )

        try:
            metadata = json.loads(stdout)
        except json.JSONDecodeError as e:
            raise ProbeFailure(f"ffprobe returned invalid JSON: {e}") from e

        result = ProbeResult.from_ffprobe(metadata)
        logger.debug(
            f"Probed {source}: {result.resolution}, duration={result.duration}, "
            f"audio={result.has_audio}"
        )
        return result
