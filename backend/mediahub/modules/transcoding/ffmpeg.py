"""FFmpeg transcoding under timeout supervision.

Each tier is encoded by its own ffmpeg process. ffmpeg is asked to write
machine-readable progress blocks to stdout (``-progress pipe:1``); the
transcoder consumes them as a stream of :class:`ProgressEvent` and enforces
two limits per tier:

* an inactivity window, reset on every progress event
* an absolute ceiling, counted from process start

Hitting either kills the process and raises :class:`EncodeTimeout` for that
tier. The ladder runner isolates tiers so one failure never stops the rest.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncGenerator, AsyncIterator, Awaitable, Callable, Optional, Protocol

from mediahub.core.config import settings
from mediahub.core.logging import log_error
from mediahub.modules.transcoding.errors import (
    EncodeFailure,
    EncodeTimeout,
    MediaProcessingError,
)
from mediahub.modules.transcoding.models import QualityTier
from mediahub.modules.transcoding.probe import ProbeResult

logger = logging.getLogger(__name__)

STDERR_TAIL_LINES = 20


@dataclass
class ProgressEvent:
    """One ``-progress`` block reported by ffmpeg."""
    out_time_seconds: Optional[float] = None
    frame: Optional[int] = None
    speed: Optional[str] = None
    finished: bool = False

    def percent_of(self, duration: Optional[float]) -> Optional[float]:
        if not duration or self.out_time_seconds is None:
            return None
        return max(0.0, min(100.0, self.out_time_seconds / duration * 100))


def parse_progress_block(fields: dict[str, str]) -> ProgressEvent:
    """Turn the ``key=value`` lines of one progress block into an event."""
    out_time = None
    # out_time_us and out_time_ms are both microseconds in ffmpeg's output
    raw = fields.get("out_time_us") or fields.get("out_time_ms")
    if raw and raw != "N/A":
        try:
            out_time = int(raw) / 1_000_000
        except ValueError:
            out_time = None

    frame = None
    if fields.get("frame", "").isdigit():
        frame = int(fields["frame"])

    return ProgressEvent(
        out_time_seconds=out_time,
        frame=frame,
        speed=fields.get("speed"),
        finished=fields.get("progress") == "end",
    )


class EncodeProcess(Protocol):
    """A running encoder that reports progress."""

    returncode: Optional[int]

    def progress(self) -> AsyncGenerator[ProgressEvent, None]: ...

    async def wait(self) -> int: ...

    def kill(self) -> None: ...

    def error_output(self) -> str: ...


EncodeRunner = Callable[[list[str]], Awaitable[EncodeProcess]]


class FFmpegProcess:
    """Wraps an ffmpeg subprocess started with ``-progress pipe:1``."""

    def __init__(self, process: asyncio.subprocess.Process):
        self._process = process
        self._stderr_tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        self._stderr_task = asyncio.create_task(self._drain_stderr())

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode

    async def _drain_stderr(self) -> None:
        assert self._process.stderr is not None
        async for line in self._process.stderr:
            text = line.decode(errors="replace").rstrip()
            if text:
                self._stderr_tail.append(text)

    async def progress(self) -> AsyncGenerator[ProgressEvent, None]:
        assert self._process.stdout is not None
        fields: dict[str, str] = {}
        async for raw in self._process.stdout:
            line = raw.decode(errors="replace").strip()
            if "=" not in line:
                continue
            key, _, value = line.partition("=")
            fields[key] = value
            if key == "progress":
                yield parse_progress_block(fields)
                fields = {}

    async def wait(self) -> int:
        returncode = await self._process.wait()
        await self._stderr_task
        return returncode

    def kill(self) -> None:
        if self._process.returncode is None:
            self._process.kill()

    def error_output(self) -> str:
        return "\n".join(self._stderr_tail)


async def spawn_ffmpeg(cmd: list[str]) -> FFmpegProcess:
    """Default runner: start ffmpeg with piped stdout/stderr."""
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise EncodeFailure(f"Could not start ffmpeg: {e}") from e
    return FFmpegProcess(process)


def compute_target_dimensions(
    source_width: int,
    source_height: int,
    tier: QualityTier,
) -> tuple[int, int]:
    """Fit a tier's box while keeping the source aspect ratio.

    A source wider than the tier pins the width, otherwise the height is
    pinned. Both sides are then taken down to an even number for libx264.
    """
    source_ratio = source_width / source_height

    if source_ratio > tier.aspect_ratio:
        width = tier.width
        height = round(width / source_ratio)
    else:
        height = tier.height
        width = round(height * source_ratio)

    width -= width % 2
    height -= height % 2
    return max(width, 2), max(height, 2)


def build_transcode_command(
    ffmpeg_path: str,
    source_path: str,
    output_path: str,
    tier: QualityTier,
    width: int,
    height: int,
    has_audio: bool,
) -> list[str]:
    bitrate = f"{tier.video_bitrate_kbps}k"

    cmd = [
        ffmpeg_path,
        "-hide_banner",
        "-nostats",
        "-progress", "pipe:1",
        "-i", source_path,
        "-c:v", "libx264",
        "-preset", "medium",
        "-crf", "23",
        "-b:v", bitrate,
        "-maxrate", bitrate,
        "-bufsize", f"{tier.buffer_size_kbps}k",
        "-vf", f"scale={width}:{height}",
    ]

    if has_audio:
        cmd.extend(["-c:a", "aac", "-b:a", f"{tier.audio_bitrate_kbps}k"])
    else:
        cmd.append("-an")

    cmd.extend(["-movflags", "+faststart", "-y", output_path])
    return cmd


@dataclass
class TranscodedTier:
    """An encoded variant waiting on disk for upload."""
    tier: QualityTier
    width: int
    height: int
    output_path: Path
    size: int


@dataclass
class TierOutcome:
    tier: QualityTier
    result: Optional[TranscodedTier] = None
    error: Optional[MediaProcessingError] = None

    @property
    def succeeded(self) -> bool:
        return self.result is not None


class VideoTranscoder:
    """Encodes quality tiers with ffmpeg."""

    def __init__(
        self,
        ffmpeg_path: Optional[str] = None,
        inactivity_timeout: Optional[float] = None,
        max_duration: Optional[float] = None,
        runner: Optional[EncodeRunner] = None,
    ):
        self.ffmpeg_path = ffmpeg_path or settings.FFMPEG_PATH
        self.inactivity_timeout = (
            inactivity_timeout
            if inactivity_timeout is not None
            else settings.TRANSCODE_INACTIVITY_TIMEOUT_SECONDS
        )
        self.max_duration = (
            max_duration
            if max_duration is not None
            else settings.TRANSCODE_MAX_DURATION_SECONDS
        )
        self.runner = runner or spawn_ffmpeg

    async def transcode_tier(
        self,
        source_path: Path,
        output_path: Path,
        tier: QualityTier,
        probe: ProbeResult,
    ) -> TranscodedTier:
        """Encode one tier. The output file is removed if the encode fails.

        Raises:
            EncodeTimeout: Inactivity window or ceiling exceeded
            EncodeFailure: ffmpeg could not start, exited non-zero or wrote nothing
        """
        width, height = compute_target_dimensions(probe.width, probe.height, tier)
        cmd = build_transcode_command(
            self.ffmpeg_path,
            str(source_path),
            str(output_path),
            tier,
            width,
            height,
            probe.has_audio,
        )
        logger.info(f"Transcoding {tier.quality.value} at {width}x{height}")
        logger.debug(f"ffmpeg command: {' '.join(cmd)}")

        try:
            process = await self.runner(cmd)
            await self._supervise(process, tier, probe.duration)

            if process.returncode != 0:
                raise EncodeFailure(
                    f"ffmpeg exited with {process.returncode}: {process.error_output()[-500:]}",
                    quality=tier.quality.value,
                )

            size = output_path.stat().st_size if output_path.exists() else 0
            if size == 0:
                raise EncodeFailure("ffmpeg produced an empty output", quality=tier.quality.value)
        except BaseException:
            output_path.unlink(missing_ok=True)
            raise

        logger.info(f"Transcoded {tier.quality.value}: {size} bytes")
        return TranscodedTier(
            tier=tier,
            width=width,
            height=height,
            output_path=output_path,
            size=size,
        )

    async def _supervise(
        self,
        process: EncodeProcess,
        tier: QualityTier,
        duration: Optional[float],
    ) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.max_duration
        events = process.progress()
        quality = tier.quality.value
        last_logged = -10.0

        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise EncodeTimeout(EncodeTimeout.CEILING, self.max_duration, quality)

                window = min(self.inactivity_timeout, remaining)
                try:
                    event = await asyncio.wait_for(events.__anext__(), window)
                except StopAsyncIteration:
                    break
                except asyncio.TimeoutError:
                    if window < self.inactivity_timeout:
                        raise EncodeTimeout(EncodeTimeout.CEILING, self.max_duration, quality)
                    raise EncodeTimeout(EncodeTimeout.INACTIVITY, self.inactivity_timeout, quality)

                percent = event.percent_of(duration)
                if percent is not None and percent - last_logged >= 10:
                    last_logged = percent
                    logger.debug(f"{quality} progress: {percent:.0f}%")
                if event.finished:
                    break

            remaining = max(deadline - loop.time(), 0)
            try:
                await asyncio.wait_for(process.wait(), remaining)
            except asyncio.TimeoutError:
                raise EncodeTimeout(EncodeTimeout.CEILING, self.max_duration, quality)
        except BaseException:
            process.kill()
            await process.wait()
            raise
        finally:
            await events.aclose()

    async def transcode_ladder(
        self,
        source_path: Path,
        tiers: list[QualityTier],
        probe: ProbeResult,
        output_dir: Path,
    ) -> AsyncIterator[TierOutcome]:
        """Encode each tier in order, yielding its outcome as soon as it is known.

        Failures are logged and yielded, never raised, so every tier is tried.
        """
        for tier in tiers:
            output_path = output_dir / f"{tier.quality.value}.mp4"
            try:
                result = await self.transcode_tier(source_path, output_path, tier, probe)
            except MediaProcessingError as e:
                log_error(logger, f"Tier {tier.quality.value} failed: {e}", quality=tier.quality.value)
                yield TierOutcome(tier=tier, error=e)
                continue
            except Exception as e:
                log_error(logger, f"Tier {tier.quality.value} failed", exception=e, quality=tier.quality.value)
                yield TierOutcome(tier=tier, error=EncodeFailure(str(e), quality=tier.quality.value))
                continue
            yield TierOutcome(tier=tier, result=result)


async def run_ffmpeg_once(cmd: list[str], timeout: float) -> None:
    """Run a short ffmpeg command to completion within ``timeout`` seconds.

    Raises:
        EncodeTimeout: The command did not finish in time and was killed
        EncodeFailure: ffmpeg could not start or exited non-zero
    """
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise EncodeFailure(f"Could not start ffmpeg: {e}") from e

    try:
        _, stderr = await asyncio.wait_for(process.communicate(), timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise EncodeTimeout(EncodeTimeout.CEILING, timeout)

    if process.returncode != 0:
        raise EncodeFailure(
            f"ffmpeg exited with {process.returncode}: "
            f"{stderr.decode(errors='replace').strip()[-500:]}"
        )
