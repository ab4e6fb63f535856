"""Tests for encode supervision: inactivity and ceiling timeouts, tier isolation."""

import asyncio
from pathlib import Path
from typing import Optional

import pytest

from mediahub.modules.transcoding.errors import EncodeFailure, EncodeTimeout
from mediahub.modules.transcoding.ffmpeg import (
    ProgressEvent,
    VideoTranscoder,
    parse_progress_block,
)
from mediahub.modules.transcoding.models import QUALITY_TIERS, Quality
from mediahub.modules.transcoding.probe import ProbeResult


PROBE = ProbeResult(duration=10.0, width=1920, height=1080, has_audio=True)


class FakeEncodeProcess:
    """Stands in for ffmpeg: emits progress, then exits or hangs."""

    def __init__(
        self,
        output_path: Path,
        events: int = 3,
        interval: float = 0.0,
        hang_after: Optional[int] = None,
        endless: bool = False,
        exit_code: int = 0,
    ):
        self.output_path = output_path
        self.events = events
        self.interval = interval
        self.hang_after = hang_after
        self.endless = endless
        self.exit_code = exit_code
        self.returncode: Optional[int] = None
        self.killed = False
        # ffmpeg creates its output as soon as it starts
        output_path.write_bytes(b"")

    async def progress(self):
        sent = 0
        while self.endless or sent < self.events:
            if self.hang_after is not None and sent >= self.hang_after:
                await asyncio.sleep(3600)
            await asyncio.sleep(self.interval)
            sent += 1
            yield ProgressEvent(out_time_seconds=float(sent), frame=sent * 25)
        yield ProgressEvent(out_time_seconds=10.0, finished=True)

    async def wait(self) -> int:
        if self.returncode is None:
            if self.killed:
                self.returncode = -9
            else:
                self.returncode = self.exit_code
                if self.exit_code == 0:
                    self.output_path.write_bytes(b"\x00" * 1024)
        return self.returncode

    def kill(self) -> None:
        self.killed = True

    def error_output(self) -> str:
        return "Conversion failed!"


def runner_for(**kwargs):
    started: list[FakeEncodeProcess] = []

    async def runner(cmd: list[str]) -> FakeEncodeProcess:
        process = FakeEncodeProcess(Path(cmd[-1]), **kwargs)
        started.append(process)
        return process

    runner.started = started
    return runner


class TestProgressParsing:

    def test_block_with_out_time(self) -> None:
        event = parse_progress_block(
            {"frame": "250", "out_time_us": "5000000", "speed": "2.1x", "progress": "continue"}
        )

        assert event.out_time_seconds == 5.0
        assert event.frame == 250
        assert not event.finished
        assert event.percent_of(10.0) == 50.0

    def test_end_block(self) -> None:
        event = parse_progress_block({"out_time_us": "N/A", "progress": "end"})

        assert event.finished
        assert event.out_time_seconds is None
        assert event.percent_of(10.0) is None


class TestTierSupervision:

    @pytest.mark.asyncio
    async def test_successful_encode(self, tmp_path: Path) -> None:
        transcoder = VideoTranscoder(runner=runner_for(), inactivity_timeout=1, max_duration=5)
        tier = QUALITY_TIERS[Quality.Q_720P]

        result = await transcoder.transcode_tier(tmp_path / "in.mp4", tmp_path / "out.mp4", tier, PROBE)

        assert (result.width, result.height) == (1280, 720)
        assert result.size == 1024
        assert result.output_path.exists()

    @pytest.mark.asyncio
    async def test_silence_triggers_inactivity_timeout(self, tmp_path: Path) -> None:
        runner = runner_for(hang_after=1)
        transcoder = VideoTranscoder(runner=runner, inactivity_timeout=0.05, max_duration=5)
        output = tmp_path / "out.mp4"

        with pytest.raises(EncodeTimeout) as exc_info:
            await transcoder.transcode_tier(tmp_path / "in.mp4", output, QUALITY_TIERS[Quality.Q_480P], PROBE)

        assert exc_info.value.reason == EncodeTimeout.INACTIVITY
        assert exc_info.value.quality == "480p"
        assert runner.started[0].killed
        assert not output.exists()

    @pytest.mark.asyncio
    async def test_steady_progress_still_hits_ceiling(self, tmp_path: Path) -> None:
        runner = runner_for(endless=True, interval=0.01)
        transcoder = VideoTranscoder(runner=runner, inactivity_timeout=1, max_duration=0.1)
        output = tmp_path / "out.mp4"

        with pytest.raises(EncodeTimeout) as exc_info:
            await transcoder.transcode_tier(tmp_path / "in.mp4", output, QUALITY_TIERS[Quality.Q_480P], PROBE)

        assert exc_info.value.reason == EncodeTimeout.CEILING
        assert runner.started[0].killed
        assert not output.exists()

    @pytest.mark.asyncio
    async def test_non_zero_exit_is_encode_failure(self, tmp_path: Path) -> None:
        transcoder = VideoTranscoder(runner=runner_for(exit_code=1), inactivity_timeout=1, max_duration=5)
        output = tmp_path / "out.mp4"

        with pytest.raises(EncodeFailure) as exc_info:
            await transcoder.transcode_tier(tmp_path / "in.mp4", output, QUALITY_TIERS[Quality.Q_720P], PROBE)

        assert not isinstance(exc_info.value, EncodeTimeout)
        assert "Conversion failed!" in str(exc_info.value)
        assert not output.exists()


class TestLadderIsolation:

    @pytest.mark.asyncio
    async def test_stalled_tier_does_not_stop_siblings(self, tmp_path: Path) -> None:
        """A tier that goes silent is aborted and the remaining tiers still run."""
        processes: list[FakeEncodeProcess] = []

        async def runner(cmd: list[str]) -> FakeEncodeProcess:
            output = Path(cmd[-1])
            hang = 0 if output.name == "720p.mp4" else None
            process = FakeEncodeProcess(output, hang_after=hang)
            processes.append(process)
            return process

        transcoder = VideoTranscoder(runner=runner, inactivity_timeout=0.05, max_duration=5)
        tiers = list(QUALITY_TIERS.values())

        outcomes = [
            outcome
            async for outcome in transcoder.transcode_ladder(tmp_path / "in.mp4", tiers, PROBE, tmp_path)
        ]

        assert [o.tier.quality for o in outcomes] == [Quality.Q_1080P, Quality.Q_720P, Quality.Q_480P]
        assert [o.succeeded for o in outcomes] == [True, False, True]
        assert isinstance(outcomes[1].error, EncodeTimeout)
        assert outcomes[1].error.reason == EncodeTimeout.INACTIVITY
        assert not (tmp_path / "720p.mp4").exists()
        assert len(processes) == 3

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_contained(self, tmp_path: Path) -> None:
        async def runner(cmd: list[str]):
            raise RuntimeError("encoder exploded")

        transcoder = VideoTranscoder(runner=runner, inactivity_timeout=1, max_duration=5)

        outcomes = [
            outcome
            async for outcome in transcoder.transcode_ladder(
                tmp_path / "in.mp4", list(QUALITY_TIERS.values()), PROBE, tmp_path
            )
        ]

        assert len(outcomes) == 3
        assert all(isinstance(o.error, EncodeFailure) for o in outcomes)
