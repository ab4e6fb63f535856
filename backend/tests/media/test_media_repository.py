"""Tests for media persistence."""

import uuid

import pytest

from mediahub.modules.media.models import MediaType
from mediahub.modules.media.repository import MediaRepository, merge_source_facts
from mediahub.modules.transcoding.models import ProcessingStatus
from mediahub.modules.transcoding.schemas import ProcessingResult, VideoVersion


def version(quality: str) -> VideoVersion:
    return VideoVersion(
        quality=quality,
        label=quality,
        url=f"https://cdn.example.com/{quality}.mp4",
        key=f"uploads/u1/videos/transcoded/{quality}_1_clip.mp4",
        width=1280,
        height=720,
        size=1000,
    )


class TestMediaRepository:

    @pytest.mark.asyncio
    async def test_video_starts_processing(self, session) -> None:
        repo = MediaRepository(session)

        media = await repo.create(MediaType.VIDEO, "https://cdn.example.com/v.mp4", "u1", "v.mp4")
        await session.commit()

        loaded = await repo.get_by_id(media.id)
        assert loaded.processing_status == ProcessingStatus.PROCESSING
        assert loaded.video_versions == []

    @pytest.mark.asyncio
    async def test_images_and_audio_have_no_status(self, session) -> None:
        repo = MediaRepository(session)

        image = await repo.create(MediaType.IMAGE, "https://cdn.example.com/i.png", "u1", "i.png")
        audio = await repo.create(MediaType.AUDIO, "https://cdn.example.com/a.mp3", "u1", "a.mp3")

        assert image.processing_status is None
        assert audio.processing_status is None

    @pytest.mark.asyncio
    async def test_result_is_saved_in_one_write(self, session_factory) -> None:
        async with session_factory() as session:
            media = await MediaRepository(session).create(
                MediaType.VIDEO, "https://cdn.example.com/v.mp4", "u1", "v.mp4"
            )
            await session.commit()

        result = ProcessingResult(success=True, versions=[version("720p"), version("480p")])
        async with session_factory() as session:
            assert await MediaRepository(session).save_processing_result(media.id, result)
            await session.commit()

        async with session_factory() as session:
            loaded = await MediaRepository(session).get_by_id(media.id)

        assert loaded.processing_status == ProcessingStatus.COMPLETED
        assert [v["quality"] for v in loaded.video_versions] == ["720p", "480p"]
        assert loaded.video_versions[0]["key"] == "uploads/u1/videos/transcoded/720p_1_clip.mp4"

    @pytest.mark.asyncio
    async def test_failed_result_clears_versions(self, session_factory) -> None:
        async with session_factory() as session:
            media = await MediaRepository(session).create(
                MediaType.VIDEO, "https://cdn.example.com/v.mp4", "u1", "v.mp4"
            )
            await session.commit()

        async with session_factory() as session:
            await MediaRepository(session).save_processing_result(
                media.id, ProcessingResult(success=False, error="encoder missing")
            )
            await session.commit()

        async with session_factory() as session:
            loaded = await MediaRepository(session).get_by_id(media.id)

        assert loaded.processing_status == ProcessingStatus.FAILED
        assert loaded.video_versions == []

    @pytest.mark.asyncio
    async def test_saving_for_unknown_media_reports_false(self, session) -> None:
        saved = await MediaRepository(session).save_processing_result(
            uuid.uuid4(), ProcessingResult(success=False)
        )

        assert saved is False

    @pytest.mark.asyncio
    async def test_list_by_status(self, session) -> None:
        repo = MediaRepository(session)
        video = await repo.create(MediaType.VIDEO, "https://cdn.example.com/v.mp4", "u1", "v.mp4")
        await repo.create(MediaType.IMAGE, "https://cdn.example.com/i.png", "u1", "i.png")
        await session.commit()

        processing = await repo.list_by_status(ProcessingStatus.PROCESSING)

        assert [m.id for m in processing] == [video.id]

    @pytest.mark.asyncio
    async def test_result_keeps_source_facts_in_metadata(self, session_factory) -> None:
        async with session_factory() as session:
            media = await MediaRepository(session).create(
                MediaType.VIDEO,
                "https://cdn.example.com/v.mp4",
                "u1",
                "v.mp4",
                media_metadata={"video_codec": "hevc"},
            )
            await session.commit()

        result = ProcessingResult(
            success=True,
            versions=[version("720p")],
            original_resolution="1280x720",
            duration=42.0,
        )
        async with session_factory() as session:
            assert await MediaRepository(session).save_processing_result(media.id, result)
            await session.commit()

        async with session_factory() as session:
            loaded = await MediaRepository(session).get_by_id(media.id)

        assert loaded.media_metadata == {
            "video_codec": "hevc",
            "original_resolution": "1280x720",
            "width": 1280,
            "height": 720,
            "duration": 42.0,
        }


class TestMergeSourceFacts:

    def test_extracted_dimensions_win(self) -> None:
        merged = merge_source_facts(
            {"width": 1918, "height": 1080},
            ProcessingResult(success=True, original_resolution="1920x1080", duration=1.0),
        )

        assert (merged["width"], merged["height"]) == (1918, 1080)
        assert merged["original_resolution"] == "1920x1080"

    def test_result_without_source_facts_leaves_metadata_alone(self) -> None:
        assert merge_source_facts(None, ProcessingResult(success=False, error="probe")) is None
        assert merge_source_facts({"a": 1}, ProcessingResult(success=False)) == {"a": 1}
