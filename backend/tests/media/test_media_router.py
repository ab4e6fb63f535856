"""Tests for the media HTTP endpoints."""

import uuid
from unittest.mock import AsyncMock, MagicMock

from fastapi import FastAPI
from fastapi.testclient import TestClient

from mediahub.modules.media.router import get_media_service, router
from mediahub.modules.media.schemas import StreamUrlResponse
from mediahub.modules.media.service import (
    MediaNotFoundError,
    NotAVideoError,
    ProcessingAlreadyRunningError,
    ProcessingDispatchError,
)
from mediahub.modules.transcoding.models import ProcessingStatus
from mediahub.modules.transcoding.schemas import QualityOption


MEDIA_ID = uuid.uuid4()


def client_with(service: MagicMock) -> TestClient:
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_media_service] = lambda: service
    return TestClient(app)


class TestStreamEndpoint:

    def test_defaults_to_1080p(self) -> None:
        service = MagicMock()
        service.get_stream_url = AsyncMock(
            return_value=StreamUrlResponse(media_id=MEDIA_ID, quality="1080p", url="https://cdn/x.mp4")
        )

        response = client_with(service).get(f"/media/{MEDIA_ID}/stream")

        assert response.status_code == 200
        assert response.json()["url"] == "https://cdn/x.mp4"
        service.get_stream_url.assert_awaited_once_with(MEDIA_ID, "1080p")

    def test_rejects_unknown_quality(self) -> None:
        response = client_with(MagicMock()).get(f"/media/{MEDIA_ID}/stream?quality=4k")

        assert response.status_code == 422

    def test_missing_media_is_404(self) -> None:
        service = MagicMock()
        service.get_stream_url = AsyncMock(side_effect=MediaNotFoundError("gone"))

        response = client_with(service).get(f"/media/{MEDIA_ID}/stream?quality=original")

        assert response.status_code == 404


class TestQualitiesEndpoint:

    def test_lists_qualities(self) -> None:
        service = MagicMock()
        service.get_available_qualities = AsyncMock(
            return_value=[QualityOption(quality="original", label="Original", url="https://cdn/o.mov")]
        )

        response = client_with(service).get(f"/media/{MEDIA_ID}/qualities")

        assert response.status_code == 200
        assert response.json()[0]["quality"] == "original"


class TestReprocessEndpoint:

    def test_accepted(self) -> None:
        media = MagicMock(id=MEDIA_ID, processing_status=ProcessingStatus.PROCESSING)
        service = MagicMock()
        service.reprocess = AsyncMock(return_value=media)

        response = client_with(service).post(f"/media/{MEDIA_ID}/reprocess")

        assert response.status_code == 202
        assert response.json()["processing_status"] == "processing"

    def test_already_processing_is_conflict(self) -> None:
        service = MagicMock()
        service.reprocess = AsyncMock(side_effect=ProcessingAlreadyRunningError("busy"))

        response = client_with(service).post(f"/media/{MEDIA_ID}/reprocess")

        assert response.status_code == 409

    def test_non_video_is_bad_request(self) -> None:
        service = MagicMock()
        service.reprocess = AsyncMock(side_effect=NotAVideoError("image"))

        response = client_with(service).post(f"/media/{MEDIA_ID}/reprocess")

        assert response.status_code == 400

    def test_backend_unavailable_is_service_unavailable(self) -> None:
        service = MagicMock()
        service.reprocess = AsyncMock(side_effect=ProcessingDispatchError("broker down"))

        response = client_with(service).post(f"/media/{MEDIA_ID}/reprocess")

        assert response.status_code == 503
