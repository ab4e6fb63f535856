"""Quality tiers and processing states for video derivatives."""

from dataclasses import dataclass
from enum import Enum


class ProcessingStatus(str, Enum):
    """Status of video derivative processing.

    Only video assets carry a processing status.
    """
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Quality(str, Enum):
    """Supported variant qualities."""
    Q_1080P = "1080p"
    Q_720P = "720p"
    Q_480P = "480p"


# Read-time selector for the untouched upload
ORIGINAL_QUALITY = "original"
DEFAULT_QUALITY = Quality.Q_1080P.value


@dataclass(frozen=True)
class QualityTier:
    """Encode target for one quality."""
    quality: Quality
    width: int
    height: int
    video_bitrate_kbps: int
    audio_bitrate_kbps: int
    label: str

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    @property
    def buffer_size_kbps(self) -> int:
        return self.video_bitrate_kbps * 2


# Descending resolution; the planner and the resolver both walk this order.
QUALITY_TIERS: dict[Quality, QualityTier] = {
    Quality.Q_1080P: QualityTier(
        quality=Quality.Q_1080P,
        width=1920,
        height=1080,
        video_bitrate_kbps=5000,
        audio_bitrate_kbps=192,
        label="Full HD (1080p)",
    ),
    Quality.Q_720P: QualityTier(
        quality=Quality.Q_720P,
        width=1280,
        height=720,
        video_bitrate_kbps=2500,
        audio_bitrate_kbps=128,
        label="HD (720p)",
    ),
    Quality.Q_480P: QualityTier(
        quality=Quality.Q_480P,
        width=854,
        height=480,
        video_bitrate_kbps=1000,
        audio_bitrate_kbps=96,
        label="SD (480p)",
    ),
}

QUALITY_PREFERENCE_ORDER: tuple[str, ...] = tuple(q.value for q in QUALITY_TIERS)

FLOOR_TIER = QUALITY_TIERS[Quality.Q_480P]
