"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
No sensitive values should be hardcoded here.
"""

from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    PROJECT_NAME: str = "mediahub API"
    VERSION: str = "0.1.0"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./mediahub.db"

    # Redis / Celery
    REDIS_URL: str = "redis://localhost:6379/0"
    # inline: detached asyncio task in the API process
    # celery: hand the job to a Celery worker
    PROCESSING_BACKEND: str = "inline"

    # CORS
    CORS_ORIGINS: list[str] = []

    # Storage Configuration
    # STORAGE_BACKEND: local, s3, minio
    STORAGE_BACKEND: str = "local"

    # Local Storage (when STORAGE_BACKEND=local)
    LOCAL_STORAGE_PATH: str = "./storage"

    # S3/MinIO/Compatible Storage (when STORAGE_BACKEND=s3 or minio)
    STORAGE_BUCKET: str = ""
    STORAGE_REGION: str = "us-east-1"
    STORAGE_ACCESS_KEY: str = ""
    STORAGE_SECRET_KEY: str = ""
    STORAGE_ENDPOINT_URL: Optional[str] = None  # Required for MinIO
    STORAGE_USE_SSL: bool = True

    # CDN Configuration (optional, for any backend)
    CDN_DOMAIN: Optional[str] = None
    CDN_ENABLED: bool = False

    # External media tools
    FFMPEG_PATH: str = "ffmpeg"
    FFPROBE_PATH: str = "ffprobe"
    PROBE_TIMEOUT_SECONDS: float = 60.0

    # Transcoding
    TRANSCODE_INACTIVITY_TIMEOUT_SECONDS: float = 5 * 60
    TRANSCODE_MAX_DURATION_SECONDS: float = 30 * 60
    SCRATCH_DIR: Optional[str] = None

    # Thumbnails
    THUMBNAIL_SIZE: int = 150
    THUMBNAIL_QUALITY: int = 80
    THUMBNAIL_FRAME_TIMEOUT_SECONDS: float = 30.0
    THUMBNAIL_COVER_TIMEOUT_SECONDS: float = 15.0

    # Source fetching
    SOURCE_FETCH_TIMEOUT_SECONDS: float = 60.0

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
