"""mediahub backend.

Media ingestion service that turns user uploads into browsable derivatives:
a preview thumbnail for every asset and, for video, a ladder of re-encoded
quality variants.

Modules:
    - core: Configuration, logging, database, storage, Celery setup
    - modules.transcoding: Quality ladder, ffmpeg transcoding, orchestration
    - modules.thumbnail: Preview thumbnail generation
    - modules.media: Media records, upload registration, HTTP endpoints
"""

__version__ = "0.1.0"
