"""Error taxonomy for derivative generation.

Per-tier failures (encode, timeout, upload) are caught at the tier boundary
by the orchestrator. Download and probe failures abort the whole job.
"""

from typing import Optional


class MediaProcessingError(Exception):
    """Base exception for derivative generation errors."""
    pass


class DownloadFailure(MediaProcessingError):
    """Source bytes could not be fetched."""

    def __init__(self, url: str, message: str):
        self.url = url
        super().__init__(f"Failed to fetch {url}: {message}")


class ProbeFailure(MediaProcessingError):
    """ffprobe could not read the source or returned unusable data."""
    pass


class EncodeFailure(MediaProcessingError):
    """The external encoder exited unsuccessfully."""

    def __init__(self, message: str, quality: Optional[str] = None):
        self.quality = quality
        super().__init__(message)


class EncodeTimeout(EncodeFailure):
    """The external encoder was killed by one of the timeout limits.

    ``reason`` is ``"inactivity"`` when no progress arrived within the window
    and ``"ceiling"`` when the absolute limit ran out.
    """

    INACTIVITY = "inactivity"
    CEILING = "ceiling"

    def __init__(self, reason: str, timeout: float, quality: Optional[str] = None):
        self.reason = reason
        self.timeout = timeout
        label = f" for {quality}" if quality else ""
        super().__init__(
            f"Encode{label} aborted after {timeout:g}s ({reason} timeout)",
            quality=quality,
        )


class UploadFailure(MediaProcessingError):
    """A derivative could not be stored."""

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"Upload of {key} failed: {message}")


class ThumbnailUnavailable(MediaProcessingError):
    """No thumbnail applies to this asset. An expected outcome, not a fault."""
    pass
