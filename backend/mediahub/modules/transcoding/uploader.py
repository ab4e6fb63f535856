"""Pushes generated derivatives to object storage."""

import asyncio
import io
import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from mediahub.core.storage import Storage, StorageResult, get_storage
from mediahub.modules.transcoding.errors import UploadFailure

logger = logging.getLogger(__name__)

THUMBNAIL_CATEGORY = "thumbs"
VARIANT_CATEGORY = "videos/transcoded"

_EXTENSION_RE = re.compile(r"\.[^/.]+$")
_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_filename_stem(filename: str) -> str:
    """Drop the last extension and replace anything outside ``[A-Za-z0-9._-]``."""
    return _UNSAFE_CHARS_RE.sub("_", _EXTENSION_RE.sub("", filename))


def build_storage_key(
    owner_id: str,
    category: str,
    qualifier: str,
    filename: str,
    extension: str,
    timestamp_ms: Optional[int] = None,
) -> str:
    """``uploads/{owner}/{category}/{qualifier}_{timestamp}_{stem}.{ext}``"""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    stem = sanitize_filename_stem(filename)
    return f"uploads/{owner_id}/{category}/{qualifier}_{timestamp_ms}_{stem}.{extension}"


@dataclass
class UploadedDerivative:
    url: str
    key: str
    size: int


class DerivativeUploader:
    """Stores thumbnails and video variants.

    Storage calls block (boto3, local disk), so they run in a worker thread.
    """

    def __init__(self, storage: Optional[Storage] = None):
        self._storage = storage

    @property
    def storage(self) -> Storage:
        if self._storage is None:
            self._storage = get_storage()
        return self._storage

    async def upload(
        self,
        source: Union[bytes, Path],
        key: str,
        content_type: str,
    ) -> UploadedDerivative:
        """Upload a byte buffer or a file on disk to ``key``.

        Files are streamed; buffers are wrapped in memory.

        Raises:
            UploadFailure: The storage backend rejected the write
        """
        if isinstance(source, (bytes, bytearray)):
            result: StorageResult = await asyncio.to_thread(
                self.storage.upload_fileobj, io.BytesIO(source), key, content_type
            )
        else:
            result = await asyncio.to_thread(
                self.storage.upload, str(source), key, content_type
            )

        if not result.success:
            raise UploadFailure(key, result.error_message or "unknown storage error")

        logger.info(f"Uploaded {key} ({result.file_size} bytes)")
        return UploadedDerivative(url=result.url, key=result.key, size=result.file_size)
