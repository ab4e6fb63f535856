"""Technical metadata for uploaded originals.

Images are read with Pillow (dimensions, format, EXIF camera fields and
GPS position). Videos and audio are probed with ffprobe. Extraction is
best-effort: a failure leaves the record without metadata, never without
the upload.
"""

import asyncio
import io
import logging
from typing import Any, Optional

from PIL import ExifTags, Image

from mediahub.core.logging import log_warning
from mediahub.modules.media.models import MediaType
from mediahub.modules.transcoding.errors import MediaProcessingError
from mediahub.modules.transcoding.fetcher import SourceFetcher, tool_input
from mediahub.modules.transcoding.probe import MediaProber, ProbeResult

logger = logging.getLogger(__name__)

AUDIO_TAGS = ("title", "artist", "album", "genre")


def _compact(values: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


def _int_or_none(value) -> Optional[int]:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def parse_frame_rate(value: Optional[str]) -> Optional[float]:
    """``"30000/1001"`` -> ``29.97``."""
    if not value:
        return None
    numerator, _, denominator = value.partition("/")
    try:
        if denominator:
            den = float(denominator)
            return round(float(numerator) / den, 2) if den else None
        return round(float(numerator), 2)
    except ValueError:
        return None


def format_exif_date(value: Optional[str]) -> Optional[str]:
    """EXIF ``YYYY:MM:DD HH:MM:SS`` to ISO 8601."""
    if not value:
        return None
    date_part, _, time_part = value.strip().partition(" ")
    return f"{date_part.replace(':', '-')}T{time_part or '00:00:00'}"


def gps_to_decimal(dms, ref: Optional[str]) -> Optional[float]:
    """Degrees, minutes, seconds to signed decimal degrees."""
    try:
        degrees, minutes, seconds = (float(part) for part in dms)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    decimal = degrees + minutes / 60 + seconds / 3600
    if ref in ("S", "W"):
        decimal = -decimal
    return round(decimal, 6)


def _exif_text(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode(errors="replace")
    text = str(value).strip("\x00 ")
    return text or None


def read_exif(image: Image.Image) -> Optional[dict[str, Any]]:
    exif = image.getexif()
    if not exif:
        return None

    details = exif.get_ifd(ExifTags.IFD.Exif)
    gps = exif.get_ifd(ExifTags.IFD.GPSInfo)

    fields = {
        "make": _exif_text(exif.get(ExifTags.Base.Make)),
        "model": _exif_text(exif.get(ExifTags.Base.Model)),
        "software": _exif_text(exif.get(ExifTags.Base.Software)),
        "date_taken": format_exif_date(
            _exif_text(details.get(ExifTags.Base.DateTimeOriginal))
            or _exif_text(exif.get(ExifTags.Base.DateTime))
        ),
    }
    if gps:
        fields["latitude"] = gps_to_decimal(
            gps.get(ExifTags.GPS.GPSLatitude),
            _exif_text(gps.get(ExifTags.GPS.GPSLatitudeRef)),
        )
        fields["longitude"] = gps_to_decimal(
            gps.get(ExifTags.GPS.GPSLongitude),
            _exif_text(gps.get(ExifTags.GPS.GPSLongitudeRef)),
        )

    return _compact(fields) or None


def image_metadata(data: bytes) -> dict[str, Any]:
    with Image.open(io.BytesIO(data)) as image:
        bands = image.getbands()
        return _compact({
            "width": image.width,
            "height": image.height,
            "format": image.format.lower() if image.format else None,
            "mode": image.mode,
            "channels": len(bands),
            "has_alpha": "A" in bands or "transparency" in image.info,
            "orientation": image.getexif().get(ExifTags.Base.Orientation),
            "exif": read_exif(image),
        })


def video_metadata(probe: ProbeResult) -> dict[str, Any]:
    video = probe.video_stream() or {}
    audio = probe.audio_stream() or {}
    return _compact({
        "duration": probe.duration,
        "bitrate": probe.bitrate,
        "width": probe.width,
        "height": probe.height,
        "video_codec": video.get("codec_name"),
        "frame_rate": parse_frame_rate(video.get("r_frame_rate")),
        "video_bitrate": _int_or_none(video.get("bit_rate")),
        "audio_codec": audio.get("codec_name"),
        "audio_channels": audio.get("channels"),
        "audio_sample_rate": _int_or_none(audio.get("sample_rate")),
        "audio_bitrate": _int_or_none(audio.get("bit_rate")),
    })


def audio_metadata(probe: ProbeResult) -> dict[str, Any]:
    audio = probe.audio_stream() or {}
    fields = {
        "duration": probe.duration,
        "bitrate": probe.bitrate,
        "codec": audio.get("codec_name"),
        "channels": audio.get("channels"),
        "sample_rate": _int_or_none(audio.get("sample_rate")),
        "year": probe.tags.get("date") or probe.tags.get("year"),
    }
    for tag in AUDIO_TAGS:
        fields[tag] = probe.tags.get(tag)
    return _compact(fields)


class MetadataExtractor:
    """Reads technical metadata from a stored original."""

    def __init__(
        self,
        fetcher: Optional[SourceFetcher] = None,
        prober: Optional[MediaProber] = None,
    ):
        self.fetcher = fetcher or SourceFetcher()
        self.prober = prober or MediaProber()

    async def extract(self, media_type: MediaType, url: str) -> Optional[dict[str, Any]]:
        """Metadata for the asset at ``url``, or ``None`` when it cannot be read."""
        try:
            if media_type == MediaType.IMAGE:
                data = await self.fetcher.fetch_bytes(url)
                return await asyncio.to_thread(image_metadata, data)
            if media_type == MediaType.VIDEO:
                return video_metadata(await self.prober.probe(tool_input(url)))
            if media_type == MediaType.AUDIO:
                return audio_metadata(await self.prober.probe(tool_input(url)))
        except MediaProcessingError as e:
            logger.info(f"No metadata for {url}: {e}")
            return None
        except Exception as e:
            log_warning(logger, f"Metadata extraction failed for {url}: {e}")
            return None

        logger.info(f"No metadata reader for media type {media_type}")
        return None
