"""Read-time quality resolution over stored variants."""

from typing import Any, Iterable, Optional

from mediahub.modules.transcoding.models import (
    ORIGINAL_QUALITY,
    QUALITY_PREFERENCE_ORDER,
)
from mediahub.modules.transcoding.schemas import QualityOption


def _field(variant: Any, name: str) -> Any:
    if isinstance(variant, dict):
        return variant.get(name)
    return getattr(variant, name, None)


def _urls_by_quality(variants: Optional[Iterable[Any]]) -> dict[str, str]:
    urls: dict[str, str] = {}
    for variant in variants or ():
        quality = _field(variant, "quality")
        url = _field(variant, "url")
        if quality and url and quality not in urls:
            urls[quality] = url
    return urls


def resolve_quality_url(
    requested_quality: Optional[str],
    stored_variants: Optional[Iterable[Any]],
    original_url: str,
) -> str:
    """Best URL for a requested quality.

    Exact match first, then the first available of 1080p, 720p, 480p, then
    the original upload. ``original`` is not a stored variant, so asking for
    it on a transcoded video also lands on the best variant.
    Variants may be dicts (as persisted) or :class:`VideoVersion` objects;
    entries without a quality or URL are ignored.
    """
    urls = _urls_by_quality(stored_variants)

    if requested_quality in urls:
        return urls[requested_quality]

    for quality in QUALITY_PREFERENCE_ORDER:
        if quality in urls:
            return urls[quality]

    return original_url


def available_qualities(
    stored_variants: Optional[Iterable[Any]],
    original_url: str,
    original_width: Optional[int] = None,
    original_height: Optional[int] = None,
) -> list[QualityOption]:
    """``original`` followed by each stored variant."""
    options = [
        QualityOption(
            quality=ORIGINAL_QUALITY,
            label="Original",
            url=original_url,
            width=original_width,
            height=original_height,
        )
    ]
    for variant in stored_variants or ():
        quality = _field(variant, "quality")
        url = _field(variant, "url")
        if not quality or not url:
            continue
        options.append(
            QualityOption(
                quality=quality,
                label=_field(variant, "label") or quality,
                url=url,
                width=_field(variant, "width"),
                height=_field(variant, "height"),
            )
        )
    return options
