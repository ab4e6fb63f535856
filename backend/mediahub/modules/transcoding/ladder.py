"""Quality ladder planning.

Chooses which variants to build for a source from its probed dimensions.
"""

from mediahub.modules.transcoding.models import FLOOR_TIER, QUALITY_TIERS, QualityTier


def tier_applies(tier: QualityTier, width: int, height: int) -> bool:
    """A tier applies when the source reaches it in either dimension."""
    return height >= tier.height or width >= tier.width


def plan_quality_ladder(width: int, height: int) -> list[QualityTier]:
    """Plan the variants to produce for a ``width`` x ``height`` source.

    Every qualifying tier is included, highest first. A source smaller than
    every tier still gets the floor tier, so the result is never empty.
    Note the floor tier upscales such sources beyond their own resolution.

    Args:
        width: Source width in pixels
        height: Source height in pixels

    Returns:
        Tiers in descending resolution order
    """
    ladder = [
        tier for tier in QUALITY_TIERS.values()
        if tier_applies(tier, width, height)
    ]

    if not ladder:
        ladder.append(FLOOR_TIER)

    return ladder
