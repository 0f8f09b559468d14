"""Bounce classification at session termination."""

from journeytrack.models.journey import BounceType

IMMEDIATE_MAX_SECONDS = 3
IMMEDIATE_MAX_SCROLL = 10
QUICK_MAX_SECONDS = 300
QUICK_MAX_SCROLL = 50


def classify_bounce(
    page_views: int,
    duration_seconds: float,
    scroll_depth: float,
) -> BounceType | None:
    """Classify how a single-page session ended.

    More than one page view is never a bounce. A single page left within 3s
    with under 10% scroll is immediate; within 5 minutes with under 50%
    scroll is quick. Longer dwell or deeper scroll counts as engaged.

    Returns:
        BounceType, or None if the session is not a bounce.
    """
    if page_views > 1:
        return None

    if duration_seconds < IMMEDIATE_MAX_SECONDS and scroll_depth < IMMEDIATE_MAX_SCROLL:
        return BounceType.IMMEDIATE

    if duration_seconds < QUICK_MAX_SECONDS and scroll_depth < QUICK_MAX_SCROLL:
        return BounceType.QUICK

    return None
