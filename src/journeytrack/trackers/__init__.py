"""Behavioral signal trackers."""

from journeytrack.trackers.interactions import ACTIVATION_KEYS, InteractionTracker
from journeytrack.trackers.navigation import NavigationTracker
from journeytrack.trackers.page_time import PageTimeTracker
from journeytrack.trackers.scroll import (
    SCROLL_MILESTONES,
    ScrollTracker,
    calculate_scroll_depth,
)

__all__ = [
    "ACTIVATION_KEYS",
    "InteractionTracker",
    "NavigationTracker",
    "PageTimeTracker",
    "SCROLL_MILESTONES",
    "ScrollTracker",
    "calculate_scroll_depth",
]
