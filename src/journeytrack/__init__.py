"""Visitor journey tracking for embedded widgets."""

from journeytrack.config import TrackerConfig
from journeytrack.host import ElementInfo, HostPage, PageEvent, ScrollMetrics, WidgetContext
from journeytrack.models.journey import BounceType, ExitReason
from journeytrack.services.lifecycle import SessionLifecycleController, SessionState
from journeytrack.utils.logging import configure_logging

__version__ = "0.1.0"

__all__ = [
    "TrackerConfig",
    "ElementInfo",
    "HostPage",
    "PageEvent",
    "ScrollMetrics",
    "WidgetContext",
    "BounceType",
    "ExitReason",
    "SessionLifecycleController",
    "SessionState",
    "configure_logging",
]
