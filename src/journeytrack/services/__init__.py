"""Business logic services for visitor journey tracking."""

from journeytrack.services.bounce import classify_bounce
from journeytrack.services.conversion_tracking import ConversionTracker, normalize_path
from journeytrack.services.delivery import (
    BEACON_TRIGGERS,
    DeliveryChannel,
    GuaranteedBeaconChannel,
    RetryingAsyncChannel,
    SessionFinalization,
    select_channel,
)
from journeytrack.services.device import get_device_info, lookup_location
from journeytrack.services.event_queue import EventQueue
from journeytrack.services.identity_resolver import IdentityResolver
from journeytrack.services.lifecycle import SessionLifecycleController, SessionState
from journeytrack.services.scoring import calculate_engagement_score, score_breakdown
from journeytrack.services.traffic_capture import (
    capture_entry_page,
    classify_traffic_source,
    classify_traffic_type,
    validate_captured_data,
)

__all__ = [
    "classify_bounce",
    "ConversionTracker",
    "normalize_path",
    "BEACON_TRIGGERS",
    "DeliveryChannel",
    "GuaranteedBeaconChannel",
    "RetryingAsyncChannel",
    "SessionFinalization",
    "select_channel",
    "get_device_info",
    "lookup_location",
    "EventQueue",
    "IdentityResolver",
    "SessionLifecycleController",
    "SessionState",
    "calculate_engagement_score",
    "score_breakdown",
    "capture_entry_page",
    "classify_traffic_source",
    "classify_traffic_type",
    "validate_captured_data",
]
