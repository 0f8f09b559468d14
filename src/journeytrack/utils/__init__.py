"""Utility functions and helpers."""

from journeytrack.utils.exceptions import (
    ConfigurationError,
    JourneyApiError,
    JourneyTrackError,
    SessionInactiveError,
    StorageAccessError,
)
from journeytrack.utils.logging import configure_logging, mask_id

__all__ = [
    # Logging
    "configure_logging",
    "mask_id",
    # Exceptions
    "JourneyTrackError",
    "JourneyApiError",
    "SessionInactiveError",
    "StorageAccessError",
    "ConfigurationError",
]
