"""Pydantic models for visitor journeys."""

from journeytrack.models.base import BaseModel, generate_ulid, parse_datetime, utc_now
from journeytrack.models.events import EventType, QueuedEvent
from journeytrack.models.identity import SessionIdentity, VisitorIdentity
from journeytrack.models.journey import (
    BounceEvent,
    BounceType,
    ConversionConfig,
    ConversionEvent,
    ConversionType,
    DeviceInfo,
    Engagement,
    ExitReason,
    InteractionCounts,
    Journey,
    JourneyPath,
    Location,
    PageVisit,
    SessionInfo,
)
from journeytrack.models.traffic import EntryCapture, TrafficSource, TrafficType

__all__ = [
    "BaseModel",
    "generate_ulid",
    "parse_datetime",
    "utc_now",
    "EventType",
    "QueuedEvent",
    "SessionIdentity",
    "VisitorIdentity",
    "BounceEvent",
    "BounceType",
    "ConversionConfig",
    "ConversionEvent",
    "ConversionType",
    "DeviceInfo",
    "Engagement",
    "ExitReason",
    "InteractionCounts",
    "Journey",
    "JourneyPath",
    "Location",
    "PageVisit",
    "SessionInfo",
    "EntryCapture",
    "TrafficSource",
    "TrafficType",
]
