"""Persistence: identity stores and the remote journey API."""

from journeytrack.repositories.journey_api import JourneyRepository
from journeytrack.repositories.kv_store import (
    FallbackStore,
    JsonFileStore,
    KeyValueStore,
    MemoryStore,
    build_device_store,
)

__all__ = [
    "JourneyRepository",
    "FallbackStore",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "build_device_store",
]
