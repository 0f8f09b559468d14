"""Traffic source and entry page records.

Both are captured once when a tracker is constructed and never change
afterwards; they are frozen models.
"""

from datetime import datetime
from enum import Enum

from pydantic import ConfigDict, Field

from journeytrack.models.base import BaseModel


class TrafficType(str, Enum):
    """Traffic source classifications."""

    DIRECT = "direct"
    INTERNAL = "internal"
    SEARCH = "search"
    SOCIAL = "social"
    EMAIL = "email"
    REFERRAL = "referral"
    PAID = "paid"
    OTHER = "other"


class TrafficSource(BaseModel):
    """Where the visitor came from."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    type: TrafficType = TrafficType.DIRECT
    source: str | None = None
    medium: str | None = None
    campaign: str | None = None
    keyword: str | None = None


class EntryCapture(BaseModel):
    """Snapshot of the entry page taken before any navigation can rewrite it."""

    model_config = ConfigDict(frozen=True)

    url: str
    title: str = ""
    referrer: str | None = None
    timestamp: datetime
    query_params: dict[str, list[str]] = Field(default_factory=dict)

    def first_param(self, name: str) -> str | None:
        """Get the first value of a query parameter."""
        values = self.query_params.get(name)
        return values[0] if values else None

    def entry_page(self) -> dict:
        """Entry page payload for the journey record."""
        return {
            "url": self.url,
            "title": self.title,
            "timestamp": self.timestamp.isoformat(),
        }
