"""Visitor journey model.

The journey is the aggregate per-session record kept by the remote store.
The client never overwrites it wholesale: it is created once, then mutated
through dotted-path field updates such as ``engagement.engagement_score``.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field, field_validator

from journeytrack.models.base import BaseModel, parse_datetime
from journeytrack.models.traffic import TrafficSource


class BounceType(str, Enum):
    """Bounce classifications."""

    IMMEDIATE = "immediate"
    QUICK = "quick"


class ExitReason(str, Enum):
    """What ended a session."""

    NATURAL = "natural"
    TAB_HIDDEN = "tab_hidden"
    PAGE_UNLOAD = "page_unload"
    PAGE_HIDE = "page_hide"
    CLEANUP = "cleanup"


class ConversionType(str, Enum):
    """Configured conversion kinds."""

    BUTTON = "button"
    PAGE_VISIT = "page_visit"


class PageVisit(BaseModel):
    """One entry of ``journey.pages``."""

    url: str
    title: str = ""
    time_spent: int = 0  # seconds of foreground time
    scroll_depth: int = 0  # percent
    interactions: int = 0


class InteractionCounts(BaseModel):
    """Generic interaction counters."""

    clicks: int = 0
    form_interactions: int = 0
    scroll_interactions: int = 0
    keyboard_interactions: int = 0
    custom_events: int = 0
    total: int = 0


class DeviceInfo(BaseModel):
    """Device facts derived from the user agent."""

    type: str = "desktop"
    browser: str = "Unknown"
    os: str = "Unknown"
    screen_resolution: str | None = None


class Location(BaseModel):
    """Coarse IP-based location."""

    country: str | None = None
    country_code: str | None = None
    region: str | None = None
    city: str | None = None
    timezone: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    accuracy: float | None = None
    source: str | None = None


class JourneyPath(BaseModel):
    """Navigation part of a journey."""

    entry_page: dict[str, Any] | None = None
    current_page: dict[str, Any] | None = None
    pages: list[PageVisit] = Field(default_factory=list)
    total_time_spent: int = 0
    page_views: int = 0
    bounce_rate: bool = False


class Intent(BaseModel):
    """Visitor intent signals."""

    search_queries: list[str] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)
    goals: list[str] = Field(default_factory=list)
    urgency: str = "medium"


class Engagement(BaseModel):
    """Engagement counters and events."""

    is_returning: bool = False
    visit_count: int = 1
    last_visit: datetime | None = None
    engagement_score: int = 0
    conversion_events: list[dict[str, Any]] = Field(default_factory=list)
    bounce_events: list[dict[str, Any]] = Field(default_factory=list)
    form_submissions: int = 0
    downloads: int = 0
    video_plays: int = 0
    chat_interactions: int = 0
    interaction_counts: InteractionCounts = Field(default_factory=InteractionCounts)

    @field_validator("last_visit", mode="before")
    @classmethod
    def coerce_last_visit(cls, value: Any) -> datetime | None:
        return parse_datetime(value)


class SessionInfo(BaseModel):
    """Session part of a journey."""

    start_time: datetime
    end_time: datetime | None = None
    duration: int = 0
    is_active: bool = True
    last_activity: datetime | None = None
    exit_page: str | None = None
    exit_reason: str | None = None

    @field_validator("start_time", "end_time", "last_activity", mode="before")
    @classmethod
    def coerce_datetimes(cls, value: Any) -> datetime | None:
        return parse_datetime(value)


class Journey(BaseModel):
    """Remote journey record."""

    id: str
    organization_id: str | None = None
    session_id: str | None = None
    visitor_id: str | None = None
    traffic_source: TrafficSource = Field(default_factory=TrafficSource)
    location: Location | None = None
    device: DeviceInfo | None = None
    journey: JourneyPath = Field(default_factory=JourneyPath)
    intent: Intent = Field(default_factory=Intent)
    engagement: Engagement = Field(default_factory=Engagement)
    session: SessionInfo

    def seconds_since_end(self, now: datetime) -> float | None:
        """Seconds elapsed since the session ended, None if it never ended."""
        if self.session.end_time is None:
            return None
        return (now - self.session.end_time).total_seconds()


class ConversionEvent(BaseModel):
    """Conversion posted to ``/conversions``."""

    event: str
    value: float = 0
    element_context: dict[str, Any] | None = None


class BounceEvent(BaseModel):
    """Bounce event posted at session termination."""

    timestamp: datetime
    bounce_type: BounceType
    page_url: str
    page_title: str = ""
    session_duration: int
    scroll_depth: int
    device: DeviceInfo | None = None
    exit_trigger: str


class ConversionConfig(BaseModel):
    """Organization conversion configuration."""

    id: str | None = None
    conversion_name: str
    conversion_type: ConversionType = ConversionType.BUTTON
    element_selector: str | None = None
    page_url: str | None = None

    @field_validator("conversion_type", mode="before")
    @classmethod
    def default_conversion_type(cls, value: Any) -> Any:
        return value or ConversionType.BUTTON
