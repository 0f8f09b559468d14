"""Tracking events buffered until the remote journey exists."""

from dataclasses import dataclass, field
from enum import Enum

from journeytrack.models.base import generate_ulid
from journeytrack.models.journey import ConversionEvent, PageVisit


class EventType(str, Enum):
    """Queued event types."""

    CHAT_INTERACTION = "chat_interaction"
    PAGE_VIEW = "page_view"
    CONVERSION = "conversion"


@dataclass(frozen=True)
class QueuedEvent:
    """A tracking call held back until the journey record exists.

    ``data`` is a ``PageVisit`` for page views, a ``ConversionEvent`` for
    conversions and ``None`` for chat interactions.
    """

    type: EventType
    data: PageVisit | ConversionEvent | None = None
    id: str = field(default_factory=generate_ulid)

    @classmethod
    def chat_interaction(cls) -> "QueuedEvent":
        return cls(type=EventType.CHAT_INTERACTION)

    @classmethod
    def page_view(cls, page: PageVisit) -> "QueuedEvent":
        return cls(type=EventType.PAGE_VIEW, data=page)

    @classmethod
    def conversion(cls, conversion: ConversionEvent) -> "QueuedEvent":
        return cls(type=EventType.CONVERSION, data=conversion)
