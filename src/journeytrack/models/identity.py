"""Visitor and session identity records."""

from datetime import datetime

from journeytrack.models.base import BaseModel


class VisitorIdentity(BaseModel):
    """Durable identity of an anonymous visitor.

    ``visitor_id`` is minted once per device and never rotated. ``is_returning``
    reflects whether the id existed before it was resolved for this page load.
    """

    visitor_id: str
    is_returning: bool = False
    visit_count: int = 1
    last_visit: datetime | None = None
    persisted: bool = True  # False when storage failed and the id is volatile


class SessionIdentity(BaseModel):
    """Identity of one browsing session within a tab."""

    session_id: str
    start_time: datetime
    resumed: bool = False  # Reused from the tab store or the device mirror
    persisted: bool = True
