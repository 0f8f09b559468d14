"""Foreground time tracking for the current page."""

from datetime import datetime
from typing import Callable

import structlog

from journeytrack.models.base import utc_now

logger = structlog.get_logger()


class PageTimeTracker:
    """Accumulates time while the page is the foreground tab.

    The clock runs between ``start`` and ``stop`` and is paused while the
    page is hidden.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock
        self.page_start: datetime | None = None
        self._accumulated = 0.0
        self._visible_since: datetime | None = None

    @property
    def running(self) -> bool:
        return self.page_start is not None

    @property
    def visible(self) -> bool:
        return self._visible_since is not None

    @property
    def active_seconds(self) -> float:
        """Foreground seconds on the current page so far."""
        total = self._accumulated
        if self._visible_since is not None:
            total += (self.clock() - self._visible_since).total_seconds()
        return max(0.0, total)

    def start(self, hidden: bool = False) -> None:
        now = self.clock()
        self.page_start = now
        self._accumulated = 0.0
        self._visible_since = None if hidden else now
        logger.debug("Started page time tracking", start_time=now.isoformat())

    def pause(self) -> None:
        if self._visible_since is not None:
            self._accumulated += (self.clock() - self._visible_since).total_seconds()
            self._visible_since = None

    def resume(self) -> None:
        if self.running and self._visible_since is None:
            self._visible_since = self.clock()

    def handle_visibility(self, hidden: bool) -> None:
        if hidden:
            self.pause()
        else:
            self.resume()

    def stop(self) -> int | None:
        """Stop the clock.

        Returns:
            Rounded foreground seconds, or None if the tracker was not running.
        """
        if not self.running:
            return None

        self.pause()
        time_spent = round(self._accumulated)
        self.page_start = None
        self._accumulated = 0.0
        logger.debug("Stopped page time tracking", time_spent=time_spent)
        return time_spent
