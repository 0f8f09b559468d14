"""Scroll depth tracking with milestones."""

from typing import Callable

import structlog

from journeytrack.execution.timers import Debouncer
from journeytrack.host import HostPage, PageEvent, ScrollMetrics

logger = structlog.get_logger()

SCROLL_MILESTONES = (25, 50, 75, 100)

# Minimum change (percentage points) worth recording
SIGNIFICANT_SCROLL_CHANGE = 5


def calculate_scroll_depth(metrics: ScrollMetrics) -> int:
    """Percentage of the scrollable height reached.

    A page shorter than its viewport has nothing to scroll and reports 0.
    """
    scrollable = metrics.document_height - metrics.viewport_height
    if scrollable <= 0:
        return 0
    percent = metrics.scroll_top / scrollable * 100
    return min(100, max(0, round(percent)))


class ScrollTracker:
    """Recomputes scroll depth after the page stops scrolling.

    Each milestone fires once per tracker. Depth changes larger than
    ``SIGNIFICANT_SCROLL_CHANGE`` points are reported to ``on_change``.
    """

    def __init__(
        self,
        page: HostPage,
        on_milestone: Callable[[int], None],
        on_change: Callable[[int], None],
        is_active: Callable[[], bool],
        debounce_seconds: float = 0.5,
    ):
        self.page = page
        self.on_milestone = on_milestone
        self.on_change = on_change
        self.is_active = is_active
        self.milestones_reached: set[int] = set()
        self.last_depth = 0
        self._debouncer = Debouncer("scroll", debounce_seconds, self.update)
        self._attached = False
        self.logger = logger.bind(tracker="scroll")

    def current_depth(self) -> int:
        return calculate_scroll_depth(self.page.scroll)

    def attach(self) -> None:
        if not self._attached:
            self.page.add_listener(PageEvent.SCROLL, self._on_scroll)
            self._attached = True

    def detach(self) -> None:
        if self._attached:
            self.page.remove_listener(PageEvent.SCROLL, self._on_scroll)
            self._attached = False
        self.cancel()

    def cancel(self) -> None:
        self._debouncer.cancel()

    def reset_page(self) -> None:
        """Start measuring a new page from the top."""
        self.last_depth = 0

    def _on_scroll(self, _payload=None) -> None:
        self._debouncer.trigger()

    def update(self) -> int | None:
        """Recompute depth, fire new milestones and report significant changes."""
        if not self.is_active():
            return None

        depth = self.current_depth()

        for milestone in SCROLL_MILESTONES:
            if depth >= milestone and milestone not in self.milestones_reached:
                self.milestones_reached.add(milestone)
                self.logger.info(
                    "Scroll milestone achieved",
                    milestone=milestone,
                    scroll_depth=depth,
                )
                self.on_milestone(milestone)

        if abs(depth - self.last_depth) > SIGNIFICANT_SCROLL_CHANGE:
            self.last_depth = depth
            self.on_change(depth)

        return depth
