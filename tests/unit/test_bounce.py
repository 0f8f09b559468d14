"""Tests for bounce classification."""

import pytest

from journeytrack.models.journey import BounceType
from journeytrack.services.bounce import classify_bounce


class TestClassifyBounce:
    """Tests for classify_bounce."""

    def test_immediate_bounce(self):
        """Leaving within 3s with little scroll is immediate."""
        assert classify_bounce(page_views=1, duration_seconds=2, scroll_depth=5) == BounceType.IMMEDIATE

    def test_quick_bounce(self):
        """Two minutes with under half the page scrolled is quick."""
        assert classify_bounce(page_views=1, duration_seconds=120, scroll_depth=30) == BounceType.QUICK

    def test_deep_scroll_is_not_bounce(self):
        """Scrolling past half the page counts as engaged."""
        assert classify_bounce(page_views=1, duration_seconds=120, scroll_depth=60) is None

    def test_long_dwell_is_not_bounce(self):
        """Five minutes or more on one page counts as engaged."""
        assert classify_bounce(page_views=1, duration_seconds=300, scroll_depth=0) is None

    @pytest.mark.parametrize(
        "duration,scroll",
        [(0, 0), (2, 5), (120, 30), (10_000, 100)],
    )
    def test_multiple_pages_never_bounce(self, duration, scroll):
        """More than one page view short-circuits to no bounce."""
        assert classify_bounce(page_views=2, duration_seconds=duration, scroll_depth=scroll) is None

    def test_short_visit_with_scroll_is_quick(self):
        """A 2s visit that scrolled 20% misses immediate but is still quick."""
        assert classify_bounce(page_views=1, duration_seconds=2, scroll_depth=20) == BounceType.QUICK

    def test_no_page_views_is_classified(self):
        """A session that never recorded a page view is still classified."""
        assert classify_bounce(page_views=0, duration_seconds=1, scroll_depth=0) == BounceType.IMMEDIATE
