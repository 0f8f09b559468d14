"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set environment variables before imports
os.environ["JOURNEYTRACK_API_BASE_URL"] = "http://api.test"
os.environ["JOURNEYTRACK_LOCATION_LOOKUP_URL"] = ""
os.environ["JOURNEYTRACK_LOG_LEVEL"] = "DEBUG"

CHROME_DESKTOP_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock():
    """A clock frozen until advanced."""
    return FakeClock()


@pytest.fixture
def config():
    """Tracker configuration with fast debounces and no location lookup."""
    from journeytrack.config import TrackerConfig

    return TrackerConfig(
        api_base_url="http://api.test",
        location_lookup_url="",
        scroll_debounce_seconds=0.01,
        interaction_debounce_seconds=0.01,
        scroll_sync_debounce_seconds=0.01,
    )


@pytest.fixture
def tab_store():
    """Tab-scoped store."""
    from journeytrack.repositories.kv_store import MemoryStore

    return MemoryStore("tab")


@pytest.fixture
def device_store():
    """Device-scoped store."""
    from journeytrack.repositories.kv_store import MemoryStore

    return MemoryStore("device")


@pytest.fixture
def host_page():
    """Landing page reached from a newsletter link."""
    from journeytrack.host import ElementInfo, HostPage

    page = HostPage(
        url="https://shop.example.com/products?utm_source=newsletter&utm_medium=email",
        title="Products",
        referrer="https://www.google.com/search?q=shoes",
        user_agent=CHROME_DESKTOP_UA,
        screen_width=1920,
        screen_height=1080,
    )
    page.scroll.document_height = 3000
    page.scroll.viewport_height = 1000
    page.elements["#signup"] = ElementInfo(
        tag="button",
        text="Sign up now",
        id="signup",
        data_attributes={"data-plan": "pro", "aria-label": "Sign up"},
    )
    return page


@pytest.fixture
def widget():
    """Widget with analytics on and an organization configured."""
    from journeytrack.host import WidgetContext

    return WidgetContext(
        analytics_enabled=True,
        get_org_id=lambda: "org-123",
        is_chat_active=lambda: False,
    )


@pytest.fixture
def mock_repository():
    """Journey repository with every remote call mocked."""
    repository = MagicMock()
    repository.create_journey = AsyncMock(return_value="journey-123")
    repository.update_journey = AsyncMock(return_value={"success": True})
    repository.add_page = AsyncMock(return_value={"success": True})
    repository.add_conversion_event = AsyncMock(return_value={"success": True})
    repository.add_bounce_event = AsyncMock(return_value={"success": True})
    repository.update_session_status = AsyncMock(return_value={"success": True})
    repository.get_journey_by_session = AsyncMock(return_value=None)
    repository.get_conversion_config = AsyncMock(return_value=None)
    repository.report_validation_failure = AsyncMock(return_value=None)
    repository.sync_critical_data_beacon = MagicMock(return_value=True)
    repository.close = AsyncMock()
    return repository


@pytest.fixture
def retry_policy():
    """Retry policy that does not actually sleep."""
    from journeytrack.execution.retry_policy import RetryConfig, RetryPolicy

    return RetryPolicy(RetryConfig(), sleep=AsyncMock())


@pytest.fixture
def make_tracker(
    host_page, widget, config, mock_repository, tab_store, device_store, retry_policy, clock
):
    """Factory for lifecycle controllers wired to the test doubles."""
    from journeytrack.services.lifecycle import SessionLifecycleController

    def _make(**overrides):
        kwargs = {
            "page": host_page,
            "widget": widget,
            "config": config,
            "repository": mock_repository,
            "tab_store": tab_store,
            "device_store": device_store,
            "retry_policy": retry_policy,
            "clock": clock,
        }
        kwargs.update(overrides)
        return SessionLifecycleController(**kwargs)

    return _make
