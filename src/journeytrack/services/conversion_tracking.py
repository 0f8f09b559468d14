"""Organization-configured conversion tracking.

An organization may configure one conversion: either a click on an element
found by selector (``button``) or a visit to a page path (``page_visit``).
A selector that matches nothing is reported back to the API once so the
operator can fix it, and tracking is skipped.
"""

from datetime import datetime
from typing import Any, Callable

import structlog

from journeytrack.host import ElementInfo, HostPage, PageEvent
from journeytrack.models.base import utc_now
from journeytrack.models.journey import ConversionConfig, ConversionType
from journeytrack.repositories.journey_api import JourneyRepository
from journeytrack.utils.exceptions import JourneyApiError

logger = structlog.get_logger()

TrackConversion = Callable[[str, float, dict[str, Any] | None], None]


def normalize_path(path: str) -> str:
    """Strip one trailing slash; the root stays ``/``."""
    path = path.strip()
    if path.endswith("/"):
        path = path[:-1]
    return path or "/"


class ConversionTracker:
    """Attaches the organization's conversion config to the host page."""

    def __init__(
        self,
        page: HostPage,
        repository: JourneyRepository,
        get_org_id: Callable[[], str | None],
        track_conversion: TrackConversion,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the tracker.

        Args:
            page: Host page.
            repository: Journey API repository.
            get_org_id: Organization id accessor.
            track_conversion: Called with (name, value, context) on a match.
            clock: Returns the current UTC time.
        """
        self.page = page
        self.repository = repository
        self.get_org_id = get_org_id
        self.track_conversion = track_conversion
        self.clock = clock
        self.config: ConversionConfig | None = None
        self.element: ElementInfo | None = None
        self.logger = logger.bind(service="conversion_tracking")

    @property
    def is_page_visit(self) -> bool:
        return (
            self.config is not None
            and self.config.conversion_type == ConversionType.PAGE_VISIT
        )

    async def setup(self) -> None:
        """Fetch the config and attach the matching listener.

        A missing organization or config disables the feature quietly.
        """
        organization_id = self.get_org_id()
        if not organization_id:
            self.logger.warning("Cannot setup conversion tracking: no organization ID")
            return

        try:
            self.config = await self.repository.get_conversion_config(organization_id)
        except JourneyApiError as e:
            self.logger.error(
                "Failed to setup conversion tracking",
                org_id=organization_id,
                error=e.message,
            )
            return

        if self.config is None:
            self.logger.info("No active conversion config, skipping conversion tracking")
            return

        self.logger.info(
            "Conversion config loaded",
            conversion_name=self.config.conversion_name,
            conversion_type=ConversionType(self.config.conversion_type).value,
            selector=self.config.element_selector,
            page_url=self.config.page_url,
        )

        if self.is_page_visit:
            if not self.config.page_url:
                self.logger.warning("No page URL configured for page visit tracking")
                return
            self.check_page_visit()
        else:
            await self._attach_click_listener(organization_id)

    async def _attach_click_listener(self, organization_id: str) -> None:
        selector = self.config.element_selector
        element = self.page.query_selector(selector) if selector else None

        if element is None:
            error_message = f"Element not found for selector: {selector}"
            self.logger.warning(error_message, selector=selector, page_url=self.page.url)
            await self.repository.report_validation_failure(
                organization_id,
                {
                    "page_url": self.page.url,
                    "selector": selector,
                    "error_message": error_message,
                    "timestamp": self.clock().isoformat(),
                },
            )
            return

        self.element = element
        self.page.add_listener(PageEvent.CLICK, self._on_click)
        self.logger.info(
            "Conversion listener attached",
            conversion_name=self.config.conversion_name,
            selector=selector,
            element_tag=element.tag.upper(),
            element_text=element.text[:50],
        )

    def _on_click(self, element: ElementInfo | None = None) -> None:
        if self.element is None or element is not self.element:
            return

        context = element.element_context()
        self.logger.info(
            "Conversion element clicked",
            conversion_name=self.config.conversion_name,
        )
        self.track_conversion(self.config.conversion_name, 1, context)

    def check_page_visit(self) -> bool:
        """Track the page-visit conversion if the current path matches.

        Called at setup and after every in-app navigation.
        """
        if not self.is_page_visit or not self.config.page_url:
            return False

        current_path = self.page.pathname
        if normalize_path(current_path) != normalize_path(self.config.page_url):
            self.logger.debug(
                "Current page does not match configured conversion URL",
                configured_url=self.config.page_url,
                current_url=current_path,
            )
            return False

        self.logger.info(
            "Page visit conversion detected",
            conversion_name=self.config.conversion_name,
            configured_url=self.config.page_url,
            current_url=current_path,
        )
        self.track_conversion(
            self.config.conversion_name,
            1,
            {
                "page_url": self.page.url,
                "page_title": self.page.title,
                "page_path": current_path,
            },
        )
        return True

    def detach(self) -> None:
        if self.element is not None:
            self.page.remove_listener(PageEvent.CLICK, self._on_click)
            self.element = None
            self.logger.info("Conversion listener removed")
