"""Repository for visitor journey records on the remote API.

Writes accept dotted-path field updates (``"engagement.engagement_score"``)
so concurrent writers only touch the fields they own.

Every awaited method raises ``JourneyApiError`` on failure; retrying is the
caller's concern. ``sync_critical_data_beacon`` is the exception: it is
fire-and-forget and never waits for a response.
"""

import threading
from typing import Any

import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError

from journeytrack.config import TrackerConfig
from journeytrack.models.journey import ConversionConfig, Journey
from journeytrack.utils.exceptions import JourneyApiError
from journeytrack.utils.logging import mask_id

logger = structlog.get_logger()

JOURNEY_PATH = "api/visitor-journey"
CONVERSION_CONFIG_PATH = "api/conversion-config"


class JourneyRepository:
    """Async client for the visitor journey API."""

    def __init__(
        self,
        config: TrackerConfig,
        client: httpx.AsyncClient | None = None,
        beacon_transport: httpx.BaseTransport | None = None,
    ):
        """Initialize repository.

        Args:
            config: Tracker configuration (base URL, token, timeouts).
            client: Optional preconfigured async client.
            beacon_transport: Optional transport for beacon requests.
        """
        self.config = config
        self._client = client
        self._owns_client = client is None
        self._beacon_transport = beacon_transport
        self.logger = logger.bind(repository="journey_api")

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client (lazy initialization)."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.api_base_url,
                headers=self._headers(),
                timeout=self.config.request_timeout,
            )
        return self._client

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.access_token:
            headers["Authorization"] = f"Bearer {self.config.access_token}"
        return headers

    async def close(self) -> None:
        """Close the underlying client if this repository created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        json: Any = None,
    ) -> Any:
        try:
            response = await self.client.request(method, f"/{path}", json=json)
        except httpx.HTTPError as e:
            raise JourneyApiError(path, original_error=f"{type(e).__name__}: {e}") from e

        if response.is_error:
            raise JourneyApiError(
                path,
                status_code=response.status_code,
                original_error=response.text[:500],
            )

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError:
            return {"text": response.text}

    async def create_journey(self, payload: dict[str, Any]) -> str:
        """Create a journey record.

        Args:
            payload: Full initial journey document.

        Returns:
            The new journey ID.
        """
        self.logger.info(
            "Creating visitor journey",
            org_id=payload.get("organization_id"),
            session_id=mask_id(payload.get("session_id")),
        )
        result = await self._request("POST", JOURNEY_PATH, json=payload)

        journey = (result or {}).get("visitorJourney") or result or {}
        journey_id = journey.get("id") or journey.get("_id")
        if not journey_id:
            raise JourneyApiError(JOURNEY_PATH, message="Journey API returned no journey id")

        self.logger.info("Visitor journey created", journey_id=journey_id)
        return str(journey_id)

    async def update_journey(self, journey_id: str, fields: dict[str, Any]) -> Any:
        """Apply dotted-path field updates to a journey."""
        self.logger.debug(
            "Updating visitor journey",
            journey_id=journey_id,
            fields=list(fields.keys()),
        )
        return await self._request("PUT", f"{JOURNEY_PATH}/{journey_id}", json=fields)

    async def add_page(self, journey_id: str, page: dict[str, Any]) -> Any:
        """Append a page visit to ``journey.pages``."""
        return await self._request("POST", f"{JOURNEY_PATH}/{journey_id}/pages", json=page)

    async def add_conversion_event(self, journey_id: str, event: dict[str, Any]) -> Any:
        """Append a conversion event."""
        self.logger.info(
            "Sending conversion event",
            journey_id=journey_id,
            conversion=event.get("event"),
            has_context=bool(event.get("element_context")),
        )
        return await self._request(
            "POST", f"{JOURNEY_PATH}/{journey_id}/conversions", json=event
        )

    async def add_bounce_event(self, journey_id: str, event: dict[str, Any]) -> Any:
        """Append a bounce event."""
        return await self._request(
            "POST", f"{JOURNEY_PATH}/{journey_id}/bounce-event", json=event
        )

    async def update_session_status(self, journey_id: str, status: dict[str, Any]) -> Any:
        """Update session status fields (end time, duration, exit page)."""
        return await self._request(
            "POST", f"{JOURNEY_PATH}/{journey_id}/session-status", json=status
        )

    async def get_journey_by_session(self, session_id: str) -> Journey | None:
        """Look up the journey recorded for a session.

        Returns:
            Journey, or None if absent or unparseable.
        """
        path = f"{JOURNEY_PATH}/session/{session_id}"
        try:
            result = await self._request("GET", path)
        except JourneyApiError as e:
            if e.http_status == 404:
                return None
            raise

        if not result:
            return None

        item = result.get("visitorJourney") or result
        if "id" not in item and "_id" in item:
            item = {**item, "id": item["_id"]}

        try:
            return Journey.from_api(item)
        except PydanticValidationError as e:
            self.logger.warning(
                "Journey lookup returned an unusable record",
                session_id=mask_id(session_id),
                error_count=e.error_count(),
            )
            return None

    async def get_conversion_config(self, organization_id: str) -> ConversionConfig | None:
        """Get the active conversion config for an organization.

        A missing config (404 or empty body) is not an error.
        """
        self.logger.info("Fetching conversion config", org_id=organization_id)
        try:
            result = await self._request("GET", f"{CONVERSION_CONFIG_PATH}/{organization_id}")
        except JourneyApiError as e:
            if e.http_status == 404:
                self.logger.info("No active conversion config found", org_id=organization_id)
                return None
            raise

        config = (result or {}).get("config")
        if not config:
            return None

        try:
            return ConversionConfig.from_api(config)
        except PydanticValidationError as e:
            self.logger.warning(
                "Conversion config is invalid",
                org_id=organization_id,
                error_count=e.error_count(),
            )
            return None

    async def report_validation_failure(
        self,
        organization_id: str,
        failure: dict[str, Any],
    ) -> Any:
        """Report a conversion misconfiguration. Never raises."""
        self.logger.warning(
            "Reporting validation failure",
            org_id=organization_id,
            page_url=failure.get("page_url"),
            selector=failure.get("selector"),
        )
        try:
            return await self._request(
                "POST",
                f"{CONVERSION_CONFIG_PATH}/{organization_id}/validation-failure",
                json=failure,
            )
        except JourneyApiError as e:
            self.logger.error(
                "Failed to report validation failure",
                org_id=organization_id,
                error=e.message,
            )
            return None

    def sync_critical_data_beacon(self, journey_id: str, critical_data: dict[str, Any]) -> bool:
        """Send critical session data without waiting for the response.

        The request runs on a non-daemon thread with its own synchronous
        client, so it keeps going while the event loop and host shut down.
        If the thread cannot be started, the request is sent synchronously.

        Returns:
            Whether the data was handed off (or, for the synchronous
            fallback, accepted with a 2xx status).
        """
        url = f"{self.config.api_base_url}/{JOURNEY_PATH}/{journey_id}/sync-critical"

        def send() -> None:
            try:
                response = self._beacon_post(url, critical_data)
                self.logger.info(
                    "Critical data sent with beacon",
                    journey_id=journey_id,
                    status=response.status_code,
                )
            except httpx.HTTPError as e:
                self.logger.warning("Beacon request failed", journey_id=journey_id, error=str(e))

        try:
            thread = threading.Thread(
                target=send,
                name=f"journey-beacon-{journey_id}",
                daemon=False,
            )
            thread.start()
            return True
        except RuntimeError as e:
            self.logger.warning("Failed to start beacon, sending synchronously", error=str(e))
            return self._sync_critical_data_fallback(url, journey_id, critical_data)

    def _beacon_post(self, url: str, payload: dict[str, Any]) -> httpx.Response:
        with httpx.Client(
            headers=self._headers(),
            timeout=self.config.beacon_timeout,
            transport=self._beacon_transport,
        ) as client:
            return client.post(url, json=payload)

    def _sync_critical_data_fallback(
        self,
        url: str,
        journey_id: str,
        payload: dict[str, Any],
    ) -> bool:
        try:
            response = self._beacon_post(url, payload)
        except httpx.HTTPError as e:
            self.logger.warning("Fallback sync failed", journey_id=journey_id, error=str(e))
            return False

        self.logger.info(
            "Critical data sent via fallback",
            journey_id=journey_id,
            status=response.status_code,
        )
        return response.is_success
