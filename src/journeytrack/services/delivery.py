"""Session termination delivery.

When a session ends, its final state is frozen into a ``SessionFinalization``
and handed to one of two channels:

- GuaranteedBeaconChannel: fire-and-forget request that keeps running while
  the host tears down. Used for tab-hidden, unload, page-hide and cleanup.
- RetryingAsyncChannel: awaited writes through the retry policy. Used when
  the session ends while the host stays alive.

The terminal writes are the only writes issued after the active flag drops;
they are not routed through the active guard.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog

from journeytrack.execution.retry_policy import RetryPolicy
from journeytrack.models.journey import BounceEvent, BounceType, ExitReason, PageVisit
from journeytrack.repositories.journey_api import JourneyRepository

logger = structlog.get_logger()

BEACON_TRIGGERS = frozenset(
    {
        ExitReason.TAB_HIDDEN,
        ExitReason.PAGE_UNLOAD,
        ExitReason.PAGE_HIDE,
        ExitReason.CLEANUP,
    }
)


@dataclass(frozen=True)
class SessionFinalization:
    """Final state of a session, computed once at termination."""

    journey_id: str
    reason: ExitReason
    end_time: datetime
    duration: int
    exit_page: str
    engagement_score: int
    bounce_type: BounceType | None = None
    bounce_event: BounceEvent | None = None
    final_page: PageVisit | None = None
    final_page_index: int | None = None
    chat_active: bool = False

    @property
    def is_bounce(self) -> bool:
        return self.bounce_type is not None

    def session_status(self) -> dict[str, Any]:
        """Fields for the session-status endpoint."""
        return {
            "is_active": False,
            "end_time": self.end_time.isoformat(),
            "duration": self.duration,
            "exit_page": self.exit_page,
            "exit_reason": ExitReason(self.reason).value,
            "chat_active": self.chat_active,
        }

    def journey_fields(self) -> dict[str, Any]:
        """Dotted-path updates finalizing the journey record."""
        fields: dict[str, Any] = {
            "journey.bounce_rate": self.is_bounce,
            "engagement.engagement_score": self.engagement_score,
        }
        if self.final_page is not None and self.final_page_index is not None:
            prefix = f"journey.pages.{self.final_page_index}"
            fields[f"{prefix}.time_spent"] = self.final_page.time_spent
            fields[f"{prefix}.scroll_depth"] = self.final_page.scroll_depth
            fields[f"{prefix}.interactions"] = self.final_page.interactions
        return fields

    def to_critical_data(self) -> dict[str, Any]:
        """Single payload for the critical-sync endpoint."""
        data: dict[str, Any] = {
            "session": self.session_status(),
            "journey": {"bounce_rate": self.is_bounce},
            "engagement": {"engagement_score": self.engagement_score},
            "bounce_event": self.bounce_event.to_api() if self.bounce_event else None,
        }
        if self.final_page is not None and self.final_page_index is not None:
            data["final_page"] = {
                "index": self.final_page_index,
                **self.final_page.to_api(),
            }
        return data


class DeliveryChannel(ABC):
    """Delivers a session finalization to the remote store."""

    name: str = "channel"

    def __init__(self, repository: JourneyRepository):
        self.repository = repository
        self._tasks: set[asyncio.Task] = set()
        self.logger = logger.bind(service="delivery", channel=self.name)

    @abstractmethod
    async def deliver(self, final: SessionFinalization) -> bool:
        """Deliver the finalization.

        Returns:
            True if the remote store accepted it (or, for fire-and-forget
            channels, if it was handed off).
        """

    def deliver_nowait(self, final: SessionFinalization) -> None:
        """Start delivery from synchronous code without waiting for it."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.logger.warning(
                "No running event loop, finalization not delivered",
                journey_id=final.journey_id,
            )
            return

        task = loop.create_task(self.deliver(final), name=f"deliver-{final.journey_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_pending(self) -> None:
        """Wait for deliveries started with ``deliver_nowait``."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class GuaranteedBeaconChannel(DeliveryChannel):
    """Fire-and-forget delivery that survives host teardown."""

    name = "beacon"

    def send(self, final: SessionFinalization) -> bool:
        success = self.repository.sync_critical_data_beacon(
            final.journey_id, final.to_critical_data()
        )
        self.logger.info(
            "Session ended via beacon",
            journey_id=final.journey_id,
            duration=final.duration,
            reason=ExitReason(final.reason).value,
            is_bounce=final.is_bounce,
            beacon_success=success,
        )
        return success

    async def deliver(self, final: SessionFinalization) -> bool:
        return self.send(final)

    def deliver_nowait(self, final: SessionFinalization) -> None:
        # The beacon never waits on the loop; send before the host goes away
        self.send(final)


class RetryingAsyncChannel(DeliveryChannel):
    """Awaited delivery through the retry policy."""

    name = "async"

    def __init__(self, repository: JourneyRepository, retry_policy: RetryPolicy):
        super().__init__(repository)
        self.retry_policy = retry_policy

    async def deliver(self, final: SessionFinalization) -> bool:
        journey_id = final.journey_id
        context = {"journey_id": journey_id, "reason": ExitReason(final.reason).value}
        delivered = True

        if final.bounce_event is not None:
            payload = final.bounce_event.to_api()
            result = await self.retry_policy.execute(
                lambda: self.repository.add_bounce_event(journey_id, payload),
                context={"operation": "bounce_event", **context},
            )
            if result.success:
                self.logger.info(
                    "Bounce event tracked",
                    journey_id=journey_id,
                    bounce_type=BounceType(final.bounce_type).value,
                )
            delivered = delivered and result.success

        status = final.session_status()
        result = await self.retry_policy.execute(
            lambda: self.repository.update_session_status(journey_id, status),
            context={"operation": "session_status", **context},
        )
        delivered = delivered and result.success

        fields = final.journey_fields()
        result = await self.retry_policy.execute(
            lambda: self.repository.update_journey(journey_id, fields),
            context={"operation": "final_journey_fields", **context},
        )
        delivered = delivered and result.success

        self.logger.info(
            "Session ended",
            journey_id=journey_id,
            duration=final.duration,
            reason=context["reason"],
            is_bounce=final.is_bounce,
            delivered=delivered,
        )
        return delivered


def select_channel(
    reason: ExitReason,
    beacon: DeliveryChannel,
    retrying: DeliveryChannel,
) -> DeliveryChannel:
    """Pick the delivery channel for a termination trigger."""
    if ExitReason(reason) in BEACON_TRIGGERS:
        return beacon
    return retrying
