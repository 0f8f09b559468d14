"""Session lifecycle controller.

One controller is constructed per widget instance. It is the single owner
of the journey state and the only component that can end the session.

Lifecycle:
    CREATING -> ACTIVE -> ENDED

Construction resolves identity and freezes the entry page and traffic
source synchronously. ``initialize()`` creates or resumes the remote journey,
replays calls queued in the meantime, attaches the signal trackers and
starts the periodic syncs.

Ending the session drops the active flag and freezes the end time before
any asynchronous work, cancels every timer, computes the final score and
bounce classification, then hands the result to a delivery channel: the
beacon when the host is being torn down, the retrying async path otherwise.
Every non-terminal write runs through the active guard.
"""

import asyncio
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Coroutine

import httpx
import structlog

from journeytrack.config import TrackerConfig
from journeytrack.execution.guard import ActiveGuard
from journeytrack.execution.retry_policy import RetryConfig, RetryPolicy
from journeytrack.execution.timers import Debouncer, PeriodicTimer
from journeytrack.host import HostPage, PageEvent, WidgetContext
from journeytrack.models.base import utc_now
from journeytrack.models.events import EventType, QueuedEvent
from journeytrack.models.journey import (
    BounceEvent,
    ConversionEvent,
    Engagement,
    ExitReason,
    Intent,
    Journey,
    JourneyPath,
    PageVisit,
    SessionInfo,
)
from journeytrack.repositories.journey_api import JourneyRepository
from journeytrack.repositories.kv_store import KeyValueStore, MemoryStore, build_device_store
from journeytrack.services.bounce import classify_bounce
from journeytrack.services.conversion_tracking import ConversionTracker
from journeytrack.services.delivery import (
    GuaranteedBeaconChannel,
    RetryingAsyncChannel,
    SessionFinalization,
    select_channel,
)
from journeytrack.services.device import get_device_info, lookup_location
from journeytrack.services.event_queue import EventQueue
from journeytrack.services.identity_resolver import IdentityResolver
from journeytrack.services.scoring import calculate_engagement_score
from journeytrack.services.traffic_capture import (
    capture_entry_page,
    classify_traffic_source,
    validate_captured_data,
)
from journeytrack.trackers.interactions import InteractionTracker
from journeytrack.trackers.navigation import NavigationTracker
from journeytrack.trackers.page_time import PageTimeTracker
from journeytrack.trackers.scroll import ScrollTracker
from journeytrack.utils.exceptions import JourneyApiError
from journeytrack.utils.logging import mask_id

logger = structlog.get_logger()


class SessionState(str, Enum):
    """Session lifecycle states."""

    CREATING = "creating"
    ACTIVE = "active"
    ENDED = "ended"


class SessionLifecycleController:
    """Visitor journey tracker for one widget instance."""

    def __init__(
        self,
        page: HostPage,
        widget: WidgetContext | None = None,
        config: TrackerConfig | None = None,
        repository: JourneyRepository | None = None,
        tab_store: KeyValueStore | None = None,
        device_store: KeyValueStore | None = None,
        retry_policy: RetryPolicy | None = None,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Resolve identity and capture the entry page.

        Nothing here awaits: the host may navigate away as soon as the
        constructor returns.

        Args:
            page: Host page adapter.
            widget: Host collaborators (feature flag, org id, chat flag).
            config: Tracker configuration.
            repository: Journey API repository.
            tab_store: Tab-scoped store.
            device_store: Device-scoped store.
            retry_policy: Retry executor for remote writes.
            http_client: Optional client for the location lookup.
            clock: Returns the current UTC time.
        """
        self.page = page
        self.widget = widget or WidgetContext()
        self.config = config or TrackerConfig()
        self.clock = clock
        self.logger = logger.bind(service="journey_tracker")

        # Identity and entry capture run first
        self.identity = IdentityResolver(
            tab_store if tab_store is not None else MemoryStore("tab"),
            device_store
            if device_store is not None
            else build_device_store(self.config.storage_path),
            self.config,
            clock,
        )
        is_returning = self.identity.has_visitor_id()
        self.session = self.identity.resolve_session()
        self.visitor = self.identity.resolve_visitor(is_returning)

        now = clock()
        self.entry = capture_entry_page(page, now)
        self.traffic_source = classify_traffic_source(self.entry, page.hostname)
        self.device = get_device_info(page)

        # Session state
        self.state = SessionState.CREATING
        self.enabled = self.widget.analytics_enabled
        self.initialized = False
        self.journey_id: str | None = None
        self.session_start = now
        self.session_end: datetime | None = None
        self.last_activity = now
        self.last_sync_time: datetime | None = None
        self.last_synced_score: int | None = None
        self.page_views = 0
        self.chat_interactions = 0
        self.pages: list[PageVisit] = []
        self._creating_journey = False
        self._page_interaction_base = 0
        self._synced_scroll_depth = 0
        self._tasks: set[asyncio.Task] = set()

        # Remote writes
        self.repository = repository or JourneyRepository(self.config)
        self.retry_policy = retry_policy or RetryPolicy(
            RetryConfig(
                max_retries=self.config.max_retries,
                base_delay=self.config.retry_base_delay,
            )
        )
        self.guard = ActiveGuard(self.is_active, self.retry_policy)
        self.queue = EventQueue()
        self.beacon_channel = GuaranteedBeaconChannel(self.repository)
        self.async_channel = RetryingAsyncChannel(self.repository, self.retry_policy)
        self._http_client = http_client

        # Signal trackers
        self.page_time = PageTimeTracker(clock)
        self.scroll = ScrollTracker(
            page,
            on_milestone=self._on_scroll_milestone,
            on_change=self._on_scroll_change,
            is_active=self.is_active,
            debounce_seconds=self.config.scroll_debounce_seconds,
        )
        self.interactions = InteractionTracker(
            page,
            on_interaction=self._on_interaction,
            on_conversion=self._on_tracker_conversion,
            sync=self._sync_interaction_data,
            is_active=self.is_active,
            debounce_seconds=self.config.interaction_debounce_seconds,
        )
        self.navigation = NavigationTracker(page, on_navigate=self._on_navigate)
        self.conversions = ConversionTracker(
            page,
            self.repository,
            self.widget.get_org_id,
            track_conversion=self._on_configured_conversion,
            clock=clock,
        )

        # Periodic work
        self._page_sync = Debouncer(
            "page_sync",
            self.config.scroll_sync_debounce_seconds,
            self._sync_current_page,
        )
        self._timers = [
            PeriodicTimer(
                "engagement_score",
                self.config.score_interval_seconds,
                self._sync_engagement_score,
            ),
            PeriodicTimer(
                "scroll_depth",
                self.config.scroll_sync_interval_seconds,
                self._sync_scroll_depth,
            ),
            PeriodicTimer(
                "critical_sync",
                self.config.critical_sync_interval_seconds,
                self._periodic_critical_sync,
            ),
        ]
        self._listeners = [
            (PageEvent.VISIBILITY_CHANGE, self._on_visibility_change),
            (PageEvent.BEFORE_UNLOAD, self._on_before_unload),
            (PageEvent.PAGE_HIDE, self._on_page_hide),
        ]
        self._listeners_attached = False

    # State

    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def visitor_id(self) -> str:
        return self.visitor.visitor_id

    def is_active(self) -> bool:
        return self.state == SessionState.ACTIVE

    def _journey_ready(self) -> bool:
        return self.journey_id is not None and not self._creating_journey

    def _accepting(self) -> bool:
        return self.enabled and self.state != SessionState.ENDED

    def current_duration(self) -> float:
        """Session duration in seconds, measured to the frozen end time once ended."""
        end = self.session_end if self.session_end is not None else self.clock()
        return max(0.0, (end - self.session_start).total_seconds())

    def current_engagement_score(self) -> int:
        return calculate_engagement_score(
            page_views=self.page_views,
            duration_seconds=self.current_duration(),
            interactions=self.interactions.counts.total,
            chat_interactions=self.chat_interactions,
        )

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        """Run a coroutine in the background from synchronous code."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            self.logger.debug("No running event loop, background call dropped")
            return

        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # Initialization

    async def initialize(self) -> bool:
        """Create or resume the remote journey and start tracking.

        Returns:
            Whether tracking is running. Any failure disables tracking and
            returns False.
        """
        if self.initialized:
            return True

        if not self.widget.analytics_enabled:
            self.logger.info("Analytics is disabled for this widget")
            self.enabled = False
            self.queue.clear()
            return False

        self.enabled = True
        self.logger.info("Analytics is enabled, initializing")

        try:
            if not await self._get_or_create_journey():
                self.enabled = False
                self.queue.clear()
                return False

            if self.state != SessionState.ACTIVE:
                self.logger.info("Session ended during initialization")
                return False

            issues = validate_captured_data(self.entry, self.traffic_source)
            if issues:
                self.logger.warning("Captured data validation issues", issues=issues)

            self._attach()
            self._start_timers()
            await self.conversions.setup()

            self.initialized = True
            self.logger.info(
                "Analytics initialized",
                session_id=mask_id(self.session_id),
                visitor_id=mask_id(self.visitor_id),
                journey_id=self.journey_id,
            )
            return True

        except Exception as e:
            self.logger.warning("Failed to initialize analytics", error=str(e))
            self.enabled = False
            return False

    async def _get_or_create_journey(self) -> bool:
        self._creating_journey = True
        try:
            organization_id = self.widget.get_org_id()
            if not organization_id:
                self.logger.warning("Organization ID not found, analytics disabled")
                return False

            cached_journey_id = self.identity.get_cached_journey_id()
            if cached_journey_id:
                existing = await self._lookup_existing_journey(cached_journey_id)
                if existing is not None:
                    self._resume(existing)
                    return True

            return await self._create_journey(organization_id)
        finally:
            self._creating_journey = False
            if self.state == SessionState.ACTIVE:
                await self.queue.drain(self._send_queued_event)

    async def _lookup_existing_journey(self, cached_journey_id: str) -> Journey | None:
        """Find a journey that can be resumed.

        Returns:
            The journey if it is still active, otherwise None. A record that
            ended within the recently-ended window rotates the session id so
            the next record does not reactivate it.
        """
        self.logger.info(
            "Looking up journey by session",
            cached_journey_id=cached_journey_id,
            session_id=mask_id(self.session_id),
        )
        try:
            journey = await self.repository.get_journey_by_session(self.session_id)
        except JourneyApiError as e:
            self.logger.error(
                "Failed to lookup journey, will create new",
                cached_journey_id=cached_journey_id,
                error=e.message,
            )
            self.identity.clear_cached_journey_id()
            return None

        if journey is None:
            self.identity.clear_cached_journey_id()
            return None

        if journey.session.is_active:
            return journey

        since_end = journey.seconds_since_end(self.clock())
        if since_end is not None and since_end < self.config.recently_ended_window_seconds:
            self.logger.info(
                "Previous session just ended, starting a new session",
                previous_journey_id=journey.id,
                seconds_since_end=round(since_end, 3),
            )
            self.session = self.identity.rotate_session()

        self.identity.clear_cached_journey_id()
        return None

    def _resume(self, journey: Journey) -> None:
        self.journey_id = journey.id
        self.session_start = journey.session.start_time
        # Calls made before the lookup returned are kept on top of the record
        self.page_views += journey.journey.page_views
        self.chat_interactions += journey.engagement.chat_interactions
        self.pages = list(journey.journey.pages) + self.pages
        self.interactions.restore(journey.engagement.interaction_counts)
        self._page_interaction_base = self.interactions.counts.total
        self.state = SessionState.ACTIVE

        self.logger.info(
            "Resumed existing journey",
            journey_id=self.journey_id,
            session_id=mask_id(self.session_id),
        )

    def _build_journey_payload(self, organization_id: str, location: Any) -> dict[str, Any]:
        entry_page = self.entry.entry_page()
        return {
            "organization_id": organization_id,
            "session_id": self.session_id,
            "visitor_id": self.visitor_id,
            "traffic_source": self.traffic_source.to_api(),
            "location": location.to_api(exclude_none=True) if location else None,
            "device": self.device.to_api(),
            "journey": JourneyPath(entry_page=entry_page, current_page=entry_page).to_api(),
            "intent": Intent().to_api(),
            "engagement": Engagement(
                is_returning=self.visitor.is_returning,
                visit_count=self.visitor.visit_count,
                last_visit=self.visitor.last_visit,
            ).to_api(),
            "session": SessionInfo(
                start_time=self.session_start,
                last_activity=self.last_activity,
            ).to_api(),
        }

    async def _create_journey(self, organization_id: str) -> bool:
        location = await lookup_location(
            self.config.location_lookup_url,
            self.config.location_timeout,
            self._http_client,
        )
        payload = self._build_journey_payload(organization_id, location)

        result = await self.retry_policy.execute(
            lambda: self.repository.create_journey(payload),
            context={"operation": "create_journey", "session_id": mask_id(self.session_id)},
        )
        if not result.success:
            self.logger.error("Failed to create new journey", error=str(result.error))
            return False

        if self.state == SessionState.ENDED:
            self.logger.info("Tracker destroyed while creating journey", journey_id=result.value)
            return False

        self.journey_id = result.value
        self.identity.cache_journey_id(self.journey_id)
        self.state = SessionState.ACTIVE
        self.logger.info(
            "Journey created",
            journey_id=self.journey_id,
            session_id=mask_id(self.session_id),
        )

        # Record duration right away so short sessions are not lost
        await self._sync_engagement_score()
        return True

    def _attach(self) -> None:
        if not self._listeners_attached:
            for event, handler in self._listeners:
                self.page.add_listener(event, handler)
            self._listeners_attached = True
        self.scroll.attach()
        self.interactions.attach()
        self.navigation.attach()

    def _detach(self) -> None:
        if self._listeners_attached:
            for event, handler in self._listeners:
                self.page.remove_listener(event, handler)
            self._listeners_attached = False
        self.scroll.detach()
        self.interactions.detach()
        self.navigation.detach()
        self.conversions.detach()

    def _start_timers(self) -> None:
        for timer in self._timers:
            timer.start()

    def _cancel_timers(self) -> None:
        for timer in self._timers:
            timer.cancel()
        self._page_sync.cancel()
        self.scroll.cancel()
        self.interactions.cancel()

    # Public tracking API

    async def track_page_view(self, url: str | None = None, title: str | None = None) -> None:
        """Record a page view, finalizing the previous page first."""
        if not self._accepting():
            return

        try:
            previous = self._flush_current_page()

            self.page_time.start(hidden=self.page.hidden)
            self.scroll.reset_page()
            self._page_interaction_base = self.interactions.counts.total
            self._synced_scroll_depth = 0

            page = PageVisit(url=url or self.page.url, title=title or self.page.title)
            self.pages.append(page)
            self.page_views += 1
            self.last_activity = self.clock()

            if not self._journey_ready():
                self.queue.enqueue(QueuedEvent.page_view(page))
                return

            if previous is not None:
                await self._sync_page_data(*previous)
            await self._send_page_view(page)

        except Exception as e:
            self.logger.warning("Failed to track page view", error=str(e))

    async def track_initial_page_view(self) -> bool:
        """Track the landing page once per tab.

        Returns:
            Whether a page view was tracked.
        """
        if not self._accepting():
            return False

        try:
            if self.identity.initial_page_tracked():
                return False
            await self.track_page_view()
            self.identity.mark_initial_page_tracked()
            return True
        except Exception as e:
            self.logger.warning("Failed to track initial page view", error=str(e))
            return False

    async def track_chat_interaction(self) -> None:
        """Record a chat message sent by the visitor."""
        if not self._accepting():
            return

        try:
            self.chat_interactions += 1
            self.last_activity = self.clock()

            if not self._journey_ready():
                self.queue.enqueue(QueuedEvent.chat_interaction())
                return

            await self._send_chat_interaction()
        except Exception as e:
            self.logger.warning("Failed to track chat interaction", error=str(e))

    async def track_conversion_event(
        self,
        event_name: str,
        value: float = 0,
        element_context: dict[str, Any] | None = None,
    ) -> None:
        """Record a conversion event.

        Args:
            event_name: Conversion name.
            value: Numeric value attached to the event.
            element_context: Optional description of the triggering element.
        """
        if not self._accepting():
            return

        try:
            conversion = ConversionEvent(
                event=event_name,
                value=value,
                element_context=element_context,
            )

            if not self._journey_ready():
                self.queue.enqueue(QueuedEvent.conversion(conversion))
                return

            await self._send_conversion(conversion)
        except Exception as e:
            self.logger.warning("Failed to track conversion event", error=str(e))

    # Remote writes

    async def _send_queued_event(self, event: QueuedEvent) -> None:
        if event.type == EventType.PAGE_VIEW:
            await self._send_page_view(event.data)
        elif event.type == EventType.CHAT_INTERACTION:
            await self._send_chat_interaction()
        elif event.type == EventType.CONVERSION:
            await self._send_conversion(event.data)
        else:
            self.logger.warning("Unknown event type in queue", event_type=event.type)

    async def _send_page_view(self, page: PageVisit) -> None:
        journey_id = self.journey_id
        payload = page.to_api()
        if await self.guard.run(
            "page_view",
            lambda: self.repository.add_page(journey_id, payload),
            context={"journey_id": journey_id},
        ):
            self.logger.info("Page view tracked", url=page.url)

    async def _send_chat_interaction(self) -> None:
        journey_id = self.journey_id
        fields = {
            "engagement.chat_interactions": self.chat_interactions,
            "session.last_activity": self.clock().isoformat(),
        }
        if await self.guard.run(
            "chat_interaction",
            lambda: self.repository.update_journey(journey_id, fields),
            context={"journey_id": journey_id},
        ):
            self.logger.info("Chat interaction tracked", count=self.chat_interactions)

    async def _send_conversion(self, conversion: ConversionEvent) -> None:
        journey_id = self.journey_id
        payload = conversion.to_api(exclude_none=True)
        if await self.guard.run(
            "conversion",
            lambda: self.repository.add_conversion_event(journey_id, payload),
            context={"journey_id": journey_id, "conversion": conversion.event},
        ):
            self.logger.info(
                "Conversion event tracked",
                conversion=conversion.event,
                has_context=conversion.element_context is not None,
            )

    async def _sync_engagement_score(self) -> bool:
        if not self.is_active():
            self.logger.debug("Skipping engagement update, session inactive")
            return False

        journey_id = self.journey_id
        score = self.current_engagement_score()
        fields = {
            "engagement.engagement_score": score,
            "session.duration": round(self.current_duration()),
            "session.last_activity": self.clock().isoformat(),
        }
        return await self.guard.run(
            "engagement_score",
            lambda: self.repository.update_journey(journey_id, fields),
            commit=lambda _: setattr(self, "last_synced_score", score),
            context={"journey_id": journey_id},
        )

    async def _periodic_critical_sync(self) -> bool:
        """Safety-net sync of duration and score while the page is alive."""
        if not self.is_active():
            return False

        self._update_current_page_scroll()
        journey_id = self.journey_id
        fields = {
            "session.duration": round(self.current_duration()),
            "session.last_activity": self.clock().isoformat(),
            "engagement.engagement_score": self.current_engagement_score(),
        }
        synced = await self.guard.run(
            "critical_sync",
            lambda: self.repository.update_journey(journey_id, fields),
            commit=lambda _: setattr(self, "last_sync_time", self.clock()),
            context={"journey_id": journey_id},
        )
        if synced:
            self.logger.info("Periodic sync completed", journey_id=journey_id)
        return synced

    async def _sync_scroll_depth(self) -> bool:
        """Push the current page's scroll depth when it moved noticeably."""
        if not self.is_active() or not self.pages:
            return False

        index = len(self.pages) - 1
        depth = self.scroll.current_depth()
        if abs(depth - self._synced_scroll_depth) <= 5:
            return False

        self.pages[index].scroll_depth = depth
        journey_id = self.journey_id
        return await self.guard.run(
            "scroll_depth",
            lambda: self.repository.update_journey(
                journey_id, {f"journey.pages.{index}.scroll_depth": depth}
            ),
            commit=lambda _: setattr(self, "_synced_scroll_depth", depth),
            context={"journey_id": journey_id},
        )

    async def _sync_interaction_data(self) -> bool:
        if not self.is_active():
            return False

        journey_id = self.journey_id
        now = self.clock()
        fields = {
            "engagement.interaction_counts": self.interactions.counts.to_api(),
            "session.last_activity": now.isoformat(),
        }
        synced = await self.guard.run(
            "interaction_sync",
            lambda: self.repository.update_journey(journey_id, fields),
            commit=lambda _: setattr(self, "last_activity", now),
            context={"journey_id": journey_id},
        )
        if synced:
            self.logger.debug(
                "Interaction data synced",
                total_interactions=self.interactions.counts.total,
            )
        return synced

    async def _sync_page_data(self, index: int, page: PageVisit) -> bool:
        if not self.is_active():
            return False

        journey_id = self.journey_id
        prefix = f"journey.pages.{index}"
        fields = {
            f"{prefix}.time_spent": page.time_spent,
            f"{prefix}.scroll_depth": page.scroll_depth,
            f"{prefix}.interactions": page.interactions,
        }
        return await self.guard.run(
            "page_data",
            lambda: self.repository.update_journey(journey_id, fields),
            context={"journey_id": journey_id, "page_index": index},
        )

    async def _sync_current_page(self) -> bool:
        if not self.pages:
            return False
        index = len(self.pages) - 1
        return await self._sync_page_data(index, self.pages[index])

    # Tracker callbacks

    def _update_current_page_scroll(self) -> None:
        if self.pages:
            self.pages[-1].scroll_depth = self.scroll.current_depth()

    def _flush_current_page(self) -> tuple[int, PageVisit] | None:
        """Freeze the current page's totals before another page starts."""
        time_spent = self.page_time.stop()
        if time_spent is None or not self.pages:
            return None

        index = len(self.pages) - 1
        page = self.pages[index]
        page.time_spent = time_spent
        page.scroll_depth = self.scroll.current_depth()
        page.interactions = self.interactions.counts.total - self._page_interaction_base
        return index, page

    def _on_scroll_milestone(self, milestone: int) -> None:
        self._spawn(self.track_conversion_event(f"scroll_milestone_{milestone}", milestone))

    def _on_scroll_change(self, depth: int) -> None:
        if not self.is_active():
            return
        if self.pages:
            self.pages[-1].scroll_depth = depth
        self._page_sync.trigger()

    def _on_interaction(self, total: int) -> None:
        self.last_activity = self.clock()
        if self.pages:
            self.pages[-1].interactions = total - self._page_interaction_base

    def _on_tracker_conversion(self, event_name: str, value: float) -> None:
        self._spawn(self.track_conversion_event(event_name, value))

    def _on_configured_conversion(
        self,
        event_name: str,
        value: float,
        element_context: dict[str, Any] | None,
    ) -> None:
        self._spawn(self.track_conversion_event(event_name, value, element_context))

    def _on_navigate(self, url: str) -> None:
        if not self.is_active():
            return
        self._spawn(self.track_page_view(url, self.page.title))
        self.conversions.check_page_visit()

    # Host events

    def _on_visibility_change(self, _payload=None) -> None:
        self.page_time.handle_visibility(self.page.hidden)

        if self.page.hidden:
            self._update_current_page_scroll()
            self._end_session_nowait(ExitReason.TAB_HIDDEN)
        elif self.state == SessionState.ENDED:
            self.logger.info("Tab visible but session already ended, not reactivating")

    def _on_before_unload(self, _payload=None) -> None:
        self._end_session_nowait(ExitReason.PAGE_UNLOAD)

    def _on_page_hide(self, _payload=None) -> None:
        self._end_session_nowait(ExitReason.PAGE_HIDE)

    # Termination

    def _finalize(self, reason: ExitReason) -> SessionFinalization | None:
        """Move ACTIVE -> ENDED and compute the final record.

        Returns:
            The finalization, or None if the session is not active.
        """
        if self.state != SessionState.ACTIVE or self.journey_id is None:
            self.logger.debug("Session already ended, skipping", reason=ExitReason(reason).value)
            return None

        self.state = SessionState.ENDED
        self.session_end = self.clock()
        self._cancel_timers()

        flushed = self._flush_current_page()
        duration = self.current_duration()
        scroll_depth = self.scroll.current_depth()
        bounce_type = classify_bounce(self.page_views, duration, scroll_depth)

        bounce_event = None
        if bounce_type is not None:
            bounce_event = BounceEvent(
                timestamp=self.session_end,
                bounce_type=bounce_type,
                page_url=self.page.url,
                page_title=self.page.title,
                session_duration=round(duration),
                scroll_depth=scroll_depth,
                device=self.device,
                exit_trigger=ExitReason(reason).value,
            )

        self.logger.info(
            "Session ending",
            journey_id=self.journey_id,
            reason=ExitReason(reason).value,
            page_views=self.page_views,
            duration=round(duration, 2),
            bounce_type=bounce_type.value if bounce_type else None,
        )

        return SessionFinalization(
            journey_id=self.journey_id,
            reason=reason,
            end_time=self.session_end,
            duration=round(duration),
            exit_page=self.page.url,
            engagement_score=self.current_engagement_score(),
            bounce_type=bounce_type,
            bounce_event=bounce_event,
            final_page=flushed[1] if flushed else None,
            final_page_index=flushed[0] if flushed else None,
            chat_active=bool(self.widget.is_chat_active()),
        )

    def _end_session_nowait(self, reason: ExitReason) -> None:
        final = self._finalize(reason)
        if final is not None:
            select_channel(reason, self.beacon_channel, self.async_channel).deliver_nowait(final)

    async def end_session(self, reason: ExitReason = ExitReason.NATURAL) -> bool:
        """End the session. A second call is a no-op.

        Returns:
            Whether the finalization was delivered (or handed to the beacon).
        """
        try:
            final = self._finalize(reason)
            if final is None:
                return False
            channel = select_channel(reason, self.beacon_channel, self.async_channel)
            return await channel.deliver(final)
        except Exception as e:
            self.logger.warning("Failed to end session", error=str(e))
            return False

    def destroy(self) -> None:
        """End the session over the beacon and release every host hook."""
        try:
            if self.enabled and self.is_active():
                self._end_session_nowait(ExitReason.CLEANUP)
            elif self.state == SessionState.CREATING:
                self.state = SessionState.ENDED

            self._cancel_timers()
            self._detach()
            self.queue.clear()

            self.initialized = False
            self.enabled = False
            self.logger.info("Analytics destroyed and cleaned up")
        except Exception as e:
            self.logger.warning("Failed to destroy analytics", error=str(e))

    async def close(self) -> None:
        """Wait for background work and release the HTTP client."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        for timer in self._timers:
            await timer.wait_jobs()
        await self.async_channel.wait_pending()
        await self.repository.close()
