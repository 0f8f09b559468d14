"""Visitor and session identity resolution.

Visitor ids live in the device store forever. Session ids live in the tab
store, mirrored into the device store with a timestamp so a reload (which
may lose the tab tier) reuses the session for up to 30 minutes since the
last resolution. Resolution never raises: the stores are wrapped in the
fallback policy, and anything else unexpected yields a volatile id.
"""

import json
import uuid
from datetime import datetime
from typing import Callable

import structlog

from journeytrack.config import TrackerConfig
from journeytrack.models.base import parse_datetime, utc_now
from journeytrack.models.identity import SessionIdentity, VisitorIdentity
from journeytrack.repositories.kv_store import FallbackStore, KeyValueStore
from journeytrack.utils.logging import mask_id

logger = structlog.get_logger()

VISITOR_ID_KEY = "visitor_id"
SESSION_ID_KEY = "session_id"
SESSION_MIRROR_KEY = "session_data"
JOURNEY_ID_KEY = "journey_id"
VISIT_COUNT_KEY = "visit_count"
LAST_VISIT_KEY = "last_visit"
INITIAL_PAGE_TRACKED_KEY = "initial_page_tracked"


def _new_id() -> str:
    return str(uuid.uuid4())


def _is_persistent(store: KeyValueStore) -> bool:
    return not (isinstance(store, FallbackStore) and store.degraded)


class IdentityResolver:
    """Resolves and persists visitor and session identifiers."""

    def __init__(
        self,
        tab_store: KeyValueStore,
        device_store: KeyValueStore,
        config: TrackerConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """Initialize the resolver.

        Args:
            tab_store: Store cleared when the tab closes.
            device_store: Store surviving across sessions.
            config: Tracker configuration (timeout, key prefix).
            clock: Returns the current UTC time.
        """
        self.tab_store = tab_store
        self.device_store = device_store
        self.config = config or TrackerConfig()
        self.clock = clock
        self.logger = logger.bind(service="identity_resolver")

    def _key(self, name: str) -> str:
        return self.config.storage_key(name)

    def _now_ms(self) -> int:
        return int(self.clock().timestamp() * 1000)

    def _write_session(self, session_id: str) -> None:
        self.tab_store.set(self._key(SESSION_ID_KEY), session_id)
        self.device_store.set(
            self._key(SESSION_MIRROR_KEY),
            json.dumps({"id": session_id, "timestamp": self._now_ms()}),
        )

    def _read_mirror(self) -> str | None:
        stored = self.device_store.get(self._key(SESSION_MIRROR_KEY))
        if not stored:
            return None

        try:
            data = json.loads(stored)
            session_id = data["id"]
            timestamp = float(data["timestamp"])
        except (ValueError, KeyError, TypeError) as e:
            self.logger.warning("Failed to parse session data", error=str(e))
            return None

        age_ms = self._now_ms() - timestamp
        timeout_ms = self.config.session_timeout_seconds * 1000
        if age_ms < timeout_ms:
            self.logger.info(
                "Restored session ID from device store",
                session_id=mask_id(session_id),
                age=f"{round(age_ms / 1000)}s",
            )
            return session_id

        self.logger.info(
            "Session expired",
            age=f"{round(age_ms / 1000)}s",
            timeout=f"{round(timeout_ms / 1000)}s",
        )
        return None

    def resolve_session(self) -> SessionIdentity:
        """Get the current session, reusing it across reloads within the timeout.

        Returns:
            SessionIdentity for this tab.
        """
        now = self.clock()
        try:
            session_id = self.tab_store.get(self._key(SESSION_ID_KEY))
            if session_id:
                self.logger.info(
                    "Retrieved session ID from tab store",
                    session_id=mask_id(session_id),
                )
                return SessionIdentity(session_id=session_id, start_time=now, resumed=True)

            session_id = self._read_mirror()
            if session_id:
                # Sliding expiry: refresh the mirror timestamp on reuse
                self._write_session(session_id)
                return SessionIdentity(
                    session_id=session_id,
                    start_time=now,
                    resumed=True,
                    persisted=_is_persistent(self.device_store),
                )

            return self.rotate_session()
        except Exception as e:
            self.logger.warning("Session resolution failed, using volatile id", error=str(e))
            return SessionIdentity(session_id=_new_id(), start_time=now, persisted=False)

    def rotate_session(self) -> SessionIdentity:
        """Mint a new session id and write it to both tiers."""
        session_id = _new_id()
        self._write_session(session_id)
        self.logger.info("Created new session ID", session_id=mask_id(session_id))
        return SessionIdentity(
            session_id=session_id,
            start_time=self.clock(),
            persisted=_is_persistent(self.device_store),
        )

    def has_visitor_id(self) -> bool:
        """Whether a visitor id was stored before this call."""
        try:
            return self.device_store.get(self._key(VISITOR_ID_KEY)) is not None
        except Exception as e:
            self.logger.warning("Visitor lookup failed", error=str(e))
            return False

    def resolve_visitor(self, is_returning: bool | None = None) -> VisitorIdentity:
        """Get or create the durable visitor id and record this visit.

        Args:
            is_returning: Pre-computed returning flag. Callers that resolve
                the session first pass the value captured before anything
                was written.

        Returns:
            VisitorIdentity for this device.
        """
        if is_returning is None:
            is_returning = self.has_visitor_id()

        try:
            visitor_id = self.device_store.get(self._key(VISITOR_ID_KEY))
            if visitor_id:
                self.logger.info(
                    "Retrieved visitor ID from device store",
                    visitor_id=mask_id(visitor_id),
                    is_returning=True,
                )
            else:
                visitor_id = _new_id()
                self.device_store.set(self._key(VISITOR_ID_KEY), visitor_id)
                self.logger.info(
                    "Created new visitor ID",
                    visitor_id=mask_id(visitor_id),
                    is_returning=False,
                )

            visit_count = self._increment_visit_count()
            last_visit = self._swap_last_visit()

            return VisitorIdentity(
                visitor_id=visitor_id,
                is_returning=is_returning,
                visit_count=visit_count,
                last_visit=last_visit,
                persisted=_is_persistent(self.device_store),
            )
        except Exception as e:
            self.logger.warning("Visitor resolution failed, using volatile id", error=str(e))
            return VisitorIdentity(
                visitor_id=_new_id(),
                is_returning=is_returning,
                persisted=False,
            )

    def _increment_visit_count(self) -> int:
        raw = self.device_store.get(self._key(VISIT_COUNT_KEY)) or "0"
        try:
            count = int(raw)
        except ValueError:
            count = 0
        count += 1
        self.device_store.set(self._key(VISIT_COUNT_KEY), str(count))
        return count

    def _swap_last_visit(self) -> datetime | None:
        previous = self.device_store.get(self._key(LAST_VISIT_KEY))
        self.device_store.set(self._key(LAST_VISIT_KEY), self.clock().isoformat())
        return parse_datetime(previous)

    # Tab-scoped journey bookkeeping

    def get_cached_journey_id(self) -> str | None:
        return self.tab_store.get(self._key(JOURNEY_ID_KEY))

    def cache_journey_id(self, journey_id: str) -> None:
        self.tab_store.set(self._key(JOURNEY_ID_KEY), journey_id)

    def clear_cached_journey_id(self) -> None:
        self.tab_store.remove(self._key(JOURNEY_ID_KEY))

    def initial_page_tracked(self) -> bool:
        return self.tab_store.get(self._key(INITIAL_PAGE_TRACKED_KEY)) == "true"

    def mark_initial_page_tracked(self) -> None:
        self.tab_store.set(self._key(INITIAL_PAGE_TRACKED_KEY), "true")
