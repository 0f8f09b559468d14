"""Single-page-app navigation detection."""

from typing import Callable

import structlog

from journeytrack.host import HostPage, PageEvent

logger = structlog.get_logger()


class NavigationTracker:
    """Observes URL changes that happen without a full reload.

    Wraps ``history.push_state``/``replace_state`` and listens for back/forward
    and hash changes. ``on_navigate`` is called with the new URL once per
    change.
    """

    def __init__(self, page: HostPage, on_navigate: Callable[[str], None]):
        self.page = page
        self.on_navigate = on_navigate
        self.current_url = page.url
        self._original_push_state = None
        self._original_replace_state = None
        self._attached = False
        self.logger = logger.bind(tracker="navigation")

    @property
    def attached(self) -> bool:
        return self._attached

    def attach(self) -> None:
        if self._attached:
            return

        history = self.page.history
        self._original_push_state = history.push_state
        self._original_replace_state = history.replace_state
        original_push = self._original_push_state
        original_replace = self._original_replace_state

        def push_state(url: str, title: str | None = None) -> None:
            original_push(url, title)
            self._check_url("history")

        def replace_state(url: str, title: str | None = None) -> None:
            original_replace(url, title)
            self._check_url("history")

        history.push_state = push_state
        history.replace_state = replace_state

        self.page.add_listener(PageEvent.POPSTATE, self._on_popstate)
        self.page.add_listener(PageEvent.HASH_CHANGE, self._on_hash_change)
        self.current_url = self.page.url
        self._attached = True

    def detach(self) -> None:
        """Remove listeners and restore the original history methods."""
        if not self._attached:
            return

        history = self.page.history
        if self._original_push_state is not None:
            history.push_state = self._original_push_state
            self._original_push_state = None
        if self._original_replace_state is not None:
            history.replace_state = self._original_replace_state
            self._original_replace_state = None

        self.page.remove_listener(PageEvent.POPSTATE, self._on_popstate)
        self.page.remove_listener(PageEvent.HASH_CHANGE, self._on_hash_change)
        self._attached = False

    def _on_popstate(self, _payload=None) -> None:
        self._check_url("popstate")

    def _on_hash_change(self, _payload=None) -> None:
        self._check_url("hash")

    def _check_url(self, source: str) -> None:
        new_url = self.page.url
        if new_url == self.current_url:
            return

        self.logger.info(
            "SPA navigation detected",
            source=source,
            from_url=self.current_url,
            to_url=new_url,
        )
        self.current_url = new_url
        self.on_navigate(new_url)
