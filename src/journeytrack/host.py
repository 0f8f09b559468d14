"""Host page boundary.

The tracker is embedded in a page it does not own. ``HostPage`` is the
adapter an embedder drives: it exposes the page facts the tracker reads
(URL, title, referrer, scroll geometry, user agent) and an event source for
visibility, unload, scroll, input and navigation events. ``WidgetContext``
carries the widget-level collaborators: the analytics feature flag, the
organization id accessor and the chat-active flag.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable
from urllib.parse import urljoin, urlsplit, urlunsplit

import structlog

logger = structlog.get_logger()


class PageEvent(str, Enum):
    """Events a host page can emit."""

    VISIBILITY_CHANGE = "visibilitychange"
    BEFORE_UNLOAD = "beforeunload"
    PAGE_HIDE = "pagehide"
    SCROLL = "scroll"
    CLICK = "click"
    SUBMIT = "submit"
    KEYDOWN = "keydown"
    POPSTATE = "popstate"
    HASH_CHANGE = "hashchange"


Handler = Callable[[Any], None]


@dataclass
class ScrollMetrics:
    """Scroll geometry of the page in pixels."""

    scroll_top: float = 0
    document_height: float = 0
    viewport_height: float = 0


@dataclass
class ElementInfo:
    """A DOM element as seen by the tracker."""

    tag: str
    text: str = ""
    id: str | None = None
    classes: str | None = None
    href: str | None = None
    data_attributes: dict[str, str] = field(default_factory=dict)

    def element_context(self) -> dict[str, Any]:
        """Context attached to conversion events."""
        return {
            "tag": self.tag.upper(),
            "text": self.text.strip()[:100],
            "id": self.id or None,
            "classes": self.classes or None,
            "href": self.href or None,
            "dataAttributes": {
                k: v for k, v in self.data_attributes.items() if k.startswith("data-")
            },
        }


class History:
    """Session history mutation API (``pushState``/``replaceState``)."""

    def __init__(self, page: "HostPage"):
        self._page = page
        self.entries: list[str] = [page.url]

    def push_state(self, url: str, title: str | None = None) -> None:
        self._page._set_location(url, title)
        self.entries.append(self._page.url)

    def replace_state(self, url: str, title: str | None = None) -> None:
        self._page._set_location(url, title)
        self.entries[-1] = self._page.url


class HostPage:
    """In-process page adapter driven by the embedder."""

    def __init__(
        self,
        url: str,
        title: str = "",
        referrer: str | None = None,
        user_agent: str = "",
        screen_width: int = 0,
        screen_height: int = 0,
    ):
        self.url = url
        self.title = title
        self.referrer = referrer or None
        self.user_agent = user_agent
        self.screen_width = screen_width
        self.screen_height = screen_height
        self.hidden = False
        self.scroll = ScrollMetrics()
        self.elements: dict[str, ElementInfo] = {}
        self.history = History(self)
        self._listeners: dict[PageEvent, list[Handler]] = {}
        self.logger = logger.bind(component="host_page")

    @property
    def hostname(self) -> str:
        return urlsplit(self.url).hostname or ""

    @property
    def pathname(self) -> str:
        return urlsplit(self.url).path or "/"

    def _set_location(self, url: str, title: str | None = None) -> None:
        self.url = urljoin(self.url, url)
        if title is not None:
            self.title = title

    # Event source

    def add_listener(self, event: PageEvent, handler: Handler) -> None:
        self._listeners.setdefault(PageEvent(event), []).append(handler)

    def remove_listener(self, event: PageEvent, handler: Handler) -> None:
        handlers = self._listeners.get(PageEvent(event), [])
        if handler in handlers:
            handlers.remove(handler)

    def listener_count(self, event: PageEvent | None = None) -> int:
        if event is not None:
            return len(self._listeners.get(PageEvent(event), []))
        return sum(len(handlers) for handlers in self._listeners.values())

    def dispatch(self, event: PageEvent, payload: Any = None) -> None:
        """Deliver an event to every listener.

        A failing listener is logged and never breaks the page.
        """
        for handler in list(self._listeners.get(PageEvent(event), [])):
            try:
                handler(payload)
            except Exception as e:
                self.logger.error(
                    "Page event handler failed", page_event=str(event), error=str(e)
                )

    def query_selector(self, selector: str) -> ElementInfo | None:
        return self.elements.get(selector)

    # Embedder helpers

    def set_hidden(self, hidden: bool) -> None:
        self.hidden = hidden
        self.dispatch(PageEvent.VISIBILITY_CHANGE)

    def scroll_to(self, scroll_top: float) -> None:
        self.scroll.scroll_top = scroll_top
        self.dispatch(PageEvent.SCROLL)

    def click(self, element: ElementInfo) -> None:
        self.dispatch(PageEvent.CLICK, element)

    def submit(self, form: ElementInfo | None = None) -> None:
        self.dispatch(PageEvent.SUBMIT, form)

    def key_down(self, key: str) -> None:
        self.dispatch(PageEvent.KEYDOWN, key)

    def go_to(self, url: str, title: str | None = None) -> None:
        """Back/forward traversal to ``url``."""
        self._set_location(url, title)
        self.dispatch(PageEvent.POPSTATE)

    def set_hash(self, fragment: str) -> None:
        parts = urlsplit(self.url)
        self.url = urlunsplit(parts._replace(fragment=fragment.lstrip("#")))
        self.dispatch(PageEvent.HASH_CHANGE)

    def unload(self) -> None:
        """Tear the page down the way a browser does."""
        self.dispatch(PageEvent.BEFORE_UNLOAD)
        self.dispatch(PageEvent.PAGE_HIDE)


@dataclass
class WidgetContext:
    """Widget-level collaborators supplied by the host."""

    analytics_enabled: bool = True
    get_org_id: Callable[[], str | None] = lambda: None
    is_chat_active: Callable[[], bool] = lambda: False
