"""Click, form and keyboard interaction counting."""

from typing import Any, Callable

import structlog

from journeytrack.execution.timers import Debouncer, Job
from journeytrack.host import ElementInfo, HostPage, PageEvent
from journeytrack.models.journey import InteractionCounts

logger = structlog.get_logger()

# Keys counted as deliberate activation
ACTIVATION_KEYS = frozenset({"Enter", "Space", " ", "Tab", "Escape"})


class InteractionTracker:
    """Counts user interactions and syncs them after a quiet period.

    Every counted interaction bumps ``counts.total``, calls
    ``on_interaction`` and restarts the sync debounce.
    """

    def __init__(
        self,
        page: HostPage,
        on_interaction: Callable[[int], None],
        on_conversion: Callable[[str, float], None],
        sync: Job,
        is_active: Callable[[], bool],
        debounce_seconds: float = 1.0,
    ):
        self.page = page
        self.on_interaction = on_interaction
        self.on_conversion = on_conversion
        self.is_active = is_active
        self.counts = InteractionCounts()
        self._debouncer = Debouncer("interaction_sync", debounce_seconds, sync)
        self._handlers: list[tuple[PageEvent, Callable[[Any], None]]] = [
            (PageEvent.CLICK, self._on_click),
            (PageEvent.SUBMIT, self._on_submit),
            (PageEvent.KEYDOWN, self._on_keydown),
        ]
        self._attached = False

    def attach(self) -> None:
        if self._attached:
            return
        for event, handler in self._handlers:
            self.page.add_listener(event, handler)
        self._attached = True

    def detach(self) -> None:
        if self._attached:
            for event, handler in self._handlers:
                self.page.remove_listener(event, handler)
            self._attached = False
        self.cancel()

    def cancel(self) -> None:
        self._debouncer.cancel()

    def restore(self, counts: InteractionCounts) -> None:
        """Continue counting from a resumed journey."""
        self.counts = counts.model_copy()

    def _record(self, counter: str) -> None:
        setattr(self.counts, counter, getattr(self.counts, counter) + 1)
        self.counts.total += 1
        self.on_interaction(self.counts.total)
        self._debouncer.trigger()

    def _on_click(self, element: ElementInfo | None = None) -> None:
        if not self.is_active():
            return
        self._record("clicks")

        tag = element.tag.upper() if element is not None else ""
        if tag == "BUTTON":
            self.on_conversion("button_click", 1)
        elif tag == "A":
            self.on_conversion("link_click", 1)

    def _on_submit(self, _form: ElementInfo | None = None) -> None:
        if not self.is_active():
            return
        self._record("form_interactions")
        self.on_conversion("form_submit", 1)

    def _on_keydown(self, key: str | None = None) -> None:
        if not self.is_active() or key not in ACTIVATION_KEYS:
            return
        self._record("keyboard_interactions")
