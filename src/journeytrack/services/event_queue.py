"""Pending-event queue.

Tracking calls made before the remote journey exists are buffered here and
replayed in arrival order once the journey id is known.
"""

from collections import deque
from typing import Awaitable, Callable, Iterator

import structlog

from journeytrack.models.events import QueuedEvent

logger = structlog.get_logger()


class EventQueue:
    """FIFO buffer of tracking calls awaiting a journey record."""

    def __init__(self):
        self._events: deque[QueuedEvent] = deque()
        self.logger = logger.bind(service="event_queue")

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[QueuedEvent]:
        return iter(list(self._events))

    def enqueue(self, event: QueuedEvent) -> None:
        """Append an event to the back of the queue."""
        self._events.append(event)
        self.logger.info(
            "Event queued, journey not ready",
            event_type=event.type.value,
            queue_length=len(self._events),
        )

    async def drain(self, send: Callable[[QueuedEvent], Awaitable[None]]) -> int:
        """Replay every queued event in order.

        Each event is awaited before the next is sent so the remote record
        observes the original call order. A failing event is logged and does
        not block the rest of the queue.

        Args:
            send: Coroutine delivering one event.

        Returns:
            Number of events replayed.
        """
        if not self._events:
            return 0

        self.logger.info("Processing queued events", count=len(self._events))
        replayed = 0
        while self._events:
            event = self._events.popleft()
            try:
                await send(event)
            except Exception as e:
                self.logger.error(
                    "Failed to process queued event",
                    event_type=event.type.value,
                    event_id=event.id,
                    error=str(e),
                )
            replayed += 1
        return replayed

    def clear(self) -> None:
        """Discard every pending event."""
        self._events.clear()
