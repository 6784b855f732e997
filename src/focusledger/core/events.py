"""Status feed for presentation layers.

Store workers, the debouncer timer and enrichment threads all produce
status updates off the event loop.  :class:`EventBus` hands them to
asyncio subscribers as plain dicts tagged with a ``"type"`` key:

* ``"activation"``: a new activation event was stored.
* ``"metadata"``: enrichment was attached to a stored event.
* ``"store_error"``: a durable store reported a failure.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from concurrent.futures import Future
from contextlib import asynccontextmanager
from typing import Any

from focusledger.core.defaults import EVENT_BUS_QUEUE_SIZE
from focusledger.core.errors import StoreErrorEvent

logger = logging.getLogger(__name__)

StatusEvent = dict[str, Any]


class EventBus:
    """Fan-out of status events to bounded per-subscriber queues.

    A subscriber whose queue is full is dropped rather than allowed to
    block publishers; it stops receiving events until it subscribes again.
    """

    def __init__(self, *, queue_size: int = EVENT_BUS_QUEUE_SIZE) -> None:
        self._queue_size = queue_size
        self._subscribers: set[asyncio.Queue[StatusEvent]] = set()
        self._lock = asyncio.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Set the loop that :meth:`publish_threadsafe` schedules onto."""
        self._loop = loop

    async def publish(self, event: StatusEvent) -> None:
        async with self._lock:
            overflowed = []
            for queue in self._subscribers:
                try:
                    queue.put_nowait(event)
                except asyncio.QueueFull:
                    overflowed.append(queue)
            for queue in overflowed:
                self._subscribers.discard(queue)
        if overflowed:
            logger.debug("Dropped %d slow subscriber(s)", len(overflowed))

    def publish_threadsafe(self, event: StatusEvent) -> Future[None] | None:
        """Publish from any thread; a no-op until a live loop is bound."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return None
        return asyncio.run_coroutine_threadsafe(self.publish(event), loop)

    def report_store_error(self, event: StoreErrorEvent) -> None:
        """Error sink for the durable stores."""
        logger.debug("Publishing %s error for %s", event.kind, event.collection)
        self.publish_threadsafe(event.as_bus_event())

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[asyncio.Queue[StatusEvent]]:
        """Yield a queue receiving every event published while the context is open."""
        queue: asyncio.Queue[StatusEvent] = asyncio.Queue(maxsize=self._queue_size)
        async with self._lock:
            self._subscribers.add(queue)
        try:
            yield queue
        finally:
            async with self._lock:
                self._subscribers.discard(queue)
