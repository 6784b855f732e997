"""Asynchronous metadata enrichment for stored activation events.

Resolvers (browser-tab inspection, icon lookup) may be slow, so they run
on a small worker pool.  Each resolver result is delivered back through
a callback, typically :meth:`ActivityMonitor.attach_metadata`.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Sequence

from focusledger.core.defaults import DEFAULT_ENRICHMENT_WORKERS
from focusledger.core.types import ActivationEvent, EventMetadata

logger = logging.getLogger(__name__)

MetadataResolver = Callable[[ActivationEvent], EventMetadata | None]


class EnrichmentQueue:
    """Fire-and-forget enrichment: :meth:`submit` never blocks on a resolver."""

    def __init__(
        self,
        resolvers: Sequence[MetadataResolver],
        deliver: Callable[[str, EventMetadata], object],
        *,
        max_workers: int = DEFAULT_ENRICHMENT_WORKERS,
    ) -> None:
        self._resolvers = list(resolvers)
        self._deliver = deliver
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="enrich")
        self._closed = False

    def submit(self, event: ActivationEvent) -> list[Future[EventMetadata | None]]:
        if self._closed:
            return []
        return [self._executor.submit(self._run, resolver, event) for resolver in self._resolvers]

    def _run(self, resolver: MetadataResolver, event: ActivationEvent) -> EventMetadata | None:
        try:
            metadata = resolver(event)
        except Exception:
            logger.warning("Metadata resolver failed for event %s", event.id, exc_info=True)
            return None
        if metadata is None or metadata.is_empty():
            return None
        self._deliver(event.id, metadata)
        return metadata

    def close(self, *, wait: bool = True) -> None:
        if not self._closed:
            self._closed = True
            self._executor.shutdown(wait=wait, cancel_futures=not wait)
