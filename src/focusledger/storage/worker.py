"""Serial background worker shared by the durable stores.

Each store instance owns exactly one worker thread.  Operations are
submitted in order and run one at a time, so two writes to the same
files never interleave and a read submitted after a write observes it.
"""

from __future__ import annotations

import errno
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Callable, TypeVar

import psutil

from focusledger.core.defaults import MIN_FREE_BYTES
from focusledger.core.errors import CapacityError, StoreError, StoreErrorEvent
from focusledger.core.time import utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")

ErrorSink = Callable[[StoreErrorEvent], None]
Clock = Callable[[], datetime]


def free_bytes(path: Path) -> int:
    """Free space on the volume holding *path* (nearest existing ancestor)."""
    existing = path
    while not existing.exists() and existing != existing.parent:
        existing = existing.parent
    return int(psutil.disk_usage(str(existing)).free)


class SerialWorker:
    """Single-thread executor plus error reporting and the disk-space guard."""

    def __init__(
        self,
        name: str,
        *,
        min_free_bytes: int = MIN_FREE_BYTES,
        error_sink: ErrorSink | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.name = name
        self._min_free_bytes = min_free_bytes
        self._error_sink = error_sink
        self._clock: Clock = clock or utc_now
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"store-{name}")
        self._closed = False

    def submit(self, fn: Callable[..., T], *args: object) -> Future[T]:
        """Queue *fn* on this store's worker thread."""
        return self._executor.submit(fn, *args)

    def close(self) -> None:
        """Wait for queued operations to finish and stop the worker."""
        if not self._closed:
            self._closed = True
            self._executor.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def report(self, error: StoreError) -> StoreErrorEvent:
        """Log *error* and forward it to the error sink."""
        event = StoreErrorEvent(
            kind=error.kind,
            message=error.message,
            collection=self.name,
            timestamp=self._clock(),
        )
        logger.warning("%s store: %s error: %s", self.name, error.kind, error.message)
        if self._error_sink is not None:
            try:
                self._error_sink(event)
            except Exception:
                logger.exception("Error sink failed for %s store", self.name)
        return event

    def ensure_capacity(self, target: Path) -> None:
        """Raise :class:`CapacityError` if free space is below the floor."""
        try:
            free = free_bytes(target.parent)
        except OSError as exc:
            logger.warning("Could not measure free space near %s: %s", target, exc)
            return
        if free < self._min_free_bytes:
            raise CapacityError(
                f"only {free} bytes free near {target}, need {self._min_free_bytes}"
            )

    @staticmethod
    def is_disk_full(exc: OSError) -> bool:
        return exc.errno in (errno.ENOSPC, errno.EDQUOT)
