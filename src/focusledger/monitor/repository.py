"""Owned in-memory activity collections backed by durable stores.

:class:`ActivityRepository` is the single writer for activation events
and context switches.  Readers get immutable tuple snapshots.  Every
mutation marks the collection dirty and schedules a coalesced save on
the owning store's background worker; the caller never waits for I/O.
"""

from __future__ import annotations

import bisect
import logging
import threading
from concurrent.futures import Future
from datetime import datetime, timedelta
from typing import Callable, Sequence

from focusledger.core.config import MonitorSettings
from focusledger.core.errors import StoreResult
from focusledger.core.time import utc_now
from focusledger.core.types import ActivationEvent, ContextSwitch, EventMetadata
from focusledger.pipeline.debounce import TimerFactory
from focusledger.storage.collection import CollectionStore

logger = logging.getLogger(__name__)


def _merge_by_id(current: Sequence, loaded: Sequence) -> list:
    """Union of two record lists; *current* wins on id clashes."""
    seen = {r.id for r in current}
    merged = list(current) + [r for r in loaded if r.id not in seen]
    merged.sort(key=lambda r: r.timestamp)
    return merged


def _after(source: Future, install: Callable[[object], None]) -> Future:
    """Future that resolves with *source*'s result once *install* has run on it."""
    chained: Future = Future()

    def _done(f: Future) -> None:
        try:
            result = f.result()
            install(result)
        except Exception as exc:
            chained.set_exception(exc)
        else:
            chained.set_result(result)

    source.add_done_callback(_done)
    return chained


class ActivityRepository:
    """Single-writer owner of the event and switch collections.

    Args:
        event_store: Durable store for :class:`ActivationEvent`.
        switch_store: Durable store for :class:`ContextSwitch`.
        settings: Retention, in-memory caps, and save delay.
        timer_factory: Builds the save-coalescing timer.  ``None`` submits
            a save immediately after every mutation.
        autosave: When false, mutations only mark collections dirty and
            nothing is written until :meth:`flush`.
        clock: Current-time source for retention pruning.
    """

    def __init__(
        self,
        event_store: CollectionStore[ActivationEvent],
        switch_store: CollectionStore[ContextSwitch],
        *,
        settings: MonitorSettings | None = None,
        timer_factory: TimerFactory | None = threading.Timer,
        autosave: bool = True,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._event_store = event_store
        self._switch_store = switch_store
        self._settings = settings or MonitorSettings()
        self._timer_factory = timer_factory
        self._autosave = autosave
        self._clock = clock or utc_now
        self._lock = threading.RLock()
        self._events: list[ActivationEvent] = []
        self._switches: list[ContextSwitch] = []
        self._dirty_events = False
        self._dirty_switches = False
        self._save_timer = None

    # -- snapshots --------------------------------------------------------------

    def events(self) -> tuple[ActivationEvent, ...]:
        with self._lock:
            return tuple(self._events)

    def switches(self) -> tuple[ContextSwitch, ...]:
        with self._lock:
            return tuple(self._switches)

    def get_event(self, event_id: str) -> ActivationEvent | None:
        with self._lock:
            return next((e for e in self._events if e.id == event_id), None)

    def last_event(self, session_id: str | None = None) -> ActivationEvent | None:
        """Latest event overall, or latest event of *session_id*."""
        with self._lock:
            for event in reversed(self._events):
                if session_id is None or event.session_id == session_id:
                    return event
        return None

    # -- loading ----------------------------------------------------------------

    def load(self) -> tuple[Future[StoreResult[list[ActivationEvent]]], Future[StoreResult[list[ContextSwitch]]]]:
        """Submit loads for both collections.

        The returned futures resolve only once the loaded records have been
        merged into memory; records appended in the meantime are kept.
        """
        return (
            _after(self._event_store.load(), self._install_events),
            _after(self._switch_store.load(), self._install_switches),
        )

    def _install_events(self, result: StoreResult[list[ActivationEvent]]) -> None:
        with self._lock:
            self._events = _merge_by_id(self._events, result.value)
            self._enforce_caps()
        logger.info("Loaded %d event(s) from %s", len(result.value), result.source)

    def _install_switches(self, result: StoreResult[list[ContextSwitch]]) -> None:
        with self._lock:
            self._switches = _merge_by_id(self._switches, result.value)
            self._enforce_caps()
        logger.info("Loaded %d switch(es) from %s", len(result.value), result.source)

    # -- mutations --------------------------------------------------------------

    def append_event(self, event: ActivationEvent) -> None:
        with self._lock:
            if self._events and event.timestamp < self._events[-1].timestamp:
                idx = bisect.bisect_right([e.timestamp for e in self._events], event.timestamp)
                self._events.insert(idx, event)
            else:
                self._events.append(event)
            self._enforce_caps()
            self._dirty_events = True
        self._schedule_save()

    def _replace_event(self, event_id: str, update: Callable[[ActivationEvent], ActivationEvent]) -> bool:
        with self._lock:
            for idx, event in enumerate(self._events):
                if event.id == event_id:
                    self._events[idx] = update(event)
                    self._dirty_events = True
                    break
            else:
                return False
        self._schedule_save()
        return True

    def mark_session_end(self, event_id: str, end_time: datetime) -> bool:
        return self._replace_event(event_id, lambda e: e.mark_session_end(end_time))

    def attach_metadata(self, event_id: str, metadata: EventMetadata) -> bool:
        """Patch enrichment fields of a stored event; ``False`` if unknown."""
        if metadata.is_empty():
            return False
        patched = self._replace_event(event_id, lambda e: e.with_metadata(metadata))
        if not patched:
            logger.debug("Metadata for unknown event %s dropped", event_id)
        return patched

    def replace_switches(self, switches: Sequence[ContextSwitch]) -> None:
        ordered = sorted(switches, key=lambda s: s.timestamp)
        with self._lock:
            if ordered == self._switches:
                return
            self._switches = ordered
            self._enforce_caps()
            self._dirty_switches = True
        self._schedule_save()

    def clear_events(self) -> None:
        with self._lock:
            self._events = []
            self._dirty_events = True
        self._schedule_save()

    def clear_switches(self) -> None:
        with self._lock:
            self._switches = []
            self._dirty_switches = True
        self._schedule_save()

    def prune(self, now: datetime | None = None) -> tuple[int, int]:
        """Drop records older than the retention window.

        Returns:
            ``(events_removed, switches_removed)``.
        """
        cutoff = (now or self._clock()) - timedelta(days=self._settings.retention_days)
        with self._lock:
            before = len(self._events), len(self._switches)
            self._events = [e for e in self._events if e.timestamp >= cutoff]
            self._switches = [s for s in self._switches if s.timestamp >= cutoff]
            self._enforce_caps()
            removed = before[0] - len(self._events), before[1] - len(self._switches)
            self._dirty_events |= removed[0] > 0
            self._dirty_switches |= removed[1] > 0
        if any(removed):
            logger.info("Pruned %d event(s) and %d switch(es)", *removed)
            self._schedule_save()
        return removed

    def _enforce_caps(self) -> None:
        extra = len(self._events) - self._settings.max_in_memory_events
        if extra > 0:
            del self._events[:extra]
            self._dirty_events = True
        extra = len(self._switches) - self._settings.max_in_memory_switches
        if extra > 0:
            del self._switches[:extra]
            self._dirty_switches = True

    # -- persistence ------------------------------------------------------------

    def _schedule_save(self) -> None:
        if not self._autosave:
            return
        if self._timer_factory is None:
            self.flush()
            return
        with self._lock:
            if self._save_timer is not None:
                self._save_timer.cancel()
            timer = self._timer_factory(self._settings.save_debounce_seconds, self.flush)
            timer.daemon = True
            self._save_timer = timer
            timer.start()

    def flush(self) -> list[Future[StoreResult[int]]]:
        """Submit saves for every dirty collection now."""
        futures: list[Future[StoreResult[int]]] = []
        with self._lock:
            if self._save_timer is not None:
                self._save_timer.cancel()
                self._save_timer = None
            if self._dirty_events:
                futures.append(self._event_store.save(self._events))
                self._dirty_events = False
            if self._dirty_switches:
                futures.append(self._switch_store.save(self._switches))
                self._dirty_switches = False
        return futures

    def close(self) -> None:
        """Flush pending saves and stop both store workers."""
        for future in self.flush():
            future.result()
        self._event_store.close()
        self._switch_store.close()
