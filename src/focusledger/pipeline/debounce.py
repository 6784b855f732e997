"""Coalescing of raw focus-change signals into logical activations.

Operating systems deliver bursts of focus notifications when a user
clicks around inside one application.  :class:`FocusDebouncer` keeps a
single *pending* activation; repeated signals for the same application
within the smart window extend it, anything else flushes it downstream
and starts a new one.  A settle timer flushes the pending activation
once signals stop arriving.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Callable, Protocol

from pydantic import BaseModel, Field, field_validator

from focusledger.core.defaults import (
    DEFAULT_SETTLE_DELAY_SECONDS,
    DEFAULT_SMART_WINDOW_SECONDS,
)
from focusledger.core.time import ensure_utc, seconds_between

logger = logging.getLogger(__name__)


class FocusSignal(BaseModel, frozen=True):
    """One raw focus-change notification from the host OS."""

    app_id: str = Field(description="Application identifier.")
    app_name: str = Field(description="Display name of the application.")
    timestamp: datetime = Field(description="When focus changed (UTC).")

    @field_validator("timestamp")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class CancellableTimer(Protocol):
    daemon: bool

    def start(self) -> None: ...
    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], CancellableTimer]


class FocusDebouncer:
    """Merge rapid same-application focus signals into one activation.

    Args:
        emit: Called with the coalesced :class:`FocusSignal` whenever a
            pending activation is flushed.  Called on whichever thread
            triggers the flush (caller or timer thread).
        smart_window_seconds: Same-app signals closer than this to the
            pending activation are merged into it.
        settle_delay_seconds: Quiet period after the last update before
            the pending activation is flushed by timer.
        timer_factory: Builds the one-shot settle timer; defaults to
            :class:`threading.Timer`.  ``None`` disables timed flushing
            so activations are only emitted by superseding signals,
            :meth:`flush`, or :meth:`close`.
    """

    def __init__(
        self,
        emit: Callable[[FocusSignal], None],
        *,
        smart_window_seconds: float = DEFAULT_SMART_WINDOW_SECONDS,
        settle_delay_seconds: float = DEFAULT_SETTLE_DELAY_SECONDS,
        timer_factory: TimerFactory | None = threading.Timer,
    ) -> None:
        self._emit = emit
        self._smart_window = smart_window_seconds
        self._settle_delay = settle_delay_seconds
        self._timer_factory = timer_factory
        self._lock = threading.RLock()
        # Taken under _lock before it is released so emits keep take order.
        self._emit_lock = threading.RLock()
        self._pending: FocusSignal | None = None
        self._timer: CancellableTimer | None = None
        self._generation = 0
        self._closed = False

    @property
    def pending(self) -> FocusSignal | None:
        return self._pending

    def on_focus_signal(self, app_id: str, app_name: str, timestamp: datetime) -> None:
        """Feed one raw focus-change notification."""
        signal = FocusSignal(app_id=app_id, app_name=app_name, timestamp=timestamp)
        flushed: FocusSignal | None = None
        with self._lock:
            if self._closed:
                logger.debug("Ignoring focus signal for %s after close", app_id)
                return
            pending = self._pending
            if (
                pending is not None
                and pending.app_id == signal.app_id
                and seconds_between(pending.timestamp, signal.timestamp) < self._smart_window
            ):
                self._pending = pending.model_copy(
                    update={"timestamp": signal.timestamp, "app_name": signal.app_name}
                )
            else:
                flushed = self._take_for_emit()
                self._pending = signal
            self._restart_timer()
        if flushed is not None:
            self._deliver(flushed)

    def flush(self) -> FocusSignal | None:
        """Emit the pending activation now, if any, and return it."""
        with self._lock:
            flushed = self._take_for_emit()
        if flushed is not None:
            self._deliver(flushed)
        return flushed

    def close(self, *, force_flush: bool = True) -> FocusSignal | None:
        """Stop accepting signals.

        With *force_flush* the pending activation is emitted; otherwise it
        is discarded.  Returns the emitted activation, if any.
        """
        with self._lock:
            self._closed = True
            pending = self._take_for_emit() if force_flush else self._take_pending()
        if pending is None:
            return None
        if force_flush:
            self._deliver(pending)
            return pending
        logger.info("Discarding unflushed activation for %s", pending.app_id)
        return None

    def _take_pending(self) -> FocusSignal | None:
        self._cancel_timer()
        pending, self._pending = self._pending, None
        return pending

    def _take_for_emit(self) -> FocusSignal | None:
        flushed = self._take_pending()
        if flushed is not None:
            self._emit_lock.acquire()
        return flushed

    def _deliver(self, signal: FocusSignal) -> None:
        try:
            self._emit(signal)
        finally:
            self._emit_lock.release()

    def _restart_timer(self) -> None:
        self._cancel_timer()
        if self._timer_factory is None:
            return
        self._generation += 1
        generation = self._generation
        timer = self._timer_factory(self._settle_delay, lambda: self._on_timer(generation))
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self, generation: int) -> None:
        # A timer cancelled after it already fired must not flush a newer activation.
        with self._lock:
            if generation != self._generation:
                return
            flushed = self._take_for_emit()
        if flushed is not None:
            self._deliver(flushed)

