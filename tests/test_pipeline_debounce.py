"""Tests for focus-signal debouncing.

Covers:
- same-app signals inside the smart window coalesce
- different app or expired window flushes the pending activation
- exactly one settle timer alive, restarted on every update
- stale timers cannot flush a newer activation
- close() force-flush vs discard, no timers (replay mode)
- emits reach the callback in flush order across threads
"""

from __future__ import annotations

import threading

from conftest import FakeTimer, at
from focusledger.pipeline.debounce import FocusDebouncer, FocusSignal


def _debouncer(emitted: list[FocusSignal], **kwargs) -> FocusDebouncer:
    kwargs.setdefault("timer_factory", FakeTimer)
    return FocusDebouncer(emitted.append, **kwargs)


class TestCoalescing:
    def test_same_app_within_window_merges(self, fake_timers: list[FakeTimer]) -> None:
        emitted: list[FocusSignal] = []
        d = _debouncer(emitted)
        d.on_focus_signal("a", "A", at(0))
        d.on_focus_signal("a", "A", at(3))
        d.on_focus_signal("a", "A", at(7))
        assert emitted == []
        assert d.pending is not None
        assert d.pending.timestamp == at(7)

    def test_window_measured_from_latest_update(self, fake_timers: list[FakeTimer]) -> None:
        emitted: list[FocusSignal] = []
        d = _debouncer(emitted)
        d.on_focus_signal("a", "A", at(0))
        d.on_focus_signal("a", "A", at(7))
        d.on_focus_signal("a", "A", at(14))
        assert emitted == []

    def test_same_app_after_window_flushes(self, fake_timers: list[FakeTimer]) -> None:
        emitted: list[FocusSignal] = []
        d = _debouncer(emitted)
        d.on_focus_signal("a", "A", at(0))
        d.on_focus_signal("a", "A", at(8))
        assert [s.timestamp for s in emitted] == [at(0)]
        assert d.pending.timestamp == at(8)

    def test_different_app_flushes_pending(self, fake_timers: list[FakeTimer]) -> None:
        emitted: list[FocusSignal] = []
        d = _debouncer(emitted)
        d.on_focus_signal("a", "A", at(0))
        d.on_focus_signal("b", "B", at(1))
        assert [s.app_id for s in emitted] == ["a"]
        assert d.pending.app_id == "b"


class TestTimers:
    def test_single_live_timer(self, fake_timers: list[FakeTimer]) -> None:
        d = _debouncer([], settle_delay_seconds=0.5)
        d.on_focus_signal("a", "A", at(0))
        d.on_focus_signal("a", "A", at(1))
        d.on_focus_signal("b", "B", at(2))
        live = [t for t in fake_timers if t.started and not t.cancelled]
        assert len(live) == 1
        assert live[0].interval == 0.5
        assert live[0].daemon

    def test_timer_fire_flushes(self, fake_timers: list[FakeTimer]) -> None:
        emitted: list[FocusSignal] = []
        d = _debouncer(emitted)
        d.on_focus_signal("a", "A", at(0))
        fake_timers[-1].fire()
        assert [s.app_id for s in emitted] == ["a"]
        assert d.pending is None

    def test_stale_timer_is_ignored(self, fake_timers: list[FakeTimer]) -> None:
        emitted: list[FocusSignal] = []
        d = _debouncer(emitted)
        d.on_focus_signal("a", "A", at(0))
        stale = fake_timers[-1]
        d.on_focus_signal("a", "A", at(1))
        stale.fire()
        assert emitted == []
        fake_timers[-1].fire()
        assert len(emitted) == 1

    def test_no_timer_factory(self) -> None:
        emitted: list[FocusSignal] = []
        d = FocusDebouncer(emitted.append, timer_factory=None)
        d.on_focus_signal("a", "A", at(0))
        d.on_focus_signal("b", "B", at(1))
        assert [s.app_id for s in emitted] == ["a"]
        assert d.flush().app_id == "b"
        assert d.flush() is None


class TestClose:
    def test_force_flush_emits_pending(self, fake_timers: list[FakeTimer]) -> None:
        emitted: list[FocusSignal] = []
        d = _debouncer(emitted)
        d.on_focus_signal("a", "A", at(0))
        assert d.close().app_id == "a"
        assert [s.app_id for s in emitted] == ["a"]
        assert fake_timers[-1].cancelled

    def test_discard(self, fake_timers: list[FakeTimer]) -> None:
        emitted: list[FocusSignal] = []
        d = _debouncer(emitted)
        d.on_focus_signal("a", "A", at(0))
        assert d.close(force_flush=False) is None
        assert emitted == []

    def test_signals_after_close_ignored(self, fake_timers: list[FakeTimer]) -> None:
        emitted: list[FocusSignal] = []
        d = _debouncer(emitted)
        d.close()
        d.on_focus_signal("a", "A", at(0))
        assert d.pending is None
        assert emitted == []


class TestEmitOrdering:
    def test_timer_emit_finishes_before_later_flush(self, fake_timers: list[FakeTimer]) -> None:
        emitted: list[str] = []
        entered, gate = threading.Event(), threading.Event()

        def emit(signal: FocusSignal) -> None:
            if signal.app_id == "a":
                entered.set()
                gate.wait(timeout=5)
            emitted.append(signal.app_id)

        d = FocusDebouncer(emit, timer_factory=FakeTimer)
        d.on_focus_signal("a", "A", at(0))
        timer_thread = threading.Thread(target=fake_timers[-1].fire)
        timer_thread.start()
        assert entered.wait(timeout=5)

        d.on_focus_signal("b", "B", at(10))
        flusher = threading.Thread(target=d.flush)
        flusher.start()
        flusher.join(timeout=0.2)
        assert emitted == []

        gate.set()
        timer_thread.join(timeout=5)
        flusher.join(timeout=5)
        assert emitted == ["a", "b"]
