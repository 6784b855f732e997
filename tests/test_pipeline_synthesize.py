"""Tests for context-switch synthesis.

Covers:
- single-app rapid burst becomes one switch timed from its last member
- multi-app rapid bursts are dropped
- quick references only count when they lead into real work
- same-app transitions never produce a switch
- deterministic ids on re-synthesis
"""

from __future__ import annotations

import random

from conftest import make_event
from focusledger.core.types import SwitchType
from focusledger.pipeline.classify import classify_events
from focusledger.pipeline.synthesize import synthesize_context_switches


def _switches(*pairs: tuple[str, float]):
    events = [make_event(app, t) for app, t in pairs]
    return synthesize_context_switches(classify_events(events))


class TestSynthesize:
    def test_empty_and_single(self) -> None:
        assert synthesize_context_switches([]) == []
        assert _switches(("a", 0)) == []

    def test_single_app_burst_is_one_switch(self) -> None:
        out = _switches(("a", 0), ("a", 3), ("a", 7), ("b", 20))
        assert len(out) == 1
        sw = out[0]
        assert (sw.from_app_id, sw.to_app_id) == ("a", "b")
        assert sw.time_spent == 13
        assert sw.switch_type is SwitchType.normal

    def test_multi_app_burst_is_dropped(self) -> None:
        assert _switches(("a", 0), ("b", 3), ("c", 30)) == []

    def test_quick_into_quick_is_dropped(self) -> None:
        out = _switches(("a", 0), ("b", 9), ("c", 18), ("d", 200))
        assert [(s.from_app_id, s.to_app_id) for s in out] == [("b", "c"), ("c", "d")]
        assert out[0].time_spent == 9
        assert out[0].switch_type is SwitchType.quick
        assert out[1].time_spent == 182
        assert out[1].switch_type is SwitchType.focused

    def test_meaningful_and_focus(self) -> None:
        out = _switches(("a", 0), ("b", 60), ("c", 300))
        assert [s.time_spent for s in out] == [60, 240]
        assert [s.switch_type for s in out] == [SwitchType.normal, SwitchType.focused]

    def test_same_app_never_switches(self) -> None:
        assert _switches(("a", 0), ("a", 60), ("a", 300)) == []

    def test_switch_timestamp_is_destination(self) -> None:
        events = [make_event("a", 0), make_event("b", 60)]
        (sw,) = synthesize_context_switches(classify_events(events))
        assert sw.timestamp == events[1].timestamp

    def test_deterministic_ids(self) -> None:
        events = [make_event(app, t) for app, t in [("a", 0), ("b", 60), ("c", 300), ("a", 500)]]
        first = synthesize_context_switches(classify_events(events))
        second = synthesize_context_switches(classify_events(list(reversed(events))))
        assert [s.id for s in first] == [s.id for s in second]

    def test_random_streams_never_self_switch(self) -> None:
        rng = random.Random(3)
        t = 0.0
        events = []
        for _ in range(300):
            t += rng.choice([1, 4, 9, 12, 90, 400])
            events.append(make_event(rng.choice("abc"), t))
        out = synthesize_context_switches(classify_events(events))
        assert all(s.from_app_id != s.to_app_id for s in out)
        assert all(s.time_spent >= 0 for s in out)
        assert len({s.id for s in out}) == len(out)
