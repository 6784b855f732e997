"""Tests for productivity aggregation.

Covers: empty window score, weighted score bands, focus-time accounting,
isolated interactions excluded, summary payload.
"""

from __future__ import annotations

import pytest

from conftest import make_event
from focusledger.pipeline.classify import EventKind, ProcessedEvent, classify_events
from focusledger.pipeline.productivity import (
    FocusLevel,
    ProductivityMetrics,
    compute_productivity_metrics,
)


def _metrics(**counts: int) -> ProductivityMetrics:
    base = dict(quick_checks=0, meaningful_switches=0, focus_sessions=0, rapid_activation_groups=0)
    base.update(counts)
    return ProductivityMetrics(total_focus_time=0.0, **base)


class TestScore:
    def test_empty_window_is_perfect(self) -> None:
        m = compute_productivity_metrics([])
        assert m.total_interactions == 0
        assert m.score == 100.0
        assert m.level is FocusLevel.highly_focused

    @pytest.mark.parametrize(
        ("counts", "score", "level"),
        [
            ({"focus_sessions": 2}, 100.0, FocusLevel.highly_focused),
            ({"quick_checks": 4}, 75.0, FocusLevel.moderately_focused),
            ({"meaningful_switches": 1, "rapid_activation_groups": 1}, 50.0, FocusLevel.mixed_focus),
            ({"quick_checks": 1, "rapid_activation_groups": 1}, 37.5, FocusLevel.scattered_attention),
            ({"rapid_activation_groups": 3}, 0.0, FocusLevel.highly_distracted),
        ],
    )
    def test_weighted_score(self, counts: dict[str, int], score: float, level: FocusLevel) -> None:
        m = _metrics(**counts)
        assert m.score == pytest.approx(score)
        assert m.level is level

    @pytest.mark.parametrize(
        ("score", "level"),
        [
            (80, FocusLevel.highly_focused),
            (79.9, FocusLevel.moderately_focused),
            (60, FocusLevel.moderately_focused),
            (40, FocusLevel.mixed_focus),
            (20, FocusLevel.scattered_attention),
            (19.9, FocusLevel.highly_distracted),
        ],
    )
    def test_level_bands(self, score: float, level: FocusLevel) -> None:
        assert FocusLevel.for_score(score) is level


class TestComputeMetrics:
    def test_counts_and_focus_time(self) -> None:
        events = [make_event(app, t) for app, t in [("a", 0), ("b", 60), ("c", 300)]]
        m = compute_productivity_metrics(classify_events(events))
        assert m.meaningful_switches == 1
        assert m.focus_sessions == 1
        assert m.total_interactions == 2
        assert m.total_focus_time == 240

    def test_trailing_focus_session_uses_estimate(self) -> None:
        ev = make_event("a", 0)
        item = ProcessedEvent(
            event=ev, kind=EventKind.focus_session, members=(ev,), effective_timestamp=ev.timestamp,
        )
        m = compute_productivity_metrics([item], focus_time_estimate_seconds=90)
        assert m.total_focus_time == 90

    def test_rapid_groups_counted(self) -> None:
        events = [make_event(app, t) for app, t in [("a", 0), ("b", 2), ("c", 4), ("d", 100)]]
        m = compute_productivity_metrics(classify_events(events))
        assert m.rapid_activation_groups == 1
        assert m.total_interactions == 1
        assert m.score == 0.0

    def test_summary_payload(self) -> None:
        summary = _metrics(quick_checks=4).summary()
        assert summary["score"] == 75.0
        assert summary["level"] == "Moderately Focused"
        assert summary["total_interactions"] == 4
