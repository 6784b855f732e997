"""Daily report generation from activation events and context switches.

Aggregates one calendar day (UTC) of activity into a :class:`DailyReport`
suitable for time-tracking summaries.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import date
from typing import Sequence

from pydantic import BaseModel, Field

from focusledger.core.config import MonitorSettings
from focusledger.core.time import day_bounds, seconds_between
from focusledger.core.types import ActivationEvent, ContextSwitch, SwitchType
from focusledger.pipeline.classify import classify_events
from focusledger.pipeline.productivity import compute_productivity_metrics


class ProductivitySummary(BaseModel, frozen=True):
    """Score and counts for the day's classified interactions."""

    score: float = Field(ge=0, le=100, description="0-100 productivity score.")
    level: str = Field(description="Focus level label.")
    quick_checks: int = Field(ge=0)
    meaningful_switches: int = Field(ge=0)
    focus_sessions: int = Field(ge=0)
    rapid_activation_groups: int = Field(ge=0)
    total_focus_minutes: float = Field(ge=0)


class DailyReport(BaseModel, frozen=True):
    """Aggregated daily summary of foreground activity.

    ``category_minutes`` attributes to each activation the time until the
    next activation, capped at the session idle threshold; the day's last
    activation contributes nothing.
    """

    date: str = Field(description="Calendar date (YYYY-MM-DD, UTC) this report covers.")
    event_count: int = Field(ge=0, description="Activations during the day.")
    unique_apps: int = Field(ge=0, description="Distinct applications activated.")
    session_count: int = Field(ge=0, description="Distinct sessions touched.")
    switch_count: int = Field(ge=0, description="Context switches recorded.")
    switch_type_breakdown: dict[str, int] = Field(
        description="SwitchType -> number of switches."
    )
    category_minutes: dict[str, float] = Field(
        description="Category -> dwell minutes."
    )
    top_apps: list[tuple[str, int]] = Field(
        default_factory=list, description="(app name, activations), most frequent first."
    )
    productivity: ProductivitySummary


def _category_minutes(
    events: Sequence[ActivationEvent],
    cap_seconds: float,
) -> dict[str, float]:
    minutes: dict[str, float] = defaultdict(float)
    for cur, nxt in zip(events, events[1:]):
        dwell = min(max(0.0, seconds_between(cur.timestamp, nxt.timestamp)), cap_seconds)
        minutes[cur.category] += dwell / 60.0
    return {k: round(v, 2) for k, v in sorted(minutes.items())}


def build_daily_report(
    events: Sequence[ActivationEvent],
    switches: Sequence[ContextSwitch],
    day: date,
    *,
    settings: MonitorSettings | None = None,
    top_n: int = 5,
) -> DailyReport:
    """Aggregate one UTC calendar day into a :class:`DailyReport`.

    Args:
        events: Activation events (any range; filtered to *day*).
        switches: Context switches (any range; filtered to *day*).
        day: Calendar day to report on.
        settings: Thresholds for classification and dwell capping.
        top_n: Number of most-activated apps to list.

    Returns:
        The report for *day*.

    Raises:
        ValueError: If there are no events on *day*.
    """
    s = settings or MonitorSettings()
    start, end = day_bounds(day)
    day_events = sorted(
        (e for e in events if start <= e.timestamp < end), key=lambda e: e.timestamp,
    )
    if not day_events:
        raise ValueError(f"No activation events on {day.isoformat()}")
    day_switches = [sw for sw in switches if start <= sw.timestamp < end]

    processed = classify_events(
        day_events,
        rapid_window_seconds=s.rapid_window_seconds,
        meaningful_threshold_seconds=s.meaningful_threshold_seconds,
        focus_threshold_seconds=s.focus_threshold_seconds,
    )
    metrics = compute_productivity_metrics(
        processed, focus_time_estimate_seconds=s.focus_time_estimate_seconds,
    )

    type_counts = Counter(sw.switch_type.value for sw in day_switches)
    app_counts = Counter(e.app_name for e in day_events)

    return DailyReport(
        date=day.isoformat(),
        event_count=len(day_events),
        unique_apps=len({e.app_id for e in day_events}),
        session_count=len({e.session_id for e in day_events if e.session_id}),
        switch_count=len(day_switches),
        switch_type_breakdown={t.value: type_counts.get(t.value, 0) for t in SwitchType},
        category_minutes=_category_minutes(day_events, s.session_threshold_seconds),
        top_apps=app_counts.most_common(top_n),
        productivity=ProductivitySummary(
            score=round(metrics.score, 1),
            level=metrics.level.value,
            quick_checks=metrics.quick_checks,
            meaningful_switches=metrics.meaningful_switches,
            focus_sessions=metrics.focus_sessions,
            rapid_activation_groups=metrics.rapid_activation_groups,
            total_focus_minutes=round(metrics.total_focus_time / 60.0, 2),
        ),
    )
