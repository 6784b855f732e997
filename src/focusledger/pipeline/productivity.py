"""Productivity aggregation over classified interactions."""

from __future__ import annotations

from enum import StrEnum
from typing import Sequence

from pydantic import BaseModel, Field

from focusledger.core.defaults import (
    DEFAULT_FOCUS_TIME_ESTIMATE_SECONDS,
    EMPTY_WINDOW_SCORE,
    FOCUS_WEIGHT,
    MEANINGFUL_WEIGHT,
    QUICK_WEIGHT,
    RAPID_WEIGHT,
)
from focusledger.core.time import seconds_between
from focusledger.pipeline.classify import EventKind, ProcessedEvent


class FocusLevel(StrEnum):
    highly_focused = "Highly Focused"
    moderately_focused = "Moderately Focused"
    mixed_focus = "Mixed Focus"
    scattered_attention = "Scattered Attention"
    highly_distracted = "Highly Distracted"

    @classmethod
    def for_score(cls, score: float) -> FocusLevel:
        if score >= 80:
            return cls.highly_focused
        if score >= 60:
            return cls.moderately_focused
        if score >= 40:
            return cls.mixed_focus
        if score >= 20:
            return cls.scattered_attention
        return cls.highly_distracted


class ProductivityMetrics(BaseModel, frozen=True):
    """Tally of classified interactions with a 0-100 score.

    Isolated interactions are not counted.
    """

    quick_checks: int = Field(ge=0, description="Quick references.")
    meaningful_switches: int = Field(ge=0, description="Meaningful switches.")
    focus_sessions: int = Field(ge=0, description="Focus sessions.")
    rapid_activation_groups: int = Field(ge=0, description="Rapid activation groups.")
    total_focus_time: float = Field(ge=0, description="Estimated seconds spent in focus sessions.")

    @property
    def total_interactions(self) -> int:
        return (
            self.quick_checks
            + self.meaningful_switches
            + self.focus_sessions
            + self.rapid_activation_groups
        )

    @property
    def score(self) -> float:
        total = self.total_interactions
        if total == 0:
            return EMPTY_WINDOW_SCORE
        weighted = (
            FOCUS_WEIGHT * self.focus_sessions
            + MEANINGFUL_WEIGHT * self.meaningful_switches
            + QUICK_WEIGHT * self.quick_checks
            + RAPID_WEIGHT * self.rapid_activation_groups
        ) / total
        return min(100.0, max(0.0, (weighted + 1.0) * 50.0))

    @property
    def level(self) -> FocusLevel:
        return FocusLevel.for_score(self.score)

    def summary(self) -> dict[str, object]:
        return {
            **self.model_dump(),
            "total_interactions": self.total_interactions,
            "score": round(self.score, 1),
            "level": self.level.value,
        }


def compute_productivity_metrics(
    processed: Sequence[ProcessedEvent],
    *,
    focus_time_estimate_seconds: float = DEFAULT_FOCUS_TIME_ESTIMATE_SECONDS,
) -> ProductivityMetrics:
    """Aggregate *processed* (one window, in order) into metrics.

    Focus time for each focus session is the gap to the next interaction,
    or *focus_time_estimate_seconds* when it is the last one in the window.
    """
    counts = {kind: 0 for kind in EventKind}
    focus_time = 0.0
    for idx, item in enumerate(processed):
        counts[item.kind] += 1
        if item.kind is EventKind.focus_session:
            if idx + 1 < len(processed):
                focus_time += max(0.0, seconds_between(
                    item.effective_timestamp, processed[idx + 1].effective_timestamp,
                ))
            else:
                focus_time += focus_time_estimate_seconds

    return ProductivityMetrics(
        quick_checks=counts[EventKind.quick_reference],
        meaningful_switches=counts[EventKind.meaningful_switch],
        focus_sessions=counts[EventKind.focus_session],
        rapid_activation_groups=counts[EventKind.rapid_activation_group],
        total_focus_time=focus_time,
    )
