"""Smart switch classification of activation streams.

Separates noisy rapid clicking from real task switches.  Events that
follow one another within the rapid window are grouped; every other
event is classified by how long it held focus before the next event.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Sequence

from focusledger.core.defaults import (
    DEFAULT_FOCUS_THRESHOLD_SECONDS,
    DEFAULT_MEANINGFUL_THRESHOLD_SECONDS,
    DEFAULT_RAPID_WINDOW_SECONDS,
)
from focusledger.core.time import seconds_between
from focusledger.core.types import ActivationEvent


class EventKind(StrEnum):
    rapid_activation_group = "rapid_activation_group"
    quick_reference = "quick_reference"
    meaningful_switch = "meaningful_switch"
    focus_session = "focus_session"
    isolated = "isolated"


@dataclass(frozen=True)
class ProcessedEvent:
    """One classified interaction: a single event or a rapid group."""

    event: ActivationEvent
    kind: EventKind
    members: tuple[ActivationEvent, ...]
    effective_timestamp: datetime

    @property
    def app_id(self) -> str:
        return self.event.app_id

    @property
    def anchor_timestamp(self) -> datetime:
        """Start of dwell time: the last member for groups, else the event itself."""
        if self.kind is EventKind.rapid_activation_group:
            return self.members[-1].timestamp
        return self.effective_timestamp

    @property
    def single_app(self) -> bool:
        return all(m.app_id == self.event.app_id for m in self.members)


def sort_events(events: Sequence[ActivationEvent]) -> list[ActivationEvent]:
    """Chronological order; ties keep their input order."""
    return sorted(events, key=lambda e: e.timestamp)


def classify_events(
    events: Sequence[ActivationEvent],
    *,
    rapid_window_seconds: float = DEFAULT_RAPID_WINDOW_SECONDS,
    meaningful_threshold_seconds: float = DEFAULT_MEANINGFUL_THRESHOLD_SECONDS,
    focus_threshold_seconds: float = DEFAULT_FOCUS_THRESHOLD_SECONDS,
) -> list[ProcessedEvent]:
    """Group rapid bursts and classify the remaining events by dwell.

    Scanning left to right, every event within *rapid_window_seconds*
    (inclusive) of the current event joins its group.  A group of two or
    more is one ``rapid_activation_group`` and the scan resumes after it.
    A singleton is classified by the gap to the very next event:

    * ``< meaningful_threshold_seconds``: ``quick_reference``
    * ``< focus_threshold_seconds``: ``meaningful_switch``
    * otherwise: ``focus_session``
    * no next event: ``isolated``

    The function is pure and deterministic; the input is sorted first.

    Args:
        events: Activation events in any order.
        rapid_window_seconds: Grouping window measured from a group's
            first member.
        meaningful_threshold_seconds: Lower bound of a meaningful switch.
        focus_threshold_seconds: Lower bound of a focus session.

    Returns:
        One :class:`ProcessedEvent` per group or singleton, in order.
    """
    ordered = sort_events(events)
    processed: list[ProcessedEvent] = []
    n = len(ordered)
    i = 0

    while i < n:
        first = ordered[i]
        j = i + 1
        while j < n and seconds_between(first.timestamp, ordered[j].timestamp) <= rapid_window_seconds:
            j += 1

        if j - i > 1:
            processed.append(ProcessedEvent(
                event=first,
                kind=EventKind.rapid_activation_group,
                members=tuple(ordered[i:j]),
                effective_timestamp=first.timestamp,
            ))
            i = j
            continue

        if i + 1 < n:
            duration = seconds_between(first.timestamp, ordered[i + 1].timestamp)
            if duration < meaningful_threshold_seconds:
                kind = EventKind.quick_reference
            elif duration < focus_threshold_seconds:
                kind = EventKind.meaningful_switch
            else:
                kind = EventKind.focus_session
        else:
            kind = EventKind.isolated

        processed.append(ProcessedEvent(
            event=first,
            kind=kind,
            members=(first,),
            effective_timestamp=first.timestamp,
        ))
        i += 1

    return processed
