"""Context-switch synthesis from classified interactions."""

from __future__ import annotations

import logging
from typing import Sequence

from focusledger.core.time import seconds_between
from focusledger.core.types import ContextSwitch
from focusledger.pipeline.classify import EventKind, ProcessedEvent

logger = logging.getLogger(__name__)

_REAL_WORK = frozenset({EventKind.meaningful_switch, EventKind.focus_session})


def should_record_switch(current: ProcessedEvent, following: ProcessedEvent) -> bool:
    """Decide whether the transition *current* -> *following* is a real switch.

    * Same application on both sides: never.
    * Rapid group spanning several applications: never (clicking noise).
    * Rapid group of one application: always; it is one noisy activation.
    * Meaningful switch or focus session: always.
    * Quick reference: only when it leads into real work.
    * Isolated: always.
    """
    if current.app_id == following.app_id:
        return False
    if current.kind is EventKind.rapid_activation_group:
        return current.single_app
    if current.kind in _REAL_WORK:
        return True
    if current.kind is EventKind.quick_reference:
        return following.kind in _REAL_WORK
    return current.kind is EventKind.isolated


def synthesize_context_switches(processed: Sequence[ProcessedEvent]) -> list[ContextSwitch]:
    """Turn adjacent classified pairs into :class:`ContextSwitch` records.

    Time spent runs from the anchor of the source interaction (the last
    member of a rapid group) to the effective timestamp of the next one.
    Ids are derived from the endpoint event ids, so running this twice
    over the same events yields identical records.
    """
    switches: list[ContextSwitch] = []
    for current, following in zip(processed, processed[1:]):
        if not should_record_switch(current, following):
            continue
        spent = seconds_between(current.anchor_timestamp, following.effective_timestamp)
        source = current.members[-1] if current.kind is EventKind.rapid_activation_group else current.event
        switches.append(ContextSwitch.between(source, following.event, spent))
    logger.debug("Synthesized %d switch(es) from %d interaction(s)", len(switches), len(processed))
    return switches
