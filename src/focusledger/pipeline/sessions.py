"""Session boundary state machine for live activations.

A *session* is a contiguous run of activations.  A new session starts
when the gap since the previous activation reaches the idle threshold
(default 5 minutes) or when the open session has lasted the maximum
duration (default 1 hour).  Exactly one session is open once the first
activation has been seen.
"""

from __future__ import annotations

import logging
from datetime import datetime

from pydantic import BaseModel, Field

from focusledger.core.defaults import (
    DEFAULT_MAX_SESSION_DURATION_SECONDS,
    DEFAULT_SESSION_THRESHOLD_SECONDS,
)
from focusledger.core.time import ensure_utc, seconds_between
from focusledger.core.types import Session, new_id

logger = logging.getLogger(__name__)


class SessionAssignment(BaseModel, frozen=True):
    """Session fields to stamp on a new activation.

    ``closed`` is the session that this activation ended, if any; its
    ``end_time`` is the timestamp of that session's last activation.
    """

    session_id: str
    session_start_time: datetime
    is_session_start: bool
    switch_count: int = Field(ge=1)
    closed: Session | None = None


class SessionManager:
    """Assign each activation to a session.

    Activations must be fed in chronological order.  The manager can be
    seeded from persisted events with :meth:`resume` so a restart inside
    the idle threshold continues the previous session.
    """

    def __init__(
        self,
        *,
        session_threshold_seconds: float = DEFAULT_SESSION_THRESHOLD_SECONDS,
        max_session_duration_seconds: float = DEFAULT_MAX_SESSION_DURATION_SECONDS,
    ) -> None:
        self._threshold = session_threshold_seconds
        self._max_duration = max_session_duration_seconds
        self._current: Session | None = None
        self._last_activation: datetime | None = None

    @property
    def current(self) -> Session | None:
        """The open session, or ``None`` before the first activation."""
        return self._current

    @property
    def last_activation(self) -> datetime | None:
        return self._last_activation

    def resume(self, session: Session, last_activation: datetime) -> None:
        """Restore the open session and the time of its latest activation."""
        self._current = session.model_copy(update={"end_time": None})
        self._last_activation = ensure_utc(last_activation)

    def assign(self, timestamp: datetime) -> SessionAssignment:
        """Advance the state machine with an activation at *timestamp*."""
        ts = ensure_utc(timestamp)
        current = self._current
        prev = self._last_activation

        if (
            current is not None
            and prev is not None
            and seconds_between(prev, ts) < self._threshold
            and seconds_between(current.start_time, ts) < self._max_duration
        ):
            current = current.model_copy(update={"switch_count": current.switch_count + 1})
            self._current = current
            self._last_activation = ts
            return SessionAssignment(
                session_id=current.id,
                session_start_time=current.start_time,
                is_session_start=False,
                switch_count=current.switch_count,
            )

        closed: Session | None = None
        if current is not None and prev is not None:
            closed = current.model_copy(update={"end_time": prev})
            logger.debug(
                "Closed session %s after %d activation(s)", closed.id, closed.switch_count,
            )

        opened = Session(id=new_id(), start_time=ts, switch_count=1)
        self._current = opened
        self._last_activation = ts
        return SessionAssignment(
            session_id=opened.id,
            session_start_time=opened.start_time,
            is_session_start=True,
            switch_count=1,
            closed=closed,
        )
