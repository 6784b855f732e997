"""Shared fixtures for the focusledger test suite."""

from __future__ import annotations

import datetime as dt
from typing import Callable

import pytest

from focusledger.core.types import ActivationEvent

T0 = dt.datetime(2025, 6, 15, 9, 0, tzinfo=dt.timezone.utc)


class FakeTimer:
    """Stand-in for :class:`threading.Timer` that fires only when told to."""

    instances: list["FakeTimer"] = []

    def __init__(self, interval: float, function: Callable[[], None]) -> None:
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False
        FakeTimer.instances.append(self)

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.function()


class FixedClock:
    """Callable clock that only moves when advanced."""

    def __init__(self, start: dt.datetime = T0) -> None:
        self.now = start

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, seconds: float) -> dt.datetime:
        self.now = self.now + dt.timedelta(seconds=seconds)
        return self.now


def at(seconds: float) -> dt.datetime:
    """Timestamp *seconds* after the shared test epoch."""
    return T0 + dt.timedelta(seconds=seconds)


def make_event(
    app_id: str,
    seconds: float,
    *,
    app_name: str | None = None,
    category: str = "Other",
    **kwargs,
) -> ActivationEvent:
    return ActivationEvent(
        timestamp=at(seconds),
        app_id=app_id,
        app_name=app_name or app_id.rsplit(".", 1)[-1],
        category=category,
        **kwargs,
    )


@pytest.fixture()
def fake_timers() -> list[FakeTimer]:
    FakeTimer.instances = []
    return FakeTimer.instances


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(T0 + dt.timedelta(days=1))
