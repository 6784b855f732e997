"""Tests for UTC normalisation helpers.

Covers: naive-as-UTC, offset conversion, signed intervals, day bounds.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from focusledger.core.time import day_bounds, ensure_utc, seconds_between, utc_now


def test_naive_is_tagged_utc() -> None:
    ts = datetime(2025, 6, 15, 12, 0, 37)
    assert ensure_utc(ts) == datetime(2025, 6, 15, 12, 0, 37, tzinfo=timezone.utc)


def test_offset_is_converted() -> None:
    cet = timezone(timedelta(hours=2))
    ts = datetime(2025, 6, 15, 14, 0, tzinfo=cet)
    out = ensure_utc(ts)
    assert out.tzinfo == timezone.utc
    assert out.hour == 12


def test_seconds_between_is_signed_and_mixes_naive() -> None:
    a = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)
    b = datetime(2025, 6, 15, 12, 0, 13)
    assert seconds_between(a, b) == 13
    assert seconds_between(b, a) == -13


def test_day_bounds() -> None:
    start, end = day_bounds(date(2025, 6, 15))
    assert start == datetime(2025, 6, 15, tzinfo=timezone.utc)
    assert end - start == timedelta(days=1)


def test_utc_now_is_aware() -> None:
    assert utc_now().tzinfo is not None
