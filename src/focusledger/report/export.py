"""Report export utilities: JSON, CSV, and Parquet output."""

from __future__ import annotations

import io
import json
from pathlib import Path
from typing import Sequence

import pandas as pd

from focusledger.core.store import write_bytes_atomic
from focusledger.core.types import ActivationEvent, ContextSwitch
from focusledger.report.daily import DailyReport

_SENSITIVE_KEYS = frozenset({
    "tab_title",
    "tab_url",
    "site_domain",
})

_SWITCH_COLUMNS = [
    "id",
    "timestamp",
    "from_app_id",
    "to_app_id",
    "from_app_name",
    "to_app_name",
    "time_spent",
    "switch_type",
    "from_category",
    "to_category",
    "session_id",
]

_EVENT_COLUMNS = [
    "id",
    "timestamp",
    "app_id",
    "app_name",
    "category",
    "session_id",
    "session_start_time",
    "is_session_start",
    "is_session_end",
    "session_switch_count",
]


def _check_no_sensitive_fields(data: dict) -> None:
    """Recursively check *data* for forbidden keys."""
    for key in data:
        if key in _SENSITIVE_KEYS:
            raise ValueError(
                f"Sensitive field {key!r} must not appear in report output"
            )
        if isinstance(data[key], dict):
            _check_no_sensitive_fields(data[key])


def export_report_json(report: DailyReport, path: Path) -> Path:
    """Write *report* to a JSON file, rejecting sensitive keys.

    Raises:
        ValueError: If the serialized output contains a key from the
            sensitive-fields blocklist.
    """
    data = report.model_dump(mode="json", exclude_none=True)
    _check_no_sensitive_fields(data)
    return write_bytes_atomic((json.dumps(data, indent=2) + "\n").encode("utf-8"), path)


def switches_frame(switches: Sequence[ContextSwitch]) -> pd.DataFrame:
    """Tabular view of *switches* with one row per switch."""
    rows = [sw.model_dump(mode="json") for sw in switches]
    return pd.DataFrame(rows, columns=_SWITCH_COLUMNS)


def events_frame(events: Sequence[ActivationEvent]) -> pd.DataFrame:
    """Tabular view of *events*; enrichment fields are left out."""
    rows = [e.model_dump(include=set(_EVENT_COLUMNS)) for e in events]
    df = pd.DataFrame(rows, columns=_EVENT_COLUMNS)
    for col in ("timestamp", "session_start_time"):
        df[col] = pd.to_datetime(df[col], utc=True)
    return df


def export_switches_csv(switches: Sequence[ContextSwitch], path: Path) -> Path:
    """Write *switches* as CSV with the columns of :func:`switches_frame`."""
    buf = io.StringIO()
    switches_frame(switches).to_csv(buf, index=False)
    return write_bytes_atomic(buf.getvalue().encode("utf-8"), path)


def export_events_parquet(events: Sequence[ActivationEvent], path: Path) -> Path:
    """Write *events* as a Parquet file (pyarrow engine)."""
    df = events_frame(events)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_parquet(path, index=False, engine="pyarrow")
    return path
