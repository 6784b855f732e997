"""Record-collection validation: unique ids, ranges, required text, clock skew, ordering."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any, Sequence

from pydantic import BaseModel

from focusledger.core.defaults import MAX_FUTURE_SKEW_SECONDS
from focusledger.core.errors import ValidationError
from focusledger.core.time import ensure_utc, utc_now
from focusledger.core.types import (
    ActivationEvent,
    AnalysisEntry,
    ContextSwitch,
    TimestampedRecord,
)

logger = logging.getLogger(__name__)


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


class Finding(BaseModel, frozen=True):
    severity: Severity
    check: str
    record_id: str | None = None
    message: str
    detail: Any = None


class ValidationReport(BaseModel):
    """Collects all findings from :func:`validate_records`."""

    findings: list[Finding] = []

    @property
    def errors(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Finding]:
        return [f for f in self.findings if f.severity == Severity.WARNING]

    @property
    def ok(self) -> bool:
        return len(self.errors) == 0


def validate_records(
    records: Sequence[TimestampedRecord],
    *,
    now: datetime | None = None,
    max_future_seconds: float = MAX_FUTURE_SKEW_SECONDS,
) -> ValidationReport:
    """Run hard and soft checks on a record collection.

    Hard checks (errors):
        * Duplicate ``id`` values.
        * Timestamps more than *max_future_seconds* ahead of *now*.
        * Per-type semantic rules: empty required text, negative
          durations or counts, identical switch endpoints, inverted
          analysis windows.

    Soft checks (warnings):
        * Records not in chronological order.

    Args:
        records: The collection about to be written or just read.
        now: Reference time for the clock-skew check (defaults to now, UTC).
        max_future_seconds: Allowed clock skew.

    Returns:
        A :class:`ValidationReport` with all findings.
    """
    report = ValidationReport()
    if not records:
        return report

    _check_unique_ids(records, report)
    _check_future_timestamps(records, now or utc_now(), max_future_seconds, report)
    _check_chronological(records, report)
    for record in records:
        _check_semantics(record, report)
    return report


def raise_for_report(report: ValidationReport, collection: str) -> None:
    """Log warnings and raise :class:`ValidationError` if *report* has errors."""
    for finding in report.warnings:
        logger.warning("%s: %s", collection, finding.message)
    if not report.ok:
        first = report.errors[0]
        extra = len(report.errors) - 1
        suffix = f" (+{extra} more)" if extra else ""
        raise ValidationError(f"{collection}: {first.message}{suffix}")


def _check_unique_ids(records: Sequence[TimestampedRecord], report: ValidationReport) -> None:
    counts = Counter(r.id for r in records)
    dupes = sorted(rid for rid, n in counts.items() if n > 1)
    if dupes:
        report.findings.append(Finding(
            severity=Severity.ERROR,
            check="unique_ids",
            message=f"{len(dupes)} duplicate id(s) found.",
            detail={"ids": dupes[:10]},
        ))


def _check_future_timestamps(
    records: Sequence[TimestampedRecord],
    now: datetime,
    max_future_seconds: float,
    report: ValidationReport,
) -> None:
    limit = ensure_utc(now) + timedelta(seconds=max_future_seconds)
    for r in records:
        if ensure_utc(r.timestamp) > limit:
            report.findings.append(Finding(
                severity=Severity.ERROR,
                check="future_timestamp",
                record_id=r.id,
                message=f"Record {r.id} timestamp {r.timestamp.isoformat()} is too far in the future.",
            ))


def _check_chronological(records: Sequence[TimestampedRecord], report: ValidationReport) -> None:
    out_of_order = sum(
        1 for prev, cur in zip(records, records[1:])
        if ensure_utc(cur.timestamp) < ensure_utc(prev.timestamp)
    )
    if out_of_order:
        report.findings.append(Finding(
            severity=Severity.WARNING,
            check="chronological_order",
            message=f"Records are not in chronological order ({out_of_order} inversion(s)).",
            detail={"inversions": out_of_order},
        ))


def _error(report: ValidationReport, check: str, record_id: str, message: str) -> None:
    report.findings.append(Finding(
        severity=Severity.ERROR, check=check, record_id=record_id, message=message,
    ))


def _check_semantics(record: TimestampedRecord, report: ValidationReport) -> None:
    if isinstance(record, ActivationEvent):
        if not record.app_id.strip():
            _error(report, "required_text", record.id, f"Event {record.id} has an empty app_id.")
        if not record.app_name.strip():
            _error(report, "required_text", record.id, f"Event {record.id} has an empty app name.")
    elif isinstance(record, ContextSwitch):
        if record.time_spent < 0:
            _error(report, "negative_duration", record.id, f"Switch {record.id} has negative time spent.")
        if not record.from_app_name.strip() or not record.to_app_name.strip():
            _error(report, "required_text", record.id, f"Switch {record.id} has an empty app name.")
        if record.from_app_id == record.to_app_id:
            _error(report, "same_endpoints", record.id, f"Switch {record.id} starts and ends in the same app.")
    elif isinstance(record, AnalysisEntry):
        if not record.insights.strip():
            _error(report, "required_text", record.id, "Analysis insights cannot be empty.")
        if not record.analysis_type.strip():
            _error(report, "required_text", record.id, "Analysis type cannot be empty.")
        if record.data_points < 0:
            _error(report, "negative_count", record.id, "Data points cannot be negative.")
        if record.data_context.total_events < 0:
            _error(report, "negative_count", record.id, "Total events cannot be negative.")
        ctx = record.data_context
        if ctx.analysis_start_date > ctx.analysis_end_date:
            _error(report, "inverted_window", record.id, "Analysis start date cannot be after end date.")
