"""Crash-safe storage of one ordered record collection.

A collection lives in a primary JSON file with a single sibling backup::

    activity_events.json
    activity_events.backup.json

Saving validates the records, copies the current primary over the
backup, checks free space, writes the new payload atomically, and
optionally re-reads it to verify.  Loading falls back from the primary
to the backup (repairing the primary) and finally to an empty
collection with a :class:`~focusledger.core.errors.RecoveryError`.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from pathlib import Path
from typing import Generic, Sequence, TypeVar

from pydantic import BaseModel, TypeAdapter

from focusledger.core.defaults import MIN_FREE_BYTES
from focusledger.core.errors import (
    BackupError,
    CapacityError,
    CorruptionError,
    RecoveryError,
    StoreError,
    StoreResult,
    ValidationError,
)
from focusledger.core.store import copy_file_atomic, read_bytes, write_bytes_atomic
from focusledger.core.validation import raise_for_report, validate_records
from focusledger.storage.worker import Clock, ErrorSink, SerialWorker

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)


def default_backup_path(path: Path) -> Path:
    """``foo.json`` -> ``foo.backup.json``."""
    return path.with_name(f"{path.stem}.backup{path.suffix}")


class CollectionStore(SerialWorker, Generic[R]):
    """Durable store for a list of records of one pydantic *model*.

    All public asynchronous operations return a :class:`Future` that
    always resolves to a :class:`StoreResult`; it never raises.  The
    ``*_now`` variants run the same logic on the calling thread.

    Args:
        path: Primary file.
        model: Record type; must expose ``id`` and ``timestamp``.
        name: Collection name used in logs and error events.
        backup_path: Backup file; defaults to ``<stem>.backup<suffix>``.
        verify_writes: Re-read and byte-compare after every write.
        min_free_bytes: Disk-space floor checked before writing.
        error_sink: Receives a ``StoreErrorEvent`` for every failure.
        clock: Current-time source for validation and error events.
    """

    def __init__(
        self,
        path: Path,
        model: type[R],
        *,
        name: str | None = None,
        backup_path: Path | None = None,
        verify_writes: bool = False,
        min_free_bytes: int = MIN_FREE_BYTES,
        error_sink: ErrorSink | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(
            name or Path(path).stem,
            min_free_bytes=min_free_bytes,
            error_sink=error_sink,
            clock=clock,
        )
        self.path = Path(path)
        self.backup_path = Path(backup_path) if backup_path else default_backup_path(self.path)
        self.model = model
        self._verify = verify_writes
        self._adapter: TypeAdapter[list[R]] = TypeAdapter(list[model])  # type: ignore[valid-type]

    # -- async surface ----------------------------------------------------------

    def save(self, records: Sequence[R]) -> Future[StoreResult[int]]:
        return self.submit(self.save_now, list(records))

    def load(self) -> Future[StoreResult[list[R]]]:
        return self.submit(self.load_now)

    def clear(self) -> Future[StoreResult[int]]:
        return self.submit(self.save_now, [])

    def check(self) -> Future[dict[str, object]]:
        return self.submit(self.check_now)

    # -- save -------------------------------------------------------------------

    def save_now(self, records: Sequence[R]) -> StoreResult[int]:
        """Persist *records* (sorted by timestamp); returns the count written."""
        try:
            return StoreResult(self._save(records))
        except StoreError as exc:
            self.report(exc)
            return StoreResult(0, error=exc)

    def _save(self, records: Sequence[R]) -> int:
        for record in records:
            if not isinstance(record, self.model):
                raise ValidationError(
                    f"{self.name}: expected {self.model.__name__}, got {type(record).__name__}"
                )
        raise_for_report(validate_records(records, now=self._clock()), self.name)

        ordered = sorted(records, key=lambda r: r.timestamp)
        payload = self._adapter.dump_json(ordered, indent=2)

        if self.path.exists():
            try:
                copy_file_atomic(self.path, self.backup_path)
            except OSError as exc:
                self.report(BackupError(f"could not back up {self.path.name}: {exc}"))

        self.ensure_capacity(self.path)

        try:
            write_bytes_atomic(payload, self.path)
        except OSError as exc:
            if self.is_disk_full(exc):
                raise CapacityError(f"disk full while writing {self.path.name}") from exc
            raise CorruptionError(f"could not write {self.path.name}: {exc}") from exc

        if self._verify:
            try:
                written = read_bytes(self.path)
            except OSError as exc:
                raise CorruptionError(f"could not re-read {self.path.name}: {exc}") from exc
            if written != payload:
                raise CorruptionError(f"verification failed for {self.path.name}")

        logger.debug("%s: saved %d record(s)", self.name, len(ordered))
        return len(ordered)

    # -- load -------------------------------------------------------------------

    def load_now(self) -> StoreResult[list[R]]:
        """Load the collection with primary -> backup -> empty fallback."""
        if not self.path.exists() and not self.backup_path.exists():
            return StoreResult([], source="empty")

        try:
            return StoreResult(self._read(self.path), source="primary")
        except StoreError as exc:
            primary_error = exc
            logger.warning("%s: primary unusable (%s); trying backup", self.name, exc.message)

        try:
            records = self._read(self.backup_path)
        except StoreError as exc:
            error = RecoveryError(
                f"primary and backup both unusable: {primary_error.message}; {exc.message}"
            )
            self.report(error)
            return StoreResult([], error=error, source="empty")

        try:
            copy_file_atomic(self.backup_path, self.path)
            logger.info("%s: restored primary from backup", self.name)
        except OSError as exc:
            logger.warning("%s: could not repair primary from backup: %s", self.name, exc)
        return StoreResult(records, source="backup")

    def _read(self, path: Path) -> list[R]:
        try:
            data = read_bytes(path)
        except FileNotFoundError as exc:
            raise CorruptionError(f"{path.name} is missing") from exc
        except OSError as exc:
            raise CorruptionError(f"could not read {path.name}: {exc}") from exc
        return self.decode(data)

    def decode(self, data: bytes) -> list[R]:
        """Parse and validate a serialized collection; sorted on return."""
        try:
            records = self._adapter.validate_json(data)
        except ValueError as exc:
            raise CorruptionError(f"{self.name}: malformed data: {exc}") from exc
        raise_for_report(validate_records(records, now=self._clock()), self.name)
        return sorted(records, key=lambda r: r.timestamp)

    def check_now(self) -> dict[str, object]:
        """Diagnostic summary of the primary and backup files."""
        info: dict[str, object] = {"collection": self.name}
        for label, path in (("primary", self.path), ("backup", self.backup_path)):
            entry: dict[str, object] = {"path": str(path), "exists": path.exists()}
            if path.exists():
                try:
                    entry["records"] = len(self._read(path))
                    entry["ok"] = True
                except StoreError as exc:
                    entry["ok"] = False
                    entry["error"] = exc.message
            info[label] = entry
        return info
