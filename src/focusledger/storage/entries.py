"""One-file-per-record store with rolling timestamped backups.

Layout::

    analyses/2024-05-01_09-30-00_workstyle_1a2b3c4d.json
    analyses_backup/2024-05-01_09-30-00_workstyle_1a2b3c4d.backup.2024-05-02_10-00-00-000000.json

Each write of an existing entry first copies it into the backup
directory; only the newest *max_backups* copies per entry are kept.  A
periodic sweep deletes backups older than the retention window.  When an
entry file cannot be read, its backups are tried newest first and the
first valid one is restored over the entry.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Generic, TypeVar

from pydantic import BaseModel

from focusledger.core.defaults import (
    BACKUP_TIMESTAMP_FORMAT,
    DEFAULT_BACKUP_RETENTION_DAYS,
    DEFAULT_BACKUP_SWEEP_INTERVAL_SECONDS,
    DEFAULT_MAX_BACKUPS_PER_ENTRY,
    MIN_FREE_BYTES,
)
from focusledger.core.errors import (
    BackupError,
    CapacityError,
    CorruptionError,
    RecoveryError,
    StoreError,
    StoreResult,
)
from focusledger.core.periodic import PeriodicTask
from focusledger.core.store import copy_file_atomic, read_bytes, write_bytes_atomic
from focusledger.core.validation import raise_for_report, validate_records
from focusledger.storage.worker import Clock, ErrorSink, SerialWorker

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=BaseModel)

_BACKUP_MARKER = ".backup."


def backup_prefix(file_name: str) -> str:
    return f"{Path(file_name).stem}{_BACKUP_MARKER}"


def parse_backup_timestamp(backup_name: str) -> datetime | None:
    """Extract the UTC timestamp embedded in a backup file name."""
    stem = Path(backup_name).stem
    _, sep, stamp = stem.rpartition(_BACKUP_MARKER)
    if not sep:
        return None
    try:
        return datetime.strptime(stamp, BACKUP_TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


class EntryStore(SerialWorker, Generic[E]):
    """Durable store keeping each record in its own JSON file.

    Args:
        directory: Directory holding one file per entry.
        model: Record type; must expose ``id`` and ``timestamp``.
        backup_directory: Directory for timestamped backups.
        name: Store name used in logs and error events.
        file_name: Maps a record to its file name; defaults to the
            record's ``file_name`` attribute.
        max_backups: Backups kept per entry after each write.
        retention_days: Age after which :meth:`sweep_backups` deletes backups.
        verify_writes: Re-read and byte-compare after every write.
    """

    def __init__(
        self,
        directory: Path,
        model: type[E],
        *,
        backup_directory: Path,
        name: str = "analyses",
        file_name: Callable[[E], str] | None = None,
        max_backups: int = DEFAULT_MAX_BACKUPS_PER_ENTRY,
        retention_days: int = DEFAULT_BACKUP_RETENTION_DAYS,
        verify_writes: bool = True,
        min_free_bytes: int = MIN_FREE_BYTES,
        error_sink: ErrorSink | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(name, min_free_bytes=min_free_bytes, error_sink=error_sink, clock=clock)
        self.directory = Path(directory)
        self.backup_directory = Path(backup_directory)
        self.model = model
        self._file_name = file_name or (lambda record: record.file_name)  # type: ignore[attr-defined]
        self._max_backups = max_backups
        self._retention = timedelta(days=retention_days)
        self._verify = verify_writes
        self._sweeper: PeriodicTask | None = None

    # -- async surface ----------------------------------------------------------

    def put(self, record: E) -> Future[StoreResult[Path | None]]:
        return self.submit(self.put_now, record)

    def remove(self, record: E) -> Future[StoreResult[bool]]:
        return self.submit(self.remove_now, record)

    def load_all(self) -> Future[StoreResult[list[E]]]:
        return self.submit(self.load_all_now)

    def sweep_backups(self) -> Future[StoreResult[int]]:
        return self.submit(self.sweep_backups_now)

    def backup_info(self) -> Future[dict[str, object]]:
        return self.submit(self.backup_info_now)

    def start_sweeper(self, interval_seconds: float = DEFAULT_BACKUP_SWEEP_INTERVAL_SECONDS) -> None:
        """Run :meth:`sweep_backups` on the worker every *interval_seconds*."""
        if self._sweeper is None:
            self._sweeper = PeriodicTask(
                self.sweep_backups, interval_seconds, name=f"{self.name}-backup-sweep",
            )
        self._sweeper.start()

    def close(self) -> None:
        if self._sweeper is not None:
            self._sweeper.stop()
            self._sweeper = None
        super().close()

    # -- write ------------------------------------------------------------------

    def put_now(self, record: E) -> StoreResult[Path | None]:
        try:
            return StoreResult(self._put(record))
        except StoreError as exc:
            self.report(exc)
            return StoreResult(None, error=exc)

    def _put(self, record: E) -> Path:
        raise_for_report(validate_records([record], now=self._clock()), self.name)

        name = self._file_name(record)
        target = self.directory / name
        payload = record.model_dump_json(indent=2).encode("utf-8")

        if target.exists():
            try:
                self._backup(target)
            except BackupError as exc:
                self.report(exc)

        self.ensure_capacity(target)

        try:
            write_bytes_atomic(payload, target)
        except OSError as exc:
            if self.is_disk_full(exc):
                raise CapacityError(f"disk full while writing {name}") from exc
            raise CorruptionError(f"could not write {name}: {exc}") from exc

        if self._verify:
            try:
                written = read_bytes(target)
            except OSError as exc:
                raise CorruptionError(f"could not re-read {name}: {exc}") from exc
            if written != payload:
                raise CorruptionError(f"verification failed for {name}")
        return target

    def _backup(self, target: Path) -> Path:
        stamp = self._clock().strftime(BACKUP_TIMESTAMP_FORMAT)
        dest = self.backup_directory / f"{backup_prefix(target.name)}{stamp}{target.suffix}"
        try:
            copy_file_atomic(target, dest)
            self._prune_backups(target.name)
        except OSError as exc:
            raise BackupError(f"could not back up {target.name}: {exc}") from exc
        logger.debug("%s: backed up %s -> %s", self.name, target.name, dest.name)
        return dest

    def backups_for(self, file_name: str) -> list[Path]:
        """Backups of *file_name*, oldest first."""
        if not self.backup_directory.is_dir():
            return []
        prefix = backup_prefix(file_name)
        return sorted(
            p for p in self.backup_directory.iterdir()
            if p.is_file() and p.name.startswith(prefix) and p.suffix == ".json"
        )

    def _prune_backups(self, file_name: str) -> None:
        backups = self.backups_for(file_name)
        for stale in backups[: max(0, len(backups) - self._max_backups)]:
            stale.unlink(missing_ok=True)
            logger.debug("%s: removed old backup %s", self.name, stale.name)

    # -- remove -----------------------------------------------------------------

    def remove_now(self, record: E) -> StoreResult[bool]:
        """Delete the entry file and all of its backups."""
        name = self._file_name(record)
        target = self.directory / name
        try:
            existed = target.exists()
            target.unlink(missing_ok=True)
            for backup in self.backups_for(name):
                backup.unlink(missing_ok=True)
        except OSError as exc:
            error = CorruptionError(f"could not delete {name}: {exc}")
            self.report(error)
            return StoreResult(False, error=error)
        return StoreResult(existed)

    # -- load -------------------------------------------------------------------

    def load_all_now(self) -> StoreResult[list[E]]:
        """Load every entry, newest first; unreadable entries are recovered or skipped.

        The result carries the last :class:`RecoveryError` when at least
        one entry could not be recovered.
        """
        if not self.directory.is_dir():
            return StoreResult([], source="empty")

        entries: list[E] = []
        last_error: StoreError | None = None
        recovered = False
        for path in sorted(self.directory.glob("*.json")):
            try:
                entries.append(self._read(path))
                continue
            except StoreError as exc:
                logger.warning("%s: %s unusable (%s); trying backups", self.name, path.name, exc.message)
            entry = self._recover(path.name)
            if entry is None:
                last_error = RecoveryError(f"no usable backup for {path.name}")
                self.report(last_error)
            else:
                entries.append(entry)
                recovered = True

        entries.sort(key=lambda e: e.timestamp, reverse=True)  # type: ignore[attr-defined]
        return StoreResult(entries, error=last_error, source="backup" if recovered else "primary")

    def _read(self, path: Path) -> E:
        try:
            data = read_bytes(path)
        except OSError as exc:
            raise CorruptionError(f"could not read {path.name}: {exc}") from exc
        try:
            record = self.model.model_validate_json(data)
        except ValueError as exc:
            raise CorruptionError(f"{path.name}: malformed data") from exc
        raise_for_report(validate_records([record], now=self._clock()), self.name)
        return record

    def _recover(self, file_name: str) -> E | None:
        for backup in reversed(self.backups_for(file_name)):
            try:
                record = self._read(backup)
            except StoreError as exc:
                logger.warning("%s: backup %s unusable: %s", self.name, backup.name, exc.message)
                continue
            try:
                copy_file_atomic(backup, self.directory / file_name)
            except OSError as exc:
                logger.warning("%s: could not restore %s from %s: %s", self.name, file_name, backup.name, exc)
                continue
            logger.info("%s: recovered %s from %s", self.name, file_name, backup.name)
            return record
        return None

    # -- maintenance ------------------------------------------------------------

    def sweep_backups_now(self) -> StoreResult[int]:
        """Delete backups older than the retention window; returns the count removed.

        Age comes from the timestamp in the backup's name, falling back to
        the file's modification time.
        """
        if not self.backup_directory.is_dir():
            return StoreResult(0)
        cutoff = self._clock() - self._retention
        removed = 0
        try:
            for path in self.backup_directory.iterdir():
                if not path.is_file():
                    continue
                stamp = parse_backup_timestamp(path.name)
                if stamp is None:
                    stamp = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
                if stamp < cutoff:
                    path.unlink(missing_ok=True)
                    removed += 1
        except OSError as exc:
            error = BackupError(f"backup sweep failed: {exc}")
            self.report(error)
            return StoreResult(removed, error=error)
        if removed:
            logger.info("%s: swept %d expired backup(s)", self.name, removed)
        return StoreResult(removed)

    def backup_info_now(self) -> dict[str, object]:
        """Count and total size of all backups, for diagnostics."""
        info: dict[str, object] = {"backup_directory": str(self.backup_directory)}
        if not self.backup_directory.is_dir():
            info.update(total_backup_files=0, total_backup_bytes=0)
            return info
        files = [p for p in self.backup_directory.iterdir() if p.is_file()]
        info["total_backup_files"] = len(files)
        info["total_backup_bytes"] = sum(p.stat().st_size for p in files)
        return info
