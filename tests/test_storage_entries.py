"""Tests for the one-file-per-entry store.

Covers:
- put/load_all newest first
- rolling timestamped backups capped per entry
- a failed backup copy is reported without blocking the rewrite
- recovery of a corrupt entry from its newest valid backup
- removal deletes the entry and its backups
- retention sweep by embedded timestamp, mtime fallback
"""

from __future__ import annotations

import datetime as dt
import os
from pathlib import Path

import pytest

from conftest import FixedClock, at
from focusledger.core.errors import ErrorKind, RecoveryError, StoreErrorEvent
from focusledger.core.types import AnalysisDataContext, AnalysisEntry
from focusledger.storage.entries import EntryStore, backup_prefix, parse_backup_timestamp


def _entry(seconds: float, insights: str = "Deep work in the morning.") -> AnalysisEntry:
    return AnalysisEntry(
        timestamp=at(seconds),
        insights=insights,
        data_points=42,
        time_range_analyzed="Today",
        data_context=AnalysisDataContext(
            total_events=42,
            unique_apps=5,
            context_switches=17,
            time_span_days=1,
            analysis_start_date=at(seconds - 86400),
            analysis_end_date=at(seconds),
        ),
    )


@pytest.fixture()
def sink() -> list[StoreErrorEvent]:
    return []


@pytest.fixture()
def store(tmp_path: Path, clock: FixedClock, sink: list[StoreErrorEvent]):
    s = EntryStore(
        tmp_path / "analyses",
        AnalysisEntry,
        backup_directory=tmp_path / "analyses_backup",
        min_free_bytes=0,
        error_sink=sink.append,
        clock=clock,
    )
    yield s
    s.close()


class TestBackupNames:
    def test_prefix_and_timestamp(self) -> None:
        name = "2025-06-15_09-00-00_workstyle_abcd1234.backup.2025-06-16_10-00-00-000000.json"
        assert name.startswith(backup_prefix("2025-06-15_09-00-00_workstyle_abcd1234.json"))
        stamp = parse_backup_timestamp(name)
        assert stamp is not None
        assert (stamp.day, stamp.hour) == (16, 10)

    def test_unparseable(self) -> None:
        assert parse_backup_timestamp("notes.json") is None
        assert parse_backup_timestamp("x.backup.yesterday.json") is None


class TestPutAndLoad:
    def test_load_all_newest_first(self, store: EntryStore) -> None:
        old, new = _entry(0), _entry(3600)
        assert store.put_now(old).ok
        assert store.put(new).result().ok
        result = store.load_all().result()
        assert result.ok
        assert [e.id for e in result.value] == [new.id, old.id]

    def test_missing_directory_is_empty(self, store: EntryStore) -> None:
        result = store.load_all_now()
        assert result.value == []
        assert result.source == "empty"

    def test_rewrites_keep_capped_backups(self, store: EntryStore, clock: FixedClock) -> None:
        entry = _entry(0)
        for i in range(6):
            store.put_now(entry.model_copy(update={"insights": f"v{i}"}))
            clock.advance(1)
        backups = store.backups_for(entry.file_name)
        assert len(backups) == 3
        assert store.backup_info().result()["total_backup_files"] == 3

    def test_invalid_entry_rejected(self, store: EntryStore, sink: list) -> None:
        bad = _entry(0).model_copy(update={"data_points": -1})
        result = store.put_now(bad)
        assert result.value is None
        assert sink[-1].kind is ErrorKind.validation
        assert not (store.directory / bad.file_name).exists()


    def test_backup_failure_does_not_block_rewrite(
        self, store: EntryStore, sink: list[StoreErrorEvent], monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        entry = _entry(0)
        assert store.put_now(entry).ok

        def failing_copy(src: Path, dst: Path) -> Path:
            raise OSError("backup volume unavailable")

        monkeypatch.setattr("focusledger.storage.entries.copy_file_atomic", failing_copy)
        result = store.put_now(entry.model_copy(update={"insights": "rewritten"}))
        assert result.ok
        assert [e.insights for e in store.load_all_now().value] == ["rewritten"]
        assert store.backups_for(entry.file_name) == []
        assert [e.kind for e in sink] == [ErrorKind.backup]


class TestRecovery:
    def test_corrupt_entry_restored_from_newest_valid_backup(
        self, store: EntryStore, clock: FixedClock,
    ) -> None:
        entry = _entry(0)
        for text in ("first", "second", "third"):
            store.put_now(entry.model_copy(update={"insights": text}))
            clock.advance(1)
        newest = store.backups_for(entry.file_name)[-1]
        newest.write_bytes(b"corrupt")
        (store.directory / entry.file_name).write_bytes(b"corrupt")

        result = store.load_all_now()
        assert result.ok
        assert result.source == "backup"
        assert [e.insights for e in result.value] == ["first"]
        assert (store.directory / entry.file_name).read_bytes() != b"corrupt"

    def test_unrecoverable_entry_is_skipped(
        self, store: EntryStore, sink: list[StoreErrorEvent],
    ) -> None:
        good = _entry(0)
        store.put_now(good)
        store.directory.joinpath("2025-06-15_10-00-00_workstyle_deadbeef.json").write_bytes(b"{}")

        result = store.load_all_now()
        assert [e.id for e in result.value] == [good.id]
        assert isinstance(result.error, RecoveryError)
        assert sink[-1].kind is ErrorKind.recovery


class TestRemoveAndSweep:
    def test_remove_deletes_backups(self, store: EntryStore, clock: FixedClock) -> None:
        entry = _entry(0)
        store.put_now(entry)
        clock.advance(1)
        store.put_now(entry)
        assert store.backups_for(entry.file_name)

        assert store.remove(entry).result().value is True
        assert not (store.directory / entry.file_name).exists()
        assert store.backups_for(entry.file_name) == []
        assert store.remove_now(entry).value is False

    def test_sweep_removes_expired(self, store: EntryStore, clock: FixedClock) -> None:
        entry = _entry(0)
        store.put_now(entry)
        store.put_now(entry.model_copy(update={"insights": "v2"}))
        assert len(store.backups_for(entry.file_name)) == 1

        clock.advance(31 * 86400)
        assert store.sweep_backups().result().value == 1
        assert store.backups_for(entry.file_name) == []

    def test_sweep_keeps_recent(self, store: EntryStore) -> None:
        entry = _entry(0)
        store.put_now(entry)
        store.put_now(entry)
        assert store.sweep_backups_now().value == 0

    def test_sweep_falls_back_to_mtime(self, store: EntryStore, clock: FixedClock) -> None:
        store.backup_directory.mkdir(parents=True)
        stray = store.backup_directory / "odd-name.json"
        stray.write_text("{}", "utf-8")
        old = (clock() - dt.timedelta(days=40)).timestamp()
        os.utime(stray, (old, old))
        assert store.sweep_backups_now().value == 1
        assert not stray.exists()
