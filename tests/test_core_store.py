"""Tests for atomic file I/O primitives.

Covers: atomic write round-trip, parent creation, no leftover temp files,
failed write leaves the target untouched, atomic copy.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from focusledger.core.store import copy_file_atomic, read_bytes, write_bytes_atomic


class TestWriteBytesAtomic:
    def test_write_then_read(self, tmp_path: Path) -> None:
        target = tmp_path / "data.json"
        assert write_bytes_atomic(b"[1, 2]", target) == target
        assert read_bytes(target) == b"[1, 2]"

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        target = tmp_path / "deep" / "nested" / "file.json"
        write_bytes_atomic(b"{}", target)
        assert target.exists()

    def test_replaces_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "data.json"
        target.write_bytes(b"old")
        write_bytes_atomic(b"new", target)
        assert target.read_bytes() == b"new"

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        write_bytes_atomic(b"x", tmp_path / "a.json")
        assert [p.name for p in tmp_path.iterdir()] == ["a.json"]

    def test_failed_replace_keeps_original(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        target = tmp_path / "data.json"
        target.write_bytes(b"original")

        def boom(src, dst):
            raise OSError("replace failed")

        monkeypatch.setattr(os, "replace", boom)
        with pytest.raises(OSError):
            write_bytes_atomic(b"new", target)
        assert target.read_bytes() == b"original"
        assert [p.name for p in tmp_path.iterdir()] == ["data.json"]


class TestCopyFileAtomic:
    def test_copies_bytes(self, tmp_path: Path) -> None:
        src = tmp_path / "src.json"
        src.write_bytes(b"payload")
        dst = copy_file_atomic(src, tmp_path / "backup" / "dst.json")
        assert dst.read_bytes() == b"payload"

    def test_missing_source_raises(self, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            copy_file_atomic(tmp_path / "missing.json", tmp_path / "dst.json")
        assert not (tmp_path / "dst.json").exists()


class TestReadBytes:
    def test_missing_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            read_bytes(tmp_path / "nope.json")
