"""Atomic file I/O primitives shared by every durable store."""

from __future__ import annotations

import contextlib
import os
import shutil
import tempfile
from pathlib import Path


def write_bytes_atomic(payload: bytes, path: Path) -> Path:
    """Write *payload* to *path* atomically.

    Writes to a temporary file in the same directory first, flushes it to
    disk, then atomically replaces the target via :func:`os.replace`.  This
    prevents readers from ever seeing a partially-written file.

    Args:
        payload: Serialized bytes to persist.
        path: Destination file path.

    Returns:
        The *path* that was written, for convenient chaining.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(payload)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp)
        raise
    return path


def copy_file_atomic(src: Path, dst: Path) -> Path:
    """Copy *src* over *dst* without ever exposing a half-written *dst*."""
    dst.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=dst.parent, prefix=f".{dst.name}.", suffix=".tmp")
    os.close(fd)
    try:
        shutil.copyfile(src, tmp)
        os.replace(tmp, dst)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp)
        raise
    return dst


def read_bytes(path: Path) -> bytes:
    """Read the full contents of *path*.

    Raises:
        FileNotFoundError: If *path* does not exist.
    """
    return path.read_bytes()
