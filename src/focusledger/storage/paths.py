"""Helpers for locating the data directory and the files inside it."""

from __future__ import annotations

from pathlib import Path

from platformdirs import PlatformDirs

from focusledger.core.defaults import (
    ANALYSES_BACKUP_DIRNAME,
    ANALYSES_DIRNAME,
    APP_AUTHOR,
    APP_NAME,
    EVENTS_BACKUP_FILENAME,
    EVENTS_FILENAME,
    LEGACY_APP_NAMES,
    SWITCHES_BACKUP_FILENAME,
    SWITCHES_FILENAME,
)


def get_data_dir() -> Path:
    """Return the base directory for persistent data, creating it if needed."""
    dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=True)
    path = Path(dirs.user_data_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def legacy_data_dirs() -> list[Path]:
    """Per-user data directories used by earlier releases under other names."""
    dirs: list[Path] = []
    for name in LEGACY_APP_NAMES:
        path = Path(PlatformDirs(appname=name, appauthor=False, roaming=True).user_data_path)
        if path not in dirs:
            dirs.append(path)
    return dirs


class DataLayout:
    """File locations under one data directory."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    @property
    def events(self) -> Path:
        return self.root / EVENTS_FILENAME

    @property
    def events_backup(self) -> Path:
        return self.root / EVENTS_BACKUP_FILENAME

    @property
    def switches(self) -> Path:
        return self.root / SWITCHES_FILENAME

    @property
    def switches_backup(self) -> Path:
        return self.root / SWITCHES_BACKUP_FILENAME

    @property
    def analyses(self) -> Path:
        return self.root / ANALYSES_DIRNAME

    @property
    def analyses_backup(self) -> Path:
        return self.root / ANALYSES_BACKUP_DIRNAME
