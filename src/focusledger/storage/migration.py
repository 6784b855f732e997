"""One-time copy of data files from legacy storage locations.

Earlier releases stored data under other application names.  On first
run every matching file is copied into the current data directory;
files that already exist there are never overwritten.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Sequence

from pydantic import BaseModel, Field

from focusledger.core.config import UserConfig
from focusledger.core.defaults import (
    ANALYSES_BACKUP_DIRNAME,
    ANALYSES_DIRNAME,
    EVENTS_BACKUP_FILENAME,
    EVENTS_FILENAME,
    SWITCHES_BACKUP_FILENAME,
    SWITCHES_FILENAME,
)
from focusledger.core.store import copy_file_atomic

logger = logging.getLogger(__name__)

LEGACY_MIGRATED_FLAG = "legacy_migrated"

_TOP_LEVEL_FILES: tuple[str, ...] = (
    EVENTS_FILENAME,
    EVENTS_BACKUP_FILENAME,
    SWITCHES_FILENAME,
    SWITCHES_BACKUP_FILENAME,
)
_ENTRY_DIRS: tuple[str, ...] = (ANALYSES_DIRNAME, ANALYSES_BACKUP_DIRNAME)


class MigrationReport(BaseModel):
    copied: list[str] = Field(default_factory=list, description="Target paths written.")
    skipped: list[str] = Field(default_factory=list, description="Targets that already existed.")
    failed: list[str] = Field(default_factory=list, description="Sources that could not be copied.")
    ran: bool = Field(default=True, description="False when the migration had already run.")


def migrate_legacy_files(
    legacy_dirs: Iterable[Path],
    target_dir: Path,
    pattern: str = "*.json",
    *,
    report: MigrationReport | None = None,
) -> MigrationReport:
    """Copy files matching *pattern* from each legacy dir into *target_dir*.

    The first legacy directory providing a file name wins; existing
    targets are left untouched.
    """
    report = report or MigrationReport()
    for legacy in legacy_dirs:
        legacy = Path(legacy)
        if not legacy.is_dir() or legacy.resolve() == Path(target_dir).resolve():
            continue
        for src in sorted(legacy.glob(pattern)):
            if not src.is_file() or src.name.startswith("."):
                continue
            dst = Path(target_dir) / src.name
            if dst.exists():
                report.skipped.append(str(dst))
                continue
            try:
                copy_file_atomic(src, dst)
            except OSError as exc:
                logger.warning("Failed to migrate %s: %s", src, exc)
                report.failed.append(str(src))
                continue
            logger.info("Migrated %s from %s", src.name, legacy)
            report.copied.append(str(dst))
    return report


def migrate_data_dir(legacy_roots: Sequence[Path], data_dir: Path) -> MigrationReport:
    """Migrate collection files and per-entry directories from *legacy_roots*."""
    report = MigrationReport()
    for root in legacy_roots:
        root = Path(root)
        if not root.is_dir():
            continue
        for name in _TOP_LEVEL_FILES:
            migrate_legacy_files([root], data_dir, name, report=report)
        for sub in _ENTRY_DIRS:
            migrate_legacy_files([root / sub], data_dir / sub, report=report)
    return report


def run_legacy_migration(
    config: UserConfig,
    data_dir: Path,
    legacy_roots: Sequence[Path] | None = None,
    *,
    force: bool = False,
) -> MigrationReport:
    """Run :func:`migrate_data_dir` once per install.

    Completion is recorded as the ``legacy_migrated`` flag in *config*;
    later calls return immediately unless *force* is set.
    """
    if config.get_flag(LEGACY_MIGRATED_FLAG) and not force:
        return MigrationReport(ran=False)

    if legacy_roots is None:
        from focusledger.storage.paths import legacy_data_dirs

        legacy_roots = legacy_data_dirs()

    report = migrate_data_dir(legacy_roots, data_dir)
    if not report.failed:
        config.set_flag(LEGACY_MIGRATED_FLAG)
    logger.info(
        "Legacy migration: %d copied, %d skipped, %d failed",
        len(report.copied), len(report.skipped), len(report.failed),
    )
    return report
