"""Runtime thresholds and user-level configuration persistence.

:class:`MonitorSettings` carries every tunable of the ingestion pipeline.
:class:`UserConfig` stores per-install settings as a JSON file inside the
data directory.  The file is created on first access with an
auto-generated ``install_id`` (UUID) that never changes.

Typical location::

    <data_dir>/config.json

Usage::

    from focusledger.core.config import UserConfig

    cfg = UserConfig(data_dir)
    cfg.install_id              # stable UUID, auto-generated on first run
    cfg.settings                # MonitorSettings with overrides applied
    cfg.update({"session_threshold_seconds": 600})
"""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from focusledger.core.defaults import (
    DEFAULT_BACKUP_RETENTION_DAYS,
    DEFAULT_BACKUP_SWEEP_INTERVAL_SECONDS,
    DEFAULT_CLEANUP_INTERVAL_SECONDS,
    DEFAULT_FOCUS_THRESHOLD_SECONDS,
    DEFAULT_FOCUS_TIME_ESTIMATE_SECONDS,
    DEFAULT_MAX_BACKUPS_PER_ENTRY,
    DEFAULT_MAX_SESSION_DURATION_SECONDS,
    DEFAULT_MEANINGFUL_THRESHOLD_SECONDS,
    DEFAULT_RAPID_WINDOW_SECONDS,
    DEFAULT_RETENTION_DAYS,
    DEFAULT_SAVE_DEBOUNCE_SECONDS,
    DEFAULT_SESSION_THRESHOLD_SECONDS,
    DEFAULT_SETTLE_DELAY_SECONDS,
    DEFAULT_SMART_WINDOW_SECONDS,
    MAX_IN_MEMORY_EVENTS,
    MAX_IN_MEMORY_SWITCHES,
    MIN_FREE_BYTES,
)
from focusledger.core.store import write_bytes_atomic

logger = logging.getLogger(__name__)

_CONFIG_FILENAME = "config.json"
_RESERVED_KEYS = ("install_id", "settings", "flags")


class MonitorSettings(BaseModel, frozen=True):
    """Tunables for debouncing, sessions, classification, and storage."""

    smart_window_seconds: float = Field(default=DEFAULT_SMART_WINDOW_SECONDS, gt=0)
    settle_delay_seconds: float = Field(default=DEFAULT_SETTLE_DELAY_SECONDS, ge=0)
    session_threshold_seconds: float = Field(default=DEFAULT_SESSION_THRESHOLD_SECONDS, gt=0)
    max_session_duration_seconds: float = Field(default=DEFAULT_MAX_SESSION_DURATION_SECONDS, gt=0)
    rapid_window_seconds: float = Field(default=DEFAULT_RAPID_WINDOW_SECONDS, ge=0)
    meaningful_threshold_seconds: float = Field(default=DEFAULT_MEANINGFUL_THRESHOLD_SECONDS, ge=0)
    focus_threshold_seconds: float = Field(default=DEFAULT_FOCUS_THRESHOLD_SECONDS, ge=0)
    focus_time_estimate_seconds: float = Field(default=DEFAULT_FOCUS_TIME_ESTIMATE_SECONDS, ge=0)
    save_debounce_seconds: float = Field(default=DEFAULT_SAVE_DEBOUNCE_SECONDS, ge=0)
    retention_days: int = Field(default=DEFAULT_RETENTION_DAYS, ge=1)
    max_in_memory_events: int = Field(default=MAX_IN_MEMORY_EVENTS, ge=1)
    max_in_memory_switches: int = Field(default=MAX_IN_MEMORY_SWITCHES, ge=1)
    cleanup_interval_seconds: float = Field(default=DEFAULT_CLEANUP_INTERVAL_SECONDS, gt=0)
    min_free_bytes: int = Field(default=MIN_FREE_BYTES, ge=0)
    max_backups_per_entry: int = Field(default=DEFAULT_MAX_BACKUPS_PER_ENTRY, ge=1)
    backup_retention_days: int = Field(default=DEFAULT_BACKUP_RETENTION_DAYS, ge=1)
    backup_sweep_interval_seconds: float = Field(default=DEFAULT_BACKUP_SWEEP_INTERVAL_SECONDS, gt=0)


class UserConfig:
    """Read/write access to ``config.json`` in a data directory.

    On first instantiation (no config file yet) a random UUID
    ``install_id`` is generated and persisted.

    ``settings`` holds overrides for :class:`MonitorSettings`; unknown
    keys are rejected by :meth:`update`.  ``flags`` holds one-time
    markers such as ``legacy_migrated``.

    All mutations are persisted immediately.  The file is plain JSON so
    it can be hand-edited when the CLI is not available.
    """

    def __init__(self, data_dir: Path | str) -> None:
        self._path = Path(data_dir) / _CONFIG_FILENAME
        self._data: dict[str, Any] = self._load()
        self._ensure_install_id()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        if self._path.exists():
            try:
                data = json.loads(self._path.read_text("utf-8"))
                if isinstance(data, dict):
                    return data
                logger.warning("Config at %s is not an object; using defaults", self._path)
            except (json.JSONDecodeError, OSError):
                logger.warning("Corrupt config at %s; using defaults", self._path)
        return {}

    def _ensure_install_id(self) -> None:
        if "install_id" not in self._data:
            self._data["install_id"] = str(uuid.uuid4())
            self._persist()

    def _persist(self) -> None:
        payload = (json.dumps(self._data, indent=2, sort_keys=True) + "\n").encode("utf-8")
        write_bytes_atomic(payload, self._path)

    # -- install_id (stable, read-only after creation) --------------------------

    @property
    def install_id(self) -> str:
        return self._data["install_id"]

    # -- settings ---------------------------------------------------------------

    @property
    def settings(self) -> MonitorSettings:
        overrides = self._data.get("settings") or {}
        try:
            return MonitorSettings.model_validate(overrides)
        except ValueError:
            logger.warning("Invalid settings overrides in %s; using defaults", self._path)
            return MonitorSettings()

    def update(self, patch: dict[str, Any]) -> MonitorSettings:
        """Merge *patch* into the settings overrides and persist.

        Raises:
            KeyError: If *patch* names a setting that does not exist.
            pydantic.ValidationError: If a value is out of range.
        """
        unknown = set(patch) - set(MonitorSettings.model_fields)
        if unknown:
            raise KeyError(f"Unknown setting(s): {sorted(unknown)}")
        merged = {**(self._data.get("settings") or {}), **patch}
        validated = MonitorSettings.model_validate(merged)
        self._data["settings"] = {k: getattr(validated, k) for k in merged}
        self._persist()
        return validated

    # -- one-time flags ---------------------------------------------------------

    def get_flag(self, name: str) -> bool:
        return bool((self._data.get("flags") or {}).get(name, False))

    def set_flag(self, name: str, value: bool = True) -> None:
        flags = dict(self._data.get("flags") or {})
        flags[name] = value
        self._data["flags"] = flags
        self._persist()

    def as_dict(self) -> dict[str, Any]:
        return {
            "install_id": self.install_id,
            "settings": self.settings.model_dump(),
            "flags": dict(self._data.get("flags") or {}),
            **{k: v for k, v in self._data.items() if k not in _RESERVED_KEYS},
        }
