"""Centralised default constants for focusledger.

Every project-wide magic number / string lives here.
Import these instead of hard-coding values in function signatures or CLI options.
"""

from __future__ import annotations

from typing import Final

# ── Debouncing ──
DEFAULT_SMART_WINDOW_SECONDS: Final[float] = 8.0
DEFAULT_SETTLE_DELAY_SECONDS: Final[float] = 0.5

# ── Sessions ──
DEFAULT_SESSION_THRESHOLD_SECONDS: Final[float] = 300.0
DEFAULT_MAX_SESSION_DURATION_SECONDS: Final[float] = 3600.0

# ── Smart switch classification ──
DEFAULT_RAPID_WINDOW_SECONDS: Final[float] = 8.0
DEFAULT_MEANINGFUL_THRESHOLD_SECONDS: Final[float] = 10.0
DEFAULT_FOCUS_THRESHOLD_SECONDS: Final[float] = 120.0
DEFAULT_FOCUS_TIME_ESTIMATE_SECONDS: Final[float] = 120.0

# ── Persisted switch-type labels (independent of the classifier) ──
SWITCH_TYPE_QUICK_MAX_SECONDS: Final[float] = 10.0
SWITCH_TYPE_NORMAL_MAX_SECONDS: Final[float] = 120.0

# ── Productivity score ──
FOCUS_WEIGHT: Final[float] = 3.0
MEANINGFUL_WEIGHT: Final[float] = 1.0
QUICK_WEIGHT: Final[float] = 0.5
RAPID_WEIGHT: Final[float] = -1.0
EMPTY_WINDOW_SCORE: Final[float] = 100.0

# ── Categories ──
DEFAULT_CATEGORY: Final[str] = "Other"
UNKNOWN_APP_NAME: Final[str] = "Unknown"

# ── Storage ──
APP_NAME: Final[str] = "focusledger"
APP_AUTHOR: Final[str] = "focusledger"
MIN_FREE_BYTES: Final[int] = 10 * 1024 * 1024
MAX_FUTURE_SKEW_SECONDS: Final[float] = 3600.0
EVENTS_FILENAME: Final[str] = "activity_events.json"
EVENTS_BACKUP_FILENAME: Final[str] = "activity_events.backup.json"
SWITCHES_FILENAME: Final[str] = "context_switches.json"
SWITCHES_BACKUP_FILENAME: Final[str] = "context_switches.backup.json"
ANALYSES_DIRNAME: Final[str] = "analyses"
ANALYSES_BACKUP_DIRNAME: Final[str] = "analyses_backup"
BACKUP_TIMESTAMP_FORMAT: Final[str] = "%Y-%m-%d_%H-%M-%S-%f"
DEFAULT_MAX_BACKUPS_PER_ENTRY: Final[int] = 3
DEFAULT_BACKUP_RETENTION_DAYS: Final[int] = 30
DEFAULT_BACKUP_SWEEP_INTERVAL_SECONDS: Final[float] = 24 * 60 * 60
LEGACY_APP_NAMES: Final[tuple[str, ...]] = (
    "FocusMonitor",
    "ConsciousMonitor",
    "focusmonitor",
)

# ── Repository / retention ──
DEFAULT_SAVE_DEBOUNCE_SECONDS: Final[float] = 0.5
DEFAULT_RETENTION_DAYS: Final[int] = 30
MAX_IN_MEMORY_EVENTS: Final[int] = 20_000
MAX_IN_MEMORY_SWITCHES: Final[int] = 10_000
DEFAULT_CLEANUP_INTERVAL_SECONDS: Final[float] = 300.0
DEFAULT_ENRICHMENT_WORKERS: Final[int] = 2

# ── Event bus ──
EVENT_BUS_QUEUE_SIZE: Final[int] = 256
