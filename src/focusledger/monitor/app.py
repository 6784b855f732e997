"""Application root wiring the ingestion pipeline to the repository.

Raw focus signals flow::

    on_focus_signal -> FocusDebouncer -> SessionManager -> ActivityRepository
                                                        -> switch re-synthesis
                                                        -> EnrichmentQueue

All collaborators are constructor-injected; :func:`build_monitor` wires
the default set for a data directory.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, Sequence

from focusledger.core.config import MonitorSettings, UserConfig
from focusledger.core.defaults import UNKNOWN_APP_NAME
from focusledger.core.events import EventBus
from focusledger.core.periodic import PeriodicTask
from focusledger.core.time import ensure_utc, utc_now
from focusledger.core.types import ActivationEvent, ContextSwitch, EventMetadata, Session
from focusledger.pipeline.categories import CategoryResolver, StaticCategoryResolver
from focusledger.pipeline.classify import ProcessedEvent, classify_events
from focusledger.pipeline.debounce import FocusDebouncer, FocusSignal, TimerFactory
from focusledger.pipeline.productivity import ProductivityMetrics, compute_productivity_metrics
from focusledger.pipeline.sessions import SessionManager
from focusledger.pipeline.synthesize import synthesize_context_switches
from focusledger.monitor.enrichment import EnrichmentQueue, MetadataResolver
from focusledger.monitor.repository import ActivityRepository
from focusledger.storage.collection import CollectionStore
from focusledger.storage.migration import run_legacy_migration
from focusledger.storage.paths import DataLayout
from focusledger.storage.worker import ErrorSink

logger = logging.getLogger(__name__)


class ActivityMonitor:
    """Turns focus signals into persisted events, sessions, and switches.

    Args:
        repository: Owner of the event and switch collections.
        settings: Pipeline thresholds.
        categories: App-to-category lookup; built-in map if omitted.
        event_bus: Receives ``activation`` and ``metadata`` status events.
        resolvers: Metadata resolvers run for every new activation.
        timer_factory: Debouncer settle timer; ``None`` for replay.
        clock: Current-time source for cleanup and default timestamps.
    """

    def __init__(
        self,
        repository: ActivityRepository,
        *,
        settings: MonitorSettings | None = None,
        categories: CategoryResolver | None = None,
        event_bus: EventBus | None = None,
        resolvers: Sequence[MetadataResolver] = (),
        timer_factory: TimerFactory | None = threading.Timer,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings or MonitorSettings()
        self._repository = repository
        self._categories = categories or StaticCategoryResolver()
        self._event_bus = event_bus
        self._clock = clock or utc_now
        self._lock = threading.RLock()
        self._sessions = SessionManager(
            session_threshold_seconds=self._settings.session_threshold_seconds,
            max_session_duration_seconds=self._settings.max_session_duration_seconds,
        )
        self._debouncer = FocusDebouncer(
            self._on_activation,
            smart_window_seconds=self._settings.smart_window_seconds,
            settle_delay_seconds=self._settings.settle_delay_seconds,
            timer_factory=timer_factory,
        )
        self._enrichment = (
            EnrichmentQueue(resolvers, self.attach_metadata) if resolvers else None
        )
        self._cleanup = PeriodicTask(
            self.cleanup, self._settings.cleanup_interval_seconds, name="activity-cleanup",
        )

    @property
    def repository(self) -> ActivityRepository:
        return self._repository

    @property
    def settings(self) -> MonitorSettings:
        return self._settings

    @property
    def current_session(self) -> Session | None:
        return self._sessions.current

    # -- lifecycle --------------------------------------------------------------

    def start(self, *, background_cleanup: bool = True) -> None:
        """Load persisted data, resume the latest session, and start cleanup."""
        events_f, switches_f = self._repository.load()
        events_f.result()
        switches_f.result()
        self._resume_session()
        self.cleanup()
        if background_cleanup:
            self._cleanup.start()

    def _resume_session(self) -> None:
        last = self._repository.last_event()
        if last is None or last.session_id is None or last.is_session_end:
            return
        start = last.session_start_time or last.timestamp
        self._sessions.resume(
            Session(id=last.session_id, start_time=start, switch_count=last.session_switch_count),
            last.timestamp,
        )
        logger.debug("Resumed session %s", last.session_id)

    def shutdown(self) -> None:
        """Force-flush the pending activation, persist everything, stop workers."""
        self._debouncer.close(force_flush=True)
        self._cleanup.stop()
        if self._enrichment is not None:
            self._enrichment.close(wait=True)
        self._repository.close()

    def cleanup(self) -> tuple[int, int]:
        """Prune in-memory history past retention."""
        return self._repository.prune(self._clock())

    # -- ingestion --------------------------------------------------------------

    def on_focus_signal(
        self,
        app_id: str,
        app_name: str | None = None,
        timestamp: datetime | None = None,
    ) -> None:
        """Entry point for the host focus-change feed."""
        self._debouncer.on_focus_signal(
            app_id,
            app_name or UNKNOWN_APP_NAME,
            ensure_utc(timestamp) if timestamp is not None else self._clock(),
        )

    def flush_pending(self) -> None:
        """Emit the debounced activation now instead of waiting for the timer."""
        self._debouncer.flush()

    def _on_activation(self, signal: FocusSignal) -> None:
        with self._lock:
            assignment = self._sessions.assign(signal.timestamp)
            if assignment.closed is not None and assignment.closed.end_time is not None:
                terminal = self._repository.last_event(assignment.closed.id)
                if terminal is not None:
                    self._repository.mark_session_end(terminal.id, assignment.closed.end_time)

            event = ActivationEvent(
                timestamp=signal.timestamp,
                app_id=signal.app_id,
                app_name=signal.app_name,
                category=self._categories.resolve(signal.app_id),
                session_id=assignment.session_id,
                session_start_time=assignment.session_start_time,
                is_session_start=assignment.is_session_start,
                session_switch_count=assignment.switch_count,
            )
            self._repository.append_event(event)
            self.rebuild_context_switches()

        logger.debug("Activation %s (%s)", event.app_id, event.category)
        if self._event_bus is not None:
            self._event_bus.publish_threadsafe({
                "type": "activation",
                "event_id": event.id,
                "app_id": event.app_id,
                "app_name": event.app_name,
                "category": event.category,
                "session_id": event.session_id,
                "timestamp": event.timestamp.isoformat(),
            })
        if self._enrichment is not None:
            self._enrichment.submit(event)

    def attach_metadata(self, event_id: str, metadata: EventMetadata) -> bool:
        """Patch an already-stored event with enrichment data."""
        patched = self._repository.attach_metadata(event_id, metadata)
        if patched and self._event_bus is not None:
            self._event_bus.publish_threadsafe({"type": "metadata", "event_id": event_id})
        return patched

    # -- derived views ----------------------------------------------------------

    def processed_events(
        self,
        events: Sequence[ActivationEvent] | None = None,
    ) -> list[ProcessedEvent]:
        s = self._settings
        return classify_events(
            self._repository.events() if events is None else events,
            rapid_window_seconds=s.rapid_window_seconds,
            meaningful_threshold_seconds=s.meaningful_threshold_seconds,
            focus_threshold_seconds=s.focus_threshold_seconds,
        )

    def rebuild_context_switches(self) -> list[ContextSwitch]:
        """Re-synthesize switches over the in-memory events.

        Switches at or before the oldest in-memory event came from events
        that have since been pruned and are kept unchanged.
        """
        with self._lock:
            events = self._repository.events()
            if not events:
                return list(self._repository.switches())
            fresh = synthesize_context_switches(self.processed_events(events))
            fresh_ids = {s.id for s in fresh}
            cutoff = events[0].timestamp
            kept = [
                s for s in self._repository.switches()
                if s.timestamp <= cutoff and s.id not in fresh_ids
            ]
            merged = kept + fresh
            self._repository.replace_switches(merged)
            return merged

    def productivity_metrics(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> ProductivityMetrics:
        """Metrics over events in ``[start, end)``; unbounded sides if omitted."""
        events = [
            e for e in self._repository.events()
            if (start is None or e.timestamp >= ensure_utc(start))
            and (end is None or e.timestamp < ensure_utc(end))
        ]
        return compute_productivity_metrics(
            self.processed_events(events),
            focus_time_estimate_seconds=self._settings.focus_time_estimate_seconds,
        )


def open_repository(
    data_dir: Path,
    *,
    settings: MonitorSettings | None = None,
    error_sink: ErrorSink | None = None,
    timer_factory: TimerFactory | None = threading.Timer,
    autosave: bool = True,
    clock: Callable[[], datetime] | None = None,
) -> ActivityRepository:
    """Repository over the standard collection files in *data_dir*."""
    settings = settings or MonitorSettings()
    layout = DataLayout(data_dir)
    common = {"min_free_bytes": settings.min_free_bytes, "error_sink": error_sink, "clock": clock}
    event_store = CollectionStore(
        layout.events, ActivationEvent, name="events",
        backup_path=layout.events_backup, verify_writes=True, **common,
    )
    switch_store = CollectionStore(
        layout.switches, ContextSwitch, name="switches",
        backup_path=layout.switches_backup, **common,
    )
    return ActivityRepository(
        event_store, switch_store,
        settings=settings, timer_factory=timer_factory, autosave=autosave, clock=clock,
    )


def build_monitor(
    data_dir: Path,
    *,
    settings: MonitorSettings | None = None,
    event_bus: EventBus | None = None,
    categories: CategoryResolver | None = None,
    resolvers: Sequence[MetadataResolver] = (),
    timer_factory: TimerFactory | None = threading.Timer,
    autosave: bool = True,
    clock: Callable[[], datetime] | None = None,
    legacy_roots: Sequence[Path] | None = None,
) -> ActivityMonitor:
    """Wire an :class:`ActivityMonitor` with default stores under *data_dir*.

    On first run data files from *legacy_roots* (the per-user directories of
    earlier releases if ``None``) are copied in before anything is loaded.
    Store errors are forwarded to *event_bus* when one is given.
    """
    settings = settings or MonitorSettings()
    run_legacy_migration(UserConfig(data_dir), data_dir, legacy_roots)
    repository = open_repository(
        data_dir,
        settings=settings,
        error_sink=event_bus.report_store_error if event_bus is not None else None,
        timer_factory=timer_factory,
        autosave=autosave,
        clock=clock,
    )
    return ActivityMonitor(
        repository,
        settings=settings,
        categories=categories,
        event_bus=event_bus,
        resolvers=resolvers,
        timer_factory=timer_factory,
        clock=clock,
    )
