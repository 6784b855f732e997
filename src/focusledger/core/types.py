"""Core data contracts: activation events, context switches, sessions, analyses."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import StrEnum
from typing import Final, Protocol, runtime_checkable

from pydantic import BaseModel, Field, field_validator, model_validator

from focusledger.core.defaults import (
    DEFAULT_CATEGORY,
    SWITCH_TYPE_NORMAL_MAX_SECONDS,
    SWITCH_TYPE_QUICK_MAX_SECONDS,
)
from focusledger.core.time import ensure_utc

_SWITCH_NAMESPACE: Final[uuid.UUID] = uuid.UUID("6f1c2a4e-9a0b-4d7e-8c3f-5b2d1e0a7c91")


def new_id() -> str:
    return str(uuid.uuid4())


def switch_id_for(from_event_id: str, to_event_id: str) -> str:
    """Deterministic context-switch id for a pair of endpoint events.

    Re-synthesising switches from the same stored events yields the same
    ids, so rebuilt collections never contain duplicates.
    """
    return str(uuid.uuid5(_SWITCH_NAMESPACE, f"{from_event_id}->{to_event_id}"))


@runtime_checkable
class TimestampedRecord(Protocol):
    """Anything a durable collection can hold: a unique id and a timestamp."""

    @property
    def id(self) -> str: ...
    @property
    def timestamp(self) -> datetime: ...


class SwitchType(StrEnum):
    """Persisted dwell label of a :class:`ContextSwitch`.

    Cutoffs come from ``SWITCH_TYPE_*`` in :mod:`focusledger.core.defaults`
    and are independent of the classifier thresholds.
    """

    quick = "quick"
    normal = "normal"
    focused = "focused"

    @classmethod
    def for_seconds(cls, seconds: float) -> SwitchType:
        if seconds < SWITCH_TYPE_QUICK_MAX_SECONDS:
            return cls.quick
        if seconds < SWITCH_TYPE_NORMAL_MAX_SECONDS:
            return cls.normal
        return cls.focused


class EventMetadata(BaseModel, frozen=True):
    """Optional enrichment attached after an event has been persisted."""

    tab_title: str | None = Field(default=None, description="Browser tab title.")
    tab_url: str | None = Field(default=None, description="Browser tab URL.")
    site_domain: str | None = Field(default=None, description="Domain of tab_url.")
    icon_ref: str | None = Field(default=None, description="Opaque reference to a cached icon.")

    def is_empty(self) -> bool:
        return all(v is None for v in self.model_dump().values())


class ActivationEvent(BaseModel, frozen=True):
    """One logical activation: an application became foreground-focused.

    Session fields are assigned by the session manager at ingestion time.
    Only the enrichment fields (``tab_*``, ``site_domain``, ``icon_ref``)
    and the session-end marker change after creation.
    """

    id: str = Field(default_factory=new_id, description="Unique event id (UUID).")
    timestamp: datetime = Field(description="Activation time (UTC).")
    app_id: str = Field(description="Application identifier, e.g. 'com.apple.Terminal'.")
    app_name: str = Field(description="Display name of the application.")
    category: str = Field(default=DEFAULT_CATEGORY, description="Resolved category name.")

    # -- session --
    session_id: str | None = Field(default=None, description="Owning session id.")
    session_start_time: datetime | None = Field(default=None, description="Start of the owning session.")
    session_end_time: datetime | None = Field(default=None, description="Set on the terminal event of a closed session.")
    is_session_start: bool = Field(default=False, description="True for the first event of a session.")
    is_session_end: bool = Field(default=False, description="True for the last event of a closed session.")
    session_switch_count: int = Field(default=1, ge=1, description="Running activation count within the session.")

    # -- enrichment --
    tab_title: str | None = Field(default=None, description="Browser tab title, when resolved.")
    tab_url: str | None = Field(default=None, description="Browser tab URL, when resolved.")
    site_domain: str | None = Field(default=None, description="Domain of tab_url.")
    icon_ref: str | None = Field(default=None, description="Opaque icon reference.")

    @field_validator("timestamp", "session_start_time", "session_end_time")
    @classmethod
    def _to_utc(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v) if v is not None else None

    def with_metadata(self, metadata: EventMetadata) -> ActivationEvent:
        """Return a copy with every non-``None`` field of *metadata* applied."""
        patch = {k: v for k, v in metadata.model_dump().items() if v is not None}
        return self.model_copy(update=patch)

    def mark_session_end(self, end_time: datetime) -> ActivationEvent:
        return self.model_copy(
            update={"is_session_end": True, "session_end_time": ensure_utc(end_time)}
        )


class ContextSwitch(BaseModel, frozen=True):
    """A transition between two foreground applications.

    Created only by the synthesizer; immutable once created.
    """

    id: str = Field(default_factory=new_id, description="Unique switch id.")
    from_app_id: str = Field(description="Application left.")
    to_app_id: str = Field(description="Application entered.")
    from_app_name: str = Field(description="Display name of the application left.")
    to_app_name: str = Field(description="Display name of the application entered.")
    timestamp: datetime = Field(description="When the destination app was activated (UTC).")
    time_spent: float = Field(ge=0.0, description="Seconds spent before switching away.")
    switch_type: SwitchType = Field(description="Dwell label derived from time_spent.")
    from_category: str = Field(default=DEFAULT_CATEGORY, description="Category of the source app.")
    to_category: str = Field(default=DEFAULT_CATEGORY, description="Category of the destination app.")
    session_id: str | None = Field(default=None, description="Session of the destination event.")

    @field_validator("timestamp")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @model_validator(mode="after")
    def _check_endpoints(self) -> ContextSwitch:
        if self.from_app_id == self.to_app_id:
            raise ValueError(
                f"from_app_id and to_app_id must differ (both {self.from_app_id!r})"
            )
        return self

    @classmethod
    def between(
        cls,
        source: ActivationEvent,
        destination: ActivationEvent,
        time_spent: float,
    ) -> ContextSwitch:
        """Build the switch from *source* to *destination*."""
        spent = max(0.0, time_spent)
        return cls(
            id=switch_id_for(source.id, destination.id),
            from_app_id=source.app_id,
            to_app_id=destination.app_id,
            from_app_name=source.app_name,
            to_app_name=destination.app_name,
            timestamp=destination.timestamp,
            time_spent=spent,
            switch_type=SwitchType.for_seconds(spent),
            from_category=source.category,
            to_category=destination.category,
            session_id=destination.session_id,
        )


class Session(BaseModel, frozen=True):
    """A bounded run of activations."""

    id: str = Field(default_factory=new_id, description="Unique session id.")
    start_time: datetime = Field(description="First activation of the session (UTC).")
    end_time: datetime | None = Field(default=None, description="Last activation, once closed.")
    switch_count: int = Field(default=1, ge=1, description="Activations so far.")

    @property
    def is_open(self) -> bool:
        return self.end_time is None


class AnalysisDataContext(BaseModel, frozen=True):
    """Summary of the data an analysis was computed from."""

    total_events: int
    unique_apps: int = Field(ge=0)
    context_switches: int = Field(ge=0)
    time_span_days: int = Field(ge=0)
    categories_analyzed: list[str] = Field(default_factory=list)
    most_active_category: str | None = None
    analysis_start_date: datetime
    analysis_end_date: datetime

    @field_validator("analysis_start_date", "analysis_end_date")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class AnalysisEntry(BaseModel, frozen=True):
    """A stored insight report; one file per entry in the entry store."""

    id: str = Field(default_factory=new_id)
    timestamp: datetime
    insights: str = Field(description="Generated insight text.")
    data_points: int = Field(description="Number of records analysed.")
    analysis_type: str = Field(default="workstyle")
    time_range_analyzed: str = Field(description="E.g. 'Today', 'Last 7 days'.")
    token_count: int | None = None
    api_model: str | None = None
    analysis_version: str = "1.0"
    data_context: AnalysisDataContext

    @field_validator("timestamp")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def file_name(self) -> str:
        stamp = self.timestamp.strftime("%Y-%m-%d_%H-%M-%S")
        return f"{stamp}_{self.analysis_type}_{self.id[:8]}.json"
