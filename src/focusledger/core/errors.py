"""Storage error taxonomy and the explicit result type returned by stores.

Every failure a store can hit maps onto one :class:`StoreError` subclass.
Store operations never raise past their caller: the background worker
captures the error in a :class:`StoreResult` and reports a
:class:`StoreErrorEvent` to the configured error sink.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ErrorKind(StrEnum):
    """Tag carried by every store error and error event."""

    validation = "validation"
    corruption = "corruption"
    capacity = "capacity"
    backup = "backup"
    recovery = "recovery"


class StoreError(Exception):
    """Base class for all durable-store failures."""

    kind: ErrorKind = ErrorKind.corruption

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(StoreError):
    """Schema or semantic violation; raised before any disk state changes."""

    kind = ErrorKind.validation


class CorruptionError(StoreError):
    """Decode, read, or post-write verification failure."""

    kind = ErrorKind.corruption


class CapacityError(StoreError):
    """Free disk space is below the configured floor."""

    kind = ErrorKind.capacity


class BackupError(StoreError):
    """Copying the current file to its backup location failed."""

    kind = ErrorKind.backup


class RecoveryError(StoreError):
    """Both the primary file and every backup were unusable."""

    kind = ErrorKind.recovery


class StoreErrorEvent(BaseModel, frozen=True):
    """One entry on the error/status feed consumed by presentation layers."""

    kind: ErrorKind = Field(description="Error category.")
    message: str = Field(description="Human-readable description.")
    collection: str = Field(description="Name of the store that failed.")
    timestamp: datetime = Field(description="When the failure was observed (UTC).")

    def as_bus_event(self) -> dict[str, str]:
        return {
            "type": "store_error",
            "kind": self.kind.value,
            "message": self.message,
            "collection": self.collection,
            "timestamp": self.timestamp.isoformat(),
        }


LoadSource = Literal["primary", "backup", "empty", "none"]


@dataclass(frozen=True)
class StoreResult(Generic[T]):
    """Outcome of a store operation.

    ``value`` is always usable: on a failed load it is the empty
    collection, on a failed save it is ``0``.  ``source`` records where
    loaded data came from (``"none"`` for non-load operations).
    """

    value: T
    error: StoreError | None = None
    source: LoadSource = "none"

    @property
    def ok(self) -> bool:
        return self.error is None
