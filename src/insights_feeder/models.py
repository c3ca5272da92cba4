"""Domain models for selection, dispatch and ledger bookkeeping."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class PayloadKind(str, Enum):
    """How an item's payload was derived from its source record."""

    RESPONSE_TEXT = "response_text"
    SERIALIZED_RECORD = "serialized_record"


class DriverState(str, Enum):
    """Lifecycle states of one batch driver run."""

    IDLE = "idle"
    SELECTING = "selecting"
    DISPATCHING = "dispatching"
    RECORDING = "recording"
    PACING = "pacing"
    BATCH_PACING = "batch_pacing"
    DONE = "done"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class ItemPayload:
    """Content submitted downstream for one source item."""

    kind: PayloadKind
    text: str


@dataclass(slots=True)
class SourceItem:
    """Document from the source collection, read-only for the feeder."""

    id: str
    key: object
    payload: ItemPayload
    created_at: datetime | None = None


@dataclass(slots=True, frozen=True)
class LedgerEntry:
    """Proof that the item with this id was accepted downstream."""

    id: str
    processed_at: datetime


@dataclass(slots=True, frozen=True)
class ItemFailure:
    """Failed submission detail for reporting."""

    id: str
    error: str


@dataclass(slots=True)
class BatchResult:
    """Aggregate outcome of one run. Not persisted."""

    success_count: int = 0
    fail_count: int = 0
    failures: list[ItemFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.success_count + self.fail_count


@dataclass(slots=True, frozen=True)
class RunReceipt:
    """Accepted downstream run."""

    status_code: int
    run_id: str | None = None
