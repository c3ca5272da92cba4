"""Error taxonomy for feeder runs."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class FeederError(Exception):
    """Base feeder error."""

    message: str
    code: str = "feeder_error"

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class ConfigurationError(FeederError):
    """Required setting is missing or malformed; raised before any work starts."""

    code: str = "configuration"


@dataclass(slots=True)
class StoreConnectionError(FeederError):
    """Document store could not be reached."""

    code: str = "store_connection"


@dataclass(slots=True)
class SubmissionError(FeederError):
    """Downstream call failed for one item; the run continues."""

    code: str = "submission"
    status_code: int | None = None


@dataclass(slots=True)
class LedgerWriteError(FeederError):
    """Ledger entry could not be persisted; fatal to the run."""

    code: str = "ledger_write"
    item_id: str | None = None
