"""Runtime configuration for the feeder."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from urllib.parse import urlparse

from insights_feeder.errors import ConfigurationError

DEFAULT_ASSISTANT_ID = "insights-agent"
DEFAULT_BATCH_SIZE = 5
DEFAULT_ITEM_DELAY_MS = 1_000
DEFAULT_BATCH_DELAY_MS = 120_000
DEFAULT_CREATED_AFTER = datetime(2025, 11, 19, tzinfo=UTC)


@dataclass(slots=True)
class StoreSettings:
    """Document store connection settings."""

    uri: str = ""
    database: str = ""


@dataclass(slots=True)
class InferenceSettings:
    """Downstream insights agent settings."""

    api_url: str = ""
    api_key: str | None = None
    assistant_id: str = DEFAULT_ASSISTANT_ID
    request_timeout_seconds: float | None = None


@dataclass(slots=True)
class BatchSettings:
    """Batching and pacing settings."""

    batch_size: int = DEFAULT_BATCH_SIZE
    item_delay_ms: int = DEFAULT_ITEM_DELAY_MS
    batch_delay_ms: int = DEFAULT_BATCH_DELAY_MS
    created_after: datetime = DEFAULT_CREATED_AFTER


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    store: StoreSettings = field(default_factory=StoreSettings)
    inference: InferenceSettings = field(default_factory=InferenceSettings)
    batch: BatchSettings = field(default_factory=BatchSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from the environment; see ``validate`` for required values."""

        timeout_raw = os.getenv("INSIGHTS_REQUEST_TIMEOUT_SECONDS", "").strip()
        return cls(
            store=StoreSettings(
                uri=os.getenv("MONGODB_URI", "").strip(),
                database=os.getenv("MONGODB_DATABASE", "").strip(),
            ),
            inference=InferenceSettings(
                api_url=os.getenv("LANGGRAPH_INSIGHTS_API_URL", "").strip(),
                api_key=os.getenv("LANGSMITH_API_KEY", "").strip() or None,
                assistant_id=os.getenv("LANGGRAPH_INSIGHTS_AGENT_ASSISTANT_ID", "").strip()
                or DEFAULT_ASSISTANT_ID,
                request_timeout_seconds=(
                    _parse_float("INSIGHTS_REQUEST_TIMEOUT_SECONDS", timeout_raw)
                    if timeout_raw
                    else None
                ),
            ),
            batch=BatchSettings(
                batch_size=_env_int("BATCH_SIZE", DEFAULT_BATCH_SIZE),
                item_delay_ms=_env_int("DELAY_BETWEEN_REQUESTS_MS", DEFAULT_ITEM_DELAY_MS),
                batch_delay_ms=_env_int("DELAY_BETWEEN_BATCHES_MS", DEFAULT_BATCH_DELAY_MS),
                created_after=_env_datetime("INSIGHTS_CREATED_AFTER", DEFAULT_CREATED_AFTER),
            ),
        )

    def validate(self) -> None:
        """Raise ``ConfigurationError`` if required settings are missing or invalid."""

        _require(
            ("MONGODB_URI", self.store.uri),
            ("MONGODB_DATABASE", self.store.database),
            ("LANGGRAPH_INSIGHTS_API_URL", self.inference.api_url),
        )
        _validate_api_url(self.inference.api_url)
        if self.batch.batch_size <= 0:
            raise ConfigurationError("BATCH_SIZE must be a positive integer.")
        if self.batch.item_delay_ms < 0:
            raise ConfigurationError("DELAY_BETWEEN_REQUESTS_MS must be >= 0.")
        if self.batch.batch_delay_ms < 0:
            raise ConfigurationError("DELAY_BETWEEN_BATCHES_MS must be >= 0.")
        timeout = self.inference.request_timeout_seconds
        if timeout is not None and (not math.isfinite(timeout) or timeout <= 0):
            raise ConfigurationError(
                "INSIGHTS_REQUEST_TIMEOUT_SECONDS must be a finite number > 0.",
            )

    def validate_for_store(self) -> None:
        """Validate only what read-only store commands need."""

        _require(
            ("MONGODB_URI", self.store.uri),
            ("MONGODB_DATABASE", self.store.database),
        )


def parse_created_after(value: str, *, name: str = "INSIGHTS_CREATED_AFTER") -> datetime:
    """Parse an ISO date or datetime; naive values are taken as UTC."""

    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError as error:
        raise ConfigurationError(
            f"Invalid {name} value: {value!r}. Expected an ISO date or datetime.",
        ) from error
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


def _require(*pairs: tuple[str, str]) -> None:
    missing = [name for name, value in pairs if not value]
    if missing:
        raise ConfigurationError(
            "Missing required environment variables: "
            f"{', '.join(missing)}. Check your .env file.",
        )


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as error:
        raise ConfigurationError(f"Invalid integer value for {name}: {raw!r}") from error


def _env_datetime(name: str, default: datetime) -> datetime:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return parse_created_after(raw, name=name)


def _parse_float(name: str, raw: str) -> float:
    try:
        return float(raw)
    except ValueError as error:
        raise ConfigurationError(f"Invalid number for {name}: {raw!r}") from error


def _validate_api_url(value: str) -> None:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ConfigurationError(
            "Invalid LANGGRAPH_INSIGHTS_API_URL: "
            f"{value!r}. Expected an absolute URL with http:// or https:// scheme.",
        )
