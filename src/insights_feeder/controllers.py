"""Controllers for feeder CLI commands."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from insights_feeder.config import Settings
from insights_feeder.driver import run_batch
from insights_feeder.http.inference_client import InferenceClient, InferenceClientConfig
from insights_feeder.models import BatchResult
from insights_feeder.pacing import FixedDelayPacing
from insights_feeder.reporting import ConsoleProgressReporter, ProgressReporter
from insights_feeder.selector import WorkSelector
from insights_feeder.storage import open_store


@dataclass(slots=True)
class RunCommand:
    """CLI inputs for the run command; ``None`` keeps the environment value."""

    batch_size: int | None = None
    item_delay_ms: int | None = None
    batch_delay_ms: int | None = None
    created_after: datetime | None = None
    skip_final_batch_pause: bool = False


@dataclass(slots=True)
class PendingCommand:
    """CLI inputs for the pending (dry run) command."""

    created_after: datetime | None = None
    limit: int = 20


@dataclass(slots=True)
class StatusCommand:
    """CLI inputs for the status command."""

    created_after: datetime | None = None


class FeederCliController:
    """Coordinates feeder command execution."""

    def __init__(self, settings_loader: Callable[[], Settings] = Settings.from_env) -> None:
        self._settings_loader = settings_loader

    def run(self, command: RunCommand, emit: Callable[[str], None]) -> BatchResult:
        """Process all pending documents, emitting progress lines as the run goes."""

        settings = self._settings(command.created_after)
        if command.batch_size is not None:
            settings.batch.batch_size = command.batch_size
        if command.item_delay_ms is not None:
            settings.batch.item_delay_ms = command.item_delay_ms
        if command.batch_delay_ms is not None:
            settings.batch.batch_delay_ms = command.batch_delay_ms
        settings.validate()

        reporter: ProgressReporter = ConsoleProgressReporter(emit)
        emit("Starting insights feeder")
        with open_store(settings.store) as store:
            reporter.connected(store.name)
            try:
                store.ledger.ensure_indexes()
                with InferenceClient(_client_config(settings)) as client:
                    return run_batch(
                        selector=WorkSelector(source=store.source, ledger=store.ledger),
                        ledger=store.ledger,
                        client=client,
                        pacing=FixedDelayPacing(
                            item_delay_ms=settings.batch.item_delay_ms,
                            batch_delay_ms=settings.batch.batch_delay_ms,
                        ),
                        cutoff=settings.batch.created_after,
                        batch_size=settings.batch.batch_size,
                        reporter=reporter,
                        skip_final_batch_pause=command.skip_final_batch_pause,
                    )
            finally:
                reporter.disconnected(store.name)

    def pending(self, command: PendingCommand) -> list[str]:
        settings = self._settings(command.created_after)
        settings.validate_for_store()
        cutoff = settings.batch.created_after
        with open_store(settings.store) as store:
            pending = WorkSelector(source=store.source, ledger=store.ledger).select_pending(cutoff)

        lines = [f"Pending documents created at or after {cutoff.isoformat()}: {len(pending)}"]
        for item in pending[: command.limit]:
            lines.append(
                f"  {item.id} payload={item.payload.kind.value} chars={len(item.payload.text)}",
            )
        if len(pending) > command.limit:
            lines.append(f"  ... and {len(pending) - command.limit} more")
        return lines

    def status(self, command: StatusCommand) -> list[str]:
        settings = self._settings(command.created_after)
        settings.validate_for_store()
        cutoff = settings.batch.created_after
        with open_store(settings.store) as store:
            selector = WorkSelector(source=store.source, ledger=store.ledger)
            eligible = selector.count_eligible(cutoff)
            processed = store.ledger.count()
            pending = len(selector.select_pending(cutoff))

        return [
            f"Store: {store.name}",
            f"Cutoff: {cutoff.isoformat()}",
            f"Eligible: {eligible}",
            f"Processed (ledger): {processed}",
            f"Pending: {pending}",
        ]

    def _settings(self, created_after: datetime | None) -> Settings:
        settings = self._settings_loader()
        if created_after is not None:
            settings.batch.created_after = created_after
        return settings


def _client_config(settings: Settings) -> InferenceClientConfig:
    return InferenceClientConfig(
        base_url=settings.inference.api_url,
        assistant_id=settings.inference.assistant_id,
        api_key=settings.inference.api_key,
        timeout_seconds=settings.inference.request_timeout_seconds,
    )
