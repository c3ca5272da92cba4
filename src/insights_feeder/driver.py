"""Batch driver: select pending items, submit each once, record successes."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Protocol, TypeVar

from insights_feeder.errors import SubmissionError
from insights_feeder.models import BatchResult, DriverState, ItemFailure, RunReceipt, SourceItem
from insights_feeder.pacing import PacingPolicy
from insights_feeder.reporting import NullProgressReporter, ProgressReporter
from insights_feeder.selector import WorkSelector
from insights_feeder.storage.base import LedgerStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Submitter(Protocol):
    """Anything that can submit one payload downstream."""

    def submit(self, payload: str) -> RunReceipt:
        raise NotImplementedError


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def partition_batches(items: Sequence[T], batch_size: int) -> list[list[T]]:
    """Split ``items`` into contiguous slices of ``batch_size`` (last may be shorter)."""

    if batch_size <= 0:
        raise ValueError("batch_size must be > 0")
    return [list(items[start : start + batch_size]) for start in range(0, len(items), batch_size)]


class BatchDriver:
    """Runs one sequential pass over the pending items.

    The pending set is selected once per run. Each item is submitted at most
    once per run; a successful submission is written to the ledger before the
    next item starts. ``SubmissionError`` is counted and skipped, any other
    error (including ``LedgerWriteError``) aborts the run.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        selector: WorkSelector,
        ledger: LedgerStore,
        client: Submitter,
        pacing: PacingPolicy,
        batch_size: int = 5,
        reporter: ProgressReporter | None = None,
        skip_final_batch_pause: bool = False,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        self.selector = selector
        self.ledger = ledger
        self.client = client
        self.pacing = pacing
        self.batch_size = batch_size
        self.reporter: ProgressReporter = reporter or NullProgressReporter()
        self.skip_final_batch_pause = skip_final_batch_pause
        self.clock = clock
        self.state = DriverState.IDLE

    def run(self, cutoff: datetime) -> BatchResult:
        try:
            return self._run(cutoff)
        except Exception:
            self.state = DriverState.FAILED
            raise

    def _run(self, cutoff: datetime) -> BatchResult:
        result = BatchResult()

        self.state = DriverState.SELECTING
        pending = self.selector.select_pending(cutoff)
        total = len(pending)
        self.reporter.pending_found(total)
        logger.info("Selected %d pending items created at or after %s", total, cutoff.isoformat())

        batches = partition_batches(pending, self.batch_size)
        done = 0
        for number, batch in enumerate(batches, start=1):
            self.reporter.batch_started(number, len(batches), len(batch))
            for item in batch:
                self._process_item(item, result)
                self.state = DriverState.PACING
                self.pacing.pause_between_items()
            done += len(batch)
            self.reporter.batch_finished(done, total)

            if number == len(batches) and self.skip_final_batch_pause:
                continue
            self.state = DriverState.BATCH_PACING
            self.pacing.pause_between_batches()

        self.state = DriverState.DONE
        self.reporter.run_finished(result)
        return result

    def _process_item(self, item: SourceItem, result: BatchResult) -> None:
        self.state = DriverState.DISPATCHING
        try:
            self.client.submit(item.payload.text)
        except SubmissionError as exc:
            result.fail_count += 1
            result.failures.append(ItemFailure(id=item.id, error=exc.message))
            logger.warning("Failed to process document %s: %s", item.id, exc.message)
            self.reporter.item_failed(item.id, exc.message)
            return

        self.state = DriverState.RECORDING
        self.ledger.mark_processed(item.key, self.clock())
        result.success_count += 1
        logger.debug("Recorded document %s as processed", item.id)
        self.reporter.item_succeeded(item.id)


def run_batch(  # noqa: PLR0913
    *,
    selector: WorkSelector,
    ledger: LedgerStore,
    client: Submitter,
    pacing: PacingPolicy,
    cutoff: datetime,
    batch_size: int = 5,
    reporter: ProgressReporter | None = None,
    skip_final_batch_pause: bool = False,
) -> BatchResult:
    """Run one feeder pass with provided dependencies."""

    return BatchDriver(
        selector=selector,
        ledger=ledger,
        client=client,
        pacing=pacing,
        batch_size=batch_size,
        reporter=reporter,
        skip_final_batch_pause=skip_final_batch_pause,
    ).run(cutoff)
