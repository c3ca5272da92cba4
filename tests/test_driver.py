from __future__ import annotations

from datetime import datetime

import allure
import pytest

from conftest import CUTOFF
from insights_feeder.driver import BatchDriver, partition_batches, run_batch
from insights_feeder.errors import LedgerWriteError, SubmissionError
from insights_feeder.models import BatchResult, DriverState, RunReceipt
from insights_feeder.selector import WorkSelector
from insights_feeder.storage.sql import SqlDocumentStore, SqlLedgerStore

pytestmark = [
    allure.epic("Feeder Run"),
    allure.feature("Batch Driver"),
]


class FakeClient:
    def __init__(self, failing: set[str] | None = None) -> None:
        self.failing = failing or set()
        self.payloads: list[str] = []

    def submit(self, payload: str) -> RunReceipt:
        self.payloads.append(payload)
        for document_id in self.failing:
            if payload == f"summary of {document_id}":
                raise SubmissionError("HTTP 503: unavailable", status_code=503)
        return RunReceipt(status_code=200, run_id=f"run-{len(self.payloads)}")


class RecordingPacing:
    def __init__(self) -> None:
        self.events: list[str] = []

    @property
    def item_pauses(self) -> int:
        return self.events.count("item")

    @property
    def batch_pauses(self) -> int:
        return self.events.count("batch")

    def pause_between_items(self) -> None:
        self.events.append("item")

    def pause_between_batches(self) -> None:
        self.events.append("batch")


class RecordingReporter:
    def __init__(self) -> None:
        self.connections: list[str] = []
        self.batches: list[tuple[int, int, int]] = []
        self.succeeded: list[str] = []
        self.failed: list[tuple[str, str]] = []
        self.pending: int | None = None
        self.finished: BatchResult | None = None

    def connected(self, backend: str) -> None:
        self.connections.append(f"connected:{backend}")

    def disconnected(self, backend: str) -> None:
        self.connections.append(f"disconnected:{backend}")

    def pending_found(self, count: int) -> None:
        self.pending = count

    def batch_started(self, number: int, total: int, size: int) -> None:
        self.batches.append((number, total, size))

    def item_succeeded(self, item_id: str) -> None:
        self.succeeded.append(item_id)

    def item_failed(self, item_id: str, error: str) -> None:
        self.failed.append((item_id, error))

    def batch_finished(self, done: int, total: int) -> None:
        return None

    def run_finished(self, result: BatchResult) -> None:
        self.finished = result


class FailingLedger:
    """Delegates to a real ledger but fails the ``fail_on``-th write."""

    def __init__(self, ledger: SqlLedgerStore, fail_on: int) -> None:
        self._ledger = ledger
        self._fail_on = fail_on
        self.writes = 0

    def mark_processed(self, key: object, processed_at: datetime) -> None:
        self.writes += 1
        if self.writes == self._fail_on:
            raise LedgerWriteError("disk full", item_id=str(key))
        self._ledger.mark_processed(key, processed_at)

    def __getattr__(self, name: str) -> object:
        return getattr(self._ledger, name)


def _driver(
    store: SqlDocumentStore,
    client: FakeClient,
    pacing: RecordingPacing,
    *,
    batch_size: int = 5,
    reporter: RecordingReporter | None = None,
    ledger: object | None = None,
    skip_final_batch_pause: bool = False,
) -> BatchDriver:
    return BatchDriver(
        selector=WorkSelector(source=store.source, ledger=store.ledger),
        ledger=ledger or store.ledger,  # type: ignore[arg-type]
        client=client,
        pacing=pacing,
        batch_size=batch_size,
        reporter=reporter,
        skip_final_batch_pause=skip_final_batch_pause,
    )


def test_seven_items_with_one_failure(sql_store: SqlDocumentStore, seed_documents) -> None:
    seed_documents(7)
    client = FakeClient(failing={"doc-3"})
    pacing = RecordingPacing()
    reporter = RecordingReporter()
    driver = _driver(sql_store, client, pacing, reporter=reporter)

    result = driver.run(CUTOFF)

    assert result.success_count == 6
    assert result.fail_count == 1
    assert result.total == 7
    assert [failure.id for failure in result.failures] == ["doc-3"]
    assert result.failures[0].error == "HTTP 503: unavailable"
    assert sql_store.ledger.count() == 6
    assert not sql_store.ledger.is_processed("doc-3")
    assert sql_store.ledger.is_processed("doc-7")
    assert reporter.batches == [(1, 2, 5), (2, 2, 2)]
    assert reporter.pending == 7
    assert reporter.connections == []
    assert reporter.failed == [("doc-3", "HTTP 503: unavailable")]
    assert reporter.finished is result
    assert pacing.item_pauses == 7
    assert pacing.batch_pauses == 2
    assert driver.state == DriverState.DONE


def test_items_are_dispatched_in_source_order(sql_store: SqlDocumentStore, seed_documents) -> None:
    seed_documents(3)
    client = FakeClient()

    _driver(sql_store, client, RecordingPacing(), batch_size=2).run(CUTOFF)

    assert client.payloads == ["summary of doc-1", "summary of doc-2", "summary of doc-3"]


def test_item_pause_follows_every_item_and_batch_pause_every_batch(
    sql_store: SqlDocumentStore,
    seed_documents,
) -> None:
    seed_documents(3)
    pacing = RecordingPacing()

    _driver(sql_store, FakeClient(failing={"doc-2"}), pacing, batch_size=2).run(CUTOFF)

    assert pacing.events == ["item", "item", "batch", "item", "batch"]


def test_zero_pending_items_completes_without_calls(sql_store: SqlDocumentStore) -> None:
    client = FakeClient()
    pacing = RecordingPacing()
    reporter = RecordingReporter()
    driver = _driver(sql_store, client, pacing, reporter=reporter)

    result = driver.run(CUTOFF)

    assert (result.success_count, result.fail_count) == (0, 0)
    assert client.payloads == []
    assert pacing.events == []
    assert reporter.batches == []
    assert reporter.finished is result
    assert driver.state == DriverState.DONE


def test_second_run_processes_nothing(sql_store: SqlDocumentStore, seed_documents) -> None:
    seed_documents(4)
    first_client = FakeClient()
    second_client = FakeClient()

    first = _driver(sql_store, first_client, RecordingPacing()).run(CUTOFF)
    second = _driver(sql_store, second_client, RecordingPacing()).run(CUTOFF)

    assert first.success_count == 4
    assert second.total == 0
    assert second_client.payloads == []


def test_failed_item_is_retried_on_next_run(sql_store: SqlDocumentStore, seed_documents) -> None:
    seed_documents(3)
    _driver(sql_store, FakeClient(failing={"doc-2"}), RecordingPacing()).run(CUTOFF)

    retry_client = FakeClient()
    result = _driver(sql_store, retry_client, RecordingPacing()).run(CUTOFF)

    assert retry_client.payloads == ["summary of doc-2"]
    assert result.success_count == 1
    assert sql_store.ledger.processed_ids() == {"doc-1", "doc-2", "doc-3"}


def test_ledger_write_failure_aborts_run_and_keeps_prior_entries(
    sql_store: SqlDocumentStore,
    seed_documents,
) -> None:
    seed_documents(5)
    client = FakeClient()
    reporter = RecordingReporter()
    ledger = FailingLedger(sql_store.ledger, fail_on=3)
    driver = _driver(sql_store, client, RecordingPacing(), reporter=reporter, ledger=ledger)

    with pytest.raises(LedgerWriteError, match="disk full"):
        driver.run(CUTOFF)

    assert driver.state == DriverState.FAILED
    assert len(client.payloads) == 3
    assert sql_store.ledger.processed_ids() == {"doc-1", "doc-2"}
    assert reporter.finished is None


def test_skip_final_batch_pause(sql_store: SqlDocumentStore, seed_documents) -> None:
    seed_documents(6)
    pacing = RecordingPacing()

    _driver(sql_store, FakeClient(), pacing, batch_size=3, skip_final_batch_pause=True).run(
        CUTOFF,
    )

    assert pacing.item_pauses == 6
    assert pacing.batch_pauses == 1


def test_run_batch_records_processed_timestamp(sql_store: SqlDocumentStore, seed_documents) -> None:
    seed_documents(1)

    result = run_batch(
        selector=WorkSelector(source=sql_store.source, ledger=sql_store.ledger),
        ledger=sql_store.ledger,
        client=FakeClient(),
        pacing=RecordingPacing(),
        cutoff=CUTOFF,
    )

    assert result.success_count == 1
    entry = sql_store.ledger.get_entry("doc-1")
    assert entry is not None
    assert entry.id == "doc-1"
    assert entry.processed_at > CUTOFF


@pytest.mark.parametrize("batch_size", [1, 2, 3, 5, 7, 10])
def test_partition_batches_covers_every_item_once(batch_size: int) -> None:
    items = [f"doc-{n}" for n in range(7)]

    batches = partition_batches(items, batch_size)

    assert [item for batch in batches for item in batch] == items
    assert all(len(batch) == batch_size for batch in batches[:-1])
    assert 0 < len(batches[-1]) <= batch_size


def test_partition_batches_of_nothing() -> None:
    assert partition_batches([], 5) == []


def test_partition_batches_rejects_non_positive_size() -> None:
    with pytest.raises(ValueError, match="batch_size"):
        partition_batches([1, 2], 0)
