"""Progress reporting for feeder runs."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from insights_feeder.models import BatchResult

SUMMARY_RULE = "━" * 50


class ProgressReporter(Protocol):
    """Receives store and run progress events from the controller and the batch driver."""

    def connected(self, backend: str) -> None:
        raise NotImplementedError

    def disconnected(self, backend: str) -> None:
        raise NotImplementedError

    def pending_found(self, count: int) -> None:
        raise NotImplementedError

    def batch_started(self, number: int, total: int, size: int) -> None:
        raise NotImplementedError

    def item_succeeded(self, item_id: str) -> None:
        raise NotImplementedError

    def item_failed(self, item_id: str, error: str) -> None:
        raise NotImplementedError

    def batch_finished(self, done: int, total: int) -> None:
        raise NotImplementedError

    def run_finished(self, result: BatchResult) -> None:
        raise NotImplementedError


class NullProgressReporter:
    def connected(self, backend: str) -> None:
        return None

    def disconnected(self, backend: str) -> None:
        return None

    def pending_found(self, count: int) -> None:
        return None

    def batch_started(self, number: int, total: int, size: int) -> None:
        return None

    def item_succeeded(self, item_id: str) -> None:
        return None

    def item_failed(self, item_id: str, error: str) -> None:
        return None

    def batch_finished(self, done: int, total: int) -> None:
        return None

    def run_finished(self, result: BatchResult) -> None:
        return None


class ConsoleProgressReporter:
    """Writes human-readable progress lines through ``emit``."""

    def __init__(self, emit: Callable[[str], None]) -> None:
        self._emit = emit

    def connected(self, backend: str) -> None:
        self._emit(f"Connected to {backend}")

    def disconnected(self, backend: str) -> None:
        self._emit(f"Disconnected from {backend}")

    def pending_found(self, count: int) -> None:
        self._emit(f"Found {count} unprocessed documents")
        if count == 0:
            self._emit("All documents have already been processed.")

    def batch_started(self, number: int, total: int, size: int) -> None:
        self._emit(f"Processing batch {number}/{total} ({size} documents)")

    def item_succeeded(self, item_id: str) -> None:
        self._emit(f"  Processed: {item_id}")

    def item_failed(self, item_id: str, error: str) -> None:
        self._emit(f"  Failed: {item_id} - {error}")

    def batch_finished(self, done: int, total: int) -> None:
        self._emit(f"Progress: {progress_percent(done, total)}% ({done}/{total})")

    def run_finished(self, result: BatchResult) -> None:
        self._emit(SUMMARY_RULE)
        self._emit("Processing complete.")
        self._emit(f"  Successful: {result.success_count}")
        self._emit(f"  Failed: {result.fail_count}")
        self._emit(f"  Total: {result.total}")


def progress_percent(done: int, total: int) -> int:
    if total <= 0:
        return 100
    return int(done * 100 / total + 0.5)
