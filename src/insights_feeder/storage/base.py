"""Storage contracts shared by the document store backends."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from datetime import datetime
from typing import Protocol

SOURCE_COLLECTION = "meetingdata"
LEDGER_COLLECTION = "processed_meetingdata"
CREATED_AT_FIELD = "createdAt"
PROCESSED_AT_FIELD = "processedAt"


class SourceCollection(Protocol):
    """Read-only access to the source documents."""

    def iter_created_since(self, cutoff: datetime) -> Iterator[Mapping[str, object]]:
        """Yield records with ``createdAt >= cutoff`` in natural order.

        Each record carries its identifier under ``_id``.
        """
        raise NotImplementedError

    def count_created_since(self, cutoff: datetime) -> int:
        raise NotImplementedError


class LedgerStore(Protocol):
    """Durable set of source keys that were accepted downstream."""

    def is_processed(self, key: object) -> bool:
        raise NotImplementedError

    def mark_processed(self, key: object, processed_at: datetime) -> None:
        """Upsert an entry; must be durable before returning.

        Raises ``LedgerWriteError`` when the entry could not be written.
        """
        raise NotImplementedError

    def processed_ids(self) -> set[str]:
        """All ledger ids in string form, fetched in one round trip."""
        raise NotImplementedError

    def count(self) -> int:
        raise NotImplementedError

    def ensure_indexes(self) -> None:
        raise NotImplementedError


class DocumentStore(Protocol):
    """Connected store exposing the source collection and the ledger."""

    name: str
    source: SourceCollection
    ledger: LedgerStore

    def ping(self) -> None:
        """Raise ``StoreConnectionError`` if the store is unreachable."""
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError


def key_to_id(key: object) -> str:
    """String form of a store key, used for ledger membership tests."""

    return str(key)
