"""Document store backends for the source collection and the processing ledger."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from insights_feeder.config import StoreSettings
from insights_feeder.storage.base import (
    LEDGER_COLLECTION,
    SOURCE_COLLECTION,
    DocumentStore,
    LedgerStore,
    SourceCollection,
    key_to_id,
)

MONGODB_SCHEMES = ("mongodb://", "mongodb+srv://")


def connect_store(settings: StoreSettings) -> DocumentStore:
    """Connect to the backend selected by the connection string scheme."""

    if settings.uri.startswith(MONGODB_SCHEMES):
        from insights_feeder.storage.mongo import MongoDocumentStore

        return MongoDocumentStore.connect(settings.uri, settings.database)

    from insights_feeder.storage.sql import SqlDocumentStore

    return SqlDocumentStore.connect(settings.uri, settings.database)


@contextmanager
def open_store(settings: StoreSettings) -> Iterator[DocumentStore]:
    store = connect_store(settings)
    try:
        yield store
    finally:
        store.close()


__all__ = [
    "LEDGER_COLLECTION",
    "SOURCE_COLLECTION",
    "DocumentStore",
    "LedgerStore",
    "SourceCollection",
    "connect_store",
    "key_to_id",
    "open_store",
]
