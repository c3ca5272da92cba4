"""MongoDB backend for the source collection and the ledger."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from datetime import datetime

from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError
from pymongo.write_concern import WriteConcern

from insights_feeder.errors import LedgerWriteError, StoreConnectionError
from insights_feeder.storage.base import (
    CREATED_AT_FIELD,
    LEDGER_COLLECTION,
    PROCESSED_AT_FIELD,
    SOURCE_COLLECTION,
    key_to_id,
)

logger = logging.getLogger(__name__)

# Journaled majority writes: an acknowledged ledger upsert survives a crash.
LEDGER_WRITE_CONCERN = WriteConcern(w="majority", j=True)


class MongoSourceCollection:
    def __init__(self, collection: Collection) -> None:
        self._collection = collection

    def iter_created_since(self, cutoff: datetime) -> Iterator[Mapping[str, object]]:
        yield from self._collection.find({CREATED_AT_FIELD: {"$gte": cutoff}})

    def count_created_since(self, cutoff: datetime) -> int:
        return self._collection.count_documents({CREATED_AT_FIELD: {"$gte": cutoff}})


class MongoLedgerStore:
    """Ledger documents are ``{_id: <source _id>, processedAt: <datetime>}``."""

    def __init__(self, collection: Collection) -> None:
        self._collection = collection

    def is_processed(self, key: object) -> bool:
        query = {"_id": {"$in": [key, key_to_id(key)]}}
        return self._collection.find_one(query, projection={"_id": 1}) is not None

    def mark_processed(self, key: object, processed_at: datetime) -> None:
        try:
            self._collection.update_one(
                {"_id": key},
                {"$set": {PROCESSED_AT_FIELD: processed_at}},
                upsert=True,
            )
        except PyMongoError as exc:
            raise LedgerWriteError(
                f"Failed to record {key_to_id(key)} as processed: {exc}",
                item_id=key_to_id(key),
            ) from exc

    def processed_ids(self) -> set[str]:
        return {key_to_id(doc["_id"]) for doc in self._collection.find({}, projection={"_id": 1})}

    def count(self) -> int:
        return self._collection.count_documents({})

    def ensure_indexes(self) -> None:
        self._collection.create_index([("_id", ASCENDING)])


class MongoDocumentStore:
    """Source and ledger collections of one MongoDB database."""

    name = "MongoDB"

    def __init__(self, client: MongoClient, database: str) -> None:
        self._client = client
        db = client[database]
        self.source = MongoSourceCollection(db[SOURCE_COLLECTION])
        self.ledger = MongoLedgerStore(
            db.get_collection(LEDGER_COLLECTION, write_concern=LEDGER_WRITE_CONCERN),
        )

    @classmethod
    def connect(cls, uri: str, database: str) -> MongoDocumentStore:
        try:
            client: MongoClient = MongoClient(uri, tz_aware=True)
        except PyMongoError as exc:
            raise StoreConnectionError(f"Invalid MongoDB connection settings: {exc}") from exc
        store = cls(client, database)
        try:
            store.ping()
        except StoreConnectionError:
            client.close()
            raise
        logger.debug("Connected to MongoDB database %s", database)
        return store

    def ping(self) -> None:
        try:
            self._client.admin.command("ping")
        except PyMongoError as exc:
            raise StoreConnectionError(f"Cannot connect to MongoDB: {exc}") from exc

    def close(self) -> None:
        self._client.close()
