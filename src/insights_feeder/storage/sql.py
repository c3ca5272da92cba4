"""SQLModel backend for the source collection and the ledger."""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterator, Mapping
from datetime import UTC, datetime

from sqlalchemy import event, func, text
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.pool import NullPool
from sqlmodel import Session, SQLModel, col, create_engine, select

from insights_feeder.errors import LedgerWriteError, StoreConnectionError
from insights_feeder.models import LedgerEntry
from insights_feeder.storage.base import CREATED_AT_FIELD, key_to_id
from insights_feeder.storage.sqlmodel_models import ProcessedDocument, SourceDocument

logger = logging.getLogger(__name__)

SQLITE_BUSY_TIMEOUT_MS = 5_000


def as_utc(value: datetime) -> datetime:
    """Normalize to UTC; naive values are taken as UTC already."""

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class SqlSourceCollection:
    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def iter_created_since(self, cutoff: datetime) -> Iterator[Mapping[str, object]]:
        statement = (
            select(SourceDocument)
            .where(col(SourceDocument.created_at) >= as_utc(cutoff))
            .order_by(col(SourceDocument.seq))
        )
        with Session(self._engine) as session:
            rows = session.exec(statement).all()
        for row in rows:
            yield _row_to_record(row)

    def count_created_since(self, cutoff: datetime) -> int:
        statement = select(func.count()).where(col(SourceDocument.created_at) >= as_utc(cutoff))
        with Session(self._engine) as session:
            return int(session.exec(statement).one())


class SqlLedgerStore:
    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def is_processed(self, key: object) -> bool:
        with Session(self._engine) as session:
            return session.get(ProcessedDocument, key_to_id(key)) is not None

    def mark_processed(self, key: object, processed_at: datetime) -> None:
        item_id = key_to_id(key)
        try:
            with Session(self._engine) as session:
                session.merge(
                    ProcessedDocument(document_id=item_id, processed_at=as_utc(processed_at)),
                )
                session.commit()
        except SQLAlchemyError as exc:
            raise LedgerWriteError(
                f"Failed to record {item_id} as processed: {exc}",
                item_id=item_id,
            ) from exc

    def processed_ids(self) -> set[str]:
        with Session(self._engine) as session:
            return set(session.exec(select(ProcessedDocument.document_id)).all())

    def get_entry(self, key: object) -> LedgerEntry | None:
        with Session(self._engine) as session:
            row = session.get(ProcessedDocument, key_to_id(key))
            if row is None:
                return None
            return LedgerEntry(id=row.document_id, processed_at=as_utc(row.processed_at))

    def count(self) -> int:
        with Session(self._engine) as session:
            return int(session.exec(select(func.count()).select_from(ProcessedDocument)).one())

    def ensure_indexes(self) -> None:
        # The primary key index covers identifier lookups.
        SQLModel.metadata.create_all(self._engine, tables=[ProcessedDocument.__table__])


class SqlDocumentStore:
    """Source and ledger tables reachable through one SQLAlchemy URL."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self.name = f"{engine.url.get_backend_name()} database"
        self.source = SqlSourceCollection(engine)
        self.ledger = SqlLedgerStore(engine)

    @classmethod
    def connect(cls, uri: str, database: str) -> SqlDocumentStore:
        try:
            url = make_url(uri)
        except ArgumentError as exc:
            raise StoreConnectionError(f"Invalid database URL: {exc}") from exc
        if not url.database:
            url = url.set(database=database)
        store = cls(_build_engine(url))
        store.ping()
        store.init_schema()
        logger.debug("Connected to %s database %s", url.get_backend_name(), url.database)
        return store

    def init_schema(self) -> None:
        SQLModel.metadata.create_all(self.engine)

    def ping(self) -> None:
        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            raise StoreConnectionError(f"Cannot connect to database: {exc}") from exc

    def close(self) -> None:
        self.engine.dispose()


def _build_engine(url: URL) -> Engine:
    if url.get_backend_name() != "sqlite":
        return create_engine(url, pool_pre_ping=True)
    engine = create_engine(
        url,
        connect_args={
            "check_same_thread": False,
            "timeout": SQLITE_BUSY_TIMEOUT_MS / 1000.0,
        },
        poolclass=NullPool,
    )
    event.listen(engine, "connect", _apply_sqlite_pragmas)
    return engine


def _apply_sqlite_pragmas(dbapi_connection: sqlite3.Connection, _record: object) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode = WAL")
    cursor.execute("PRAGMA synchronous = FULL")
    cursor.execute(f"PRAGMA busy_timeout = {SQLITE_BUSY_TIMEOUT_MS}")
    cursor.close()


def _row_to_record(row: SourceDocument) -> dict[str, object]:
    body = json.loads(row.body) if row.body else {}
    if not isinstance(body, dict):
        body = {"body": body}
    record: dict[str, object] = {"_id": row.document_id, CREATED_AT_FIELD: as_utc(row.created_at)}
    record.update((k, v) for k, v in body.items() if k not in record)
    return record
