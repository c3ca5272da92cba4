"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator, Mapping
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from sqlmodel import Session

from insights_feeder.storage.sql import SqlDocumentStore, as_utc
from insights_feeder.storage.sqlmodel_models import SourceDocument

CUTOFF = datetime(2025, 11, 19, tzinfo=UTC)


def insert_document(
    store: SqlDocumentStore,
    document_id: str,
    created_at: datetime,
    body: Mapping[str, object],
) -> None:
    """Write a source row directly; the feeder only ever reads the source table."""

    with Session(store.engine) as session:
        session.add(
            SourceDocument(
                document_id=document_id,
                created_at=as_utc(created_at),
                body=json.dumps(body, default=str),
            ),
        )
        session.commit()


@pytest.fixture()
def sqlite_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'feeder.db'}"


@pytest.fixture()
def sql_store(sqlite_url: str) -> Iterator[SqlDocumentStore]:
    store = SqlDocumentStore.connect(sqlite_url, "feeder")
    yield store
    store.close()


@pytest.fixture()
def seed_documents(sql_store: SqlDocumentStore) -> Callable[..., list[str]]:
    """Insert ``count`` eligible documents ``doc-1..doc-N`` with response text payloads."""

    def _seed(count: int, *, start: int = 1, created_at: datetime | None = None) -> list[str]:
        ids = []
        for number in range(start, start + count):
            document_id = f"doc-{number}"
            insert_document(
                sql_store,
                document_id,
                created_at or CUTOFF + timedelta(hours=number),
                {"llm_response": {"full_response": f"summary of {document_id}"}},
            )
            ids.append(document_id)
        return ids

    return _seed
