"""SQLModel tables for the SQL document store backend."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Text
from sqlmodel import Field, SQLModel

from insights_feeder.storage.base import LEDGER_COLLECTION, SOURCE_COLLECTION


class SourceDocument(SQLModel, table=True):
    __tablename__ = SOURCE_COLLECTION  # type: ignore[bad-override]

    # Insertion order is the natural order of the collection.
    seq: int | None = Field(default=None, primary_key=True)
    document_id: str = Field(unique=True, index=True)
    created_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
    body: str = Field(default="{}", sa_column=Column(Text, nullable=False, server_default="{}"))


class ProcessedDocument(SQLModel, table=True):
    __tablename__ = LEDGER_COLLECTION  # type: ignore[bad-override]

    document_id: str = Field(primary_key=True, index=True)
    processed_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
