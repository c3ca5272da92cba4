"""Pending work selection against the processing ledger."""

from __future__ import annotations

import logging
from datetime import datetime

from insights_feeder.models import SourceItem
from insights_feeder.payload import decode_payload
from insights_feeder.storage.base import (
    CREATED_AT_FIELD,
    LedgerStore,
    SourceCollection,
    key_to_id,
)

logger = logging.getLogger(__name__)


class WorkSelector:
    """Computes ``{eligible source items} - {ledger ids}``.

    Both sets are loaded in full before filtering, so each call costs
    O(ledger size + eligible items) in memory and transfer.
    """

    def __init__(self, *, source: SourceCollection, ledger: LedgerStore) -> None:
        self.source = source
        self.ledger = ledger

    def select_pending(self, cutoff: datetime) -> list[SourceItem]:
        """Eligible items created at or after ``cutoff`` that are not in the ledger."""

        processed_ids = self.ledger.processed_ids()
        records = list(self.source.iter_created_since(cutoff))
        logger.debug(
            "Selecting pending items: eligible=%d ledger=%d",
            len(records),
            len(processed_ids),
        )

        pending: list[SourceItem] = []
        for record in records:
            key = record["_id"]
            item_id = key_to_id(key)
            if item_id in processed_ids:
                continue
            created_at = record.get(CREATED_AT_FIELD)
            pending.append(
                SourceItem(
                    id=item_id,
                    key=key,
                    payload=decode_payload(record),
                    created_at=created_at if isinstance(created_at, datetime) else None,
                ),
            )
        return pending

    def count_eligible(self, cutoff: datetime) -> int:
        return self.source.count_created_since(cutoff)
