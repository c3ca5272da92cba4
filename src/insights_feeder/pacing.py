"""Pacing policies that bound the request rate to the downstream endpoint."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)


class PacingPolicy(Protocol):
    """Pauses issued by the batch driver."""

    def pause_between_items(self) -> None:
        raise NotImplementedError

    def pause_between_batches(self) -> None:
        raise NotImplementedError


class FixedDelayPacing:
    """Sleeps a fixed delay after every item and after every batch."""

    def __init__(
        self,
        *,
        item_delay_ms: int,
        batch_delay_ms: int,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if item_delay_ms < 0 or batch_delay_ms < 0:
            raise ValueError("Pacing delays must be >= 0")
        self.item_delay_ms = item_delay_ms
        self.batch_delay_ms = batch_delay_ms
        self._sleep = sleep

    def pause_between_items(self) -> None:
        self._sleep(self.item_delay_ms / 1000.0)

    def pause_between_batches(self) -> None:
        logger.debug("Waiting %d ms before next batch", self.batch_delay_ms)
        self._sleep(self.batch_delay_ms / 1000.0)


class NoDelayPacing:
    def pause_between_items(self) -> None:
        return None

    def pause_between_batches(self) -> None:
        return None
