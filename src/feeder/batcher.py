"""Groups streamed records into bounded batches for the index client."""

from __future__ import annotations

import logging
from itertools import batched
from typing import Iterable, Protocol

from src.feeder.entities import IndexRecord

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500


class BatchSink(Protocol):
    def send(self, batch: list[IndexRecord]) -> None: ...


class Batcher:
    """Feeds records to a sink in order, ``batch_size`` at a time.

    ``itertools.batched`` pulls the next record only after the previous batch
    has been sent, so the upstream stream is paused for the whole flush.
    """

    def __init__(self, sink: BatchSink, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._sink = sink
        self._batch_size = batch_size

    def feed(self, records: Iterable[IndexRecord]) -> int:
        """Send every record of *records*; return how many were delivered.

        The first failing send propagates and stops consumption of *records*.
        """
        delivered = 0
        for chunk in batched(records, self._batch_size):
            batch = list(chunk)
            self._sink.send(batch)
            delivered += len(batch)
            logger.debug("Flushed batch of %d records (%d so far)", len(batch), delivered)
        return delivered
