"""Delivery of record batches to the external indexing service.

:class:`IndexClient` holds the behaviour common to every backend (empty-batch
short-circuit and progress accounting); subclasses implement :meth:`_deliver`.
Failures are never retried here: they surface as
:class:`~src.feeder.errors.IndexDeliveryError` and abort the current shard.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from src.feeder.entities import IndexRecord
from src.feeder.errors import IndexDeliveryError
from src.feeder.run_state import RunState

logger = logging.getLogger(__name__)


class IndexClient(ABC):
    """Base class for index backends."""

    def __init__(self, state: Optional[RunState] = None) -> None:
        self._state = state

    def bind(self, state: RunState) -> None:
        """Count successful deliveries into *state* from now on."""
        self._state = state

    def send(self, batch: list[IndexRecord]) -> None:
        """Deliver *batch*; a no-op for an empty batch.

        Raises:
            IndexDeliveryError: On any transport or protocol failure.
        """
        if not batch:
            return
        self._deliver(batch)
        if self._state is not None:
            self._state.record_indexed(len(batch))

    @abstractmethod
    def _deliver(self, batch: list[IndexRecord]) -> None:
        """Send a non-empty batch, raising IndexDeliveryError on failure."""

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class HttpIndexClient(IndexClient):
    """Posts each batch as one JSON array to an HTTP indexing endpoint."""

    def __init__(
        self,
        url: str,
        timeout: float = 60.0,
        state: Optional[RunState] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        super().__init__(state)
        self._url = url
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    def _deliver(self, batch: list[IndexRecord]) -> None:
        try:
            response = self._client.post(self._url, json=batch)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise IndexDeliveryError(
                f"Indexer at {self._url} answered {exc.response.status_code} "
                f"for a batch of {len(batch)} records"
            ) from exc
        except httpx.HTTPError as exc:
            raise IndexDeliveryError(
                f"Request to indexer at {self._url} failed: {exc}"
            ) from exc
        logger.debug("Posted %d records to %s", len(batch), self._url)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
