"""Elasticsearch backend for the index client.

Provides two operations used by the feeder:

* :py:meth:`ElasticsearchIndexClient.ensure_index` – create the item mapping
  if the index does not exist yet.
* :py:meth:`ElasticsearchIndexClient.send` – one bulk request per batch.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from elasticsearch import ApiError, Elasticsearch, TransportError, helpers

from src.feeder.entities import IndexRecord
from src.feeder.errors import IndexDeliveryError
from src.feeder.index_client import IndexClient
from src.feeder.run_state import RunState

logger = logging.getLogger(__name__)


class ElasticsearchIndexClient(IndexClient):
    """Bulk-indexes record batches into a single Elasticsearch index."""

    def __init__(
        self,
        index_name: str,
        hosts: list[str] | str = "http://localhost:9200",
        request_timeout: float = 60.0,
        state: Optional[RunState] = None,
        client: Optional[Elasticsearch] = None,
    ) -> None:
        """Instantiate the backend.

        Args:
            index_name: Target index.
            hosts: Single host or list of hosts where Elasticsearch is available.
            request_timeout: Timeout of one bulk request in seconds.
            state: Run counters updated after each delivered batch.
            client: Pre-built client, mainly for tests.
        """
        super().__init__(state)
        self._index_name = index_name
        self._client = client or Elasticsearch(hosts, request_timeout=request_timeout)

    def ensure_index(self) -> None:
        """Create the target index unless it exists.

        Raises:
            IndexDeliveryError: If the cluster cannot be reached or refuses the mapping.
        """
        try:
            if self._client.indices.exists(index=self._index_name):
                logger.info("Index '%s' already exists; skipping creation.", self._index_name)
                return

            mappings: dict[str, Any] = {
                "properties": {
                    "title": {"type": "text"},
                    "name": {"type": "text"},
                    "identifiers": {"type": "keyword"},
                }
            }
            self._client.indices.create(index=self._index_name, mappings=mappings)
        except (ApiError, TransportError) as exc:
            raise IndexDeliveryError(
                f"Unable to prepare index '{self._index_name}': {exc}"
            ) from exc
        logger.info("Created index '%s'.", self._index_name)

    def _deliver(self, batch: list[IndexRecord]) -> None:
        actions = [
            {
                "_op_type": "index",
                "_index": self._index_name,
                **record,
            }
            for record in batch
        ]
        try:
            helpers.bulk(self._client, actions)
        except helpers.BulkIndexError as exc:
            raise IndexDeliveryError(
                f"{len(exc.errors)} of {len(batch)} records rejected by '{self._index_name}'"
            ) from exc
        except (ApiError, TransportError) as exc:
            raise IndexDeliveryError(
                f"Bulk request to '{self._index_name}' failed: {exc}"
            ) from exc
        logger.debug("Indexed %d records into '%s'.", len(batch), self._index_name)

    def close(self) -> None:
        self._client.close()
