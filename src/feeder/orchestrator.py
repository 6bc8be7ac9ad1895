"""Shard-by-shard incremental sync.

Workflow per shard
------------------
1. Read the shard's watermark from the checkpoint store.
2. Open the shard connection and stream every item changed since the
   watermark through the batcher into the index client.
3. On success, persist the newest timestamp seen (never older than the
   previous watermark).
4. On a shard-local error, count it and leave the checkpoint as it was.

The shard connection is closed exactly once, after the stream finished or
failed. Only checkpoint store failures escape :meth:`Orchestrator.run`.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Optional

import pymysql

from src.feeder.batcher import DEFAULT_BATCH_SIZE, Batcher
from src.feeder.checkpoint_store import CheckpointStore
from src.feeder.entities import ShardDescriptor, ShardFailure, ShardResult, ShardSuccess
from src.feeder.errors import ShardError
from src.feeder.index_client import IndexClient
from src.feeder.run_state import RunState
from src.feeder.shard_directory import eligible_shards
from src.feeder.shard_streamer import ShardStream
from src.feeder.watermark import latest

logger = logging.getLogger(__name__)


class Orchestrator:
    """Runs checkpoint → stream → batch → index for each shard in turn."""

    def __init__(
        self,
        checkpoints: CheckpointStore,
        index_client: IndexClient,
        connect: Callable[[ShardDescriptor], Any],
        state: Optional[RunState] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        fetch_size: int = 1000,
    ) -> None:
        """
        Args:
            checkpoints: Durable watermark store.
            index_client: Backend receiving the batches.
            connect: Opens a connection for a shard; raises
                :class:`~src.feeder.errors.ShardConnectionError` on failure.
            state: Counters shared with the progress reporter.
            batch_size: Records per indexing request.
            fetch_size: Rows read from the shard cursor at a time.
        """
        self.state = state or RunState()
        self._checkpoints = checkpoints
        self._index_client = index_client
        self._index_client.bind(self.state)
        self._connect = connect
        self._batch_size = batch_size
        self._fetch_size = fetch_size

    def run(self, shards: Iterable[ShardDescriptor]) -> list[ShardResult]:
        """Attempt every eligible shard once, in ascending id order.

        Completion is signalled on ``state.completed`` however the run ends.

        Raises:
            CheckpointStoreError: If a watermark cannot be read or written.
        """
        results: list[ShardResult] = []
        try:
            for shard in eligible_shards(shards):
                results.append(self.sync_shard(shard))
        finally:
            self.state.mark_complete()

        failed = sum(isinstance(r, ShardFailure) for r in results)
        logger.info(
            "Run finished: %d shards attempted, %d failed, %d records indexed",
            len(results),
            failed,
            self.state.indexed_total,
        )
        return results

    def sync_shard(self, shard: ShardDescriptor) -> ShardResult:
        shard_id = shard.shard_id
        self.state.begin_shard(shard_id)
        previous = self._checkpoints.get(shard_id)
        logger.info("Shard %d: streaming changes since %s", shard_id, previous)

        connection = None
        stream: Optional[ShardStream] = None
        try:
            connection = self._connect(shard)
            stream = ShardStream(
                connection, previous, fetch_size=self._fetch_size, shard_id=shard_id
            )
            indexed = Batcher(self._index_client, self._batch_size).feed(stream)
        except ShardError as exc:
            if exc.shard_id is None:
                exc.shard_id = shard_id
            self.state.record_failure()
            logger.error("Shard %d failed: %s", shard_id, exc)
            return ShardFailure(
                shard_id=shard_id,
                error_kind=type(exc).__name__,
                partial_watermark_discarded=stream is not None and stream.rows_seen > 0,
                message=str(exc),
            )
        else:
            watermark = latest(previous, stream.max_watermark)
            self._checkpoints.set(shard_id, watermark)
        finally:
            if connection is not None:
                _release(connection, shard_id)

        logger.info(
            "Shard %d: %d records indexed, watermark %s -> %s",
            shard_id,
            indexed,
            previous,
            watermark,
        )
        return ShardSuccess(shard_id=shard_id, watermark=watermark, records_indexed=indexed)


def _release(connection, shard_id: int) -> None:
    try:
        connection.close()
    except pymysql.MySQLError as exc:
        logger.warning("Shard %d: error while closing connection: %s", shard_id, exc)
