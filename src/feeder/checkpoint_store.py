"""Durable per-shard watermarks in a local SQLite file.

The table layout (``shards(shardID, shardDate)``) matches the state files
written by earlier feeder runs.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Optional

from src.feeder.errors import CheckpointStoreError
from src.feeder.watermark import EPOCH, parse_iso

logger = logging.getLogger(__name__)

# Keeps the newer of the stored and the incoming watermark. Both are
# fixed-width ISO-8601 strings, so MAX() on text is chronological. A NULL
# left by an earlier run sorts below any watermark.
_UPSERT = """
    INSERT INTO shards (shardID, shardDate) VALUES (?, ?)
    ON CONFLICT (shardID) DO UPDATE SET shardDate = MAX(COALESCE(shardDate, ''), excluded.shardDate)
"""


def _check_watermark(shard_id: int, watermark: str) -> None:
    try:
        parse_iso(watermark)
    except (AttributeError, TypeError, ValueError) as exc:
        raise CheckpointStoreError(
            f"Checkpoint of shard {shard_id} is not an ISO-8601 timestamp: {watermark!r}"
        ) from exc


class CheckpointStore:
    """Mapping of shard id to watermark that survives process restarts.

    Only the orchestrator thread touches the store, so no locking is done.
    Every failure surfaces as :class:`CheckpointStoreError`.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._conn: Optional[sqlite3.Connection] = None
        try:
            self._conn = sqlite3.connect(str(self._path))
            self._conn.execute("PRAGMA synchronous = FULL")
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS shards (shardID INTEGER PRIMARY KEY, shardDate TEXT)"
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            self.close()
            raise CheckpointStoreError(
                f"Unable to open checkpoint store at {self._path}: {exc}"
            ) from exc
        logger.debug("Opened checkpoint store %s", self._path)

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise CheckpointStoreError("Checkpoint store is closed")
        return self._conn

    def get(self, shard_id: int) -> str:
        """Return the stored watermark of *shard_id*, or epoch zero if none."""
        try:
            row = self._connection().execute(
                "SELECT shardDate FROM shards WHERE shardID = ?", (shard_id,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise CheckpointStoreError(
                f"Unable to read checkpoint of shard {shard_id}: {exc}"
            ) from exc
        if row is None or row[0] is None:
            return EPOCH
        _check_watermark(shard_id, row[0])
        return row[0]

    def set(self, shard_id: int, watermark: str) -> None:
        """Upsert the watermark of *shard_id* and commit before returning."""
        _check_watermark(shard_id, watermark)
        conn = self._connection()
        try:
            with conn:
                conn.execute(_UPSERT, (shard_id, watermark))
        except sqlite3.Error as exc:
            raise CheckpointStoreError(
                f"Unable to write checkpoint of shard {shard_id}: {exc}"
            ) from exc
        logger.debug("Checkpoint of shard %d set to %s", shard_id, watermark)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "CheckpointStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
