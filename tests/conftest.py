"""
Test configuration - shared fakes and fixtures for the feeder tests.

Shards are simulated with in-memory connections whose cursors behave like a
server-side cursor: rows are handed out only through ``fetchmany``, and the
number of rows read so far is observable.
"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

import pymysql
import pytest

from src.feeder.checkpoint_store import CheckpointStore
from src.feeder.entities import ShardDescriptor
from src.feeder.errors import IndexDeliveryError, ShardConnectionError
from src.feeder.index_client import IndexClient


BASE_TIME = datetime(2024, 3, 1, 12, 0, 0)


def make_row(i: int, doi: Optional[str] = None, isbn: Optional[str] = None,
             modified: Optional[datetime] = None) -> dict:
    """Build one result row of the change query."""
    return {
        "title": f"Title {i}",
        "doi": doi,
        "isbn": isbn,
        "name": f"Author{i}",
        "shardDate": modified or BASE_TIME + timedelta(seconds=i),
    }


class FakeCursor:
    def __init__(self, rows: list[dict], fail_after: Optional[int] = None):
        self._rows = list(rows)
        self._fail_after = fail_after
        self.rows_read = 0
        self.executed: list[tuple] = []
        self.closed = False

    def execute(self, sql, params=None):
        self.executed.append((sql, params))

    def fetchmany(self, size):
        if self._fail_after is not None and self.rows_read >= self._fail_after:
            raise pymysql.err.OperationalError(2013, "Lost connection to MySQL server during query")
        end = self.rows_read + size
        if self._fail_after is not None:
            end = min(end, self._fail_after)
        chunk = self._rows[self.rows_read:end]
        self.rows_read += len(chunk)
        return chunk

    def close(self):
        self.closed = True


class FakeConnection:
    def __init__(self, rows: list[dict], fail_after: Optional[int] = None):
        self.cursor_obj = FakeCursor(rows, fail_after)
        self.close_calls = 0

    def cursor(self):
        return self.cursor_obj

    def close(self):
        self.close_calls += 1


class RecordingIndexClient(IndexClient):
    """Index client that keeps every delivered batch in memory."""

    def __init__(self, fail_on_call: Optional[int] = None):
        super().__init__()
        self.batches: list[list[dict]] = []
        self.calls = 0
        self._fail_on_call = fail_on_call
        self.observers: list[Callable[[list[dict]], None]] = []

    def _deliver(self, batch):
        self.calls += 1
        for observer in self.observers:
            observer(batch)
        if self._fail_on_call is not None and self.calls == self._fail_on_call:
            raise IndexDeliveryError("indexer answered 503")
        self.batches.append(list(batch))


class FakeShardCluster:
    """Maps shard ids to fake connections; unknown ids refuse to connect."""

    def __init__(self):
        self.connections: dict[int, FakeConnection] = {}
        self.unreachable: set[int] = set()
        self.connect_calls: list[int] = []

    def add(self, shard_id: int, rows: list[dict], fail_after: Optional[int] = None) -> FakeConnection:
        conn = FakeConnection(rows, fail_after)
        self.connections[shard_id] = conn
        return conn

    def connect(self, shard: ShardDescriptor) -> FakeConnection:
        self.connect_calls.append(shard.shard_id)
        if shard.shard_id in self.unreachable or shard.shard_id not in self.connections:
            raise ShardConnectionError(
                f"Unable to connect to shard {shard.shard_id}", shard_id=shard.shard_id
            )
        return self.connections[shard.shard_id]


def make_shard(shard_id: int, state: str = "up", host_state: str = "up") -> ShardDescriptor:
    return ShardDescriptor(
        shard_id=shard_id,
        address=f"10.0.0.{shard_id}",
        port=3306,
        db=f"zotero{shard_id}",
        state=state,
        host_state=host_state,
    )


@pytest.fixture
def checkpoint_path(tmp_path: Path) -> Path:
    return tmp_path / "db.sqlite"


@pytest.fixture
def checkpoints(checkpoint_path: Path):
    store = CheckpointStore(checkpoint_path)
    yield store
    store.close()


@pytest.fixture
def index_client() -> RecordingIndexClient:
    return RecordingIndexClient()


@pytest.fixture
def cluster() -> FakeShardCluster:
    return FakeShardCluster()
