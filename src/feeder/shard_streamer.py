"""Streaming extraction of changed items from one shard.

:class:`ShardStream` runs the change query on an unbuffered server-side cursor
and yields :class:`~src.feeder.entities.IndexRecord` objects lazily. Rows are
fetched only when the consumer asks for the next record, so while the batcher
is busy flushing a batch nothing is read from the shard.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterator, Mapping, Optional

import pymysql
import pymysql.cursors

from src.feeder.entities import IndexRecord, ShardDescriptor
from src.feeder.errors import ShardConnectionError, StreamError
from src.feeder.settings import Settings
from src.feeder.watermark import parse_iso, to_iso

logger = logging.getLogger(__name__)

# Field ids 110-113 are the title-like fields, 26 is DOI and 11 is ISBN. Item types 1 and 14 are notes and
# attachments. Must stay in sync with earlier runs for output parity.
CHANGE_QUERY = """
    SELECT itmd1.value AS title,
           itmd2.value AS doi,
           itmd3.value AS isbn,
           creators.lastName AS name,
           itm.serverDateModified AS shardDate
    FROM itemCreators, creators, items AS itm
    LEFT JOIN itemData AS itmd1 ON (itmd1.itemID = itm.itemID AND itmd1.fieldID IN (110,111,112,113))
    LEFT JOIN itemData AS itmd2 ON (itmd2.itemID = itm.itemID AND itmd2.fieldID = 26)
    LEFT JOIN itemData AS itmd3 ON (itmd3.itemID = itm.itemID AND itmd3.fieldID = 11)
    WHERE itm.serverDateModified >= %s
    AND itm.itemTypeID != 1
    AND itm.itemTypeID != 14
    AND itemCreators.itemID = itm.itemID
    AND itemCreators.orderindex = 0
    AND creators.creatorID = itemCreators.creatorID
    AND itmd1.value IS NOT NULL
    GROUP BY itm.itemID
"""


def open_shard_connection(
    shard: ShardDescriptor, config: Settings, connect=pymysql.connect
):
    """Connect to *shard* with the master credentials.

    Raises:
        ShardConnectionError: If the shard database is unreachable.
    """
    try:
        return connect(
            host=shard.address,
            port=shard.port,
            user=config.master_user,
            password=config.master_password,
            database=shard.db,
            charset="utf8mb4",
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
            cursorclass=pymysql.cursors.SSDictCursor,
        )
    except pymysql.MySQLError as exc:
        raise ShardConnectionError(
            f"Unable to connect to shard {shard.shard_id} at {shard.address}:{shard.port}: {exc}",
            shard_id=shard.shard_id,
        ) from exc


def build_identifiers(doi: Optional[str], isbn: Optional[str]) -> str:
    """Join the present identifiers, DOI first: ``"10.1/x,978-1"``, ``"978-1"`` or ``""``."""
    return ",".join(value for value in (doi, isbn) if value)


def row_to_record(row: Mapping[str, Any]) -> IndexRecord:
    return {
        "title": row["title"],
        "name": row["name"],
        "identifiers": build_identifiers(row.get("doi"), row.get("isbn")),
    }


def _row_watermark(value: Any) -> str:
    if isinstance(value, datetime):
        return to_iso(value)
    return to_iso(parse_iso(str(value)))


class ShardStream:
    """Forward-only, single-use iterator over the changed items of a shard.

    The maximum ``serverDateModified`` seen is available through
    :attr:`max_watermark` once the iterator has been exhausted; there is no
    partial value before that.
    """

    def __init__(
        self,
        connection,
        watermark: str,
        fetch_size: int = 1000,
        shard_id: Optional[int] = None,
    ) -> None:
        self._connection = connection
        self._from = watermark
        self._fetch_size = fetch_size
        self._shard_id = shard_id
        self._started = False
        self._exhausted = False
        self._max: Optional[str] = None
        self.rows_seen = 0

    def __iter__(self) -> Iterator[IndexRecord]:
        if self._started:
            raise RuntimeError("ShardStream can only be iterated once")
        self._started = True
        return self._records()

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    @property
    def max_watermark(self) -> Optional[str]:
        """Newest row timestamp, or ``None`` if the shard had no matching rows."""
        if not self._exhausted:
            raise RuntimeError("Watermark is only final once the stream is exhausted")
        return self._max

    def _records(self) -> Iterator[IndexRecord]:
        try:
            cursor = self._connection.cursor()
            cursor.execute(CHANGE_QUERY, (parse_iso(self._from),))
            while True:
                rows = cursor.fetchmany(self._fetch_size)
                if not rows:
                    break
                for row in rows:
                    stamp = _row_watermark(row["shardDate"])
                    if self._max is None or stamp > self._max:
                        self._max = stamp
                    self.rows_seen += 1
                    yield row_to_record(row)
            cursor.close()
        except pymysql.MySQLError as exc:
            raise StreamError(
                f"Streaming shard {self._shard_id} failed after {self.rows_seen} rows: {exc}",
                shard_id=self._shard_id,
            ) from exc
        self._exhausted = True
        logger.debug(
            "Shard %s stream exhausted after %d rows", self._shard_id, self.rows_seen
        )
