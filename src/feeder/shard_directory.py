"""Lookup of the shards to feed, read from the master database."""

from __future__ import annotations

import logging
from typing import Iterable

import pymysql
import pymysql.cursors
from pydantic import ValidationError

from src.feeder.entities import ShardDescriptor
from src.feeder.errors import DirectoryError
from src.feeder.settings import Settings

logger = logging.getLogger(__name__)

_SHARDS_SQL = """
    SELECT s.shardID, s.address, s.port, s.db, s.state, sh.state AS hostState
    FROM shards AS s LEFT JOIN shardHosts AS sh USING (shardHostID)
    WHERE s.state = 'up' AND sh.state = 'up'
    ORDER BY s.shardID
"""


def eligible_shards(shards: Iterable[ShardDescriptor]) -> list[ShardDescriptor]:
    """Keep shards whose shard and host are both up, ordered by shard id."""
    return sorted((s for s in shards if s.eligible), key=lambda s: s.shard_id)


class ShardDirectory:
    """Reads the authoritative shard list once per run."""

    def __init__(self, config: Settings, connect=pymysql.connect) -> None:
        self._config = config
        self._connect = connect

    def list_shards(self) -> list[ShardDescriptor]:
        """Return the eligible shards in ascending id order.

        Raises:
            DirectoryError: If the master database cannot be queried or returns
                malformed rows.
        """
        cfg = self._config
        try:
            conn = self._connect(
                host=cfg.master_host,
                port=cfg.master_port,
                user=cfg.master_user,
                password=cfg.master_password,
                database=cfg.master_database,
                connect_timeout=cfg.connect_timeout,
                cursorclass=pymysql.cursors.DictCursor,
            )
        except pymysql.MySQLError as exc:
            raise DirectoryError(
                f"Unable to connect to master database at {cfg.master_host}:{cfg.master_port}: {exc}"
            ) from exc

        try:
            with conn.cursor() as cursor:
                cursor.execute(_SHARDS_SQL)
                rows = cursor.fetchall()
            shards = [ShardDescriptor.model_validate(row) for row in rows]
        except pymysql.MySQLError as exc:
            raise DirectoryError(f"Unable to list shards: {exc}") from exc
        except ValidationError as exc:
            raise DirectoryError(f"Malformed shard row: {exc}") from exc
        finally:
            conn.close()

        logger.info("Shard directory lists %d eligible shards", len(shards))
        return eligible_shards(shards)
