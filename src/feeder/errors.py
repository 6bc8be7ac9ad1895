"""Exception hierarchy of the feeder.

Two families:

* fatal errors (:class:`DirectoryError`, :class:`CheckpointStoreError`) abort
  the whole run;
* :class:`ShardError` subclasses are shard-local: the orchestrator counts and
  logs them, leaves that shard's checkpoint alone and moves on.
"""

from __future__ import annotations

from typing import Optional


class FeederError(RuntimeError):
    """Base class for all feeder errors."""


class DirectoryError(FeederError):
    """Raised when the list of shards cannot be obtained."""


class CheckpointStoreError(FeederError):
    """Raised when the checkpoint database cannot be opened, read or written."""


class ShardError(FeederError):
    """Failure confined to a single shard."""

    def __init__(self, message: str, shard_id: Optional[int] = None) -> None:
        super().__init__(message)
        self.shard_id = shard_id


class ShardConnectionError(ShardError):
    """Raised when a shard database cannot be connected to."""


class StreamError(ShardError):
    """Raised when the change query or row iteration fails."""


class IndexDeliveryError(ShardError):
    """Raised when the indexing service rejects or never receives a batch."""
