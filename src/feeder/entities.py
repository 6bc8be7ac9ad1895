"""entities.py
Shared type definitions used across the feeder.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypedDict, Union

from pydantic import BaseModel, ConfigDict, Field

UP = "up"


class IndexRecord(TypedDict):
    """Document shape accepted by the indexing service."""

    title: str
    name: str
    identifiers: str


class ShardDescriptor(BaseModel):
    """Connection info and lifecycle state of one shard, as listed by the directory."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    shard_id: int = Field(alias="shardID")
    address: str
    port: int = 3306
    db: str
    state: str
    host_state: str = Field(UP, alias="hostState")

    @property
    def eligible(self) -> bool:
        return self.state == UP and self.host_state == UP


@dataclass(frozen=True)
class ShardSuccess:
    """Shard stream fully consumed and indexed; ``watermark`` was persisted."""

    shard_id: int
    watermark: str
    records_indexed: int


@dataclass(frozen=True)
class ShardFailure:
    """Shard aborted; its checkpoint was left untouched."""

    shard_id: int
    error_kind: str
    partial_watermark_discarded: bool
    message: str = ""


ShardResult = Union[ShardSuccess, ShardFailure]
