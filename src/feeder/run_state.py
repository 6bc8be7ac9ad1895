"""Counters shared between the orchestrator and the progress reporter."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ProgressSnapshot:
    current_shard: Optional[int]
    failed_shards: int
    indexed_total: int
    indexed_interval: int


class RunState:
    """Per-run counters, written by the orchestrator and read by the reporter.

    The orchestrator is the only writer. The reporter uses
    :meth:`take_snapshot`, which reads all counters and resets the
    since-last-report count in one step.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._indexed_since_report = 0
        self._indexed_total = 0
        self._current_shard: Optional[int] = None
        self._failed_shards = 0
        self.completed = threading.Event()

    def begin_shard(self, shard_id: int) -> None:
        with self._lock:
            self._current_shard = shard_id

    def record_indexed(self, count: int) -> None:
        with self._lock:
            self._indexed_since_report += count
            self._indexed_total += count

    def record_failure(self) -> None:
        with self._lock:
            self._failed_shards += 1

    def mark_complete(self) -> None:
        self.completed.set()

    @property
    def failed_shards(self) -> int:
        with self._lock:
            return self._failed_shards

    @property
    def indexed_total(self) -> int:
        with self._lock:
            return self._indexed_total

    def take_snapshot(self) -> ProgressSnapshot:
        with self._lock:
            snapshot = ProgressSnapshot(
                current_shard=self._current_shard,
                failed_shards=self._failed_shards,
                indexed_total=self._indexed_total,
                indexed_interval=self._indexed_since_report,
            )
            self._indexed_since_report = 0
        return snapshot
