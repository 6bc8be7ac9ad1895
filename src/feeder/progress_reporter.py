"""Periodic progress lines on standard output."""

from __future__ import annotations

import logging
import sys
import threading
from typing import Optional, TextIO

from src.feeder.run_state import ProgressSnapshot, RunState

logger = logging.getLogger(__name__)


def format_progress(snapshot: ProgressSnapshot, interval: float) -> str:
    current = snapshot.current_shard if snapshot.current_shard is not None else 0
    rate = int(snapshot.indexed_interval // interval)
    return (
        f"current shard: {current}, failed shards: {snapshot.failed_shards}, "
        f"indexed total: {snapshot.indexed_total}, indexed per second: {rate}"
    )


class ProgressReporter:
    """Prints one line per interval until the run signals completion.

    Runs in its own daemon thread and only ever reads :class:`RunState`
    through :meth:`RunState.take_snapshot`, so it never holds up the
    orchestrator. After the completion event is set it prints a final line
    and the thread ends.
    """

    def __init__(
        self,
        state: RunState,
        interval: float = 1.0,
        stream: Optional[TextIO] = None,
    ) -> None:
        self._state = state
        self._interval = interval
        self._stream = stream
        self._thread: Optional[threading.Thread] = None

    def report(self) -> str:
        line = format_progress(self._state.take_snapshot(), self._interval)
        print(line, file=self._stream or sys.stdout, flush=True)
        return line

    def _loop(self) -> None:
        while not self._state.completed.wait(self._interval):
            self.report()
        self.report()
        logger.debug("Progress reporter stopped")

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("ProgressReporter already started")
        self._thread = threading.Thread(
            target=self._loop, name="progress-reporter", daemon=True
        )
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)
