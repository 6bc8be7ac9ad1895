"""feeder_cli.py
Command-line entry point for one unattended incremental sync run.

Takes no flags: everything comes from :pyfile:`src.feeder.settings`. This
module wires the components together and maps fatal errors to exit status 1;
per-shard failures only show up in the log and in the progress lines.
"""

from __future__ import annotations

import logging
import sys
import time
from functools import partial

from src.feeder.checkpoint_store import CheckpointStore
from src.feeder.elastic_search_indexer import ElasticsearchIndexClient
from src.feeder.errors import CheckpointStoreError, DirectoryError, IndexDeliveryError
from src.feeder.index_client import HttpIndexClient, IndexClient
from src.feeder.orchestrator import Orchestrator
from src.feeder.progress_reporter import ProgressReporter
from src.feeder.run_state import RunState
from src.feeder.settings import Settings, settings
from src.feeder.shard_directory import ShardDirectory
from src.feeder.shard_streamer import open_shard_connection

logger = logging.getLogger(__name__)


def build_index_client(config: Settings) -> IndexClient:
    if config.index_backend == "elasticsearch":
        client = ElasticsearchIndexClient(
            config.index_name, config.es_host, request_timeout=config.request_timeout
        )
        try:
            client.ensure_index()
        except IndexDeliveryError:
            client.close()
            raise
        return client
    return HttpIndexClient(config.indexer_url, timeout=config.request_timeout)


def run(config: Settings) -> int:
    """Sync every eligible shard once; return the process exit code."""

    started = time.monotonic()
    state = RunState()
    reporter = ProgressReporter(state, interval=config.report_interval)

    try:
        with CheckpointStore(config.checkpoint_db) as checkpoints:
            shards = ShardDirectory(config).list_shards()
            with build_index_client(config) as index_client:
                orchestrator = Orchestrator(
                    checkpoints,
                    index_client,
                    connect=partial(open_shard_connection, config=config),
                    state=state,
                    batch_size=config.batch_size,
                    fetch_size=config.fetch_size,
                )
                reporter.start()
                orchestrator.run(shards)
    except (DirectoryError, CheckpointStoreError, IndexDeliveryError) as exc:
        logger.error("Run aborted: %s", exc)
        return 1
    finally:
        state.mark_complete()
        reporter.join()
        logger.info("total time: %.3fs", time.monotonic() - started)

    return 0


def main() -> None:  # noqa: D401
    """Configure logging and run the feeder with the environment settings."""

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    sys.exit(run(settings))


if __name__ == "__main__":
    main()
