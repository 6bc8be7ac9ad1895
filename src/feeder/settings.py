from __future__ import annotations

from pathlib import Path
from typing import Literal
from dotenv import load_dotenv

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv(override=True)


class Settings(BaseSettings):
    """Shard feeder configuration.

    Fields
    ------
    master_host
        Host of the master database holding the shard directory.
    master_port
        Port of the master database.
    master_user
        User for the master database; also used for every shard connection.
    master_password
        Password matching ``master_user``.
    master_database
        Schema on the master host that contains ``shards`` / ``shardHosts``.
    checkpoint_db
        SQLite file storing the per-shard watermarks.
    index_backend
        ``http`` posts each batch as a JSON array to ``indexer_url``;
        ``elasticsearch`` bulk-indexes into ``index_name`` on ``es_host``.
    indexer_url
        Endpoint accepting a JSON array of ``{title, name, identifiers}``.
    es_host
        Elasticsearch HTTP endpoint (only for the ``elasticsearch`` backend).
    index_name
        Elasticsearch index to populate.
    batch_size
        Records per indexing request.
    fetch_size
        Rows pulled from a shard's server-side cursor at a time.
    report_interval
        Seconds between two progress lines.
    connect_timeout
        MySQL connect timeout in seconds.
    read_timeout
        MySQL read timeout in seconds.
    request_timeout
        Timeout of a single indexing request in seconds.
    log_level
        Root logging level.
    """

    master_host: str = Field("localhost")
    master_port: int = Field(3306)
    master_user: str = Field("root")
    master_password: str = Field("")
    master_database: str = Field("zotero_master")

    checkpoint_db: Path = Field(Path("db.sqlite"))

    index_backend: Literal["http", "elasticsearch"] = Field("http")
    indexer_url: str = Field("http://localhost:8080/index")
    es_host: str = Field("http://localhost:9200")
    index_name: str = Field("items")

    batch_size: int = Field(500, gt=0)
    fetch_size: int = Field(1000, gt=0)
    report_interval: float = Field(1.0, gt=0)

    # Passed straight through to the transports; nothing at this layer
    # cancels or retries on timeout.
    connect_timeout: int = Field(10)
    read_timeout: int = Field(600)
    request_timeout: float = Field(60.0)

    log_level: str = Field("INFO")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
