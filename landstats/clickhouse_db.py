"""ClickHouse access: parameterized reads, retried inserts, migrations."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

import clickhouse_connect
from clickhouse_connect.driver.client import Client

from landstats.config import (
    CLICKHOUSE_DATABASE,
    CLICKHOUSE_HOST,
    CLICKHOUSE_PASSWORD,
    CLICKHOUSE_PORT,
    CLICKHOUSE_SECURE,
    CLICKHOUSE_USER,
    WRITER_BASE_BACKOFF,
    WRITER_MAX_RETRIES,
)

logger = logging.getLogger(__name__)

# Column order used for every insert into each table
TABLE_COLUMNS: dict[str, list[str]] = {
    "land": ["land_id", "owner", "last_updated", "updated_at"],
    "contribution": [
        "contribution_date", "kingdom_id", "total_points",
        "kingdom_name", "continent", "land_id", "inserted_at",
    ],
    "batch_job_status": ["job_date", "execution_time", "status", "message"],
    "bad_land": ["land_id", "discovered_at"],
}


class ClickHouseDatabase:
    """Singleton-style ClickHouse handle.

    The driver is blocking, so every call is pushed to a worker thread.
    Inserts are written straight through (no buffering) because ingestion
    reads back its own writes for existence checks.
    """

    _instance: ClickHouseDatabase | None = None

    def __init__(self, client: Client | None = None) -> None:
        self._client = client
        self._owns_client = client is None

    @classmethod
    def get_instance(cls) -> ClickHouseDatabase:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def _get_client(self) -> Client:
        if self._client is None:
            self._client = clickhouse_connect.get_client(
                host=CLICKHOUSE_HOST,
                port=CLICKHOUSE_PORT,
                username=CLICKHOUSE_USER,
                password=CLICKHOUSE_PASSWORD,
                database=CLICKHOUSE_DATABASE,
                secure=CLICKHOUSE_SECURE,
                compress="lz4",
                connect_timeout=30,
                send_receive_timeout=300,
            )
        return self._client

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def query(
        self, sql: str, parameters: dict[str, Any] | None = None,
    ) -> list[Sequence[Any]]:
        """Run a SELECT with server-side bound ``{name:Type}`` parameters."""
        client = self._get_client()
        result = await asyncio.to_thread(client.query, sql, parameters=parameters or {})
        return result.result_rows

    async def insert(self, table: str, rows: list[list[Any]]) -> None:
        """Insert *rows* into *table*, retrying with doubling backoff.

        Raises the last driver error once WRITER_MAX_RETRIES is reached.
        """
        if not rows:
            return
        columns = TABLE_COLUMNS.get(table)
        if columns is None:
            raise KeyError(f"unknown table {table!r}")

        backoff = WRITER_BASE_BACKOFF
        for attempt in range(1, WRITER_MAX_RETRIES + 1):
            client = self._get_client()
            try:
                await asyncio.to_thread(
                    client.insert, table, rows, column_names=columns,
                )
                logger.debug("insert_ok", extra={"table": table, "rows": len(rows)})
                return
            except Exception:
                if attempt == WRITER_MAX_RETRIES:
                    logger.error(
                        "insert_failed",
                        extra={"table": table, "rows": len(rows)},
                        exc_info=True,
                    )
                    raise
                logger.warning(
                    "insert_retry",
                    extra={
                        "table": table,
                        "attempt": attempt,
                        "backoff": backoff,
                        "rows": len(rows),
                    },
                    exc_info=True,
                )
                await asyncio.sleep(backoff)
                backoff *= 2
                if self._owns_client:
                    # Reconnect on next attempt
                    self._client = None

    def run_migration(self, sql: str) -> None:
        """Execute raw SQL (for schema migration)."""
        client = self._get_client()
        for statement in sql.split(";"):
            statement = statement.strip()
            if statement:
                client.command(statement)
        logger.info("migration_complete")
