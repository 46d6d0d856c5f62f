"""Schema migration: applies the bundled SQL and checks every table exists."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from landstats.clickhouse_db import TABLE_COLUMNS, ClickHouseDatabase

logger = logging.getLogger(__name__)

SCHEMA_DIR = Path(__file__).parent / "schema"

_CREATE_TABLE = re.compile(r"CREATE\s+TABLE\s+IF\s+NOT\s+EXISTS\s+(\w+)", re.IGNORECASE)


def schema_files() -> list[Path]:
    """Migration files in apply order (``NNN_name.sql``)."""
    return sorted(SCHEMA_DIR.glob("*.sql"))


def run_migration(db: ClickHouseDatabase | None = None) -> list[str]:
    """Apply every schema file and return the tables they define.

    Raises RuntimeError when a table the writer inserts into is not defined
    by any schema file, so the service never starts against a partial schema.
    """
    db = db or ClickHouseDatabase.get_instance()

    defined: list[str] = []
    for path in schema_files():
        sql = path.read_text()
        tables = _CREATE_TABLE.findall(sql)
        db.run_migration(sql)
        defined.extend(tables)
        logger.info("migration_applied", extra={"file": path.name, "tables": tables})

    missing = sorted(set(TABLE_COLUMNS) - set(defined))
    if missing:
        raise RuntimeError(f"schema does not define tables: {', '.join(missing)}")
    return defined
