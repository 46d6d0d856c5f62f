"""Batch job status history and the bad-land quarantine list."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from landstats.clickhouse_db import ClickHouseDatabase
from landstats.models import BadLand, BatchJobStatus, JobState

logger = logging.getLogger(__name__)

LATEST_STATUS_SQL = """
    SELECT job_date, execution_time, status, message
    FROM batch_job_status
    WHERE job_date = {day:Date}
    ORDER BY execution_time DESC
    LIMIT 1
"""

BAD_LAND_IDS_SQL = """
    SELECT DISTINCT land_id
    FROM bad_land
    ORDER BY land_id
"""

IS_BAD_LAND_SQL = """
    SELECT count()
    FROM bad_land
    WHERE land_id = {land_id:String}
"""


class JobRepository:
    def __init__(self, db: ClickHouseDatabase | None = None) -> None:
        self._db = db or ClickHouseDatabase.get_instance()

    # ------------------------------------------------------------------
    # Job status
    # ------------------------------------------------------------------

    async def save_status(self, status: BatchJobStatus) -> None:
        await self._db.insert("batch_job_status", [[
            status.date,
            status.execution_time,
            status.status.value,
            status.message,
        ]])

    async def latest_status(self, day: date) -> BatchJobStatus | None:
        """Most recent status recorded for *day*, or None if no run yet."""
        rows = await self._db.query(LATEST_STATUS_SQL, {"day": day})
        if not rows:
            return None
        job_date, execution_time, status, message = rows[0]
        return BatchJobStatus(
            date=job_date,
            execution_time=execution_time,
            status=JobState(status),
            message=message,
        )

    # ------------------------------------------------------------------
    # Quarantine
    # ------------------------------------------------------------------

    async def bad_land_ids(self) -> list[str]:
        rows = await self._db.query(BAD_LAND_IDS_SQL)
        return [str(r[0]) for r in rows]

    async def is_bad_land(self, land_id: str) -> bool:
        rows = await self._db.query(IS_BAD_LAND_SQL, {"land_id": land_id})
        return bool(rows) and int(rows[0][0]) > 0

    async def mark_bad(self, land_id: str) -> BadLand | None:
        """Quarantine *land_id*. Returns None if it already was."""
        if await self.is_bad_land(land_id):
            return None
        bad = BadLand(land_id=land_id, discovered_at=datetime.now(timezone.utc))
        await self._db.insert("bad_land", [[bad.land_id, bad.discovered_at]])
        logger.warning("land_quarantined", extra={"land_id": land_id})
        return bad
