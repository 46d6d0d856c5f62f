"""Persistence and leaderboard queries for lands and contributions."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Sequence

from landstats.api.contribution_client import ContributionFetcher
from landstats.clickhouse_db import ClickHouseDatabase
from landstats.config import LEADERBOARD_SIZE
from landstats.models import Contribution, KingdomTotal, Land, LandTotal

logger = logging.getLogger(__name__)

EXISTS_FOR_DATE_SQL = """
    SELECT count()
    FROM contribution
    WHERE land_id = {land_id:String}
      AND contribution_date = {day:Date}
"""

EXISTS_IN_RANGE_SQL = """
    SELECT count()
    FROM contribution
    WHERE land_id = {land_id:String}
      AND contribution_date >= {start:Date}
      AND contribution_date <= {end:Date}
"""

CONTRIBUTIONS_IN_RANGE_SQL = """
    SELECT kingdom_id, kingdom_name, total_points, continent, contribution_date
    FROM contribution FINAL
    WHERE land_id = {land_id:String}
      AND contribution_date >= {start:Date}
      AND contribution_date <= {end:Date}
    ORDER BY contribution_date, kingdom_id
"""

LAND_HEADER_SQL = """
    SELECT owner, last_updated
    FROM land FINAL
    WHERE land_id = {land_id:String}
"""

OWNERS_SQL = """
    SELECT land_id, owner
    FROM land FINAL
    WHERE land_id IN {land_ids:Array(String)}
"""

KINGDOM_LEADERBOARD_SQL = """
    SELECT kingdom_id, kingdom_name, sum(total_points) AS total_cumulative_points
    FROM contribution FINAL
    WHERE contribution_date = {day:Date}
    GROUP BY kingdom_id, kingdom_name
    ORDER BY total_cumulative_points DESC
    LIMIT {limit:UInt32}
"""

LAND_LEADERBOARD_SQL = """
    SELECT land_id, sum(total_points) AS total_cumulative_points
    FROM contribution FINAL
    WHERE contribution_date = {day:Date}
    GROUP BY land_id
    ORDER BY total_cumulative_points DESC
    LIMIT {limit:UInt32}
"""


class ContributionStore:
    """Reads and writes land/contribution rows.

    ``get_day`` and ``get_range`` ingest lazily: when nothing is stored yet
    they fetch from the API and save before reading.
    """

    def __init__(
        self,
        db: ClickHouseDatabase | None = None,
        fetcher: ContributionFetcher | None = None,
    ) -> None:
        self._db = db or ClickHouseDatabase.get_instance()
        self._fetcher = fetcher or ContributionFetcher()

    @property
    def fetcher(self) -> ContributionFetcher:
        return self._fetcher

    # ------------------------------------------------------------------
    # Existence checks
    # ------------------------------------------------------------------

    async def exists_for_date(self, land_id: str, day: date) -> bool:
        """True iff at least one contribution row is stored for the pair."""
        rows = await self._db.query(
            EXISTS_FOR_DATE_SQL, {"land_id": land_id, "day": day},
        )
        return _count(rows) > 0

    async def exists_in_range(self, land_id: str, start: date, end: date) -> bool:
        rows = await self._db.query(
            EXISTS_IN_RANGE_SQL, {"land_id": land_id, "start": start, "end": end},
        )
        return _count(rows) > 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def save(self, land: Land, day: date) -> None:
        """Upsert the land row, then append its contributions stamped with *day*.

        The two inserts are not atomic. A land row without contributions is
        harmless: existence checks look at contributions only.
        """
        now = datetime.now(timezone.utc)
        logger.info(
            "save_land",
            extra={"land_id": land.id, "day": day.isoformat(), "contributions": len(land.contributions)},
        )

        await self._db.insert("land", [[
            land.id,
            land.owner,
            land.last_updated or day,
            now,
        ]])

        rows = [
            [
                day,
                c.kingdom_id,
                c.total_points,
                c.kingdom_name,
                c.continent,
                c.land_id or land.id,
                now,
            ]
            for c in land.contributions
        ]
        await self._db.insert("contribution", rows)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_day(self, land_id: str, day: date) -> Land:
        """Contributions for one land on one day, plus its current owner."""
        if not await self.exists_for_date(land_id, day):
            land = await self._fetcher.fetch_contributions(land_id, day, day)
            await self.save(land, day)

        return await self._read_land(land_id, day, day)

    async def get_range(self, land_id: str, start: date, end: date) -> Land:
        """Contributions for one land between *start* and *end* inclusive.

        Only fetches when the whole range is empty; a partially stored range
        is returned as is. A fetched window is stored under *start*.
        """
        if not await self.exists_in_range(land_id, start, end):
            land = await self._fetcher.fetch_contributions(land_id, start, end)
            await self.save(land, start)

        return await self._read_land(land_id, start, end)

    async def owner_of(self, land_id: str) -> str | None:
        rows = await self._db.query(LAND_HEADER_SQL, {"land_id": land_id})
        return rows[0][0] if rows else None

    # ------------------------------------------------------------------
    # Leaderboards
    # ------------------------------------------------------------------

    async def contribution_leaderboard(
        self, day: date, limit: int = LEADERBOARD_SIZE,
    ) -> list[KingdomTotal]:
        """Top kingdoms by summed points on *day*, highest first."""
        rows = await self._db.query(
            KINGDOM_LEADERBOARD_SQL, {"day": day, "limit": limit},
        )
        return [
            KingdomTotal(
                kingdom_id=str(kingdom_id),
                kingdom_name=str(kingdom_name),
                total_points=Decimal(total),
            )
            for kingdom_id, kingdom_name, total in rows
        ]

    async def land_leaderboard(
        self, day: date, limit: int = LEADERBOARD_SIZE,
    ) -> list[LandTotal]:
        """Top lands by summed points on *day*, with owners looked up."""
        rows = await self._db.query(
            LAND_LEADERBOARD_SQL, {"day": day, "limit": limit},
        )
        if not rows:
            return []

        land_ids = [str(r[0]) for r in rows]
        owner_rows = await self._db.query(OWNERS_SQL, {"land_ids": land_ids})
        owners = {str(land_id): owner for land_id, owner in owner_rows}

        return [
            LandTotal(
                land_id=str(land_id),
                owner=owners.get(str(land_id)),
                total_points=Decimal(total),
            )
            for land_id, total in rows
        ]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _read_land(self, land_id: str, start: date, end: date) -> Land:
        rows = await self._db.query(
            CONTRIBUTIONS_IN_RANGE_SQL,
            {"land_id": land_id, "start": start, "end": end},
        )
        header = await self._db.query(LAND_HEADER_SQL, {"land_id": land_id})
        owner, last_updated = header[0] if header else (None, None)

        return Land(
            id=land_id,
            owner=owner,
            last_updated=last_updated,
            contributions=[_to_contribution(land_id, r) for r in rows],
        )


def _count(rows: list[Sequence[Any]]) -> int:
    return int(rows[0][0]) if rows else 0


def _to_contribution(land_id: str, row: Sequence[Any]) -> Contribution:
    kingdom_id, kingdom_name, total, continent, day = row
    return Contribution(
        land_id=land_id,
        kingdom_id=str(kingdom_id),
        kingdom_name=str(kingdom_name),
        continent=int(continent),
        total_points=Decimal(total),
        date=day,
    )
