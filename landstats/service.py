"""Operations exposed to HTTP controllers and other collaborators."""

from __future__ import annotations

import logging
from datetime import date

from landstats.contribution_store import ContributionStore
from landstats.job_repository import JobRepository
from landstats.jobs.batch_crawler import utc_today
from landstats.models import BatchJobStatus, KingdomTotal, Land, LandTotal
from landstats.scheduler import CrawlScheduler, SweepRequest

logger = logging.getLogger(__name__)


class LandStatsService:
    """Thin facade: queue sweeps, read statuses, serve land data and leaderboards.

    Status and quarantine reads return None or an empty list when nothing is
    stored. Land reads may hit the upstream API and raise its errors.
    """

    def __init__(
        self,
        scheduler: CrawlScheduler,
        store: ContributionStore | None = None,
        jobs: JobRepository | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._store = store or ContributionStore()
        self._jobs = jobs or JobRepository()

    def trigger_batch_job(self) -> str:
        """Fire-and-forget manual sweep."""
        if self._scheduler.request(SweepRequest.SWEEP):
            return "Batch job triggered successfully"
        return "Batch job already queued"

    async def get_latest_status(self, day: date) -> BatchJobStatus | None:
        return await self._jobs.latest_status(day)

    async def get_today_status(self) -> BatchJobStatus | None:
        return await self._jobs.latest_status(utc_today())

    async def get_bad_land_ids(self) -> list[str]:
        return await self._jobs.bad_land_ids()

    async def mark_bad(self, land_id: str) -> bool:
        """Quarantine *land_id*; False if it already was."""
        return await self._jobs.mark_bad(land_id) is not None

    async def get_day(self, land_id: str, day: date) -> Land:
        return await self._store.get_day(land_id, day)

    async def get_range(self, land_id: str, start: date, end: date) -> Land:
        return await self._store.get_range(land_id, start, end)

    async def get_contribution_leaderboard(self, day: date) -> list[KingdomTotal]:
        return await self._store.contribution_leaderboard(day)

    async def get_land_leaderboard(self, day: date) -> list[LandTotal]:
        return await self._store.land_leaderboard(day)
