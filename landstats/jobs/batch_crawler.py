"""Job: daily sweep of the land id range, plus the recovery check."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable

from landstats.config import LAND_ID_END, LAND_ID_START
from landstats.contribution_store import ContributionStore
from landstats.job_repository import JobRepository
from landstats.jobs.quarantine import BadLandPolicy, policy_from_config
from landstats.models import BatchJobStatus, JobState

logger = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class BatchCrawler:
    """Sweeps every land id once for a target date.

    A sweep holds no state of its own: re-running it for the same date only
    fetches lands that still have no stored contributions.
    """

    def __init__(
        self,
        store: ContributionStore | None = None,
        jobs: JobRepository | None = None,
        *,
        land_id_start: int = LAND_ID_START,
        land_id_end: int = LAND_ID_END,
        policy: BadLandPolicy | None = None,
        today: Callable[[], date] = utc_today,
    ) -> None:
        if land_id_end < land_id_start:
            raise ValueError("land_id_end must not be below land_id_start")
        self._store = store or ContributionStore()
        self._jobs = jobs or JobRepository()
        self._start = land_id_start
        self._end = land_id_end
        self._policy = policy or policy_from_config()
        self._today = today

    async def close(self) -> None:
        """Release the HTTP client held by this crawler's fetcher."""
        await self._store.fetcher.close()

    def yesterday(self) -> date:
        return self._today() - timedelta(days=1)

    async def run_sweep(self, target_date: date | None = None) -> BatchJobStatus:
        """Ingest every non-quarantined land for *target_date* (default yesterday UTC).

        Per-land failures are logged and skipped. Only a failure of the sweep
        itself records a FAILED status.
        """
        day = target_date or self.yesterday()
        logger.info(
            "sweep_start",
            extra={"day": day.isoformat(), "land_id_start": self._start, "land_id_end": self._end},
        )

        try:
            bad_lands = set(await self._jobs.bad_land_ids())
            logger.info("bad_lands_loaded", extra={"count": len(bad_lands)})

            success_count = 0
            total_count = 0
            quarantined = 0

            for land_id in (str(i) for i in range(self._start, self._end + 1)):
                if land_id in bad_lands:
                    quarantined += 1
                    logger.debug("skip_bad_land", extra={"land_id": land_id})
                    continue

                total_count += 1
                try:
                    await self._ingest(land_id, day)
                except Exception as exc:
                    logger.error("land_ingest_failed", extra={"land_id": land_id}, exc_info=True)
                    await self._record_failure(land_id, exc)
                    continue

                success_count += 1
                self._policy.record_success(land_id)
                logger.debug(
                    "land_processed",
                    extra={"land_id": land_id, "processed": success_count},
                )

            status = BatchJobStatus(
                date=day,
                execution_time=datetime.now(timezone.utc),
                status=JobState.SUCCESS,
                message=f"Processed {success_count}/{total_count} lands successfully",
            )
            logger.info(
                "sweep_complete",
                extra={
                    "day": day.isoformat(),
                    "processed": success_count,
                    "total": total_count,
                    "quarantined": quarantined,
                },
            )
        except Exception as exc:
            logger.error("sweep_failed", extra={"day": day.isoformat()}, exc_info=True)
            status = BatchJobStatus(
                date=day,
                execution_time=datetime.now(timezone.utc),
                status=JobState.FAILED,
                message=f"Error: {exc}",
            )

        await self._jobs.save_status(status)
        return status

    async def recover(self, target_date: date | None = None) -> bool:
        """Re-run the sweep if the latest status for the date is missing or FAILED.

        Returns True when a sweep was run.
        """
        day = target_date or self.yesterday()
        latest = await self._jobs.latest_status(day)

        if latest is not None and latest.status is JobState.SUCCESS:
            logger.info("recovery_not_needed", extra={"day": day.isoformat()})
            return False

        logger.info(
            "recovery_triggered",
            extra={
                "day": day.isoformat(),
                "last_status": latest.status.value if latest else None,
            },
        )
        await self.run_sweep(day)
        return True

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _ingest(self, land_id: str, day: date) -> None:
        if await self._store.exists_for_date(land_id, day):
            return
        land = await self._store.fetcher.fetch_contributions(land_id, day, day)
        await self._store.save(land, day)

    async def _record_failure(self, land_id: str, exc: BaseException) -> None:
        if not self._policy.record_failure(land_id, exc):
            return
        try:
            await self._jobs.mark_bad(land_id)
        except Exception:
            logger.error("quarantine_failed", extra={"land_id": land_id}, exc_info=True)
