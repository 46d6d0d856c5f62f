"""Entry point for the land stats ingestion service."""

from __future__ import annotations

import asyncio
import logging

from landstats.config import (
    BAD_LAND_FAILURE_THRESHOLD,
    DAILY_SWEEP_HOUR,
    DAILY_SWEEP_MINUTE,
    LAND_ID_END,
    LAND_ID_START,
    RATE_LIMIT_PERIOD_SECONDS,
    RATE_LIMIT_TOKENS_PER_PERIOD,
    RECOVERY_CHECK_HOURS,
    RETRY_MAX_ATTEMPTS,
    setup_logging,
)
from landstats.migrate import run_migration
from landstats.scheduler import CrawlScheduler

logger = logging.getLogger(__name__)


def startup_summary() -> dict:
    """Effective crawl settings, logged once so a run can be audited."""
    return {
        "land_id_start": LAND_ID_START,
        "land_id_end": LAND_ID_END,
        "land_count": LAND_ID_END - LAND_ID_START + 1,
        "tokens_per_period": RATE_LIMIT_TOKENS_PER_PERIOD,
        "period_seconds": RATE_LIMIT_PERIOD_SECONDS,
        "max_attempts": RETRY_MAX_ATTEMPTS,
        "daily_sweep_utc": f"{DAILY_SWEEP_HOUR:02d}:{DAILY_SWEEP_MINUTE:02d}",
        "recovery_hours_utc": RECOVERY_CHECK_HOURS,
        "bad_land_threshold": BAD_LAND_FAILURE_THRESHOLD,
    }


async def _main() -> None:
    setup_logging()
    logger.info("landstats_starting", extra=startup_summary())

    # Schema must exist before the first recovery check reads job status
    try:
        tables = run_migration()
    except Exception:
        logger.error("migration_failed", exc_info=True)
        raise
    logger.info("schema_ready", extra={"tables": tables})

    scheduler = CrawlScheduler()
    await scheduler.start()


def main() -> None:
    asyncio.run(_main())


if __name__ == "__main__":
    main()
