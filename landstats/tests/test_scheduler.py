"""Tests for the single-worker sweep queue and the service facade."""

import asyncio
from datetime import date

import httpx

from landstats.api.contribution_client import ContributionFetcher
from landstats.api.rate_limited_client import RateLimitedClient
from landstats.contribution_store import ContributionStore
from landstats.job_repository import JobRepository
from landstats.jobs.batch_crawler import BatchCrawler
from landstats.scheduler import CrawlScheduler, SweepRequest
from landstats.service import LandStatsService


class RecordingCrawler:
    def __init__(self, fail_on=None):
        self.calls = []
        self.active = 0
        self.max_active = 0
        self.fail_on = fail_on
        self.closed = False

    async def _run(self, kind):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(0)
            self.calls.append(kind)
            if kind == self.fail_on:
                raise RuntimeError("boom")
        finally:
            self.active -= 1

    async def run_sweep(self, target_date=None):
        await self._run("sweep")

    async def recover(self, target_date=None):
        await self._run("recover")
        return True

    async def close(self):
        self.closed = True


def test_requests_run_one_at_a_time():
    crawler = RecordingCrawler()

    async def run():
        scheduler = CrawlScheduler(crawler)
        scheduler.start_worker()
        scheduler.request(SweepRequest.RECOVER)
        scheduler.request(SweepRequest.SWEEP)
        await scheduler.drain()
        return scheduler

    scheduler = asyncio.run(run())
    assert crawler.calls == ["recover", "sweep"]
    assert crawler.max_active == 1
    assert scheduler.queue_depth == 0


def test_pending_request_is_coalesced():
    crawler = RecordingCrawler()

    async def run():
        scheduler = CrawlScheduler(crawler)
        queued = [scheduler.request(SweepRequest.SWEEP) for _ in range(3)]
        scheduler.start_worker()
        await scheduler.drain()
        return queued

    assert asyncio.run(run()) == [True, False, False]
    assert crawler.calls == ["sweep"]


def test_request_accepted_again_once_started():
    crawler = RecordingCrawler()

    async def run():
        scheduler = CrawlScheduler(crawler)
        scheduler.start_worker()
        scheduler.request(SweepRequest.SWEEP)
        await scheduler.drain()
        scheduler.request(SweepRequest.SWEEP)
        await scheduler.drain()

    asyncio.run(run())
    assert crawler.calls == ["sweep", "sweep"]


def test_worker_survives_job_errors():
    crawler = RecordingCrawler(fail_on="recover")

    async def run():
        scheduler = CrawlScheduler(crawler)
        scheduler.start_worker()
        scheduler.request(SweepRequest.RECOVER)
        scheduler.request(SweepRequest.SWEEP)
        await scheduler.drain()
        return scheduler.health()

    health = asyncio.run(run())
    assert crawler.calls == ["recover", "sweep"]
    assert health["worker_alive"] is True
    assert health["running"] is None
    assert health["pending"] == []


def test_timer_jobs_only_enqueue():
    crawler = RecordingCrawler()

    async def run():
        scheduler = CrawlScheduler(crawler)
        await scheduler._job_daily_sweep()
        await scheduler._job_recovery_check()
        return scheduler.queue_depth

    assert asyncio.run(run()) == 2
    assert crawler.calls == []


def cron_fields(job):
    return {field.name: str(field) for field in job.trigger.fields}


def test_startup_registers_cron_jobs_and_recovery():
    crawler = RecordingCrawler()

    async def run():
        scheduler = CrawlScheduler(crawler)
        scheduler._register_jobs()
        return scheduler, {job.id: job for job in scheduler._scheduler.get_jobs()}

    scheduler, jobs = asyncio.run(run())

    assert set(jobs) == {"daily_sweep", "recovery_check"}

    daily = cron_fields(jobs["daily_sweep"])
    assert (daily["hour"], daily["minute"]) == ("6", "30")
    assert str(jobs["daily_sweep"].trigger.timezone) == "UTC"

    recovery = cron_fields(jobs["recovery_check"])
    assert (recovery["hour"], recovery["minute"]) == ("1/8", "0")
    assert str(jobs["recovery_check"].trigger.timezone) == "UTC"

    assert scheduler.queue_depth == 1
    assert scheduler.health()["pending"] == ["recover"]
    assert crawler.calls == []


def test_stop_closes_the_crawlers_own_client(db, monkeypatch):
    monkeypatch.setattr(RateLimitedClient, "_instance", None)
    http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={})))
    fetcher = ContributionFetcher(RateLimitedClient(http_client=http))
    crawler = BatchCrawler(ContributionStore(db=db, fetcher=fetcher), JobRepository(db=db))

    async def run():
        scheduler = CrawlScheduler(crawler)
        scheduler.start_worker()
        await scheduler._stop()

    asyncio.run(run())

    assert http.is_closed
    assert RateLimitedClient._instance is None


def test_stop_without_start_closes_crawler():
    crawler = RecordingCrawler()

    async def run():
        await CrawlScheduler(crawler)._stop()

    asyncio.run(run())
    assert crawler.closed


# ------------------------------------------------------------------
# Service facade
# ------------------------------------------------------------------

def test_trigger_batch_job(store, jobs):
    crawler = RecordingCrawler()

    async def run():
        scheduler = CrawlScheduler(crawler)
        service = LandStatsService(scheduler, store, jobs)
        first = service.trigger_batch_job()
        second = service.trigger_batch_job()
        scheduler.start_worker()
        await scheduler.drain()
        return first, second

    assert asyncio.run(run()) == ("Batch job triggered successfully", "Batch job already queued")
    assert crawler.calls == ["sweep"]


def test_service_reads_on_empty_store(store, jobs, fetcher):
    async def run():
        service = LandStatsService(CrawlScheduler(RecordingCrawler()), store, jobs)
        return (
            await service.get_latest_status(date(2024, 1, 1)),
            await service.get_today_status(),
            await service.get_bad_land_ids(),
            await service.get_contribution_leaderboard(date(2024, 1, 1)),
            await service.get_land_leaderboard(date(2024, 1, 1)),
        )

    assert asyncio.run(run()) == (None, None, [], [], [])
    assert fetcher.calls == []


def test_service_land_reads_and_mark_bad(store, jobs, fetcher):
    async def run():
        service = LandStatsService(CrawlScheduler(RecordingCrawler()), store, jobs)
        day = await service.get_day("12", date(2024, 1, 1))
        window = await service.get_range("13", date(2024, 1, 1), date(2024, 1, 3))
        marked = await service.mark_bad("12"), await service.mark_bad("12")
        return day, window, marked, await service.get_bad_land_ids()

    day, window, marked, bad = asyncio.run(run())
    assert day.id == "12"
    assert window.id == "13"
    assert marked == (True, False)
    assert bad == ["12"]
    assert [c[0] for c in fetcher.calls] == ["12", "13"]
