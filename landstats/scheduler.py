"""APScheduler-based triggers feeding a single sweep worker."""

from __future__ import annotations

import asyncio
import logging
import signal
from enum import Enum

from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from landstats.config import (
    DAILY_SWEEP_HOUR,
    DAILY_SWEEP_MINUTE,
    HEALTH_CHECK_PORT,
    RECOVERY_CHECK_HOURS,
)
from landstats.jobs.batch_crawler import BatchCrawler

logger = logging.getLogger(__name__)


class SweepRequest(str, Enum):
    SWEEP = "sweep"          # unconditional run for yesterday
    RECOVER = "recover"      # run only if yesterday has no SUCCESS status


class CrawlScheduler:
    """Owns the timers and the one worker that executes sweeps.

    Timers and manual triggers only enqueue requests. The worker drains the
    queue one request at a time, so two sweeps never overlap. A request kind
    that is already waiting in the queue is not queued again.
    """

    def __init__(self, crawler: BatchCrawler | None = None) -> None:
        self._scheduler = AsyncIOScheduler(timezone="UTC")
        self._crawler = crawler or BatchCrawler()
        self._queue: asyncio.Queue[SweepRequest] = asyncio.Queue()
        self._pending: set[SweepRequest] = set()
        self._running: SweepRequest | None = None
        self._worker: asyncio.Task | None = None
        self._shutdown_event = asyncio.Event()
        self._health_runner: web.AppRunner | None = None

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    def request(self, kind: SweepRequest) -> bool:
        """Queue a sweep request. Returns False if one of that kind is waiting."""
        if kind in self._pending:
            logger.info("sweep_request_coalesced", extra={"kind": kind.value})
            return False
        self._pending.add(kind)
        self._queue.put_nowait(kind)
        logger.info(
            "sweep_requested",
            extra={"kind": kind.value, "queue_depth": self._queue.qsize()},
        )
        return True

    def start_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._work(), name="sweep-worker")

    async def drain(self) -> None:
        """Wait until every queued request has been executed."""
        await self._queue.join()

    @property
    def queue_depth(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> SweepRequest | None:
        return self._running

    async def _work(self) -> None:
        while True:
            kind = await self._queue.get()
            self._pending.discard(kind)
            self._running = kind
            try:
                if kind is SweepRequest.SWEEP:
                    await self._crawler.run_sweep()
                else:
                    await self._crawler.recover()
            except Exception:
                logger.error("sweep_worker_error", extra={"kind": kind.value}, exc_info=True)
            finally:
                self._running = None
                self._queue.task_done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Register jobs, start the worker, and block until shutdown."""
        self.start_worker()
        self._register_jobs()

        self._scheduler.start()
        logger.info("scheduler_started")

        await self._start_health_server()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._signal_handler)

        # Block until shutdown
        await self._shutdown_event.wait()
        await self._stop()

    def _register_jobs(self) -> None:
        """Queue the startup recovery check and add both cron triggers."""
        logger.info("initial_recovery_check")
        self.request(SweepRequest.RECOVER)

        self._scheduler.add_job(
            self._job_daily_sweep,
            "cron",
            hour=DAILY_SWEEP_HOUR,
            minute=DAILY_SWEEP_MINUTE,
            timezone="UTC",
            id="daily_sweep",
            name="Daily Sweep",
            replace_existing=True,
        )
        self._scheduler.add_job(
            self._job_recovery_check,
            "cron",
            hour=RECOVERY_CHECK_HOURS,
            minute=0,
            timezone="UTC",
            id="recovery_check",
            name="Recovery Check",
            replace_existing=True,
        )

    async def _stop(self) -> None:
        logger.info("scheduler_stopping")
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

        if self._worker:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass

        await self._crawler.close()

        if self._health_runner:
            await self._health_runner.cleanup()

        logger.info("scheduler_stopped")

    def _signal_handler(self) -> None:
        logger.info("shutdown_signal_received")
        self._shutdown_event.set()

    # ------------------------------------------------------------------
    # Job wrappers (only enqueue, so the scheduler never blocks)
    # ------------------------------------------------------------------

    async def _job_daily_sweep(self) -> None:
        self.request(SweepRequest.SWEEP)

    async def _job_recovery_check(self) -> None:
        self.request(SweepRequest.RECOVER)

    # ------------------------------------------------------------------
    # Health check
    # ------------------------------------------------------------------

    async def _start_health_server(self) -> None:
        app = web.Application()
        app.router.add_get("/health", self._health_handler)

        self._health_runner = web.AppRunner(app)
        await self._health_runner.setup()
        site = web.TCPSite(self._health_runner, "0.0.0.0", HEALTH_CHECK_PORT)
        await site.start()
        logger.info("health_server_started", extra={"port": HEALTH_CHECK_PORT})

    async def _health_handler(self, request: web.Request) -> web.Response:
        return web.json_response(self.health())

    def health(self) -> dict:
        return {
            "status": "ok",
            "scheduler_running": self._scheduler.running,
            "worker_alive": self._worker is not None and not self._worker.done(),
            "running": self._running.value if self._running else None,
            "pending": sorted(k.value for k in self._pending),
            "queue_depth": self._queue.qsize(),
        }
