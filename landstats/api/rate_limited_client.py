"""HTTP GET client behind the shared token bucket, with forbidden-retry."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import httpx

from landstats.api.rate_limiter import TokenBucket
from landstats.config import (
    HTTP_TIMEOUT,
    RATE_LIMIT_MIN_BUFFER,
    RATE_LIMIT_PERIOD_SECONDS,
    RATE_LIMIT_TOKENS_PER_PERIOD,
    RETRY_FORBIDDEN_WAIT_SECONDS,
    RETRY_MAX_ATTEMPTS,
)
from landstats.errors import (
    ForbiddenRetriesExhausted,
    UpstreamStatusError,
    UpstreamUnavailableError,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


class RateLimitedClient:
    """Rate-limited GET for the upstream stats API.

    Waiting for a token is never an error. A 403 is treated as transient and
    retried after ``forbidden_wait`` seconds, for at most ``max_attempts``
    attempts in total. Any other non-2xx status and transport failures
    surface immediately.
    """

    _instance: RateLimitedClient | None = None

    def __init__(
        self,
        *,
        bucket: TokenBucket | None = None,
        http_client: httpx.AsyncClient | None = None,
        max_attempts: int = RETRY_MAX_ATTEMPTS,
        forbidden_wait: float = RETRY_FORBIDDEN_WAIT_SECONDS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._bucket = bucket or TokenBucket(
            RATE_LIMIT_TOKENS_PER_PERIOD, RATE_LIMIT_PERIOD_SECONDS,
        )
        self._client = http_client or httpx.AsyncClient(timeout=HTTP_TIMEOUT)
        self._max_attempts = max_attempts
        self._forbidden_wait = forbidden_wait
        self._sleep = sleep

    @classmethod
    def get_instance(cls) -> RateLimitedClient:
        if cls._instance is None:
            cls._instance = cls()
            logger.info(
                "rate_limiter_initialized",
                extra={
                    "tokens_per_period": RATE_LIMIT_TOKENS_PER_PERIOD,
                    "period_seconds": RATE_LIMIT_PERIOD_SECONDS,
                },
            )
        return cls._instance

    @property
    def bucket(self) -> TokenBucket:
        return self._bucket

    async def close(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Public
    # ------------------------------------------------------------------

    async def get(
        self, url: str, params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """GET *url*, pacing through the bucket and retrying on 403."""
        last_forbidden: httpx.Response | None = None

        for attempt in range(1, self._max_attempts + 1):
            await self._acquire_token(url)
            response = await self._send(url, params)

            if response.is_success:
                return response

            if response.status_code != httpx.codes.FORBIDDEN:
                logger.warning(
                    "upstream_status_error",
                    extra={"url": str(response.request.url), "status": response.status_code},
                )
                raise UpstreamStatusError(response)

            last_forbidden = response
            if attempt == self._max_attempts:
                break

            logger.warning(
                "forbidden_retry",
                extra={
                    "url": str(response.request.url),
                    "attempt": attempt,
                    "max_attempts": self._max_attempts,
                    "wait_seconds": self._forbidden_wait,
                },
            )
            await self._sleep(self._forbidden_wait)

        logger.error(
            "forbidden_retries_exhausted",
            extra={"url": url, "attempts": self._max_attempts},
        )
        raise ForbiddenRetriesExhausted(last_forbidden, self._max_attempts)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _acquire_token(self, url: str) -> None:
        while True:
            probe = self._bucket.try_withdraw()
            if probe.consumed:
                logger.debug("token_acquired", extra={"remaining": probe.remaining})
                return

            wait = probe.wait_seconds
            buffer = max(RATE_LIMIT_MIN_BUFFER, wait / 10)
            logger.warning(
                "rate_limit_wait",
                extra={"host": httpx.URL(url).host, "wait_seconds": round(wait + buffer, 3)},
            )
            await self._sleep(wait + buffer)

    async def _send(
        self, url: str, params: dict[str, Any] | None,
    ) -> httpx.Response:
        try:
            response = await self._client.get(url, params=params)
        except httpx.TransportError as exc:
            logger.warning("upstream_unavailable", extra={"url": url}, exc_info=True)
            raise UpstreamUnavailableError(f"Request to {url} failed: {exc}") from exc
        logger.info(
            "api_request",
            extra={"url": str(response.request.url), "status": response.status_code},
        )
        return response
