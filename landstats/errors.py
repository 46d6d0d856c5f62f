"""Exception hierarchy for the ingestion pipeline."""

from __future__ import annotations

import httpx


class LandStatsError(Exception):
    """Base class for all land stats errors."""


class DateWindowError(LandStatsError, ValueError):
    """Requested date window is invalid (raised before any network call)."""


class UpstreamError(LandStatsError):
    """The contribution API could not deliver a usable answer."""


class UpstreamStatusError(UpstreamError):
    """Non-success, non-forbidden HTTP status. Never retried."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        super().__init__(
            f"Upstream returned HTTP {response.status_code} for {response.request.url}"
        )


class ForbiddenRetriesExhausted(UpstreamError):
    """Every attempt was answered with 403 Forbidden."""

    def __init__(self, response: httpx.Response, attempts: int) -> None:
        self.response = response
        self.attempts = attempts
        super().__init__(
            f"Giving up after {attempts} forbidden responses for {response.request.url}"
        )


class UpstreamUnavailableError(UpstreamError):
    """Timeout, refused connection or other transport failure."""


class MalformedResponseError(UpstreamError):
    """Body was absent or did not have the expected shape."""
