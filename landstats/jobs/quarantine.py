"""Rules deciding when a failing land is quarantined for good."""

from __future__ import annotations

from typing import Protocol

from landstats.config import BAD_LAND_FAILURE_THRESHOLD
from landstats.errors import MalformedResponseError, UpstreamStatusError

# Failures that say something about the land itself rather than the
# network or our standing with the API.
LAND_SPECIFIC_ERRORS = (UpstreamStatusError, MalformedResponseError)


class BadLandPolicy(Protocol):
    def record_failure(self, land_id: str, exc: BaseException) -> bool:
        """Return True when *land_id* should be quarantined now."""
        ...

    def record_success(self, land_id: str) -> None:
        ...


class NeverQuarantine:
    """Default: lands are only quarantined by an explicit mark_bad call."""

    def record_failure(self, land_id: str, exc: BaseException) -> bool:
        return False

    def record_success(self, land_id: str) -> None:
        return None


class ConsecutiveFailurePolicy:
    """Quarantine after *threshold* land-specific failures in a row.

    Counts live in memory, so they span sweeps within one process only.
    """

    def __init__(self, threshold: int) -> None:
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self.threshold = threshold
        self._failures: dict[str, int] = {}

    def record_failure(self, land_id: str, exc: BaseException) -> bool:
        if not isinstance(exc, LAND_SPECIFIC_ERRORS):
            return False
        count = self._failures.get(land_id, 0) + 1
        if count >= self.threshold:
            self._failures.pop(land_id, None)
            return True
        self._failures[land_id] = count
        return False

    def record_success(self, land_id: str) -> None:
        self._failures.pop(land_id, None)

    def failures(self, land_id: str) -> int:
        return self._failures.get(land_id, 0)


def policy_from_config(threshold: int = BAD_LAND_FAILURE_THRESHOLD) -> BadLandPolicy:
    if threshold > 0:
        return ConsecutiveFailurePolicy(threshold)
    return NeverQuarantine()
