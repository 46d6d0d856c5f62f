"""Client for the land contribution statistics endpoint."""

from __future__ import annotations

import logging
import math
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

from landstats.api.rate_limited_client import RateLimitedClient
from landstats.config import CONTRIBUTION_API_URL, MAX_FETCH_WINDOW_DAYS
from landstats.errors import DateWindowError, MalformedResponseError
from landstats.models import Contribution, Land

logger = logging.getLogger(__name__)

POINTS_QUANTUM = Decimal("0.000001")   # matches Decimal(38, 6) storage


class ContributionFetcher:
    """Fetch and parse contributions for one land over a short date window."""

    def __init__(
        self,
        client: RateLimitedClient | None = None,
        *,
        base_url: str = CONTRIBUTION_API_URL,
    ) -> None:
        self._client = client or RateLimitedClient.get_instance()
        self._base_url = base_url

    async def close(self) -> None:
        await self._client.close()

    async def fetch_contributions(
        self, land_id: str, start_date: date, end_date: date,
    ) -> Land:
        """GET contributions for *land_id* between the two dates (inclusive).

        The window is validated before a rate-limit token is spent.
        """
        validate_window(start_date, end_date)

        logger.info(
            "fetch_contributions",
            extra={"land_id": land_id, "from": start_date.isoformat(), "to": end_date.isoformat()},
        )
        resp = await self._client.get(
            self._base_url,
            params={
                "landId": land_id,
                "from": start_date.isoformat(),
                "to": end_date.isoformat(),
            },
        )

        try:
            payload = resp.json()
        except ValueError as exc:
            raise MalformedResponseError(
                f"Undecodable response from API for land ID: {land_id}"
            ) from exc

        if payload is None:
            logger.error("null_response", extra={"land_id": land_id})
            raise MalformedResponseError(f"Null response from API for land ID: {land_id}")

        return self.parse_land(payload, land_id, end_date)

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    @staticmethod
    def parse_land(payload: Any, land_id: str, end_date: date) -> Land:
        """Convert the raw ``{"owner", "contribution"}`` body into a Land.

        Contributions are stamped with *land_id* and *end_date*.
        """
        if not isinstance(payload, dict):
            raise MalformedResponseError(
                f"Expected an object for land ID {land_id}, got {type(payload).__name__}"
            )

        owner = payload.get("owner")
        raw_entries = payload.get("contribution") or []
        if not isinstance(raw_entries, list):
            raise MalformedResponseError(f"'contribution' is not a list for land ID {land_id}")

        contributions = [
            ContributionFetcher.parse_contribution(entry, land_id, end_date)
            for entry in raw_entries
        ]
        return Land(
            id=land_id,
            owner=str(owner) if owner is not None else None,
            last_updated=end_date,
            contributions=contributions,
        )

    @staticmethod
    def parse_contribution(raw: Any, land_id: str, day: date) -> Contribution:
        """Expected raw keys: kingdomId, name, continent, total."""
        if not isinstance(raw, dict):
            raise MalformedResponseError(f"Contribution entry is not an object for land ID {land_id}")
        try:
            kingdom_id = raw["kingdomId"]
            name = raw["name"]
            continent = raw["continent"]
            total = raw["total"]
        except KeyError as exc:
            raise MalformedResponseError(
                f"Contribution entry for land ID {land_id} is missing {exc.args[0]!r}"
            ) from exc

        if kingdom_id is None or name is None:
            raise MalformedResponseError(f"Contribution entry for land ID {land_id} has null identity")
        if isinstance(continent, bool) or not isinstance(continent, int):
            raise MalformedResponseError(f"Bad continent {continent!r} for land ID {land_id}")

        return Contribution(
            land_id=land_id,
            kingdom_id=str(kingdom_id),
            kingdom_name=str(name),
            continent=continent,
            total_points=normalize_points(total),
            date=day,
        )


def normalize_points(value: Any) -> Decimal:
    """Integer or float totals become one Decimal representation."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedResponseError(f"Bad total points value {value!r}")
    if isinstance(value, float) and not math.isfinite(value):
        raise MalformedResponseError(f"Non-finite total points value {value!r}")
    try:
        return Decimal(str(value)).quantize(POINTS_QUANTUM)
    except InvalidOperation as exc:
        raise MalformedResponseError(f"Total points value out of range {value!r}") from exc


def validate_window(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise DateWindowError("End date before start date")
    if end_date > start_date + timedelta(days=MAX_FETCH_WINDOW_DAYS):
        raise DateWindowError(f"Interval should be max of {MAX_FETCH_WINDOW_DAYS} days")
