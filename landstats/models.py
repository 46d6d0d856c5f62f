"""Data classes for lands, contributions and batch bookkeeping."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class JobState(str, Enum):
    """Outcome of one sweep."""
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


@dataclass
class Contribution:
    """One kingdom's point total toward one land on one date."""
    land_id: str
    kingdom_id: str
    kingdom_name: str
    continent: int
    total_points: Decimal
    date: Optional[date] = None


@dataclass
class Land:
    """A land and the contributions recorded against it."""
    id: str
    owner: Optional[str] = None
    last_updated: Optional[date] = None
    contributions: list[Contribution] = field(default_factory=list)


@dataclass
class BatchJobStatus:
    date: date
    execution_time: datetime
    status: JobState
    message: str = ""


@dataclass
class BadLand:
    land_id: str
    discovered_at: datetime


@dataclass
class KingdomTotal:
    """Row of the per-day contribution leaderboard."""
    kingdom_id: str
    kingdom_name: str
    total_points: Decimal


@dataclass
class LandTotal:
    """Row of the per-day land leaderboard."""
    land_id: str
    owner: Optional[str]
    total_points: Decimal
