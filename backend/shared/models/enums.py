"""Domain enumerations for the Sports HQ board."""
from __future__ import annotations

from enum import Enum


class BoardStatus(str, Enum):
    """Display status of a board row. Values are what the headline shows."""
    SCHEDULED = "Scheduled"
    LIVE = "LIVE"
    FINAL = "Final"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK: dict[BoardStatus, int] = {
    BoardStatus.FINAL: 0,
    BoardStatus.LIVE: 1,
    BoardStatus.SCHEDULED: 2,
}


class SeasonStyle(str, Enum):
    """How a league labels its seasons upstream."""
    CROSS_YEAR = "cross_year"    # "2025-2026"
    SINGLE_YEAR = "single_year"  # "2025"


class CacheState(str, Enum):
    ABSENT = "absent"
    FRESH = "fresh"
    STALE = "stale"
