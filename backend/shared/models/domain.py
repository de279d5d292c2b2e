"""
Pydantic v2 domain models for the board service.
RawEvent is the strict, normalized form of an upstream event record; BoardRow is
the wire shape returned to board consumers.
"""
from __future__ import annotations

import math
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


# Upstream spellings, first non-empty wins.
_UPSTREAM_KEYS: dict[str, tuple[str, ...]] = {
    "id_event": ("idEvent",),
    "home_team": ("strHomeTeam", "homeTeam", "strHome"),
    "away_team": ("strAwayTeam", "awayTeam", "strAway"),
    "home_score": ("intHomeScore", "intHomeScoreTotal", "intHomeScore1", "intHomeGoals"),
    "away_score": ("intAwayScore", "intAwayScoreTotal", "intAwayScore1", "intAwayGoals"),
    "status": ("strStatus",),
    "progress": ("strProgress",),
    "date_event": ("dateEvent",),
    "time_event": ("strTime",),
    "date_event_local": ("dateEventLocal",),
    "time_local": ("strTimeLocal",),
    "str_timestamp": ("strTimestamp",),
    "timestamp_ms": ("intTimestampMs", "timestampMs"),
    "timestamp_s": ("intTimestamp", "timestamp"),
    "league_id": ("idLeague",),
}

_ABSENT_SCORES = {"", "N/A", "NA", "-", "NULL", "NONE"}


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_score(value: Any) -> Optional[int]:
    """Numeric score or None for the upstream's many spellings of 'no score'."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.upper() in _ABSENT_SCORES:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    return int(number) if math.isfinite(number) else None


# Last representable datetime (9999-12-31T23:59:59Z)
MAX_EPOCH_S = 253_402_300_799
MAX_EPOCH_MS = MAX_EPOCH_S * 1000 + 999


def _parse_epoch(value: Any, upper: float) -> Optional[float]:
    """Positive finite epoch value no later than `upper`, else None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0 or number > upper:
        return None
    return number


# ── Upstream event ──────────────────────────────────────────────────────
class RawEvent(DomainModel):
    """
    One event as reported by any upstream feed.

    Accepts either upstream field names (strHomeTeam, intHomeScore, ...) or the
    snake_case field names. Unknown fields are ignored; the instance is frozen.
    """

    model_config = ConfigDict(
        from_attributes=True, populate_by_name=True, frozen=True, extra="ignore"
    )

    id_event: Optional[str] = None
    home_team: str = ""
    away_team: str = ""
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    status: Optional[str] = None
    progress: Optional[str] = None
    date_event: Optional[str] = None
    time_event: Optional[str] = None
    date_event_local: Optional[str] = None
    time_local: Optional[str] = None
    str_timestamp: Optional[str] = None
    timestamp_ms: Optional[float] = None
    timestamp_s: Optional[float] = None
    league_id: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _coalesce_upstream_names(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        out: dict[str, Any] = {}
        for field, keys in _UPSTREAM_KEYS.items():
            for key in keys:
                if not _blank(data.get(key)):
                    out[field] = data[key]
                    break
        out.update({k: v for k, v in data.items() if k in cls.model_fields})
        return out

    @field_validator("home_score", "away_score", mode="before")
    @classmethod
    def _score(cls, v: Any) -> Optional[int]:
        return parse_score(v)

    @field_validator("timestamp_ms", mode="before")
    @classmethod
    def _timestamp_ms(cls, v: Any) -> Optional[float]:
        return _parse_epoch(v, MAX_EPOCH_MS)

    @field_validator("timestamp_s", mode="before")
    @classmethod
    def _timestamp_s(cls, v: Any) -> Optional[float]:
        return _parse_epoch(v, MAX_EPOCH_S)

    @field_validator(
        "id_event", "status", "progress", "date_event", "time_event",
        "date_event_local", "time_local", "str_timestamp", "league_id",
        mode="before",
    )
    @classmethod
    def _text(cls, v: Any) -> Optional[str]:
        if _blank(v):
            return None
        return str(v).strip()

    @field_validator("home_team", "away_team", mode="before")
    @classmethod
    def _team(cls, v: Any) -> str:
        return "" if v is None else str(v).strip()

    @property
    def status_texts(self) -> tuple[str, ...]:
        """Lower-cased non-empty status and progress strings."""
        return tuple(t.lower() for t in (self.status, self.progress) if t)

    @property
    def score_total(self) -> int:
        return (self.home_score or 0) + (self.away_score or 0)


# ── Board wire shape ────────────────────────────────────────────────────
class BoardRow(DomainModel):
    """One row of a board response."""
    team1: str
    team2: str
    score1: str
    score2: str
    headline: str
    start: Optional[str] = None
