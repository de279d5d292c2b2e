"""Classified event → BoardRow wire shape."""
from __future__ import annotations

from typing import Optional

from shared.models.domain import BoardRow
from shared.utils.clock import ms_to_datetime

from board.classifier import ClassifiedEvent

NO_SCORE = "N/A"


def format_score(score: Optional[int]) -> str:
    return NO_SCORE if score is None else str(score)


def format_start(start_ms: Optional[float]) -> Optional[str]:
    if start_ms is None:
        return None
    try:
        start = ms_to_datetime(start_ms)
    except (OverflowError, ValueError, OSError):
        return None
    return start.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def project_row(item: ClassifiedEvent) -> BoardRow:
    event = item.event
    return BoardRow(
        team1=event.home_team,
        team2=event.away_team,
        score1=format_score(event.home_score),
        score2=format_score(event.away_score),
        headline=f"{event.home_team} vs {event.away_team} - {item.status.value}",
        start=format_start(item.start_ms),
    )
