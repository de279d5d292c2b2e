"""
Time and status classification for upstream events.

All functions are pure: they read a RawEvent and an explicit `now` (epoch ms)
and never touch the network or the cache. Status depends on the clock, so it is
recomputed on every board build rather than stored.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from shared.models.domain import RawEvent
from shared.models.enums import BoardStatus
from shared.utils.clock import datetime_to_ms

START_GRACE_MS = 90_000
LIVE_MIN_ELAPSED_MS = 5 * 60_000
FINAL_RECENCY_MS = 15 * 60_000

_FINAL_SUBSTRINGS = (
    "final", "finish", "full time", "full-time", "fulltime",
    "after extra time", "after penalties", "after over time",
)
_FINAL_EXACT = frozenset({"ft", "aet", "aot", "ap", "pen", "pen."})

_VOID_SUBSTRINGS = ("postpone", "cancel", "abandon", "suspend")
_VOID_EXACT = frozenset({"pst", "canc", "abd", "susp"})

_LIVE_TOKEN_RE = re.compile(
    r"\b(?:q[1-4]|p[1-3]|[1-4]h|ht|et|ot|bt|pt"
    r"|quarter|period|inning|innings|half|halftime|overtime"
    r"|top|bottom|bot|live|in play|in progress"
    r"|\d+(?:st|nd|rd|th))\b"
)
# strProgress carries the match minute for soccer: "67", "45+2", "90'"
_MINUTE_RE = re.compile(r"^[1-9]\d{0,2}(?:\+\d+)?'?$")

_TIME_RE = re.compile(
    r"^(\d{1,2}):(\d{2})(?::(\d{2}))?(?:\.\d+)?\s*(am|pm)?\s*(z|utc|gmt|[+-]\d{2}:?\d{2})?$",
    re.IGNORECASE,
)


# ── Time resolution ─────────────────────────────────────────────────────

def _parse_offset(marker: Optional[str]) -> timezone:
    if not marker or marker.lower() in ("z", "utc", "gmt"):
        return timezone.utc
    sign = -1 if marker[0] == "-" else 1
    digits = marker[1:].replace(":", "")
    return timezone(sign * timedelta(hours=int(digits[:2]), minutes=int(digits[2:4])))


def parse_date_time(date_str: Optional[str], time_str: Optional[str]) -> Optional[float]:
    """
    Epoch ms for a date plus time of day. UTC unless the time carries an
    offset. None when either part is missing or unreadable.
    """
    if not date_str or not time_str:
        return None
    try:
        day = date.fromisoformat(date_str.strip()[:10])
    except ValueError:
        return None
    match = _TIME_RE.match(time_str.strip())
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3) or 0)
    meridiem = (match.group(4) or "").lower()
    if meridiem == "pm" and hour < 12:
        hour += 12
    elif meridiem == "am" and hour == 12:
        hour = 0
    try:
        dt = datetime(
            day.year, day.month, day.day, hour, minute, second,
            tzinfo=_parse_offset(match.group(5)),
        )
    except ValueError:
        return None
    return datetime_to_ms(dt)


def parse_timestamp_string(value: Optional[str]) -> Optional[float]:
    """ISO-ish 'YYYY-MM-DDTHH:MM[:SS][offset]' (a space may separate date and time)."""
    if not value or len(value) < 11:
        return None
    return parse_date_time(value[:10], value[11:])


def parse_date_only(date_str: Optional[str]) -> Optional[float]:
    if not date_str:
        return None
    try:
        day = date.fromisoformat(date_str.strip()[:10])
    except ValueError:
        return None
    return datetime_to_ms(datetime(day.year, day.month, day.day, tzinfo=timezone.utc))


def resolve_start_time(event: RawEvent) -> Optional[float]:
    """First start time that parses, most specific source first."""
    candidates = (
        lambda: parse_timestamp_string(event.str_timestamp),
        lambda: parse_date_time(event.date_event, event.time_event),
        lambda: parse_date_time(event.date_event_local, event.time_local),
        lambda: event.timestamp_ms,
        lambda: event.timestamp_s * 1000.0 if event.timestamp_s else None,
        lambda: parse_date_only(event.date_event),
        lambda: parse_date_only(event.date_event_local),
    )
    for candidate in candidates:
        value = candidate()
        if value is not None:
            return value
    return None


# ── Status vocabulary ───────────────────────────────────────────────────

def is_final_text(event: RawEvent) -> bool:
    for text in event.status_texts:
        if text in _FINAL_EXACT or any(s in text for s in _FINAL_SUBSTRINGS):
            return True
    return False


def has_live_token(event: RawEvent) -> bool:
    if any(_LIVE_TOKEN_RE.search(text) for text in event.status_texts):
        return True
    return bool(event.progress and _MINUTE_RE.match(event.progress))


def is_void(event: RawEvent) -> bool:
    """Postponed, cancelled, abandoned or suspended fixtures never make a board."""
    return any(
        text in _VOID_EXACT or any(s in text for s in _VOID_SUBSTRINGS)
        for text in event.status_texts
    )


def classify_status(
    event: RawEvent,
    now_ms: float,
    *,
    grace_ms: float = START_GRACE_MS,
    live_min_elapsed_ms: float = LIVE_MIN_ELAPSED_MS,
    start_ms: Optional[float] = None,
) -> BoardStatus:
    """
    Final wins over everything. LIVE needs corroboration: a score, an in-game
    token, or enough time since the start. A missing start time needs both a
    token and a score.
    """
    if is_final_text(event):
        return BoardStatus.FINAL

    if start_ms is None:
        start_ms = resolve_start_time(event)
    scored = event.score_total > 0
    token = has_live_token(event)

    if start_ms is None:
        return BoardStatus.LIVE if token and scored else BoardStatus.SCHEDULED

    if start_ms > now_ms + grace_ms:
        return BoardStatus.SCHEDULED

    if scored or token or now_ms - start_ms >= live_min_elapsed_ms:
        return BoardStatus.LIVE
    return BoardStatus.SCHEDULED


# ── Classified view ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class ClassifiedEvent:
    event: RawEvent
    start_ms: Optional[float]
    status: BoardStatus

    @property
    def key(self) -> str:
        return dedup_key(self.event)


def classify(
    event: RawEvent,
    now_ms: float,
    *,
    grace_ms: float = START_GRACE_MS,
    live_min_elapsed_ms: float = LIVE_MIN_ELAPSED_MS,
) -> ClassifiedEvent:
    start_ms = resolve_start_time(event)
    status = classify_status(
        event, now_ms,
        grace_ms=grace_ms,
        live_min_elapsed_ms=live_min_elapsed_ms,
        start_ms=start_ms,
    )
    return ClassifiedEvent(event=event, start_ms=start_ms, status=status)


def dedup_key(event: RawEvent) -> str:
    if event.id_event:
        return event.id_event
    return f"{event.home_team}|{event.away_team}|{event.date_event or ''}"


def board_sort_key(item: ClassifiedEvent) -> tuple[int, int, float]:
    """
    Finals newest first, LIVE and Scheduled earliest first. Rows without a
    start time go last within their status.
    """
    if item.start_ms is None:
        return (item.status.rank, 1, 0.0)
    when = -item.start_ms if item.status is BoardStatus.FINAL else item.start_ms
    return (item.status.rank, 0, when)


def passes_final_recency(
    item: ClassifiedEvent, now_ms: float, window_ms: float = FINAL_RECENCY_MS
) -> bool:
    return (
        item.status is BoardStatus.FINAL
        and item.start_ms is not None
        and now_ms - item.start_ms <= window_ms
    )


def is_upcoming(item: ClassifiedEvent, now_ms: float) -> bool:
    return item.start_ms is not None and item.start_ms >= now_ms
