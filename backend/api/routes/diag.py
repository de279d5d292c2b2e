"""
Diagnostics endpoint.

GET /diag: checks each upstream query shape once, bypassing the cache, and
reports status plus a short body preview. Keys are never echoed.
"""
from __future__ import annotations

from typing import Any

import httpx
from fastapi import APIRouter, Depends

from shared.config import Settings, get_settings
from shared.utils.clock import system_clock_ms
from shared.utils.logging import get_logger, redact_url

from api.dependencies import get_feeds, get_http_client
from board.leagues import LEAGUE_BOARDS
from board.upstream import UpstreamFeeds, season_labels, utc_today

logger = get_logger(__name__)
router = APIRouter(tags=["system"])

PREVIEW_CHARS = 160


async def check_url(
    client: httpx.AsyncClient, url: str, headers: dict[str, str] | None = None
) -> dict[str, Any]:
    """One uncached GET, summarized."""
    try:
        resp = await client.get(url, headers=headers or {})
    except httpx.HTTPError as exc:
        return {"ok": False, "status": 0, "url": url, "error": str(exc) or exc.__class__.__name__}
    return {
        "ok": resp.is_success,
        "status": resp.status_code,
        "url": url,
        "preview": resp.text[:PREVIEW_CHARS],
    }


@router.get("/diag")
async def diagnostics(
    feeds: UpstreamFeeds = Depends(get_feeds),
    client: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    today = utc_today(system_clock_ms())
    checks: list[dict[str, Any]] = [
        {
            "env": {
                "hasV2Key": settings.has_v2_key,
                "v2KeyLen": len(settings.tsdb_v2_key),
                "hasV1Key": bool(settings.tsdb_v1_key),
            }
        }
    ]

    checks.append(await check_url(client, feeds.live_urls("soccer")[0], feeds.v2_headers))

    seasons: dict[str, str] = {}
    for league in LEAGUE_BOARDS.values():
        season = season_labels(league.season_style, today)[0]
        seasons[league.key] = season
        for url in (
            feeds.next_url(league.league_id),
            feeds.season_url(league.league_id, season),
            feeds.past_url(league.league_id),
        ):
            result = await check_url(client, url)
            result["url"] = redact_url(url, settings.tsdb_v1_key)
            checks.append(result)

    failed = sum(1 for c in checks if c.get("ok") is False)
    logger.info("diag_complete", checked=len(checks) - 1, failed=failed)
    return {"ok": True, "seasons": seasons, "checks": checks}
