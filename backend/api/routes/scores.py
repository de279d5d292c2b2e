"""
Board REST endpoint.

GET /scores/{league}?n=5: ranked board (finals → live → scheduled) for one league.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from shared.models.domain import BoardRow
from shared.utils.logging import get_logger

from api.dependencies import get_aggregator
from board.aggregator import BoardAggregator, clamp_rows
from board.leagues import get_league_board
from board.projector import project_row

logger = get_logger(__name__)
router = APIRouter(prefix="/scores", tags=["scores"])


@router.get("/{league_key}", response_model=list[BoardRow])
async def get_scores(
    league_key: str,
    n: Optional[int] = Query(None, description="Rows wanted; clamped to 5..10."),
    aggregator: BoardAggregator = Depends(get_aggregator),
) -> list[BoardRow]:
    """
    Build the board for a league.

    Upstream failures only shorten the board. An error while assembling it
    surfaces as a 500 through the global exception handler.
    """
    league = get_league_board(league_key)
    if league is None:
        raise HTTPException(status_code=404, detail=f"Unknown board: {league_key}")

    target = clamp_rows(n)
    board = await aggregator.build_for(league, target)
    rows = [project_row(item) for item in board]
    logger.info("board_served", league=league.key, requested=n, target=target, rows=len(rows))
    return rows
