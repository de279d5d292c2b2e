"""
Token bucket bounding the expensive day-by-day upstream scans.

One bucket is shared by every board in the process. It starts full, is topped
up by a fixed amount on a timer, and debits are clamped to what is available.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

from shared.config import get_settings
from shared.utils.logging import get_logger
from shared.utils.metrics import TOKEN_BUCKET_LEVEL

logger = get_logger(__name__)


class TokenBucket:
    """
    Additive-refill token bucket.

    Args:
        max_tokens: Ceiling and initial balance.
        refill_amount: Tokens added per refill tick.
        refill_interval_s: Seconds between ticks of the refill loop.
        sleep: Awaitable sleep used by the refill loop; tests pass a fake.
    """

    def __init__(
        self,
        max_tokens: int | None = None,
        refill_amount: int | None = None,
        refill_interval_s: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        settings = get_settings()
        self._max = max(0, max_tokens if max_tokens is not None else settings.bucket_max_tokens)
        self._refill_amount = max(
            0, refill_amount if refill_amount is not None else settings.bucket_refill_amount
        )
        self._interval_s = (
            refill_interval_s if refill_interval_s is not None else settings.bucket_refill_interval_s
        )
        self._sleep = sleep
        self._tokens = self._max
        self._task: Optional[asyncio.Task[None]] = None
        TOKEN_BUCKET_LEVEL.set(self._tokens)

    @property
    def available(self) -> int:
        return self._tokens

    @property
    def max_tokens(self) -> int:
        return self._max

    def take(self, requested: int) -> int:
        """Debit up to `requested` tokens; returns how many were actually debited."""
        granted = min(max(0, requested), self._tokens)
        self._tokens -= granted
        TOKEN_BUCKET_LEVEL.set(self._tokens)
        return granted

    def refill(self) -> int:
        self._tokens = min(self._max, self._tokens + self._refill_amount)
        TOKEN_BUCKET_LEVEL.set(self._tokens)
        return self._tokens

    def requirement(self, need: int, floor: int | None = None) -> int:
        """
        Tokens a day scan should reserve for `need` missing rows: twice the
        shortfall, at least `floor`, never more than is available.
        """
        if need <= 0:
            return 0
        if floor is None:
            floor = get_settings().day_scan_token_floor
        return min(max(2 * need, floor), self._tokens)

    # ── Refill loop ─────────────────────────────────────────────────────
    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._refill_loop())
            logger.info(
                "token_bucket_started",
                max_tokens=self._max,
                refill_amount=self._refill_amount,
                interval_s=self._interval_s,
            )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _refill_loop(self) -> None:
        while True:
            await self._sleep(self._interval_s)
            before = self._tokens
            after = self.refill()
            if after != before:
                logger.debug("token_bucket_refilled", tokens=after)
