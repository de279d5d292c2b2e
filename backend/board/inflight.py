"""
Single-flight coordination: at most one pending computation per key.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

from shared.utils.metrics import INFLIGHT_JOINS

T = TypeVar("T")


class InflightCoordinator:
    """
    Coalesces concurrent calls for the same key into one execution.

    The handle for a key is dropped inside the task itself, before its result
    is published, so a call arriving after completion always starts over.
    """

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Task[Any]] = {}

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    def start(self, key: str, factory: Callable[[], Awaitable[T]]) -> asyncio.Task[T]:
        """Return the pending task for key, creating it from factory if there is none."""
        task = self._pending.get(key)
        if task is not None:
            INFLIGHT_JOINS.inc()
            return task
        task = asyncio.ensure_future(self._run(key, factory))
        self._pending[key] = task
        return task

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        # shield: a cancelled caller must not cancel the computation others share
        return await asyncio.shield(self.start(key, factory))

    async def _run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        try:
            return await factory()
        finally:
            self._pending.pop(key, None)

    async def aclose(self) -> None:
        """Cancel whatever is still pending. Used at shutdown."""
        tasks = list(self._pending.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._pending.clear()
