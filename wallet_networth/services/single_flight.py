"""Coalesce concurrent calls for the same key into one in-flight task."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Hashable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """At most one outstanding call per key.

    The first caller for a key starts ``fn()`` as a task; callers arriving
    while it runs await the same task and get the same result (or exception).
    Callers are shielded from each other: a caller that is cancelled stops
    waiting, but the shared task keeps running to completion.
    """

    def __init__(self) -> None:
        self._inflight: dict[Hashable, asyncio.Future[T]] = {}

    def __len__(self) -> int:
        return len(self._inflight)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._inflight

    def start(self, key: Hashable, fn: Callable[[], Awaitable[T]]) -> asyncio.Future[T]:
        """Return the in-flight task for ``key``, starting ``fn()`` if there is none.

        The key is registered before this returns.
        """
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        return task

    async def do(self, key: Hashable, fn: Callable[[], Awaitable[T]]) -> T:
        return await asyncio.shield(self.start(key, fn))

    def _forget(self, key: Hashable, task: asyncio.Future[T]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Mark the exception retrieved; every waiter already received it.
        if not task.cancelled() and task.exception() is not None:
            logger.debug("In-flight call for %r failed: %s", key, task.exception())
