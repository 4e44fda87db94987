"""
Request Coordinator
===================

Wraps arbitrary async fetch functions with in-flight request deduplication
on top of a :class:`RequestCache`.

Identical concurrent requests share one task and therefore one outcome:
every waiter receives the same value or the same exception object.
Completed requests populate the cache; failures are never cached.

Cancellation is per caller. A caller whose abort signal fires stops waiting
and gets :class:`RequestCancelled`, while the shared fetch keeps running for
everyone else. Only when the cancelling caller is the last waiter is the
underlying task cancelled.

All bookkeeping happens on the event loop thread between suspension points,
so no lock guards the pending table.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from farmwatch.domain.exceptions import RequestCancelled
from farmwatch.utils.cache import RequestCache

logger = logging.getLogger(__name__)

FetchFn = Callable[[], Awaitable[Any]]


class RequestCoordinator:
    """Coalesce concurrent identical requests into one round trip."""

    def __init__(self, cache: RequestCache) -> None:
        """
        Initialize the coordinator.

        Args:
            cache: Cache populated by successful fetches (owned by the caller)
        """
        self.cache = cache
        self._pending: dict[str, asyncio.Task] = {}
        self._waiters: dict[asyncio.Task, int] = {}
        # Bumped by clear(); fetches started under an older generation don't write the cache
        self._generation = 0

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    async def fetch_deduplicated(
        self,
        key: str,
        fetch_fn: FetchFn,
        *,
        signal: asyncio.Event | None = None,
    ) -> Any:
        """
        Return the value for ``key``, fetching it at most once concurrently.

        Args:
            key: Cache key (see ``make_cache_key``)
            fetch_fn: Zero-argument callable returning an awaitable
            signal: Optional abort signal; setting it ends this caller's wait

        Returns:
            The cached, in-flight or freshly fetched value

        Raises:
            RequestCancelled: ``signal`` fired before the request settled
            Exception: whatever ``fetch_fn`` raised, unchanged
        """
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", key)
            return cached

        if signal is not None and signal.is_set():
            raise RequestCancelled(key)

        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run(key, fetch_fn, self._generation))
            self._pending[key] = task
        else:
            logger.debug("Joining in-flight request for %s", key)

        self._waiters[task] = self._waiters.get(task, 0) + 1
        try:
            return await self._wait(key, task, signal)
        finally:
            self._release(key, task)

    async def _run(self, key: str, fetch_fn: FetchFn, generation: int) -> Any:
        try:
            data = await fetch_fn()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("Request %s failed: %s", key, exc)
            raise
        else:
            if generation == self._generation:
                self.cache.set(key, data)
            return data
        finally:
            # Runs before any waiter resumes, so a settled task is never joined
            if self._pending.get(key) is asyncio.current_task():
                del self._pending[key]

    async def _wait(self, key: str, task: asyncio.Task, signal: asyncio.Event | None) -> Any:
        if signal is None:
            # shield: cancelling this caller must not cancel the shared task
            return await asyncio.shield(task)

        aborted = asyncio.ensure_future(signal.wait())
        try:
            await asyncio.wait({task, aborted}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            aborted.cancel()

        if task.done():
            return task.result()

        logger.debug("Caller abandoned request %s", key)
        raise RequestCancelled(key)

    def _release(self, key: str, task: asyncio.Task) -> None:
        remaining = self._waiters.get(task, 1) - 1
        if remaining > 0:
            self._waiters[task] = remaining
            return

        self._waiters.pop(task, None)
        if not task.done():
            # Last waiter gave up; nobody is left to consume the result
            task.cancel()
            if self._pending.get(key) is task:
                del self._pending[key]
            logger.debug("Cancelled orphaned request %s", key)

    def clear(self) -> None:
        """Drop every cached entry and forget all pending requests.

        In-flight fetches still deliver to their current waiters but no longer
        write to the cache. Calling this twice is a no-op the second time.
        """
        self._generation += 1
        self._pending.clear()
        self.cache.clear()
