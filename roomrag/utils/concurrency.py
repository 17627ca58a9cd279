"""Shared concurrency primitives for indexing and retrieval.

Three patterns are exposed:

1. **with_timeout** -- wraps a single external call (embedding, chat,
   vector-store read/write, download) in ``asyncio.wait_for`` and converts
   expiry into :class:`~roomrag.utils.errors.ProviderTimeoutError` so bulk
   jobs can record it and streams can surface it as an ``error`` event.

2. **KeyedLock** -- one ``asyncio.Lock`` per key (e.g. per
   ``(source_type, source_id)``) so a re-index of one source never
   interleaves with another re-index of the same source, while different
   sources proceed in parallel.

3. **throttled_gather** -- ``asyncio.gather`` with a semaphore bounding how
   many awaitables run at once.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Hashable
from contextlib import asynccontextmanager
from typing import TypeVar

import structlog

from roomrag.utils.errors import ProviderTimeoutError
from roomrag.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


async def with_timeout(
    awaitable: Awaitable[_T],
    seconds: float | None,
    operation: str,
    provider_name: str | None = None,
) -> _T:
    """Await *awaitable* for at most *seconds*.

    Parameters
    ----------
    awaitable:
        The external call to run.
    seconds:
        Deadline in seconds.  ``None`` or a non-positive value disables the
        deadline (used by tests and by the CLI's ``--no-timeout`` runs).
    operation:
        Short operation label used in the log event and error message,
        e.g. ``"embed_batch"``.
    provider_name:
        Optional provider label attached to the raised error.

    Raises
    ------
    ProviderTimeoutError
        If the deadline expires.  The underlying task is cancelled.
    """
    if seconds is None or seconds <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as exc:
        _logger.warning("external_call_timeout", operation=operation, timeout=seconds)
        raise ProviderTimeoutError(
            message=f"{operation} timed out after {seconds:g}s",
            provider_name=provider_name,
        ) from exc


class KeyedLock:
    """A registry of ``asyncio.Lock`` objects keyed by an arbitrary hashable.

    Entries are reference counted and dropped once no holder or waiter is
    left, so the registry does not grow with the number of sources ever
    indexed.
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        """Hold the lock for *key* for the duration of the ``async with`` block."""
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._waiters[key] - 1
            if remaining:
                self._waiters[key] = remaining
            else:
                del self._waiters[key]
                del self._locks[key]

    def is_locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently, at most ``semaphore`` slots at a time.

    Parameters
    ----------
    coros:
        Awaitable objects to execute concurrently.
    semaphore:
        Semaphore bounding concurrency.
    return_exceptions:
        If ``True``, exceptions are returned in the results list rather
        than being raised.  Mirrors ``asyncio.gather`` semantics.

    Returns
    -------
    list[_T | BaseException]
        Results in the same order as the input coroutines.
    """

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)
