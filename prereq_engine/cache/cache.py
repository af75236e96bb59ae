"""Prerequisite result cache with lazy expiry and single-flight resolution."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Awaitable, Callable, Optional

from prereq_engine.errors import ResolutionCancelledError
from prereq_engine.models.plan import CacheEntry, CacheResult, CacheStats, Resolution

logger = logging.getLogger(__name__)


def _now_ms() -> float:
    return time.time() * 1000


class PrerequisiteCache:
    """Stores successful prerequisite test runs keyed by test case id.

    Expired entries are evicted when they are read. ``resolve`` coalesces
    concurrent requests for the same test id so at most one execution is in
    flight per id; every waiter receives that execution's result. Only passing
    results are stored.
    """

    def __init__(self, clock: Callable[[], float] | None = None):
        self._clock = clock or _now_ms
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._inflight: dict[str, asyncio.Future] = {}
        self._hits = 0
        self._misses = 0

    def now(self) -> float:
        return self._clock()

    def get(self, test_case_id: str) -> Optional[CacheEntry]:
        """Look up a live entry, counting the hit or miss."""
        with self._lock:
            entry = self._lookup(test_case_id)
            if entry is None:
                self._misses += 1
            else:
                self._hits += 1
        return entry

    def peek(self, test_case_id: str) -> Optional[CacheEntry]:
        """Look up a live entry without touching the hit/miss counters."""
        with self._lock:
            return self._lookup(test_case_id)

    def put(self, test_case_id: str, result: CacheResult, expiry: Optional[int] = None) -> CacheEntry:
        """Store a result, replacing any existing entry. ``expiry`` is in ms; None never expires."""
        entry = CacheEntry(
            test_case_id=test_case_id,
            result=result,
            timestamp=self.now(),
            expiry=expiry,
        )
        with self._lock:
            self._entries[test_case_id] = entry
        logger.debug("Cached %s for %s (expiry=%s)", result, test_case_id, expiry)
        return entry

    def invalidate(self, test_case_id: str) -> bool:
        with self._lock:
            return self._entries.pop(test_case_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info("Cleared prerequisite cache (%d entries)", count)

    def stats(self) -> CacheStats:
        now = self.now()
        with self._lock:
            live = sum(1 for e in self._entries.values() if not e.is_expired(now))
            return CacheStats(entry_count=live, hit_count=self._hits, miss_count=self._misses)

    def _lookup(self, test_case_id: str) -> Optional[CacheEntry]:
        # caller holds self._lock
        entry = self._entries.get(test_case_id)
        if entry is None:
            return None
        if entry.is_expired(self.now()):
            del self._entries[test_case_id]
            logger.debug("Evicted expired cache entry for %s", test_case_id)
            return None
        return entry

    async def resolve(
        self,
        test_case_id: str,
        execute: Callable[[], Awaitable[CacheResult]],
        expiry: Optional[int] = None,
    ) -> Resolution:
        """Return a cached pass for ``test_case_id`` or run ``execute`` once to get one.

        Concurrent callers for the same id while an execution is in flight
        await that execution instead of starting their own. A failing result
        or an exception reaches every waiter and is not cached. If the task
        running the execution is cancelled, waiters start a fresh execution
        rather than inheriting the cancellation.
        """
        while True:
            entry = self.get(test_case_id)
            if entry is not None and entry.result == "pass":
                return Resolution(
                    test_case_id=test_case_id, result=entry.result,
                    from_cache=True, timestamp=entry.timestamp,
                )

            inflight = self._inflight.get(test_case_id)
            if inflight is None:
                break
            logger.debug("Waiting on in-flight execution of %s", test_case_id)
            try:
                return await asyncio.shield(inflight)
            except ResolutionCancelledError:
                logger.debug("In-flight execution of %s was cancelled, retrying", test_case_id)

        future = asyncio.get_running_loop().create_future()
        self._inflight[test_case_id] = future
        try:
            result = await execute()
            if result == "pass":
                timestamp = self.put(test_case_id, result, expiry).timestamp
            else:
                timestamp = self.now()
            resolution = Resolution(
                test_case_id=test_case_id, result=result,
                from_cache=False, timestamp=timestamp,
            )
            future.set_result(resolution)
            return resolution
        except asyncio.CancelledError:
            # waiters were not cancelled themselves
            future.set_exception(ResolutionCancelledError(test_case_id))
            future.exception()
            raise
        except Exception as e:
            future.set_exception(e)
            # mark retrieved; waiters (if any) still receive it
            future.exception()
            raise
        finally:
            self._inflight.pop(test_case_id, None)
