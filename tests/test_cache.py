"""Tests for the prerequisite result cache."""

import asyncio
import time

import pytest

from prereq_engine.cache.cache import PrerequisiteCache


class TestCacheEntries:
    def test_put_and_get(self, cache):
        cache.put("t1", "pass")
        entry = cache.get("t1")
        assert entry.result == "pass"
        assert entry.test_case_id == "t1"

    def test_miss(self, cache):
        assert cache.get("t1") is None
        assert cache.stats().miss_count == 1

    def test_entry_valid_until_expiry(self, cache, clock):
        cache.put("t1", "pass", expiry=5000)
        clock.advance(5000)
        assert cache.get("t1") is not None

    def test_entry_expires_after_expiry(self, cache, clock):
        cache.put("t1", "pass", expiry=5000)
        clock.advance(5001)
        assert cache.get("t1") is None
        assert cache.stats().entry_count == 0

    def test_no_expiry_lasts_until_cleared(self, cache, clock):
        cache.put("t1", "pass")
        clock.advance(10**9)
        assert cache.get("t1") is not None
        cache.clear()
        assert cache.get("t1") is None

    def test_put_replaces_and_restarts_ttl(self, cache, clock):
        cache.put("t1", "pass", expiry=5000)
        clock.advance(4000)
        cache.put("t1", "pass", expiry=5000)
        clock.advance(4000)
        assert cache.get("t1") is not None

    def test_peek_does_not_count(self, cache):
        cache.put("t1", "pass")
        assert cache.peek("t1") is not None
        assert cache.peek("t2") is None
        stats = cache.stats()
        assert stats.hit_count == 0
        assert stats.miss_count == 0

    def test_invalidate(self, cache):
        cache.put("t1", "pass")
        assert cache.invalidate("t1") is True
        assert cache.invalidate("t1") is False

    def test_stats(self, cache, clock):
        cache.put("a", "pass")
        cache.put("b", "pass", expiry=10)
        cache.get("a")
        cache.get("a")
        cache.get("zzz")
        clock.advance(11)
        stats = cache.stats()
        assert stats.entry_count == 1
        assert stats.hit_count == 2
        assert stats.miss_count == 1

    def test_clear_keeps_counters(self, cache):
        cache.put("a", "pass")
        cache.get("a")
        cache.clear()
        stats = cache.stats()
        assert stats.entry_count == 0
        assert stats.hit_count == 1

    def test_default_clock_is_wall_time_in_ms(self):
        cache = PrerequisiteCache()
        before = time.time() * 1000
        entry = cache.put("t1", "pass")
        assert before <= entry.timestamp <= time.time() * 1000


class TestResolve:
    @pytest.mark.asyncio
    async def test_executes_on_miss_and_caches_pass(self, cache):
        calls = []

        async def execute():
            calls.append(1)
            return "pass"

        first = await cache.resolve("t1", execute, expiry=1000)
        second = await cache.resolve("t1", execute, expiry=1000)

        assert len(calls) == 1
        assert first.from_cache is False
        assert second.from_cache is True
        assert second.result == "pass"

    @pytest.mark.asyncio
    async def test_expired_entry_re_executes(self, cache, clock):
        calls = []

        async def execute():
            calls.append(1)
            return "pass"

        await cache.resolve("t1", execute, expiry=5000)
        clock.advance(5001)
        resolution = await cache.resolve("t1", execute, expiry=5000)
        assert len(calls) == 2
        assert resolution.from_cache is False

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_execution(self, cache):
        calls = []
        release = asyncio.Event()

        async def execute():
            calls.append(1)
            await release.wait()
            return "pass"

        tasks = [asyncio.create_task(cache.resolve("t1", execute)) for _ in range(10)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*tasks)

        assert len(calls) == 1
        assert {r.result for r in results} == {"pass"}
        assert len({r.timestamp for r in results}) == 1
        assert cache.peek("t1") is not None

    @pytest.mark.asyncio
    async def test_different_ids_run_independently(self, cache):
        calls = []

        async def execute_for(test_id):
            calls.append(test_id)
            await asyncio.sleep(0)
            return "pass"

        await asyncio.gather(
            cache.resolve("a", lambda: execute_for("a")),
            cache.resolve("b", lambda: execute_for("b")),
        )
        assert sorted(calls) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_failure_is_shared_but_not_cached(self, cache):
        calls = []
        release = asyncio.Event()

        async def execute():
            calls.append(1)
            await release.wait()
            return "fail"

        tasks = [asyncio.create_task(cache.resolve("t1", execute)) for _ in range(3)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*tasks)

        assert len(calls) == 1
        assert [r.result for r in results] == ["fail", "fail", "fail"]
        assert cache.peek("t1") is None

        await cache.resolve("t1", execute)
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_exception_reaches_every_waiter(self, cache):
        release = asyncio.Event()

        async def execute():
            await release.wait()
            raise RuntimeError("device disconnected")

        tasks = [asyncio.create_task(cache.resolve("t1", execute)) for _ in range(3)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert all(isinstance(r, RuntimeError) for r in results)
        assert cache.peek("t1") is None

        async def recovered():
            return "pass"

        resolution = await cache.resolve("t1", recovered)
        assert resolution.result == "pass"

    @pytest.mark.asyncio
    async def test_cancelled_owner_does_not_cancel_waiters(self, cache):
        calls = []
        started = asyncio.Event()

        async def execute():
            calls.append(1)
            if len(calls) == 1:
                started.set()
                await asyncio.Event().wait()
            return "pass"

        owner = asyncio.create_task(cache.resolve("t1", execute))
        await started.wait()
        waiter = asyncio.create_task(cache.resolve("t1", execute))
        await asyncio.sleep(0)
        owner.cancel()

        resolution = await waiter
        with pytest.raises(asyncio.CancelledError):
            await owner

        assert resolution.result == "pass"
        assert resolution.from_cache is False
        assert len(calls) == 2
        assert cache.peek("t1") is not None

    @pytest.mark.asyncio
    async def test_waiters_after_cancellation_share_the_rerun(self, cache):
        calls = []
        started = asyncio.Event()
        release = asyncio.Event()

        async def execute():
            calls.append(1)
            if len(calls) == 1:
                started.set()
                await asyncio.Event().wait()
            await release.wait()
            return "pass"

        owner = asyncio.create_task(cache.resolve("t1", execute))
        await started.wait()
        waiters = [asyncio.create_task(cache.resolve("t1", execute)) for _ in range(3)]
        await asyncio.sleep(0)
        owner.cancel()
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        release.set()

        results = await asyncio.gather(*waiters)
        assert [r.result for r in results] == ["pass", "pass", "pass"]
        assert len(calls) == 2
