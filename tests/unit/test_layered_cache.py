"""Unit tests for LayeredCacheEngine: memory tier, coalescing and durable tier."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import BaseModel, TypeAdapter

from notionsite.cache.engine import LayeredCacheEngine
from notionsite.interfaces.backing_store import IBackingStore
from notionsite.providers.backing_store import RedisBackingStore
from tests.conftest import FakeClock, FakeRedis


class _Summary(BaseModel):
    root_id: str
    count: int


class _Counter:
    """Async function that counts its own invocations."""

    def __init__(self, result=None, error: Exception | None = None) -> None:  # noqa: ANN001
        self.calls = 0
        self.gate = asyncio.Event()
        self.gate.set()
        self._result = result
        self._error = error

    async def __call__(self, item_id: str):  # noqa: ANN204
        self.calls += 1
        await self.gate.wait()
        if self._error is not None:
            raise self._error
        return self._result if self._result is not None else {"id": item_id, "call": self.calls}


# ======================================================================
# Coalescing
# ======================================================================


class TestCoalescing:
    @pytest.mark.asyncio
    async def test_concurrent_calls_invoke_once(self, engine: LayeredCacheEngine) -> None:
        fetch = _Counter()
        fetch.gate.clear()
        cached = engine.cached(fetch, ttl=60, namespace="fetch")

        tasks = [asyncio.ensure_future(cached("a")) for _ in range(10)]
        await asyncio.sleep(0)
        assert engine.pending_keys() == ['fetch:["a"]']
        fetch.gate.set()
        results = await asyncio.gather(*tasks)

        assert fetch.calls == 1
        assert all(result == {"id": "a", "call": 1} for result in results)
        assert engine.pending_keys() == []

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_the_error(self, engine: LayeredCacheEngine) -> None:
        fetch = _Counter(error=RuntimeError("upstream down"))
        fetch.gate.clear()
        cached = engine.cached(fetch, ttl=60, namespace="fetch")

        tasks = [asyncio.ensure_future(cached("a")) for _ in range(10)]
        await asyncio.sleep(0)
        fetch.gate.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert fetch.calls == 1
        assert all(isinstance(result, RuntimeError) for result in results)
        assert engine.pending_keys() == []

    @pytest.mark.asyncio
    async def test_failed_refresh_is_not_cached(self, engine: LayeredCacheEngine) -> None:
        fetch = _Counter(error=RuntimeError("boom"))
        cached = engine.cached(fetch, ttl=60)

        with pytest.raises(RuntimeError):
            await cached("a")
        with pytest.raises(RuntimeError):
            await cached("a")
        assert fetch.calls == 2

    @pytest.mark.asyncio
    async def test_different_arguments_are_not_coalesced(self, engine: LayeredCacheEngine) -> None:
        fetch = _Counter()
        cached = engine.cached(fetch, ttl=60)
        await asyncio.gather(cached("a"), cached("b"))
        assert fetch.calls == 2


# ======================================================================
# Memory tier
# ======================================================================


class TestMemoryTier:
    @pytest.mark.asyncio
    async def test_hit_within_window(self, engine: LayeredCacheEngine, clock: FakeClock) -> None:
        fetch = _Counter()
        cached = engine.cached(fetch, ttl=60)

        first = await cached("a")
        clock.advance(59)
        second = await cached("a")

        assert fetch.calls == 1
        assert first == second

    @pytest.mark.asyncio
    async def test_refresh_after_window(self, engine: LayeredCacheEngine, clock: FakeClock) -> None:
        fetch = _Counter()
        cached = engine.cached(fetch, ttl=60)

        await cached("a")
        clock.advance(61)
        result = await cached("a")

        assert fetch.calls == 2
        assert result["call"] == 2

    @pytest.mark.asyncio
    async def test_memory_keys_lists_valid_slots(self, engine: LayeredCacheEngine, clock: FakeClock) -> None:
        cached = engine.cached(_Counter(), ttl=60, namespace="ns")
        await cached("a")
        assert engine.memory_keys() == ['ns:["a"]']

        clock.advance(120)
        assert engine.memory_keys() == []

    @pytest.mark.asyncio
    async def test_wrapper_keeps_function_name(self, engine: LayeredCacheEngine) -> None:
        async def get_things(item_id: str) -> str:
            return item_id

        cached = engine.cached(get_things, ttl=60)
        assert cached.__name__ == "get_things"
        assert await cached("x") == "x"


# ======================================================================
# Durable tier
# ======================================================================


class TestDurableTier:
    @pytest.mark.asyncio
    async def test_result_written_with_physical_expiry(
        self, redis_store: RedisBackingStore, fake_redis: FakeRedis, clock: FakeClock
    ) -> None:
        engine = LayeredCacheEngine(redis_store, clock=clock)
        cached = engine.cached(_Counter(), ttl=60, namespace="fetch")
        await cached("a")

        key = 'fetch:["a"]'
        envelope = json.loads(fake_redis.data[key])
        assert envelope["data"] == {"id": "a", "call": 1}
        assert envelope["ttl"] == 60
        assert envelope["timestamp"] == int(clock.now * 1000)
        assert fake_redis.expirations[key] == 180

    @pytest.mark.asyncio
    async def test_new_process_backfills_from_durable_tier(
        self, redis_store: RedisBackingStore, clock: FakeClock
    ) -> None:
        first_fetch = _Counter()
        await LayeredCacheEngine(redis_store, clock=clock).cached(first_fetch, ttl=60, namespace="f")("a")

        second_engine = LayeredCacheEngine(redis_store, clock=clock)
        second_fetch = _Counter()
        cached = second_engine.cached(second_fetch, ttl=60, namespace="f")
        clock.advance(30)
        result = await cached("a")

        assert second_fetch.calls == 0
        assert result == {"id": "a", "call": 1}
        assert second_engine.memory_keys() == ['f:["a"]']

    @pytest.mark.asyncio
    async def test_stale_durable_entry_is_refetched(self, redis_store: RedisBackingStore, clock: FakeClock) -> None:
        await LayeredCacheEngine(redis_store, clock=clock).cached(_Counter(), ttl=60, namespace="f")("a")

        clock.advance(61)
        fetch = _Counter()
        await LayeredCacheEngine(redis_store, clock=clock).cached(fetch, ttl=60, namespace="f")("a")
        assert fetch.calls == 1

    @pytest.mark.asyncio
    async def test_adapter_round_trips_models(self, redis_store: RedisBackingStore, clock: FakeClock) -> None:
        adapter = TypeAdapter(_Summary)

        async def summarize(root_id: str) -> _Summary:
            return _Summary(root_id=root_id, count=3)

        await LayeredCacheEngine(redis_store, clock=clock).cached(summarize, ttl=60, adapter=adapter)("r")

        fresh = LayeredCacheEngine(redis_store, clock=clock)
        fallback = AsyncMock(side_effect=AssertionError("should be served from the durable tier"))
        fallback.__name__ = "summarize"
        result = await fresh.cached(fallback, ttl=60, adapter=adapter)("r")

        assert isinstance(result, _Summary)
        assert result == _Summary(root_id="r", count=3)

    @pytest.mark.asyncio
    async def test_store_failures_degrade_to_miss(self, clock: FakeClock) -> None:
        store = MagicMock(spec=IBackingStore)
        store.get = AsyncMock(side_effect=RuntimeError("kv down"))
        store.set = AsyncMock(side_effect=RuntimeError("kv down"))
        engine = LayeredCacheEngine(store, clock=clock)
        fetch = _Counter()

        result = await engine.cached(fetch, ttl=60)("a")

        assert result == {"id": "a", "call": 1}
        store.set.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_undecodable_durable_entry_is_a_miss(
        self, redis_store: RedisBackingStore, fake_redis: FakeRedis, clock: FakeClock
    ) -> None:
        fake_redis.data['f:["a"]'] = "not json"
        fetch = _Counter()
        await LayeredCacheEngine(redis_store, clock=clock).cached(fetch, ttl=60, namespace="f")("a")
        assert fetch.calls == 1
