"""Layered cache engine for idempotent async lookups.

``LayeredCacheEngine.cached(fn, ttl=...)`` returns a function with the same
signature as *fn* whose results pass through three tiers:

1. **Memory** -- a per-process ``cachetools.TLRUCache`` of
   :class:`MemoryCacheSlot` values, each valid until its own ``expires``.
2. **In-flight coalescing** -- one shared ``asyncio.Task`` per key; callers
   arriving while a refresh runs await that task instead of starting another.
3. **Durable tier** -- the injected :class:`IBackingStore`, consulted inside
   the refresh before *fn* is invoked, and written after it succeeds.

The engine is constructed once per process and injected into every service;
its memory and in-flight maps are never touched from outside this module.
Durable-tier trouble is logged and treated as a miss, so the only errors a
cached call can raise are the ones *fn* raises.
"""

from __future__ import annotations

import asyncio
import functools
import time
from typing import Any, Awaitable, Callable, TypeVar

import structlog
from cachetools import TLRUCache
from pydantic import TypeAdapter

from notionsite.cache.keys import cache_key_for_call
from notionsite.interfaces.backing_store import IBackingStore
from notionsite.models.cache import MemoryCacheSlot
from notionsite.utils.logging import get_logger
from notionsite.utils.timing import Timer

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)

_DEFAULT_MAX_MEMORY_ENTRIES = 1024


def _slot_expiry(_key: str, slot: MemoryCacheSlot, _now: float) -> float:
    return slot.expires


class LayeredCacheEngine:
    """Owns the memory tier, the in-flight map and the durable tier handle.

    Parameters
    ----------
    store:
        Durable tier selected for this process.
    max_memory_entries:
        Upper bound on memory-tier slots; least recently used slots are
        evicted first once it is reached.
    clock:
        Returns the current time in seconds; injectable for tests.
    """

    def __init__(
        self,
        store: IBackingStore,
        max_memory_entries: int = _DEFAULT_MAX_MEMORY_ENTRIES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._clock = clock
        self._memory: TLRUCache[str, MemoryCacheSlot] = TLRUCache(
            maxsize=max_memory_entries, ttu=_slot_expiry, timer=clock
        )
        self._pending: dict[str, asyncio.Task[Any]] = {}

    @property
    def store(self) -> IBackingStore:
        return self._store

    def cached(
        self,
        fn: Callable[..., Awaitable[_T]],
        *,
        ttl: int,
        namespace: str | None = None,
        adapter: TypeAdapter[_T] | None = None,
    ) -> Callable[..., Awaitable[_T]]:
        """Wrap *fn* so its results are cached for *ttl* seconds.

        Parameters
        ----------
        fn:
            Idempotent async function.  Its arguments must be JSON-serializable.
        ttl:
            Freshness window in seconds for both tiers.
        namespace:
            Key prefix; defaults to ``fn.__name__``.
        adapter:
            Converts results to JSON-safe data for the durable tier and back.
            Without one, results are stored as-is and must already be JSON-safe.
        """
        name = namespace or getattr(fn, "__name__", None) or "anonymous"

        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> _T:
            key = cache_key_for_call(name, args, kwargs)
            timer = Timer(name)

            slot = self._memory.get(key)
            if slot is not None and slot.is_valid(self._clock()):
                _logger.debug("cache_memory_hit", namespace=name, key=key)
                timer.end()
                return slot.data

            pending = self._pending.get(key)
            if pending is not None:
                _logger.debug("cache_pending_request", namespace=name, key=key)
                result = await asyncio.shield(pending)
                timer.end()
                return result

            task = asyncio.ensure_future(self._refresh(key, name, fn, args, kwargs, ttl, adapter))
            self._pending[key] = task
            result = await asyncio.shield(task)
            timer.end()
            return result

        return wrapper

    async def _refresh(
        self,
        key: str,
        name: str,
        fn: Callable[..., Awaitable[_T]],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        ttl: int,
        adapter: TypeAdapter[_T] | None,
    ) -> _T:
        try:
            stored = await self._read_durable(key, ttl, adapter)
            if stored is not None:
                self._remember(key, stored, ttl)
                return stored

            _logger.info("cache_fetching", namespace=name, key=key)
            fetch_timer = Timer(f"{name} - fetch")
            result = await fn(*args, **kwargs)
            fetch_timer.end()

            self._remember(key, result, ttl)
            await self._write_durable(key, result, ttl, adapter)
            return result
        finally:
            self._pending.pop(key, None)

    def _remember(self, key: str, value: Any, ttl: int) -> None:
        self._memory[key] = MemoryCacheSlot(data=value, expires=self._clock() + ttl)

    async def _read_durable(self, key: str, ttl: int, adapter: TypeAdapter[Any] | None) -> Any | None:
        try:
            stored = await self._store.get(key, ttl)
            if stored is None:
                return None
            return adapter.validate_python(stored) if adapter is not None else stored
        except Exception as exc:  # noqa: BLE001 — durable tier must never fail a lookup
            _logger.warning("cache_durable_read_failed", key=key, error=str(exc))
            return None

    async def _write_durable(self, key: str, value: Any, ttl: int, adapter: TypeAdapter[Any] | None) -> None:
        try:
            payload = adapter.dump_python(value, mode="json") if adapter is not None else value
            await self._store.set(key, payload, ttl)
        except Exception as exc:  # noqa: BLE001 — durable tier must never fail a lookup
            _logger.error("cache_durable_write_failed", key=key, error=str(exc))

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def memory_keys(self) -> list[str]:
        now = self._clock()
        keys = []
        for key in list(self._memory.keys()):
            slot = self._memory.get(key)
            if slot is not None and slot.is_valid(now):
                keys.append(key)
        return sorted(keys)

    def pending_keys(self) -> list[str]:
        return sorted(self._pending)
