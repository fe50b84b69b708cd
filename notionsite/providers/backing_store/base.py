"""Shared envelope logic for durable cache tier backends.

Every backend stores the same JSON envelope::

    {"data": <payload>, "timestamp": <epoch-ms>, "ttl": <freshness seconds>}

and asks the underlying service to keep it for longer than the freshness
window: ``max(ttl * KV_TTL_MULTIPLIER, KV_MIN_EXPIRATION_SECONDS)``.  With a
60 s window the store keeps the entry for 180 s, so when a page regenerates
after its window lapses a second process can still reuse the stored value
instead of calling the upstream service.

Subclasses only implement four raw operations (``_read``, ``_write``,
``_remove``, ``_keys``) and raise :class:`BackingStoreError` on failure.
This base class turns every failure into a logged miss.
"""

from __future__ import annotations

import json
import time
from abc import abstractmethod
from typing import Any, Callable

import structlog

from notionsite.interfaces.backing_store import IBackingStore
from notionsite.models.cache import CacheEntry
from notionsite.utils.errors import BackingStoreError

logger = structlog.get_logger(logger_name=__name__)

KV_TTL_MULTIPLIER = 3
KV_MIN_EXPIRATION_SECONDS = 60


def physical_expiration_seconds(
    freshness_seconds: int,
    multiplier: int = KV_TTL_MULTIPLIER,
    floor: int = KV_MIN_EXPIRATION_SECONDS,
) -> int:
    """How long the backend should physically keep an entry."""
    return max(int(freshness_seconds) * multiplier, floor)


class EnvelopeBackingStore(IBackingStore):
    """Base class implementing staleness checks and failure isolation.

    Parameters
    ----------
    key_prefix:
        Prepended to every key inside the backend so several sites can share
        one store.  Keys returned by :meth:`list` have it stripped again.
    ttl_multiplier, min_expiration_seconds:
        Physical expiry skew, see :func:`physical_expiration_seconds`.
    freshness_factor:
        Scales the freshness window in the staleness check.
    clock:
        Returns the current time in seconds; injectable for tests.
    """

    def __init__(
        self,
        key_prefix: str = "",
        ttl_multiplier: int = KV_TTL_MULTIPLIER,
        min_expiration_seconds: int = KV_MIN_EXPIRATION_SECONDS,
        freshness_factor: float = 1.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._key_prefix = key_prefix
        self._ttl_multiplier = ttl_multiplier
        self._min_expiration_seconds = min_expiration_seconds
        self._freshness_factor = freshness_factor
        self._clock = clock

    # ------------------------------------------------------------------
    # Raw backend operations
    # ------------------------------------------------------------------

    @abstractmethod
    async def _read(self, key: str) -> str | None:
        """Return the raw stored string or ``None``."""

    @abstractmethod
    async def _write(self, key: str, payload: str, expiration_seconds: int) -> None:
        """Store *payload* and let the backend drop it after *expiration_seconds*."""

    @abstractmethod
    async def _remove(self, key: str) -> None:
        """Delete *key* (no-op when absent)."""

    @abstractmethod
    async def _keys(self, prefix: str) -> list[str]:
        """Return raw backend keys starting with *prefix*."""

    # ------------------------------------------------------------------
    # IBackingStore implementation
    # ------------------------------------------------------------------

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _full_key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    def expiration_for(self, freshness_seconds: int) -> int:
        return physical_expiration_seconds(
            freshness_seconds, self._ttl_multiplier, self._min_expiration_seconds
        )

    async def get(self, key: str, expected_freshness_seconds: int | None = None) -> Any | None:
        if not self.is_available():
            return None

        started = time.perf_counter()
        try:
            raw = await self._read(self._full_key(key))
            if raw is None:
                logger.debug("kv_cache_miss", key=key, provider=self.get_provider_name())
                return None
            entry = CacheEntry.model_validate(json.loads(raw))
        except (BackingStoreError, ValueError) as exc:
            logger.warning("kv_cache_get_failed", key=key, error=str(exc))
            return None

        if not entry.is_fresh(self._now_ms(), expected_freshness_seconds, self._freshness_factor):
            logger.debug(
                "kv_cache_expired",
                key=key,
                age_seconds=round(entry.age_seconds(self._now_ms()), 2),
            )
            return None

        logger.debug(
            "kv_cache_hit",
            key=key,
            provider=self.get_provider_name(),
            elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return entry.data

    async def set(self, key: str, value: Any, freshness_seconds: int) -> bool:
        if not self.is_available():
            return False

        entry = CacheEntry(data=value, timestamp=self._now_ms(), ttl=freshness_seconds)
        expiration = self.expiration_for(freshness_seconds)
        try:
            payload = entry.model_dump_json()
            await self._write(self._full_key(key), payload, expiration)
        except (BackingStoreError, ValueError, TypeError) as exc:
            logger.warning("kv_cache_set_failed", key=key, error=str(exc))
            return False

        logger.debug("kv_cache_set", key=key, ttl=freshness_seconds, expiration=expiration)
        return True

    async def delete(self, key: str) -> bool:
        if not self.is_available():
            return False
        try:
            await self._remove(self._full_key(key))
        except BackingStoreError as exc:
            logger.warning("kv_cache_delete_failed", key=key, error=str(exc))
            return False
        logger.info("kv_cache_delete", key=key)
        return True

    async def list(self, prefix: str = "") -> list[str]:
        if not self.is_available():
            return []
        try:
            raw_keys = await self._keys(self._full_key(prefix))
        except BackingStoreError as exc:
            logger.warning("kv_cache_list_failed", prefix=prefix, error=str(exc))
            return []
        strip = len(self._key_prefix)
        return sorted(k[strip:] for k in raw_keys)
