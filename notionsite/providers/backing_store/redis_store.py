"""Edge key-value backend speaking the Redis protocol.

Used when the site runs on an edge platform with a provisioned key-value
namespace (Upstash, a Redis-compatible edge KV, or plain Redis).  Uses
``redis.asyncio`` so lookups never block the event loop.  A store built
without a client (no URL configured) is unavailable and silently empty.
"""

from __future__ import annotations

from typing import Any

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError

from notionsite.providers.backing_store.base import EnvelopeBackingStore
from notionsite.utils.errors import BackingStoreError

logger = structlog.get_logger(logger_name=__name__)

_GLOB_SPECIAL = "\\*?[]"


def _escape_glob(text: str) -> str:
    """Escape characters ``SCAN MATCH`` treats as glob syntax.

    Cache keys embed JSON arrays, so ``[`` and ``]`` are common.
    """
    return "".join(f"\\{ch}" if ch in _GLOB_SPECIAL else ch for ch in text)


class RedisBackingStore(EnvelopeBackingStore):
    """Durable tier backed by an edge Redis-protocol key-value store.

    Parameters
    ----------
    client:
        Injected ``redis.asyncio.Redis`` created with
        ``decode_responses=True``; ``None`` when not provisioned.
    """

    def __init__(self, client: Redis | None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._client = client

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> RedisBackingStore:
        client = Redis.from_url(url, decode_responses=True) if url else None
        return cls(client, **kwargs)

    def is_available(self) -> bool:
        return self._client is not None

    def get_provider_name(self) -> str:
        return "redis"

    async def _read(self, key: str) -> str | None:
        try:
            return await self._client.get(key)
        except RedisError as exc:
            raise BackingStoreError(str(exc), provider_name=self.get_provider_name()) from exc

    async def _write(self, key: str, payload: str, expiration_seconds: int) -> None:
        try:
            await self._client.set(key, payload, ex=expiration_seconds)
        except RedisError as exc:
            raise BackingStoreError(str(exc), provider_name=self.get_provider_name()) from exc

    async def _remove(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except RedisError as exc:
            raise BackingStoreError(str(exc), provider_name=self.get_provider_name()) from exc

    async def _keys(self, prefix: str) -> list[str]:
        try:
            return [key async for key in self._client.scan_iter(match=f"{_escape_glob(prefix)}*")]
        except RedisError as exc:
            raise BackingStoreError(str(exc), provider_name=self.get_provider_name()) from exc

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
