"""Durable cache tier backends.

Exactly one backend is selected per process (see
``notionsite.cache.environment``):

- RedisBackingStore  -- edge key-value store speaking the Redis protocol
- SQLiteBackingStore -- platform-managed persistent file cache
- NullBackingStore   -- no durable tier; memory tier only
"""

from notionsite.providers.backing_store.base import (
    KV_MIN_EXPIRATION_SECONDS,
    KV_TTL_MULTIPLIER,
    EnvelopeBackingStore,
    physical_expiration_seconds,
)
from notionsite.providers.backing_store.null_store import NullBackingStore
from notionsite.providers.backing_store.redis_store import RedisBackingStore
from notionsite.providers.backing_store.sqlite_store import SQLiteBackingStore

__all__ = [
    "KV_MIN_EXPIRATION_SECONDS",
    "KV_TTL_MULTIPLIER",
    "EnvelopeBackingStore",
    "NullBackingStore",
    "RedisBackingStore",
    "SQLiteBackingStore",
    "physical_expiration_seconds",
]
