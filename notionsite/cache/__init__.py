"""Layered caching for the site model.

- **engine** -- LayeredCacheEngine: memory tier, in-flight coalescing and
  the durable tier behind one ``cached(fn, ttl=...)`` wrapper.
- **keys** -- Deterministic ``"<namespace>:<json-args>"`` key derivation.
- **environment** -- One-time selection of the durable tier backend.
"""

from notionsite.cache.engine import LayeredCacheEngine
from notionsite.cache.environment import (
    CacheEnvironment,
    build_backing_store,
    detect_cache_environment,
)
from notionsite.cache.keys import CacheKeys, cache_key_for_call, get_cache_key, serialize_args

__all__ = [
    "CacheEnvironment",
    "CacheKeys",
    "LayeredCacheEngine",
    "build_backing_store",
    "cache_key_for_call",
    "detect_cache_environment",
    "get_cache_key",
    "serialize_args",
]
