"""Durable tier selection.

The backend is chosen once, when the process assembles its services:

- ``edge_kv``  -- a Redis-protocol key-value store (``KV_URL`` is set)
- ``platform`` -- the hosting platform's persistent data directory
  (``VERCEL=1``), kept in a SQLite file
- ``local``    -- no durable tier; memory only

``CACHE_ENVIRONMENT`` forces a choice; otherwise it is detected from the
variables above.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Callable

import structlog

from notionsite.config.settings import Settings
from notionsite.interfaces.backing_store import IBackingStore
from notionsite.providers.backing_store import (
    NullBackingStore,
    RedisBackingStore,
    SQLiteBackingStore,
)
from notionsite.utils.errors import ConfigurationError
from notionsite.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


class CacheEnvironment(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    EDGE_KV = "edge_kv"
    PLATFORM = "platform"
    LOCAL = "local"


def detect_cache_environment(settings: Settings) -> CacheEnvironment:
    """Resolve which durable tier this process should use."""
    explicit = settings.cache_environment.strip().lower()
    if explicit:
        try:
            return CacheEnvironment(explicit)
        except ValueError as exc:
            allowed = ", ".join(e.value for e in CacheEnvironment)
            raise ConfigurationError(
                f"Unknown cache environment {settings.cache_environment!r}; expected one of: {allowed}"
            ) from exc

    if settings.kv_url:
        return CacheEnvironment.EDGE_KV
    if settings.vercel == "1":
        return CacheEnvironment.PLATFORM
    return CacheEnvironment.LOCAL


def build_backing_store(
    settings: Settings,
    environment: CacheEnvironment | None = None,
    clock: Callable[[], float] = time.time,
) -> IBackingStore:
    """Construct the durable tier for *environment* (detected when omitted)."""
    environment = environment or detect_cache_environment(settings)

    if environment is CacheEnvironment.EDGE_KV:
        if not settings.kv_url:
            # Selected but not provisioned: behave as an empty store.
            _logger.warning("kv_not_provisioned", environment=environment.value)
        store: IBackingStore = RedisBackingStore.from_url(
            settings.kv_url, key_prefix=settings.kv_key_prefix, clock=clock
        )
    elif environment is CacheEnvironment.PLATFORM:
        store = SQLiteBackingStore(
            settings.platform_cache_path, key_prefix=settings.kv_key_prefix, clock=clock
        )
    else:
        store = NullBackingStore(clock=clock)

    _logger.info(
        "cache_environment_selected",
        environment=environment.value,
        backend=store.get_provider_name(),
        available=store.is_available(),
    )
    return store
