"""Cache tier data models.

Two shapes of cached value exist:

- :class:`CacheEntry` -- what the durable tier stores, serialized as JSON::

      {"data": <opaque>, "timestamp": <epoch-ms>, "ttl": <seconds>}

  Freshness is decided from ``timestamp`` and a freshness window, never from
  the backend's physical expiry, which is longer.
- :class:`MemoryCacheSlot` -- what the in-process tier stores: the value and
  the absolute instant it stops being valid.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CacheEntry(BaseModel):
    """One cached value at the durable tier."""

    model_config = ConfigDict(frozen=True)

    data: Any = Field(description="Opaque, JSON-safe payload.")
    timestamp: int = Field(description="Creation instant in epoch milliseconds.")
    ttl: int = Field(ge=0, description="Freshness window in seconds.")

    def age_seconds(self, now_ms: int) -> float:
        return (now_ms - self.timestamp) / 1000

    def is_fresh(
        self,
        now_ms: int,
        freshness_seconds: int | None = None,
        freshness_factor: float = 1.0,
    ) -> bool:
        """Return ``True`` while ``age < window * freshness_factor``.

        *freshness_seconds* is the window the caller expects; the entry's own
        ``ttl`` is used when the caller does not state one.
        """
        window = self.ttl if freshness_seconds is None else freshness_seconds
        return self.age_seconds(now_ms) < window * freshness_factor


@dataclass(frozen=True)
class MemoryCacheSlot:
    """One cached value at the in-process tier.

    Attributes
    ----------
    data:
        The cached result, stored as returned by the wrapped function.
    expires:
        Absolute instant (seconds, same clock as the engine) after which
        the slot is no longer valid.
    """

    data: Any
    expires: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires
