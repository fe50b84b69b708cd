"""Abstract base class for durable cache tier backends.

Defines the contract for the key-value store that keeps cached lookups
alive across process restarts.  Implementations may use an edge key-value
service (Redis protocol), a platform-managed persistent file, or nothing at
all.  The adapter pattern allows the backend to be chosen once at startup
without touching the cache engine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class IBackingStore(ABC):
    """Contract for the durable cache tier.

    All operations are async to allow for network-backed stores without
    blocking the event loop.  No operation raises: an unreachable or
    unprovisioned backend behaves as an always-empty store.
    """

    @abstractmethod
    async def get(self, key: str, expected_freshness_seconds: int | None = None) -> Any | None:
        """Retrieve the payload stored under *key* if it is still fresh.

        Parameters
        ----------
        key:
            The cache key to look up.
        expected_freshness_seconds:
            Freshness window the caller is willing to accept.  When ``None``
            the window recorded with the entry is used.

        Returns
        -------
        Any or None
            The stored payload when present and fresh; ``None`` otherwise.
        """

    @abstractmethod
    async def set(self, key: str, value: Any, freshness_seconds: int) -> bool:
        """Store *value* under *key* with a freshness window.

        The backend's physical expiry is longer than *freshness_seconds* so
        the entry is never evicted while the freshness check still accepts it.

        Returns
        -------
        bool
            ``True`` when the value was written.
        """

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove the entry stored under *key*.  ``True`` if the call succeeded."""

    @abstractmethod
    async def list(self, prefix: str = "") -> list[str]:
        """Return the keys starting with *prefix* (operational inspection)."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the backend is provisioned in this environment."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for logs, e.g. ``"redis"``."""

    async def close(self) -> None:  # noqa: B027 — optional hook
        """Release network resources.  Backends without any keep the default."""
