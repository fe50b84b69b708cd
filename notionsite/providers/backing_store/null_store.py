"""Backend used when no durable tier is provisioned (local development).

Always absent on read, always a failed write.  The cache engine then relies
on its memory tier alone.
"""

from __future__ import annotations

from notionsite.providers.backing_store.base import EnvelopeBackingStore


class NullBackingStore(EnvelopeBackingStore):
    """A durable tier that stores nothing."""

    def is_available(self) -> bool:
        return False

    def get_provider_name(self) -> str:
        return "none"

    async def _read(self, key: str) -> str | None:
        return None

    async def _write(self, key: str, payload: str, expiration_seconds: int) -> None:
        return None

    async def _remove(self, key: str) -> None:
        return None

    async def _keys(self, prefix: str) -> list[str]:
        return []
