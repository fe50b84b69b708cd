"""Public interface definitions for external collaborators.

Every external service the site model talks to is accessed through the
abstract base classes defined here.  Concrete adapters live in
``notionsite/providers/`` and are injected by ``notionsite.main``.

    Interface          →  Concrete implementations
    ─────────────────────────────────────────────────────────────
    IBackingStore      →  RedisBackingStore, SQLiteBackingStore,
                          NullBackingStore
    IContentProvider   →  NotionAPIProvider
"""

from notionsite.interfaces.backing_store import IBackingStore
from notionsite.interfaces.content_provider import IContentProvider

__all__ = [
    "IBackingStore",
    "IContentProvider",
]
