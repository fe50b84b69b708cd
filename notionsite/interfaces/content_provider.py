"""Abstract base class for the upstream content service.

The site model only ever asks the upstream service one question: "give me
the subtree rooted at this item".  Everything else (schema, item lists,
content blocks) is read out of that answer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from notionsite.models.site import RecordMap


# Concrete implementation: NotionAPIProvider (notionsite/providers/notion/)
class IContentProvider(ABC):
    """Contract for upstream subtree fetches."""

    @abstractmethod
    async def fetch_subtree(self, item_id: str) -> RecordMap:
        """Fetch the block/collection tree rooted at *item_id*.

        Raises
        ------
        notionsite.utils.errors.TransientUpstreamError
            If the request fails; callers decide whether to retry.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for logs, e.g. ``"notion"``."""
