"""notionsite domain models — re-exports all public model classes.

    - cache.py -- Durable-tier entries and in-process memory slots
    - site.py  -- Upstream snapshot, parsed pages, derived indices, site lists
"""

from __future__ import annotations

from notionsite.models.cache import CacheEntry, MemoryCacheSlot
from notionsite.models.site import (
    BaseData,
    PageRecord,
    PageStatus,
    PageType,
    RecordMap,
    SearchIndexEntry,
    SiteData,
    SlugIndexEntry,
    TagOption,
)

__all__ = [
    "BaseData",
    "CacheEntry",
    "MemoryCacheSlot",
    "PageRecord",
    "PageStatus",
    "PageType",
    "RecordMap",
    "SearchIndexEntry",
    "SiteData",
    "SlugIndexEntry",
    "TagOption",
]
