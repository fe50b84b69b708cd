"""Base Data provider: the one upstream snapshot every view is derived from.

The root of the site is a Notion database page.  One subtree fetch of that
page yields the block tree of every row, the database schema, and the
reducer results of each declared view, from which the row ids and the ids
in the reserved ``Config`` view are read.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import TypeAdapter

from notionsite.cache.engine import LayeredCacheEngine
from notionsite.cache.keys import CacheKeys
from notionsite.models.site import COLLECTION_BLOCK_TYPES, BaseData, RecordMap
from notionsite.services.page_fetcher import PageFetcher
from notionsite.utils.errors import ShapeViolationError, UpstreamFetchError
from notionsite.utils.logging import get_logger
from notionsite.utils.text import id_to_uuid

_logger: structlog.BoundLogger = get_logger(__name__)

CONFIG_VIEW_NAME = "Config"


def _view_block_ids(view_result: Any) -> list[str]:
    if not isinstance(view_result, dict):
        return []
    group = view_result.get("collection_group_results") or {}
    return list(group.get("blockIds") or view_result.get("blockIds") or [])


def collection_page_ids(
    collection_id: str | None,
    collection_query: dict[str, Any],
    view_ids: list[str],
) -> list[str]:
    """Return the de-duplicated row ids of every view in *view_ids*, in order."""
    if not collection_id:
        return []
    views = (collection_query or {}).get(collection_id) or {}
    seen: dict[str, None] = {}
    for view_id in view_ids:
        for block_id in _view_block_ids(views.get(view_id)):
            seen.setdefault(block_id, None)
    return list(seen)


def config_page_ids(
    collection_id: str | None,
    collection_query: dict[str, Any],
    collection_view: dict[str, Any],
) -> list[str]:
    """Return the row ids in the view named ``Config``, if there is one."""
    if not collection_id or not collection_view:
        return []
    views = (collection_query or {}).get(collection_id) or {}
    for record in collection_view.values():
        view = (record or {}).get("value") or {}
        if view.get("name") == CONFIG_VIEW_NAME:
            return _view_block_ids(views.get(view.get("id")))
    return []


def parse_base_data(root_id: str, record_map: RecordMap, provider_name: str = "notion") -> BaseData:
    """Validate the shape of a root subtree and extract :class:`BaseData`."""
    block_map = record_map.get("block") or {}
    root = (block_map.get(root_id) or {}).get("value")
    if not root:
        raise UpstreamFetchError(
            message=f"Root page {root_id} is missing from the fetched subtree",
            provider_name=provider_name,
            item_id=root_id,
        )
    if root.get("type") not in COLLECTION_BLOCK_TYPES:
        raise ShapeViolationError(
            message=f"Root page {root_id} is a {root.get('type')!r} block, not a database",
            provider_name=provider_name,
        )

    collections = list((record_map.get("collection") or {}).values())
    collection = (collections[0] or {}).get("value") if collections else None
    if not collection:
        raise ShapeViolationError(
            message=f"Root database {root_id} has no collection record",
            provider_name=provider_name,
        )

    collection_id = root.get("collection_id")
    collection_query = record_map.get("collection_query") or {}
    return BaseData(
        root_id=root_id,
        block_map=block_map,
        schema_map=collection.get("schema") or {},
        page_ids=collection_page_ids(collection_id, collection_query, root.get("view_ids") or []),
        config_page_ids=config_page_ids(collection_id, collection_query, record_map.get("collection_view") or {}),
    )


class BaseDataProvider:
    """Cached access to the root database snapshot.

    Parameters
    ----------
    page_fetcher:
        Resilient fetcher; its uncached retry loop is used so the snapshot is
        cached once, under its own key.
    engine:
        Process-wide cache engine.
    revalidate_seconds:
        Freshness window of the snapshot.
    """

    def __init__(
        self,
        page_fetcher: PageFetcher,
        engine: LayeredCacheEngine,
        revalidate_seconds: int = 60,
    ) -> None:
        self._fetcher = page_fetcher
        self._cached = engine.cached(
            self._load,
            ttl=revalidate_seconds,
            namespace=CacheKeys.BASE_DATA,
            adapter=TypeAdapter(BaseData),
        )

    async def _load(self, root_id: str) -> BaseData:
        record_map = await self._fetcher.fetch_with_retry(root_id)
        base_data = parse_base_data(root_id, record_map)
        _logger.info(
            "base_data_loaded",
            root_id=root_id,
            pages=len(base_data.page_ids),
            config_candidates=len(base_data.config_page_ids),
        )
        return base_data

    async def get_base_data(self, root_id: str) -> BaseData:
        """Return the snapshot of the database rooted at *root_id*."""
        return await self._cached(id_to_uuid(root_id))
