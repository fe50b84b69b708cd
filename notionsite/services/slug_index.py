"""Slug index: public slug -> routing identity of an item.

The index is built from one Base Data snapshot by reading only the ``slug``,
``type`` and ``status`` columns of each row, and is cached by the layered
cache engine under the root id.  Because it can lag behind the snapshot,
:meth:`SlugIndex.resolve_slug` falls back to a full scan when a slug is not
in the index.
"""

from __future__ import annotations

import structlog
from pydantic import TypeAdapter

from notionsite.cache.engine import LayeredCacheEngine
from notionsite.cache.keys import CacheKeys
from notionsite.models.site import BaseData, PageRecord, SlugIndexEntry
from notionsite.services.base_data import BaseDataProvider
from notionsite.services.config_locator import ConfigLocator
from notionsite.services.property_extractor import extract_properties, extract_routing_identity
from notionsite.utils.errors import ShapeViolationError
from notionsite.utils.logging import get_logger
from notionsite.utils.text import id_to_uuid
from notionsite.utils.timing import timed

_logger: structlog.BoundLogger = get_logger(__name__)

SlugIndexMap = dict[str, SlugIndexEntry]


class SlugIndex:
    """Builds, caches and queries the slug index of one site."""

    def __init__(
        self,
        base_data_provider: BaseDataProvider,
        config_locator: ConfigLocator,
        engine: LayeredCacheEngine,
        revalidate_seconds: int = 60,
    ) -> None:
        self._base_data = base_data_provider
        self._config_locator = config_locator
        self._cached_build = engine.cached(
            self._build,
            ttl=revalidate_seconds,
            namespace=CacheKeys.SLUG_INDEX,
            adapter=TypeAdapter(SlugIndexMap),
        )

    async def get_slug_index(self, root_id: str) -> SlugIndexMap:
        return await self._cached_build(id_to_uuid(root_id))

    async def _build(self, root_id: str) -> SlugIndexMap:
        with timed("build_slug_index"):
            base_data = await self._base_data.get_base_data(root_id)
            config_page_id = await self._config_locator.locate(base_data.config_page_ids)

            index: SlugIndexMap = {}
            for item_id in base_data.page_ids:
                if item_id == config_page_id:
                    continue
                try:
                    slug, page_type, status = extract_routing_identity(
                        item_id, base_data.block_map, base_data.schema_map
                    )
                except ShapeViolationError as exc:
                    _logger.warning("slug_index_item_skipped", item_id=item_id, error=str(exc))
                    continue
                if slug in index:
                    _logger.warning("duplicate_slug", slug=slug, item_id=item_id, kept=index[slug].item_id)
                    continue
                index[slug] = SlugIndexEntry(item_id=item_id, type=page_type, status=status)

        _logger.info("slug_index_built", root_id=root_id, entries=len(index))
        return index

    async def resolve_slug(self, slug: str, root_id: str) -> PageRecord | None:
        """Return the published post routed at *slug*, or ``None``.

        An index entry is trusted only after it is re-read from the current
        snapshot; an entry whose item has since vanished, been unpublished or
        renamed falls through to parsing every row.
        """
        index = await self.get_slug_index(root_id)
        base_data = await self._base_data.get_base_data(root_id)

        entry = index.get(slug)
        if entry is not None:
            if not entry.is_published_post():
                _logger.debug("slug_not_publishable", slug=slug, type=entry.type, status=entry.status)
                return None
            if entry.item_id in base_data.block_map:
                try:
                    record = extract_properties(entry.item_id, base_data.block_map, base_data.schema_map)
                except ShapeViolationError as exc:
                    _logger.warning("slug_index_entry_unreadable", slug=slug, item_id=entry.item_id, error=str(exc))
                else:
                    if record.slug == slug and record.is_published_post():
                        return record
            _logger.info("slug_index_stale", slug=slug, item_id=entry.item_id)
        else:
            _logger.info("slug_index_miss", slug=slug)

        return self._scan(slug, base_data)

    @staticmethod
    def _scan(slug: str, base_data: BaseData) -> PageRecord | None:
        for item_id in base_data.page_ids:
            try:
                record = extract_properties(item_id, base_data.block_map, base_data.schema_map)
            except ShapeViolationError:
                continue
            if record.slug == slug and record.is_published_post():
                return record
        return None
