"""Published lists handed to the rendering layer.

:meth:`SiteDataService.get_site_data` parses every row of one Base Data
snapshot and groups the published ones:

    Post                  -> published_posts (newest first), latest_posts
    Page                  -> pages, nav_pages
    HeadMenu, Menu, Link  -> nav_pages

Rows that fail to parse are logged and skipped so one broken row never takes
the whole site down.
"""

from __future__ import annotations

import math
from collections import Counter
from typing import Sequence, TypeVar

import structlog
from pydantic import TypeAdapter, ValidationError

from notionsite.cache.engine import LayeredCacheEngine
from notionsite.cache.keys import CacheKeys
from notionsite.models.site import NAV_PAGE_TYPES, PageRecord, PageStatus, PageType, SiteData, TagOption
from notionsite.services.base_data import BaseDataProvider
from notionsite.services.config_locator import ConfigLocator
from notionsite.services.property_extractor import extract_properties
from notionsite.utils.errors import NotionSiteError, PageOutOfRangeError
from notionsite.utils.logging import get_logger
from notionsite.utils.text import id_to_uuid

_logger: structlog.BoundLogger = get_logger(__name__)

_T = TypeVar("_T")

DEFAULT_POSTS_PER_PAGE = 12
DEFAULT_LATEST_POST_COUNT = 6


def tag_options(posts: Sequence[PageRecord]) -> list[TagOption]:
    """Count tag usage across *posts*; most used first, then by name."""
    counts = Counter(tag for post in posts for tag in post.tags)
    return [
        TagOption(name=name, count=count)
        for name, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    ]


def posts_by_tag(posts: Sequence[PageRecord], tag: str) -> list[PageRecord]:
    return [post for post in posts if tag in post.tags]


def paginate(items: Sequence[_T], page: int, per_page: int = DEFAULT_POSTS_PER_PAGE) -> tuple[list[_T], int]:
    """Return the items on 1-based *page* and the total number of pages.

    An empty list still has one (empty) page.

    Raises
    ------
    PageOutOfRangeError
        If *page* is outside ``1..total_pages``.
    """
    if per_page < 1:
        raise ValueError("per_page must be at least 1")
    total_pages = max(1, math.ceil(len(items) / per_page))
    if page < 1 or page > total_pages:
        raise PageOutOfRangeError(f"Page {page} is outside 1..{total_pages}")
    start = (page - 1) * per_page
    return list(items[start : start + per_page]), total_pages


class SiteDataService:
    """Derives :class:`SiteData` from the current Base Data snapshot."""

    def __init__(
        self,
        base_data_provider: BaseDataProvider,
        config_locator: ConfigLocator,
        engine: LayeredCacheEngine,
        revalidate_seconds: int = 60,
        latest_post_count: int = DEFAULT_LATEST_POST_COUNT,
    ) -> None:
        self._base_data = base_data_provider
        self._config_locator = config_locator
        self._latest_post_count = latest_post_count
        self._cached_build = engine.cached(
            self._build,
            ttl=revalidate_seconds,
            namespace=CacheKeys.SITE_DATA,
            adapter=TypeAdapter(SiteData),
        )

    async def get_site_data(self, root_id: str) -> SiteData:
        return await self._cached_build(id_to_uuid(root_id))

    async def _build(self, root_id: str) -> SiteData:
        base_data = await self._base_data.get_base_data(root_id)
        config_page_id = await self._config_locator.locate(base_data.config_page_ids)

        posts: list[PageRecord] = []
        nav_pages: list[PageRecord] = []
        for item_id in base_data.page_ids:
            if item_id == config_page_id:
                continue
            try:
                record = extract_properties(item_id, base_data.block_map, base_data.schema_map)
            except (NotionSiteError, ValidationError) as exc:
                _logger.error("page_properties_failed", item_id=item_id, error=str(exc))
                continue

            if not record.type or record.status != PageStatus.PUBLISHED.value:
                continue
            if record.type == PageType.POST.value:
                posts.append(record)
            elif record.type == PageType.PAGE.value or record.type in NAV_PAGE_TYPES:
                nav_pages.append(record)

        posts.sort(key=lambda post: post.date or 0, reverse=True)
        site_data = SiteData(
            published_posts=posts,
            latest_posts=posts[: self._latest_post_count],
            pages=[page for page in nav_pages if page.type == PageType.PAGE.value],
            nav_pages=nav_pages,
            tag_options=tag_options(posts),
            config_page_id=config_page_id,
        )
        _logger.info(
            "site_data_built",
            root_id=root_id,
            posts=len(posts),
            nav_pages=len(nav_pages),
            tags=len(site_data.tag_options),
        )
        return site_data
