"""Resilient upstream fetch and the per-item content block view.

Every read of a Notion subtree goes through :meth:`PageFetcher.fetch_with_retry`:
a failed call waits a fixed delay and is retried until the attempt budget is
spent, then a terminal :class:`UpstreamFetchError` naming the item is raised.

:meth:`PageFetcher.get_page_with_retry` is the same call wrapped by the
layered cache engine, keyed on the item id alone.  :meth:`get_post_blocks`
builds the block view handed to the renderer on top of it.
"""

from __future__ import annotations

import asyncio
import copy
from typing import Any, Awaitable, Callable

import structlog

from notionsite.cache.engine import LayeredCacheEngine
from notionsite.cache.keys import CacheKeys
from notionsite.interfaces.content_provider import IContentProvider
from notionsite.models.site import RecordMap
from notionsite.utils.errors import TransientUpstreamError, UpstreamFetchError
from notionsite.utils.text import id_to_uuid
from notionsite.utils.timing import Timer

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 1.0

# Notion language names -> syntax highlighter identifiers
_CODE_LANGUAGE_ALIASES: dict[str, str] = {
    "C++": "cpp",
    "C#": "csharp",
    "Assembly": "asm6502",
}


def _normalize_code_language(block: dict[str, Any]) -> dict[str, Any]:
    value = block.get("value") or {}
    if value.get("type") != "code":
        return block
    language = (value.get("properties") or {}).get("language")
    try:
        current = language[0][0]
    except (IndexError, KeyError, TypeError):
        return block
    alias = _CODE_LANGUAGE_ALIASES.get(current)
    if alias is None:
        return block
    updated = copy.deepcopy(block)
    updated["value"]["properties"]["language"] = [[alias], *language[1:]]
    return updated


def filter_post_blocks(item_id: str, record_map: RecordMap, slice_count: int | None = None) -> RecordMap:
    """Prepare a fetched subtree for rendering without mutating it.

    The root block loses its ``properties`` (the row's database values),
    code blocks get highlighter-friendly language names, and when
    *slice_count* is positive only the first ``slice_count + 1`` content
    blocks are kept.
    """
    root_id = id_to_uuid(item_id)
    result: RecordMap = dict(record_map)
    result["block"] = {}

    count = 0
    for key, block in (record_map.get("block") or {}).items():
        value = (block or {}).get("value") or {}
        if value.get("id") in (item_id, root_id):
            stripped = {k: v for k, v in value.items() if k != "properties"}
            result["block"][key] = {**block, "value": stripped}
            continue
        if slice_count and slice_count > 0 and count > slice_count:
            continue
        count += 1
        result["block"][key] = _normalize_code_language(block)

    return result


class PageFetcher:
    """Fetches Notion subtrees with bounded retries.

    Parameters
    ----------
    content_provider:
        Upstream client implementing ``fetch_subtree``.
    engine:
        Process-wide cache engine wrapping :meth:`get_page_with_retry`.
    revalidate_seconds:
        Freshness window of cached subtrees.
    sleep:
        Awaitable delay between attempts; injectable for tests.
    """

    def __init__(
        self,
        content_provider: IContentProvider,
        engine: LayeredCacheEngine,
        revalidate_seconds: int = 60,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        retry_delay_seconds: float = RETRY_DELAY_SECONDS,
    ) -> None:
        self._provider = content_provider
        self._sleep = sleep
        self._retry_delay = retry_delay_seconds
        self._cached_fetch = engine.cached(
            self._fetch_page,
            ttl=revalidate_seconds,
            namespace=CacheKeys.PAGE_WITH_RETRY,
        )

    async def fetch_with_retry(self, item_id: str, attempts_remaining: int = DEFAULT_ATTEMPTS) -> RecordMap:
        """Fetch *item_id*, retrying transient failures after a fixed delay."""
        while attempts_remaining > 0:
            logger.info(
                "upstream_request",
                item_id=item_id,
                attempts_remaining=attempts_remaining,
            )
            try:
                return await self._provider.fetch_subtree(item_id)
            except TransientUpstreamError as exc:
                logger.warning("upstream_request_failed", item_id=item_id, error=str(exc))
                attempts_remaining -= 1
                if attempts_remaining > 0:
                    await self._sleep(self._retry_delay)

        logger.error("upstream_retries_exhausted", item_id=item_id)
        raise UpstreamFetchError(
            message=f"Upstream request failed for page {item_id}",
            provider_name=self._provider.get_provider_name(),
            item_id=item_id,
        )

    async def _fetch_page(self, item_id: str) -> RecordMap:
        return await self.fetch_with_retry(item_id)

    async def get_page_with_retry(self, item_id: str) -> RecordMap:
        """Cached :meth:`fetch_with_retry`, keyed on *item_id* only."""
        return await self._cached_fetch(item_id)

    async def get_post_blocks(self, item_id: str, slice_count: int | None = None) -> RecordMap:
        """Return the renderable block view of one item."""
        timer = Timer(f"get_post_blocks:{item_id[:8]}")
        record_map = await self.get_page_with_retry(item_id)
        if not record_map or not record_map.get("block"):
            raise UpstreamFetchError(
                message=f"No content returned for page {item_id}",
                provider_name=self._provider.get_provider_name(),
                item_id=item_id,
            )
        result = filter_post_blocks(item_id, record_map, slice_count)
        timer.end()
        return result
