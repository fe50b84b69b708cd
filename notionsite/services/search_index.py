"""Full-text search over published posts.

Building the index fetches the content blocks of every published post (in
batches, to bound upstream concurrency) and keeps up to fifty text
fragments per post.  The built index is held in-process together with a
fingerprint of the published post ids and a wall-clock expiry.

Rebuild policy
--------------
- No index yet, or the index has expired: rebuild before answering.
- Index still fresh but the set of published posts changed: answer from
  the current index and rebuild it in the background.  Posts the index does
  not know yet are matched on their metadata only (title, tags, summary).
- Concurrent rebuilds for the same fingerprint share one task.

Short-lived processes can call :meth:`SearchIndex.wait_for_rebuild` before
exiting, and deploy scripts can call :meth:`SearchIndex.prewarm`.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable

import structlog

from notionsite.models.site import PageRecord, RecordMap, SearchIndexEntry
from notionsite.services.page_fetcher import PageFetcher
from notionsite.utils.errors import NotionSiteError
from notionsite.utils.logging import get_logger
from notionsite.utils.text import get_text_content
from notionsite.utils.timing import timed

_logger: structlog.BoundLogger = get_logger(__name__)

SEARCHABLE_BLOCK_TYPES = frozenset(
    {
        "text",
        "bulleted_list",
        "numbered_list",
        "to_do",
        "toggle",
        "header",
        "sub_header",
        "sub_sub_header",
        "quote",
        "callout",
        "code",
        "column",
        "column_list",
    }
)
MAX_CONTENT_EXCERPTS = 50
MIN_FRAGMENT_LENGTH = 3
PLACEHOLDER_TITLE = "Untitled"
DEFAULT_BATCH_SIZE = 5
MAX_SNIPPETS = 3
TAG_SNIPPET_PREFIX = "tag: "

SearchIndexMap = dict[str, SearchIndexEntry]


def extract_content_excerpts(record_map: RecordMap) -> list[str]:
    """Collect searchable text fragments from a post's block tree."""
    excerpts: list[str] = []
    for block in (record_map.get("block") or {}).values():
        value = (block or {}).get("value") or {}
        block_type = value.get("type")
        if block_type not in SEARCHABLE_BLOCK_TYPES:
            continue
        properties = value.get("properties") or {}

        text = get_text_content(properties.get("title"))
        if len(text) > MIN_FRAGMENT_LENGTH and text != PLACEHOLDER_TITLE:
            excerpts.append(text)

        if block_type == "code":
            language = get_text_content(properties.get("language"))
            if language:
                excerpts.append(language)

        caption = get_text_content(properties.get("caption"))
        if len(caption) > MIN_FRAGMENT_LENGTH:
            excerpts.append(caption)

    return excerpts[:MAX_CONTENT_EXCERPTS]


def published_posts(items: Iterable[PageRecord]) -> list[PageRecord]:
    return [item for item in items if item.is_published_post()]


def fingerprint(items: Iterable[PageRecord]) -> str:
    """Sorted, comma-joined ids of the published posts in *items*."""
    return ",".join(sorted(item.id for item in published_posts(items)))


def excerpt_around(text: str, keyword: str, before: int, after: int) -> str:
    """Cut *text* around the first case-insensitive match of *keyword*."""
    index = text.lower().find(keyword)
    start = max(0, index - before)
    end = min(len(text), index + len(keyword) + after)
    prefix = "..." if start > 0 else ""
    suffix = "..." if end < len(text) else ""
    return f"{prefix}{text[start:end]}{suffix}"


def _matching_tag(tags: list[str], keyword: str) -> str | None:
    return next((tag for tag in tags if keyword in tag.lower()), None)


def indexed_snippets(entry: SearchIndexEntry, keyword: str) -> list[str]:
    snippets: list[str] = []
    if keyword in entry.title.lower():
        snippets.append(entry.title)

    tag = _matching_tag(entry.tags, keyword)
    if tag is not None:
        snippets.append(f"{TAG_SNIPPET_PREFIX}{tag}")

    if keyword in entry.summary.lower():
        snippets.append(excerpt_around(entry.summary, keyword, before=30, after=50))

    for content in entry.content_excerpts:
        if len(snippets) >= MAX_SNIPPETS:
            break
        if keyword in content.lower():
            snippets.append(excerpt_around(content, keyword, before=20, after=40))

    return snippets[:MAX_SNIPPETS]


def metadata_snippets(post: PageRecord, keyword: str) -> list[str]:
    snippets: list[str] = []
    if keyword in post.title.lower():
        snippets.append(post.title)

    tag = _matching_tag(post.tags, keyword)
    if tag is not None:
        snippets.append(f"{TAG_SNIPPET_PREFIX}{tag}")

    if keyword in post.summary.lower():
        snippets.append(f"{post.summary[:80]}...")

    return snippets[:MAX_SNIPPETS]


@dataclass(frozen=True)
class _Snapshot:
    entries: SearchIndexMap
    fingerprint: str
    expires: float


class SearchIndex:
    """In-process search index over the published posts of one site.

    Parameters
    ----------
    page_fetcher:
        Source of each post's content blocks.
    revalidate_seconds:
        Lifetime of a built index.
    batch_size:
        Number of posts whose content is fetched concurrently.
    clock:
        Returns the current time in seconds; injectable for tests.
    """

    def __init__(
        self,
        page_fetcher: PageFetcher,
        revalidate_seconds: int = 60,
        batch_size: int = DEFAULT_BATCH_SIZE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._fetcher = page_fetcher
        self._ttl = revalidate_seconds
        self._batch_size = max(1, batch_size)
        self._clock = clock
        self._snapshot: _Snapshot | None = None
        self._builds: dict[str, asyncio.Task[SearchIndexMap]] = {}
        self._latest_key: str | None = None

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    async def _entry_for(self, post: PageRecord) -> SearchIndexEntry:
        excerpts: list[str] = []
        try:
            record_map = await self._fetcher.get_post_blocks(post.id)
            excerpts = extract_content_excerpts(record_map)
        except NotionSiteError as exc:
            _logger.warning("search_index_content_unavailable", post_id=post.id, error=str(exc))

        return SearchIndexEntry(
            id=post.id,
            title=post.title,
            slug=post.slug,
            tags=post.tags,
            summary=post.summary,
            content_excerpts=excerpts,
            date=post.date,
        )

    async def build(self, items: Iterable[PageRecord]) -> SearchIndexMap:
        """Build a fresh index for the published posts in *items*."""
        posts = published_posts(items)
        _logger.info("search_index_building", posts=len(posts))

        index: SearchIndexMap = {}
        with timed("build_search_index"):
            for start in range(0, len(posts), self._batch_size):
                batch = posts[start : start + self._batch_size]
                for entry in await asyncio.gather(*(self._entry_for(post) for post in batch)):
                    index[entry.id] = entry

        _logger.info("search_index_built", entries=len(index))
        return index

    async def _build_and_store(self, items: list[PageRecord], key: str) -> SearchIndexMap:
        try:
            entries = await self.build(items)
            # a build for an older fingerprint must not replace a newer one
            if key == self._latest_key:
                self._snapshot = _Snapshot(entries=entries, fingerprint=key, expires=self._clock() + self._ttl)
            else:
                _logger.info("search_index_superseded", fingerprint=key, latest=self._latest_key)
            return entries
        finally:
            self._builds.pop(key, None)

    def _start_build(self, items: list[PageRecord], key: str) -> asyncio.Task[SearchIndexMap]:
        self._latest_key = key
        task = self._builds.get(key)
        if task is None:
            task = asyncio.ensure_future(self._build_and_store(items, key))
            task.add_done_callback(_log_build_failure)
            self._builds[key] = task
        return task

    async def _current_index(self, items: list[PageRecord]) -> SearchIndexMap:
        key = fingerprint(items)
        snapshot = self._snapshot

        if snapshot is not None and self._clock() < snapshot.expires:
            if snapshot.fingerprint == key:
                _logger.debug("search_index_hit")
            else:
                _logger.info("search_index_stale", rebuilding=True)
                self._start_build(items, key)
            return snapshot.entries

        _logger.info("search_index_miss")
        return await asyncio.shield(self._start_build(items, key))

    async def prewarm(self, items: Iterable[PageRecord]) -> None:
        """Make sure an index for *items* exists, e.g. at deploy time."""
        await self._current_index(list(items))
        await self.wait_for_rebuild()

    async def rebuild(self, items: Iterable[PageRecord]) -> SearchIndexMap:
        """Rebuild the index now, regardless of its age or fingerprint."""
        items = list(items)
        return await asyncio.shield(self._start_build(items, fingerprint(items)))

    async def wait_for_rebuild(self) -> None:
        """Wait until every background rebuild has settled."""
        while self._builds:
            await asyncio.gather(*list(self._builds.values()), return_exceptions=True)

    def cached_fingerprint(self) -> str | None:
        return self._snapshot.fingerprint if self._snapshot else None

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    async def search(self, items: Iterable[PageRecord], keyword: str) -> list[PageRecord]:
        """Return the published posts matching *keyword*, with snippets attached.

        Matching is a case-insensitive substring test.  A blank keyword
        matches nothing.
        """
        needle = keyword.lower().strip() if keyword else ""
        if not needle:
            return []

        items = list(items)
        index = await self._current_index(items)

        results: list[PageRecord] = []
        for post in published_posts(items):
            entry = index.get(post.id)
            if entry is not None:
                snippets = indexed_snippets(entry, needle)
            else:
                _logger.debug("search_metadata_fallback", post_id=post.id)
                snippets = metadata_snippets(post, needle)
            if snippets:
                results.append(post.model_copy(update={"search_results": snippets}))

        _logger.info("search_completed", keyword=needle, results=len(results))
        return results


def _log_build_failure(task: asyncio.Task[Any]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        _logger.error("search_index_build_failed", error=str(exc))
