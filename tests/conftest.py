"""Shared pytest fixtures for the notionsite test suite."""

from __future__ import annotations

import copy
import fnmatch
from typing import Any

import pytest

from notionsite.cache.engine import LayeredCacheEngine
from notionsite.interfaces.content_provider import IContentProvider
from notionsite.models.site import RecordMap
from notionsite.providers.backing_store import NullBackingStore, RedisBackingStore
from notionsite.services.base_data import BaseDataProvider
from notionsite.services.config_locator import ConfigLocator
from notionsite.services.page_fetcher import PageFetcher
from notionsite.utils.errors import TransientUpstreamError

ROOT_ID = "2bdbc245-dc94-81ff-91eb-dc47ad3db8d5"
COLLECTION_ID = "c0ffee00-0000-4000-8000-000000000001"
ALL_VIEW_ID = "7e570000-0000-4000-8000-000000000001"
CONFIG_VIEW_ID = "7e570000-0000-4000-8000-000000000002"
CONFIG_PAGE_ID = "c0f16000-0000-4000-8000-000000000001"
CONFIG_COLLECTION_ID = "c0f16000-0000-4000-8000-00000000c011"
CREATED_TIME = 1_700_000_000_000

SCHEMA: dict[str, Any] = {
    "title": {"name": "title", "type": "title"},
    "s1ug": {"name": "slug", "type": "text"},
    "typ3": {"name": "type", "type": "select"},
    "stat": {"name": "status", "type": "select"},
    "tag5": {"name": "tags", "type": "multi_select"},
    "summ": {"name": "summary", "type": "text"},
    "d4te": {"name": "date", "type": "date"},
    "cat9": {"name": "category", "type": "select"},
    "cvr1": {"name": "icon", "type": "file"},
    "chld": {"name": "childrenIds", "type": "relation"},
}


def post_id(n: int) -> str:
    """Deterministic dashed page id for test rows."""
    return f"{n:08x}-0000-4000-8000-000000000000"


# ---------------------------------------------------------------------------
# Record map builders
# ---------------------------------------------------------------------------


def text(value: str) -> list[list[Any]]:
    return [[value]]


def date_prop(start_date: str, start_time: str | None = None) -> list[list[Any]]:
    payload: dict[str, Any] = {"type": "datetime" if start_time else "date", "start_date": start_date}
    if start_time:
        payload["start_time"] = start_time
    return [["‣", [["d", payload]]]]


def relation_prop(*ids: str) -> list[list[Any]]:
    return [["‣", [["p", item_id, "space-1"]]] for item_id in ids]


def page_row(
    page_id: str,
    *,
    title: str = "",
    slug: str | None = None,
    page_type: str | None = "Post",
    status: str | None = "Published",
    tags: list[str] | None = None,
    summary: str = "",
    date: str | None = None,
    children: list[str] | None = None,
    extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """One database row as it appears in a Notion block map."""
    properties: dict[str, Any] = {"title": text(title)}
    if slug is not None:
        properties["s1ug"] = text(slug)
    if page_type is not None:
        properties["typ3"] = text(page_type)
    if status is not None:
        properties["stat"] = text(status)
    if tags:
        properties["tag5"] = text(",".join(tags))
    if summary:
        properties["summ"] = text(summary)
    if date:
        properties["d4te"] = date_prop(date)
    if children:
        properties["chld"] = relation_prop(*children)
    properties.update(extra or {})
    return {
        "role": "reader",
        "value": {
            "id": page_id,
            "type": "page",
            "properties": properties,
            "created_time": CREATED_TIME,
            "last_edited_time": CREATED_TIME + 1000,
        },
    }


def site_record_map(rows: list[dict[str, Any]], config_ids: list[str] | None = None) -> RecordMap:
    """Record map of the root database holding *rows*."""
    config_ids = config_ids or []
    row_ids = [row["value"]["id"] for row in rows]
    block = {
        ROOT_ID: {
            "role": "reader",
            "value": {
                "id": ROOT_ID,
                "type": "collection_view_page",
                "collection_id": COLLECTION_ID,
                "view_ids": [ALL_VIEW_ID, CONFIG_VIEW_ID],
            },
        }
    }
    block.update({row["value"]["id"]: row for row in rows})
    return {
        "block": block,
        "collection": {COLLECTION_ID: {"role": "reader", "value": {"id": COLLECTION_ID, "schema": SCHEMA}}},
        "collection_view": {
            ALL_VIEW_ID: {"role": "reader", "value": {"id": ALL_VIEW_ID, "name": "All", "type": "table"}},
            CONFIG_VIEW_ID: {"role": "reader", "value": {"id": CONFIG_VIEW_ID, "name": "Config", "type": "table"}},
        },
        "collection_query": {
            COLLECTION_ID: {
                ALL_VIEW_ID: {"collection_group_results": {"type": "results", "blockIds": row_ids}},
                CONFIG_VIEW_ID: {"collection_group_results": {"type": "results", "blockIds": config_ids}},
            }
        },
    }


def config_page_record_map(page_id: str = CONFIG_PAGE_ID, columns: tuple[str, ...] = ("name", "value", "type")) -> RecordMap:
    """Content of a Config view page holding an inline database."""
    table_id = f"{page_id[:-4]}7ab1"
    return {
        "block": {
            page_id: {"role": "reader", "value": {"id": page_id, "type": "page", "content": [table_id]}},
            table_id: {
                "role": "reader",
                "value": {"id": table_id, "type": "collection_view", "collection_id": CONFIG_COLLECTION_ID},
            },
        },
        "collection": {
            CONFIG_COLLECTION_ID: {
                "role": "reader",
                "value": {"schema": {f"k{i}": {"name": name, "type": "text"} for i, name in enumerate(columns)}},
            }
        },
    }


def content_record_map(page_id: str, blocks: list[tuple[str, dict[str, Any]]]) -> RecordMap:
    """Content of one post: the page block followed by ``(type, properties)`` children."""
    block: dict[str, Any] = {
        page_id: {
            "role": "reader",
            "value": {"id": page_id, "type": "page", "properties": {"title": text("Post")}},
        }
    }
    for index, (block_type, properties) in enumerate(blocks):
        child_id = f"{page_id[:-5]}b{index:04x}"
        block[child_id] = {
            "role": "reader",
            "value": {"id": child_id, "type": block_type, "properties": properties},
        }
    return {"block": block}


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced clock in seconds."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRedis:
    """The subset of ``redis.asyncio.Redis`` used by RedisBackingStore."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.expirations: dict[str, int] = {}

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self.data[key] = value
        if ex is not None:
            self.expirations[key] = ex
        return True

    async def delete(self, key: str) -> int:
        return 1 if self.data.pop(key, None) is not None else 0

    async def scan_iter(self, match: str = "*"):  # noqa: ANN201
        pattern = match.replace("\\[", "[[]").replace("\\]", "[]]").replace("\\*", "[*]").replace("\\?", "[?]")
        for key in list(self.data):
            if fnmatch.fnmatchcase(key, pattern):
                yield key

    async def aclose(self) -> None:
        return None


class FakeContentProvider(IContentProvider):
    """Serves canned record maps and records every request."""

    def __init__(self, pages: dict[str, RecordMap] | None = None) -> None:
        self.pages: dict[str, RecordMap] = dict(pages or {})
        self.calls: list[str] = []
        self.failures: dict[str, int] = {}

    def fail(self, item_id: str, times: int) -> None:
        self.failures[item_id] = times

    async def fetch_subtree(self, item_id: str) -> RecordMap:
        self.calls.append(item_id)
        if self.failures.get(item_id, 0) > 0:
            self.failures[item_id] -= 1
            raise TransientUpstreamError(f"simulated failure for {item_id}", provider_name="fake")
        if item_id not in self.pages:
            raise TransientUpstreamError(f"{item_id} not found", provider_name="fake")
        return copy.deepcopy(self.pages[item_id])

    def get_provider_name(self) -> str:
        return "fake"


async def no_sleep(_seconds: float) -> None:
    return None


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def redis_store(fake_redis: FakeRedis, clock: FakeClock) -> RedisBackingStore:
    return RedisBackingStore(fake_redis, clock=clock)


@pytest.fixture
def engine(clock: FakeClock) -> LayeredCacheEngine:
    """Engine with no durable tier."""
    return LayeredCacheEngine(NullBackingStore(clock=clock), clock=clock)


@pytest.fixture
def content_provider() -> FakeContentProvider:
    return FakeContentProvider()


@pytest.fixture
def page_fetcher(content_provider: FakeContentProvider, engine: LayeredCacheEngine) -> PageFetcher:
    return PageFetcher(content_provider, engine, revalidate_seconds=60, sleep=no_sleep)


@pytest.fixture
def base_data_provider(page_fetcher: PageFetcher, engine: LayeredCacheEngine) -> BaseDataProvider:
    return BaseDataProvider(page_fetcher, engine, revalidate_seconds=60)


@pytest.fixture
def config_locator(page_fetcher: PageFetcher) -> ConfigLocator:
    return ConfigLocator(page_fetcher)
