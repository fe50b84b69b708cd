"""Notion web API client that loads a page subtree as a record map.

Notion publishes public pages through the same ``/api/v3`` endpoints its web
client uses.  A subtree is assembled in two steps:

1. ``loadPageChunk`` -- repeated with the returned cursor until the page's
   blocks are exhausted.
2. ``queryCollection`` -- for every collection-view block found, once per
   declared view; each view's reducer results are stored under
   ``collection_query[collection_id][view_id]`` and the returned rows are
   merged into the record map.

Follows the adapter pattern: injected ``httpx.AsyncClient``, every transport
or HTTP error translated to :class:`TransientUpstreamError` so the resilient
fetcher can retry it.
"""

from __future__ import annotations

from typing import Any

import httpx

from notionsite.interfaces.content_provider import IContentProvider
from notionsite.models.site import COLLECTION_BLOCK_TYPES, RecordMap
from notionsite.utils.errors import TransientUpstreamError
from notionsite.utils.logging import get_logger
from notionsite.utils.text import id_to_uuid

_DEFAULT_BASE_URL = "https://www.notion.so/api/v3"
_CHUNK_LIMIT = 100
_MAX_CHUNKS = 50  # 5000 blocks; larger pages are truncated
_COLLECTION_LIMIT = 999
_RECORD_TABLES = ("block", "collection", "collection_view", "notion_user", "space")

logger = get_logger(__name__)


def _record_value(record: Any) -> dict[str, Any] | None:
    if isinstance(record, dict) and isinstance(record.get("value"), dict):
        return record["value"]
    return None


def merge_record_maps(target: RecordMap, source: RecordMap) -> None:
    """Copy every record table of *source* into *target* in place."""
    for table in _RECORD_TABLES:
        records = source.get(table)
        if records:
            target.setdefault(table, {}).update(records)


class NotionAPIProvider(IContentProvider):
    """Fetches page subtrees from the Notion web API.

    Parameters
    ----------
    http_client:
        Injected ``httpx.AsyncClient`` for testability and connection pooling.
    base_url:
        API root, ``https://www.notion.so/api/v3`` by default.
    token_v2:
        Session cookie for private workspaces; empty for public pages.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str = _DEFAULT_BASE_URL,
        token_v2: str = "",
    ) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._token_v2 = token_v2

    def get_provider_name(self) -> str:
        return "notion"

    async def _post(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self._token_v2:
            headers["Cookie"] = f"token_v2={self._token_v2}"
        try:
            response = await self._http.post(f"{self._base_url}/{endpoint}", json=body, headers=headers)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise TransientUpstreamError(
                message=f"{endpoint} returned HTTP {exc.response.status_code}",
                provider_name=self.get_provider_name(),
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise TransientUpstreamError(
                message=f"{endpoint} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def fetch_subtree(self, item_id: str) -> RecordMap:
        page_id = id_to_uuid(item_id)
        record_map: RecordMap = {"block": {}, "collection": {}, "collection_view": {}, "collection_query": {}}

        await self._load_page_chunks(page_id, record_map)
        await self._load_collections(record_map)

        logger.debug(
            "notion_subtree_loaded",
            page_id=page_id,
            blocks=len(record_map["block"]),
            collections=len(record_map["collection"]),
        )
        return record_map

    async def _load_page_chunks(self, page_id: str, record_map: RecordMap) -> None:
        cursor: dict[str, Any] = {"stack": []}
        for chunk_number in range(_MAX_CHUNKS):
            data = await self._post(
                "loadPageChunk",
                {
                    "pageId": page_id,
                    "limit": _CHUNK_LIMIT,
                    "cursor": cursor,
                    "chunkNumber": chunk_number,
                    "verticalColumns": False,
                },
            )
            merge_record_maps(record_map, data.get("recordMap") or {})
            cursor = data.get("cursor") or {"stack": []}
            if not cursor.get("stack"):
                return
        logger.warning("notion_page_truncated", page_id=page_id, chunks=_MAX_CHUNKS)

    async def _load_collections(self, record_map: RecordMap) -> None:
        collection_blocks = [
            value
            for value in (_record_value(record) for record in list(record_map["block"].values()))
            if value and value.get("type") in COLLECTION_BLOCK_TYPES
        ]

        for block in collection_blocks:
            collection_id = block.get("collection_id")
            if not collection_id:
                continue
            views = record_map["collection_query"].setdefault(collection_id, {})
            for view_id in block.get("view_ids") or []:
                data = await self._post(
                    "queryCollection",
                    {
                        "collection": {"id": collection_id},
                        "collectionView": {"id": view_id},
                        "loader": {
                            "type": "reducer",
                            "reducers": {
                                "collection_group_results": {
                                    "type": "results",
                                    "limit": _COLLECTION_LIMIT,
                                }
                            },
                            "searchQuery": "",
                            "userTimeZone": "UTC",
                        },
                    },
                )
                views[view_id] = (data.get("result") or {}).get("reducerResults") or {}
                merge_record_maps(record_map, data.get("recordMap") or {})
