"""Finds which ``Config`` view row actually holds the configuration table.

The ``Config`` view of the root database may list several pages; the one
that counts contains an inline database whose schema has ``name``,
``value`` and ``type`` columns.  Parsing that table is left to the
rendering layer; the site model only needs the page id so the
configuration page never shows up as content.
"""

from __future__ import annotations

from typing import Any

import structlog

from notionsite.models.site import COLLECTION_BLOCK_TYPES
from notionsite.services.page_fetcher import PageFetcher
from notionsite.utils.errors import ShapeViolationError
from notionsite.utils.text import id_to_uuid

logger = structlog.get_logger(logger_name=__name__)

CONFIG_COLUMNS = frozenset({"name", "value", "type"})


def is_config_schema(schema: dict[str, Any]) -> bool:
    names = {(column or {}).get("name") for column in schema.values()}
    return CONFIG_COLUMNS <= names


def has_config_table(page_id: str, record_map: dict[str, Any]) -> bool:
    """Whether the page content holds a database with the config columns."""
    block_map = record_map.get("block") or {}
    page = (block_map.get(page_id) or block_map.get(id_to_uuid(page_id)) or {}).get("value") or {}
    collections = record_map.get("collection") or {}

    for child_id in page.get("content") or []:
        child = (block_map.get(child_id) or {}).get("value") or {}
        if child.get("type") not in COLLECTION_BLOCK_TYPES:
            continue
        collection = (collections.get(child.get("collection_id")) or {}).get("value") or {}
        if is_config_schema(collection.get("schema") or {}):
            return True
    return False


class ConfigLocator:
    """Picks the configuration page among the ``Config`` view candidates."""

    def __init__(self, page_fetcher: PageFetcher) -> None:
        self._fetcher = page_fetcher

    async def locate(self, candidate_ids: list[str]) -> str | None:
        """Return the id of the configuration page.

        Returns ``None`` when there are no candidates at all.  Raises
        :class:`ShapeViolationError` when candidates exist but none of them
        contains a configuration table.
        """
        if not candidate_ids:
            logger.info("config_view_empty")
            return None

        for candidate_id in candidate_ids:
            record_map = await self._fetcher.get_page_with_retry(candidate_id)
            if has_config_table(candidate_id, record_map):
                logger.debug("config_page_located", page_id=candidate_id)
                return candidate_id

        raise ShapeViolationError(
            message=f"None of {len(candidate_ids)} Config view page(s) contains a name/value/type table",
            provider_name="notion",
        )
