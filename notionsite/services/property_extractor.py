"""Schema-driven parsing of database rows into :class:`PageRecord` objects.

Every property of a Notion row is a list of rich-text decorations; how to
read it depends on the column's schema type.  Schema types are mapped onto
a small closed set of :class:`PropertyKind` variants, each with one explicit
extraction function:

    date          -> epoch milliseconds of the start date/time
    multi_select  -> list of tag strings
    file          -> URL of the first attached file
    relation      -> list of related page ids
    anything else -> plain text

Column names are used as field names (``title``, ``slug``, ``tags``, ...),
with a few camelCase aliases mapped onto snake_case fields.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from notionsite.models.site import PageRecord, PageType
from notionsite.utils.errors import ShapeViolationError
from notionsite.utils.logging import get_logger
from notionsite.utils.text import get_date_value, get_file_value, get_text_content, normalize_slug

logger = get_logger(__name__)


class PropertyKind(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    DATE = "date"
    MULTI_SELECT = "multi_select"
    FILE = "file"
    RELATION = "relation"
    TEXT = "text"


_SCHEMA_TYPE_KINDS: dict[str, PropertyKind] = {
    "date": PropertyKind.DATE,
    "multi_select": PropertyKind.MULTI_SELECT,
    "file": PropertyKind.FILE,
    "relation": PropertyKind.RELATION,
}

_FIELD_ALIASES: dict[str, str] = {
    "lastEditedTime": "last_edited_time",
    "pageCover": "page_cover",
    "childrenIds": "children_ids",
    "children": "children_ids",
}

_LIST_FIELDS = frozenset({"tags", "children_ids"})
_RESERVED_FIELDS = frozenset({"id", "search_results"})


def property_kind(schema_type: str | None) -> PropertyKind:
    return _SCHEMA_TYPE_KINDS.get(schema_type or "", PropertyKind.TEXT)


def _extract_date(value: Any) -> int | None:
    payload = get_date_value(value)
    if not payload or not payload.get("start_date"):
        return None
    try:
        if payload.get("start_time"):
            parsed = datetime.strptime(f"{payload['start_date']} {payload['start_time']}", "%Y-%m-%d %H:%M")
        else:
            parsed = datetime.strptime(payload["start_date"], "%Y-%m-%d")
    except ValueError:
        logger.warning("unparseable_date_property", payload=payload)
        return None
    return int(parsed.replace(tzinfo=timezone.utc).timestamp() * 1000)


def _extract_multi_select(value: Any) -> list[str]:
    return [tag.strip() for tag in get_text_content(value).split(",") if tag.strip()]


def _extract_relation(value: Any) -> list[str]:
    ids: list[str] = []
    for decoration in value or []:
        if not isinstance(decoration, list) or len(decoration) < 2:
            continue
        for mark in decoration[1] or []:
            if isinstance(mark, list) and len(mark) > 1 and mark[0] == "p":
                ids.append(mark[1])
    return ids


_EXTRACTORS: dict[PropertyKind, Callable[[Any], Any]] = {
    PropertyKind.DATE: _extract_date,
    PropertyKind.MULTI_SELECT: _extract_multi_select,
    PropertyKind.FILE: get_file_value,
    PropertyKind.RELATION: _extract_relation,
    PropertyKind.TEXT: get_text_content,
}


def _block_value(item_id: str, block_map: dict[str, Any]) -> dict[str, Any]:
    record = block_map.get(item_id)
    value = record.get("value") if isinstance(record, dict) else None
    if not isinstance(value, dict):
        raise ShapeViolationError(f"Block {item_id} is missing from the block tree", provider_name="notion")
    return value


def _coerce(field: str, value: Any) -> Any:
    if field in _LIST_FIELDS and isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


def extract_properties(item_id: str, block_map: dict[str, Any], schema_map: dict[str, Any]) -> PageRecord:
    """Parse the row *item_id* of the root database into a :class:`PageRecord`."""
    block = _block_value(item_id, block_map)
    fields: dict[str, Any] = {}

    for key, value in (block.get("properties") or {}).items():
        schema = schema_map.get(key)
        if not schema:
            # The API keeps values of columns deleted from the schema.
            logger.warning("schema_not_found", item_id=item_id, key=key)
            continue
        name = _FIELD_ALIASES.get(schema.get("name", key), schema.get("name", key))
        if name in _RESERVED_FIELDS:
            continue
        extracted = _EXTRACTORS[property_kind(schema.get("type"))](value)
        fields[name] = _coerce(name, extracted)

    page_type = fields.get("type") or None
    children_ids = fields.get("children_ids") or []
    slug = fields.get("slug") or ""

    if page_type in (PageType.POST.value, PageType.PAGE.value):
        slug = normalize_slug(slug, item_id)
        if page_type == PageType.PAGE.value and children_ids:
            slug = "#"
    if children_ids and page_type != PageType.HEAD_MENU.value:
        page_type = PageType.MENU.value
        slug = "#"

    fields.update(
        id=item_id,
        type=page_type,
        status=fields.get("status") or None,
        title=fields.get("title") or "",
        slug=slug,
        tags=fields.get("tags") or [],
        children_ids=children_ids,
        date=fields.get("date") or block.get("created_time"),
        last_edited_time=fields.get("last_edited_time") or block.get("last_edited_time"),
        page_cover=fields.get("page_cover") or (block.get("format") or {}).get("page_cover"),
    )
    return PageRecord.model_validate(fields)


def extract_routing_identity(
    item_id: str, block_map: dict[str, Any], schema_map: dict[str, Any]
) -> tuple[str, str | None, str | None]:
    """Read only ``(slug, type, status)`` of a row, without a full parse.

    The slug is normalized; rows without one are routed by their raw id.
    """
    block = _block_value(item_id, block_map)
    properties = block.get("properties") or {}
    wanted: dict[str, str] = {}
    for key, schema in schema_map.items():
        name = (schema or {}).get("name")
        if name in ("slug", "type", "status") and key in properties:
            wanted[name] = get_text_content(properties[key])

    slug = wanted.get("slug") or ""
    return normalize_slug(slug, item_id), wanted.get("type") or None, wanted.get("status") or None
