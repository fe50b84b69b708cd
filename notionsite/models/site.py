"""Site model data structures derived from the Notion content tree.

Defines Pydantic v2 models for the upstream snapshot (:class:`BaseData`),
parsed items (:class:`PageRecord`), the two derived indices
(:class:`SlugIndexEntry`, :class:`SearchIndexEntry`) and the published lists
handed to the rendering layer (:class:`SiteData`).

Raw upstream payloads stay as plain dicts (:data:`RecordMap`): the block
tree is opaque to everything except the property extractor and the content
excerpt walker.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# A Notion record map: {"block": {...}, "collection": {...},
# "collection_view": {...}, "collection_query": {...}, ...}
RecordMap = dict[str, Any]

COLLECTION_BLOCK_TYPES = frozenset({"collection_view_page", "collection_view"})


class PageType(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    """Values of the ``type`` column of the root database."""

    POST = "Post"
    PAGE = "Page"
    HEAD_MENU = "HeadMenu"
    MENU = "Menu"
    LINK = "Link"


class PageStatus(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    """Values of the ``status`` column of the root database."""

    PUBLISHED = "Published"
    INVISIBLE = "Invisible"
    DRAFT = "Draft"


NAV_PAGE_TYPES = frozenset({PageType.HEAD_MENU.value, PageType.MENU.value, PageType.LINK.value})


class PageRecord(BaseModel):
    """One parsed row of the root database.

    Known columns map to typed fields; any other schema-named column is kept
    as an extra attribute under its schema name.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    id: str
    type: str | None = None
    status: str | None = None
    title: str = ""
    slug: str = ""
    summary: str = ""
    category: str = ""
    tags: list[str] = Field(default_factory=list)
    date: int | None = Field(default=None, description="Publish date, epoch ms.")
    last_edited_time: int | None = Field(default=None, description="Epoch ms.")
    page_cover: str | None = None
    children_ids: list[str] = Field(default_factory=list)
    search_results: list[str] = Field(
        default_factory=list,
        description="Formatted snippets attached by a search query.",
    )

    def is_published_post(self) -> bool:
        return self.type == PageType.POST.value and self.status == PageStatus.PUBLISHED.value


class BaseData(BaseModel):
    """Raw upstream snapshot every derived view is computed from."""

    model_config = ConfigDict(frozen=True)

    root_id: str
    block_map: dict[str, Any] = Field(description="Raw block tree keyed by block id.")
    schema_map: dict[str, Any] = Field(description="Property schema of the root collection.")
    page_ids: list[str] = Field(default_factory=list)
    config_page_ids: list[str] = Field(default_factory=list)


class SlugIndexEntry(BaseModel):
    """Routing identity of one item."""

    model_config = ConfigDict(frozen=True)

    item_id: str
    type: str | None = None
    status: str | None = None

    def is_published_post(self) -> bool:
        return self.type == PageType.POST.value and self.status == PageStatus.PUBLISHED.value


class SearchIndexEntry(BaseModel):
    """Searchable surface of one published post."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    slug: str = ""
    tags: list[str] = Field(default_factory=list)
    summary: str = ""
    content_excerpts: list[str] = Field(default_factory=list, max_length=50)
    date: int | None = None


class TagOption(BaseModel):
    """A tag used by published posts and how many posts carry it."""

    model_config = ConfigDict(frozen=True)

    name: str
    count: int = Field(ge=0)


class SiteData(BaseModel):
    """Published lists derived from one :class:`BaseData` snapshot."""

    model_config = ConfigDict(frozen=True)

    published_posts: list[PageRecord] = Field(default_factory=list)
    latest_posts: list[PageRecord] = Field(default_factory=list)
    pages: list[PageRecord] = Field(default_factory=list)
    nav_pages: list[PageRecord] = Field(default_factory=list)
    tag_options: list[TagOption] = Field(default_factory=list)
    config_page_id: str | None = None
