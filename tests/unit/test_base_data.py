"""Unit tests for the Base Data provider and the configuration locator."""

from __future__ import annotations

import pytest

from notionsite.services.base_data import BaseDataProvider, collection_page_ids, parse_base_data
from notionsite.services.config_locator import ConfigLocator
from notionsite.utils.errors import ShapeViolationError, UpstreamFetchError
from tests.conftest import (
    ALL_VIEW_ID,
    COLLECTION_ID,
    CONFIG_PAGE_ID,
    CONFIG_VIEW_ID,
    ROOT_ID,
    SCHEMA,
    FakeContentProvider,
    config_page_record_map,
    page_row,
    post_id,
    site_record_map,
)


# ======================================================================
# parse_base_data
# ======================================================================


class TestParseBaseData:
    def test_extracts_schema_and_ids(self) -> None:
        rows = [page_row(post_id(1), title="One"), page_row(post_id(2), title="Two"), page_row(CONFIG_PAGE_ID)]
        base = parse_base_data(ROOT_ID, site_record_map(rows, config_ids=[CONFIG_PAGE_ID]))

        assert base.root_id == ROOT_ID
        assert base.schema_map == SCHEMA
        assert base.page_ids == [post_id(1), post_id(2), CONFIG_PAGE_ID]
        assert base.config_page_ids == [CONFIG_PAGE_ID]

    def test_ids_deduplicated_across_views(self) -> None:
        rows = [page_row(post_id(1)), page_row(CONFIG_PAGE_ID)]
        base = parse_base_data(ROOT_ID, site_record_map(rows, config_ids=[CONFIG_PAGE_ID]))
        # CONFIG_PAGE_ID is listed by both the "All" and the "Config" view
        assert base.page_ids.count(CONFIG_PAGE_ID) == 1

    def test_missing_root_is_terminal(self) -> None:
        record_map = site_record_map([])
        del record_map["block"][ROOT_ID]
        with pytest.raises(UpstreamFetchError):
            parse_base_data(ROOT_ID, record_map)

    def test_root_must_be_a_collection(self) -> None:
        record_map = site_record_map([])
        record_map["block"][ROOT_ID]["value"]["type"] = "page"
        with pytest.raises(ShapeViolationError, match="not a database"):
            parse_base_data(ROOT_ID, record_map)

    def test_no_config_view(self) -> None:
        record_map = site_record_map([page_row(post_id(1))])
        del record_map["collection_view"][CONFIG_VIEW_ID]
        assert parse_base_data(ROOT_ID, record_map).config_page_ids == []


class TestCollectionPageIds:
    def test_legacy_block_ids_shape(self) -> None:
        query = {COLLECTION_ID: {ALL_VIEW_ID: {"blockIds": ["a", "b"]}}}
        assert collection_page_ids(COLLECTION_ID, query, [ALL_VIEW_ID]) == ["a", "b"]

    def test_missing_collection(self) -> None:
        assert collection_page_ids(None, {}, [ALL_VIEW_ID]) == []

    def test_unknown_view_contributes_nothing(self) -> None:
        query = {COLLECTION_ID: {ALL_VIEW_ID: {"collection_group_results": {"blockIds": ["a"]}}}}
        assert collection_page_ids(COLLECTION_ID, query, [ALL_VIEW_ID, "other"]) == ["a"]


# ======================================================================
# BaseDataProvider
# ======================================================================


class TestBaseDataProvider:
    @pytest.mark.asyncio
    async def test_cached_per_root(
        self, base_data_provider: BaseDataProvider, content_provider: FakeContentProvider
    ) -> None:
        content_provider.pages[ROOT_ID] = site_record_map([page_row(post_id(1))])

        first = await base_data_provider.get_base_data(ROOT_ID)
        second = await base_data_provider.get_base_data(ROOT_ID)

        assert first is second
        assert content_provider.calls == [ROOT_ID]

    @pytest.mark.asyncio
    async def test_dashless_root_id_normalized(
        self, base_data_provider: BaseDataProvider, content_provider: FakeContentProvider
    ) -> None:
        content_provider.pages[ROOT_ID] = site_record_map([page_row(post_id(1))])
        base = await base_data_provider.get_base_data(ROOT_ID.replace("-", ""))
        assert base.root_id == ROOT_ID

    @pytest.mark.asyncio
    async def test_upstream_failure_after_retries(
        self, base_data_provider: BaseDataProvider, content_provider: FakeContentProvider
    ) -> None:
        content_provider.fail(ROOT_ID, times=3)
        with pytest.raises(UpstreamFetchError):
            await base_data_provider.get_base_data(ROOT_ID)
        assert content_provider.calls == [ROOT_ID] * 3


# ======================================================================
# ConfigLocator
# ======================================================================


class TestConfigLocator:
    @pytest.mark.asyncio
    async def test_no_candidates(self, config_locator: ConfigLocator) -> None:
        assert await config_locator.locate([]) is None

    @pytest.mark.asyncio
    async def test_picks_page_with_config_table(
        self, config_locator: ConfigLocator, content_provider: FakeContentProvider
    ) -> None:
        decoy = post_id(50)
        content_provider.pages[decoy] = config_page_record_map(decoy, columns=("title", "notes"))
        content_provider.pages[CONFIG_PAGE_ID] = config_page_record_map()

        assert await config_locator.locate([decoy, CONFIG_PAGE_ID]) == CONFIG_PAGE_ID

    @pytest.mark.asyncio
    async def test_candidates_without_table_are_a_shape_violation(
        self, config_locator: ConfigLocator, content_provider: FakeContentProvider
    ) -> None:
        content_provider.pages[CONFIG_PAGE_ID] = config_page_record_map(columns=("name", "value"))
        with pytest.raises(ShapeViolationError):
            await config_locator.locate([CONFIG_PAGE_ID])
