"""Service assembly for the notionsite site model.

``build_services`` wires every component exactly once per process: one
``httpx.AsyncClient``, one durable tier chosen from the environment, one
:class:`LayeredCacheEngine` shared by every cached lookup, and the services
built on top of them.  The rendering layer (or the CLI) holds the returned
:class:`SiteServices` for the lifetime of the process and calls
:meth:`SiteServices.aclose` on shutdown.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog

from notionsite.cache.engine import LayeredCacheEngine
from notionsite.cache.environment import build_backing_store
from notionsite.config.settings import Settings
from notionsite.interfaces.backing_store import IBackingStore
from notionsite.interfaces.content_provider import IContentProvider
from notionsite.models.site import PageRecord
from notionsite.providers.notion import NotionAPIProvider
from notionsite.services.base_data import BaseDataProvider
from notionsite.services.config_locator import ConfigLocator
from notionsite.services.page_fetcher import PageFetcher
from notionsite.services.search_index import SearchIndex
from notionsite.services.site_data import SiteDataService
from notionsite.services.slug_index import SlugIndex
from notionsite.utils.errors import ConfigurationError
from notionsite.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


@dataclass
class SiteServices:
    """Every long-lived component of one process."""

    settings: Settings
    store: IBackingStore
    engine: LayeredCacheEngine
    page_fetcher: PageFetcher
    base_data: BaseDataProvider
    config_locator: ConfigLocator
    slug_index: SlugIndex
    search_index: SearchIndex
    site_data: SiteDataService
    http_client: httpx.AsyncClient | None = None

    @property
    def root_id(self) -> str:
        return self.settings.notion_page_id

    async def published_posts(self) -> list[PageRecord]:
        site = await self.site_data.get_site_data(self.root_id)
        return site.published_posts

    async def aclose(self) -> None:
        """Drain background index builds and release network resources."""
        await self.search_index.wait_for_rebuild()
        await self.store.close()
        if self.http_client is not None:
            await self.http_client.aclose()


def build_services(
    app_settings: Settings,
    content_provider: IContentProvider | None = None,
    store: IBackingStore | None = None,
) -> SiteServices:
    """Assemble the site model from *app_settings*.

    Parameters
    ----------
    app_settings:
        Process settings; ``notion_page_id`` is required.
    content_provider:
        Upstream client override; defaults to :class:`NotionAPIProvider` over
        a fresh ``httpx.AsyncClient``.
    store:
        Durable tier override; defaults to the backend detected from the
        environment.
    """
    if not app_settings.notion_page_id:
        raise ConfigurationError("NOTION_PAGE_ID is not set")

    http_client: httpx.AsyncClient | None = None
    if content_provider is None:
        http_client = httpx.AsyncClient(timeout=app_settings.http_timeout_seconds)
        content_provider = NotionAPIProvider(
            http_client=http_client,
            base_url=app_settings.notion_api_base_url,
            token_v2=app_settings.notion_token_v2,
        )

    store = store if store is not None else build_backing_store(app_settings)
    engine = LayeredCacheEngine(store, max_memory_entries=app_settings.memory_cache_max_size)
    ttl = app_settings.revalidate_seconds

    page_fetcher = PageFetcher(content_provider, engine, revalidate_seconds=ttl)
    base_data = BaseDataProvider(page_fetcher, engine, revalidate_seconds=ttl)
    config_locator = ConfigLocator(page_fetcher)

    services = SiteServices(
        settings=app_settings,
        store=store,
        engine=engine,
        page_fetcher=page_fetcher,
        base_data=base_data,
        config_locator=config_locator,
        slug_index=SlugIndex(base_data, config_locator, engine, revalidate_seconds=ttl),
        search_index=SearchIndex(
            page_fetcher,
            revalidate_seconds=ttl,
            batch_size=app_settings.search_batch_size,
        ),
        site_data=SiteDataService(
            base_data,
            config_locator,
            engine,
            revalidate_seconds=ttl,
            latest_post_count=app_settings.latest_post_count,
        ),
        http_client=http_client,
    )
    _logger.info(
        "services_built",
        root_id=app_settings.notion_page_id,
        backend=store.get_provider_name(),
        revalidate_seconds=ttl,
    )
    return services
