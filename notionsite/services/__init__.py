"""Site model services built on the layered cache engine.

    PageFetcher        -- resilient upstream fetch and per-item block views
    BaseDataProvider   -- cached root database snapshot
    ConfigLocator      -- finds the configuration page among Config view rows
    SlugIndex          -- slug -> routing identity, with linear-scan fallback
    SearchIndex        -- in-process full-text index over published posts
    SiteDataService    -- published lists, tags and pagination helpers
"""

from notionsite.services.base_data import BaseDataProvider
from notionsite.services.config_locator import ConfigLocator
from notionsite.services.page_fetcher import PageFetcher
from notionsite.services.search_index import SearchIndex
from notionsite.services.site_data import SiteDataService, paginate, posts_by_tag
from notionsite.services.slug_index import SlugIndex

__all__ = [
    "BaseDataProvider",
    "ConfigLocator",
    "PageFetcher",
    "SearchIndex",
    "SiteDataService",
    "SlugIndex",
    "paginate",
    "posts_by_tag",
]
