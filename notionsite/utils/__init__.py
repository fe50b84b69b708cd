"""Utility modules for notionsite.

- **errors** -- Domain exception hierarchy rooted at NotionSiteError; each
  failure class of the site model (transient upstream, terminal fetch, shape
  violation, durable-tier trouble) has its own subclass.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text** -- Notion rich-text flattening and public slug normalization.
- **timing** (not re-exported here) -- Elapsed-time diagnostics for cached
  lookups and index builds.
"""

# -- Domain exception hierarchy --------------------------------------------
from notionsite.utils.errors import (
    BackingStoreError,
    ConfigurationError,
    NotionSiteError,
    PageOutOfRangeError,
    ShapeViolationError,
    TransientUpstreamError,
    UpstreamFetchError,
)

# -- Structured logging setup ----------------------------------------------
from notionsite.utils.logging import configure_logging, get_logger

# -- Rich text and slugs ---------------------------------------------------
from notionsite.utils.text import get_text_content, normalize_slug

__all__ = [
    "BackingStoreError",
    "ConfigurationError",
    "NotionSiteError",
    "PageOutOfRangeError",
    "ShapeViolationError",
    "TransientUpstreamError",
    "UpstreamFetchError",
    "configure_logging",
    "get_logger",
    "get_text_content",
    "normalize_slug",
]
