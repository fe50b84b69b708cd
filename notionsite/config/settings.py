"""Application settings loaded from environment variables via pydantic-settings.

Configuration is read from two sources (in priority order):

  1. **Environment variables** -- e.g. ``NOTION_PAGE_ID=2bdb...``
  2. **.env file** -- key=value lines in the project root ``.env`` file

Field ``notion_page_id`` maps to env var ``NOTION_PAGE_ID`` automatically.
Defaults apply when neither source defines a field. config/config.yaml sits
between the defaults and these sources; see :mod:`notionsite.config.loader`.

``revalidate_seconds`` is the single freshness window of the whole cache
policy; every cached lookup, the durable tier's staleness checks and the
search index expiry derive from it.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """notionsite settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Content source ===
    notion_page_id: str = ""
    notion_api_base_url: str = "https://www.notion.so/api/v3"
    notion_token_v2: str = ""  # Only needed for private workspaces
    http_timeout_seconds: float = 30.0

    # === Cache policy ===
    revalidate_seconds: int = 60
    memory_cache_max_size: int = 1024

    # === Durable tier ===
    # "" = auto-detect; otherwise one of "edge_kv", "platform", "local".
    cache_environment: str = ""
    kv_url: str = ""  # redis:// URL of the edge key-value store
    kv_key_prefix: str = ""
    platform_cache_path: str = "data/site_cache.db"
    vercel: str = ""  # Set to "1" by the hosting platform

    # === Site model ===
    posts_per_page: int = 12
    latest_post_count: int = 6
    search_batch_size: int = 5

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def is_production(self) -> bool:
        return self.app_env == "production"
