"""Layered configuration: YAML defaults under environment overrides.

Precedence, lowest first:

  1. ``Settings`` field defaults
  2. config/config.yaml
  3. .env file and environment variables

Only settings that were explicitly provided (environment, .env, keyword
arguments) reach the YAML layer; defaults never mask a YAML value.
:func:`load_settings` folds the merged document back into a validated
:class:`Settings`, which is what the services are built from.
"""

from pathlib import Path
from typing import Any

import yaml

from notionsite.config.settings import Settings

# section -> {yaml key: Settings field}
_SECTION_FIELDS: dict[str, dict[str, str]] = {
    "app": {"env": "app_env"},
    "notion": {
        "page_id": "notion_page_id",
        "api_base_url": "notion_api_base_url",
        "http_timeout_seconds": "http_timeout_seconds",
    },
    "cache": {
        "revalidate_seconds": "revalidate_seconds",
        "memory_max_size": "memory_cache_max_size",
        "environment": "cache_environment",
        "kv_url": "kv_url",
        "kv_key_prefix": "kv_key_prefix",
        "platform_cache_path": "platform_cache_path",
    },
    "site": {
        "posts_per_page": "posts_per_page",
        "latest_post_count": "latest_post_count",
        "search_batch_size": "search_batch_size",
    },
    "logging": {"level": "log_level"},
}

_SECRETS = {("cache", "kv_url"), ("notion", "token_v2")}
REDACTED = "***"


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Read the YAML file and overlay explicitly provided settings.

    Args:
        path: YAML defaults file; a missing file counts as empty.
        settings: Already-resolved settings; built from the environment
            when omitted.

    Returns:
        The merged configuration document, keyed by section.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            document = yaml.safe_load(f) or {}
    else:
        document = {}

    settings = settings or Settings()
    explicit = settings.model_dump(exclude_unset=True)
    overrides: dict[str, dict[str, Any]] = {}
    for section, fields in _SECTION_FIELDS.items():
        for key, field in fields.items():
            if field in explicit:
                overrides.setdefault(section, {})[key] = explicit[field]

    _deep_merge(document, overrides)
    return document


def load_settings(path: str = "config/config.yaml", settings: Settings | None = None) -> Settings:
    """Return ``settings`` with YAML values filled in beneath the explicit ones."""
    settings = settings or Settings()
    document = load_config(path, settings=settings)

    values = settings.model_dump()
    for section, fields in _SECTION_FIELDS.items():
        block = document.get(section) or {}
        for key, field in fields.items():
            if key in block:
                values[field] = block[key]
    return Settings(_env_file=None, **values)


def redact_config(document: dict) -> dict:
    """Copy of ``document`` with credential-bearing values masked."""
    redacted = {section: dict(values) if isinstance(values, dict) else values for section, values in document.items()}
    for section, key in _SECRETS:
        block = redacted.get(section)
        if isinstance(block, dict) and block.get(key):
            block[key] = REDACTED
    return redacted


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
