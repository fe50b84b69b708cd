"""Unit tests for Settings and the layered YAML loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from notionsite.config.loader import REDACTED, _deep_merge, load_config, load_settings, redact_config
from notionsite.config.settings import Settings

_MAPPED_ENV = (
    "APP_ENV",
    "NOTION_PAGE_ID",
    "NOTION_API_BASE_URL",
    "HTTP_TIMEOUT_SECONDS",
    "REVALIDATE_SECONDS",
    "MEMORY_CACHE_MAX_SIZE",
    "CACHE_ENVIRONMENT",
    "KV_URL",
    "KV_KEY_PREFIX",
    "PLATFORM_CACHE_PATH",
    "POSTS_PER_PAGE",
    "LATEST_POST_COUNT",
    "SEARCH_BATCH_SIZE",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _MAPPED_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(
        "app:\n  name: blog\n  env: staging\n"
        "cache:\n  revalidate_seconds: 600\n  extra: kept\n"
        "site:\n  posts_per_page: 7\n",
        encoding="utf-8",
    )
    return path


class TestSettings:
    def test_environment_overrides_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NOTION_PAGE_ID", "abc")
        monkeypatch.setenv("REVALIDATE_SECONDS", "120")
        settings = Settings(_env_file=None)
        assert settings.notion_page_id == "abc"
        assert settings.revalidate_seconds == 120

    def test_env_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("KV_URL", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("KV_URL=redis://cache:6379/0\nUNRELATED=1\n", encoding="utf-8")
        assert Settings(_env_file=env_file).kv_url == "redis://cache:6379/0"

    def test_is_production(self) -> None:
        assert Settings(_env_file=None, app_env="production").is_production()
        assert not Settings(_env_file=None, app_env="development").is_production()


class TestLoadConfig:
    def test_explicit_settings_override_yaml(self, config_file: Path) -> None:
        settings = Settings(_env_file=None, app_env="production", revalidate_seconds=45)

        resolved = load_config(str(config_file), settings=settings)

        assert resolved["app"] == {"name": "blog", "env": "production"}
        assert resolved["cache"]["revalidate_seconds"] == 45
        assert resolved["cache"]["extra"] == "kept"

    def test_yaml_value_survives_unset_default(self, config_file: Path) -> None:
        resolved = load_config(str(config_file), settings=Settings(_env_file=None))

        assert resolved["cache"]["revalidate_seconds"] == 600
        assert resolved["site"]["posts_per_page"] == 7
        assert resolved["app"]["env"] == "staging"

    def test_environment_beats_yaml(self, config_file: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REVALIDATE_SECONDS", "30")
        resolved = load_config(str(config_file), settings=Settings(_env_file=None))
        assert resolved["cache"]["revalidate_seconds"] == 30

    def test_missing_file_holds_explicit_settings_only(self, tmp_path: Path) -> None:
        settings = Settings(_env_file=None, notion_page_id="root")
        resolved = load_config(str(tmp_path / "absent.yaml"), settings=settings)
        assert resolved == {"notion": {"page_id": "root"}}

    def test_empty_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text("", encoding="utf-8")
        assert load_config(str(config_file), settings=Settings(_env_file=None, log_level="DEBUG")) == {
            "logging": {"level": "DEBUG"}
        }


class TestLoadSettings:
    def test_yaml_fills_unset_fields(self, config_file: Path) -> None:
        settings = load_settings(str(config_file), settings=Settings(_env_file=None, notion_page_id="root"))

        assert settings.revalidate_seconds == 600
        assert settings.posts_per_page == 7
        assert settings.app_env == "staging"
        assert settings.notion_page_id == "root"
        assert settings.latest_post_count == Settings(_env_file=None).latest_post_count

    def test_explicit_value_wins(self, config_file: Path) -> None:
        settings = load_settings(str(config_file), settings=Settings(_env_file=None, posts_per_page=20))
        assert settings.posts_per_page == 20

    def test_yaml_values_are_validated(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text("notion:\n  http_timeout_seconds: '12.5'\n", encoding="utf-8")
        settings = load_settings(str(config_file), settings=Settings(_env_file=None))
        assert settings.http_timeout_seconds == 12.5


def test_redact_config_masks_credentials() -> None:
    document = {
        "cache": {"kv_url": "redis://:pw@cache:6379/0", "revalidate_seconds": 60},
        "notion": {"token_v2": "secret", "page_id": "root"},
        "site": {"posts_per_page": 12},
    }

    redacted = redact_config(document)

    assert redacted["cache"] == {"kv_url": REDACTED, "revalidate_seconds": 60}
    assert redacted["notion"] == {"token_v2": REDACTED, "page_id": "root"}
    assert document["cache"]["kv_url"] == "redis://:pw@cache:6379/0"


def test_redact_config_leaves_empty_values() -> None:
    assert redact_config({"cache": {"kv_url": ""}}) == {"cache": {"kv_url": ""}}


def test_deep_merge_replaces_non_dict_values() -> None:
    base = {"a": {"x": 1, "y": 2}, "b": [1, 2]}
    _deep_merge(base, {"a": {"y": 3}, "b": {"now": "dict"}, "c": 4})
    assert base == {"a": {"x": 1, "y": 3}, "b": {"now": "dict"}, "c": 4}
