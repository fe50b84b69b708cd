"""Configuration module — exports Settings and the YAML loaders."""

from notionsite.config.loader import load_config, load_settings, redact_config
from notionsite.config.settings import Settings

__all__ = ["Settings", "load_config", "load_settings", "redact_config"]
