"""Notion upstream content provider."""

from notionsite.providers.notion.notion_api_provider import NotionAPIProvider, merge_record_maps

__all__ = ["NotionAPIProvider", "merge_record_maps"]
