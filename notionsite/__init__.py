"""notionsite -- a cached, searchable site model over a Notion database."""

__version__ = "0.1.0"
