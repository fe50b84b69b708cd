"""Concrete adapters for the interfaces in ``notionsite.interfaces``."""
