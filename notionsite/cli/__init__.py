"""Command-line tools for the notionsite site model.

- ``python -m notionsite.cli`` -- warm caches, search posts, resolve slugs
  and inspect the durable cache tier (see ``notionsite.cli.site``).
"""
