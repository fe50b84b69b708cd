# =============================================================================
# notionsite/cli/site.py — Operational CLI for the site model
# =============================================================================
#
# Runs the site model outside the rendering layer, against the same
# settings (config.yaml under .env / environment) and the same durable tier:
#
#   warm                  Build site data, slug index and search index so the
#                         first request after a deploy is served from cache.
#   search KEYWORD        Full-text search over published posts.
#   resolve SLUG          Resolve a public slug to its published post.
#   cache list [PREFIX]   List keys stored in the durable tier.
#   cache delete KEY      Drop one durable-tier entry.
#   config                Print the resolved configuration, secrets masked.
#
# Logs go to stderr; command output goes to stdout (JSON with --json).
# =============================================================================

"""Operational CLI for the notionsite site model.

Usage::

    python -m notionsite.cli warm
    python -m notionsite.cli search "asyncio" --json
    python -m notionsite.cli resolve my-first-post
    python -m notionsite.cli cache list get_base_data
    python -m notionsite.cli cache delete 'get_base_data:["..."]'
    python -m notionsite.cli --config config/config.yaml config
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from notionsite.config.loader import load_config, load_settings, redact_config
from notionsite.config.settings import Settings
from notionsite.main import SiteServices, build_services
from notionsite.utils.errors import NotionSiteError
from notionsite.utils.logging import configure_logging


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _handle_warm(args: argparse.Namespace, services: SiteServices) -> int:
    site = await services.site_data.get_site_data(services.root_id)
    slug_index = await services.slug_index.get_slug_index(services.root_id)
    await services.search_index.prewarm(site.published_posts)

    summary = {
        "published_posts": len(site.published_posts),
        "nav_pages": len(site.nav_pages),
        "tags": len(site.tag_options),
        "slugs": len(slug_index),
        "backend": services.store.get_provider_name(),
    }
    if args.json:
        _print_json(summary)
    else:
        print("Cache warmed:")
        for key, value in summary.items():
            print(f"  {key:<16} {value}")
    return 0


async def _handle_search(args: argparse.Namespace, services: SiteServices) -> int:
    posts = await services.published_posts()
    results = await services.search_index.search(posts, args.keyword)

    if args.json:
        _print_json([post.model_dump(include={"id", "slug", "title", "search_results"}) for post in results])
        return 0

    if not results:
        print(f"No posts match {args.keyword!r}.")
        return 0
    for post in results:
        print(f"{post.title}  (/{post.slug})")
        for snippet in post.search_results:
            print(f"    {snippet}")
    return 0


async def _handle_resolve(args: argparse.Namespace, services: SiteServices) -> int:
    record = await services.slug_index.resolve_slug(args.slug, services.root_id)
    if record is None:
        print(f"No published post at slug {args.slug!r}.", file=sys.stderr)
        return 1
    if args.json:
        _print_json(record.model_dump())
    else:
        print(f"{record.title}")
        print(f"  id:   {record.id}")
        print(f"  slug: {record.slug}")
        print(f"  tags: {', '.join(record.tags) or '-'}")
    return 0


async def _handle_cache(args: argparse.Namespace, services: SiteServices) -> int:
    store = services.store
    if not store.is_available():
        print(f"Durable tier '{store.get_provider_name()}' is not available.", file=sys.stderr)
        return 1

    if args.cache_command == "list":
        keys = await store.list(args.prefix)
        if args.json:
            _print_json(keys)
        else:
            for key in keys:
                print(key)
        return 0

    deleted = await store.delete(args.key)
    print("Deleted." if deleted else "Delete failed.")
    return 0 if deleted else 1


def _show_config(args: argparse.Namespace, env_settings: Settings) -> int:
    resolved = redact_config(load_config(args.config_path, settings=env_settings))
    if args.json:
        _print_json(resolved)
    else:
        for section, values in resolved.items():
            print(f"[{section}]")
            for key, value in (values or {}).items():
                print(f"  {key:<22} {value}")
    return 0


_HANDLERS = {
    "warm": _handle_warm,
    "search": _handle_search,
    "resolve": _handle_resolve,
    "cache": _handle_cache,
}


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    services = build_services(app_settings)
    try:
        return await _HANDLERS[args.command](args, services)
    finally:
        await services.aclose()


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the site CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m notionsite.cli",
        description="Inspect and warm the notionsite site model.",
    )
    parser.add_argument("--json", action="store_true", help="Print machine-readable JSON")
    parser.add_argument(
        "--config", dest="config_path", default="config/config.yaml", help="YAML defaults file"
    )
    subparsers = parser.add_subparsers(dest="command", help="Site commands")

    subparsers.add_parser("warm", help="Build and cache every derived view")

    search_parser = subparsers.add_parser("search", help="Search published posts")
    search_parser.add_argument("keyword", help="Case-insensitive search term")

    resolve_parser = subparsers.add_parser("resolve", help="Resolve a slug to a published post")
    resolve_parser.add_argument("slug", help="Public slug, not URL-encoded")

    cache_parser = subparsers.add_parser("cache", help="Inspect the durable cache tier")
    cache_sub = cache_parser.add_subparsers(dest="cache_command", required=True)
    list_parser = cache_sub.add_parser("list", help="List stored keys")
    list_parser.add_argument("prefix", nargs="?", default="", help="Key prefix filter")
    delete_parser = cache_sub.add_parser("delete", help="Delete one stored key")
    delete_parser.add_argument("key", help="Exact cache key")

    subparsers.add_parser("config", help="Show the resolved configuration")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    env_settings = Settings()
    app_settings = load_settings(args.config_path, settings=env_settings)
    configure_logging(log_level=app_settings.log_level, json_output=app_settings.is_production())

    if args.command == "config":
        sys.exit(_show_config(args, env_settings))

    try:
        exit_code = asyncio.run(_run(args, app_settings))
    except NotionSiteError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
