"""Cache key derivation.

A key is ``"<namespace>:<json-serialized-args>"``, e.g.::

    get_base_data:["2bdbc245-dc94-81ff-91eb-dc47ad3db8d5"]

Keys are deterministic and human-readable so ``cache list`` output can be
read while debugging.  Structurally equal arguments always produce the same
key: dicts are serialized with sorted keys and Pydantic models / dataclasses
are converted to plain JSON first.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic_core import to_jsonable_python

KEY_DELIMITER = ":"


class CacheKeys:
    """Namespaces of the cached lookups in the site model."""

    BASE_DATA = "get_base_data"
    PAGE_WITH_RETRY = "get_page_with_retry"
    SLUG_INDEX = "get_slug_index"
    SITE_DATA = "get_site_data"


def get_cache_key(namespace: str, *parts: str) -> str:
    """Join a namespace and its parts with the key delimiter."""
    return f"{namespace}{KEY_DELIMITER}{KEY_DELIMITER.join(parts)}"


def serialize_args(args: tuple[Any, ...], kwargs: dict[str, Any] | None = None) -> str:
    """Serialize call arguments to compact, order-stable JSON.

    Positional arguments become a JSON array; keyword arguments, when
    present, are appended as a trailing object.
    """
    payload: list[Any] = list(args)
    if kwargs:
        payload.append(dict(kwargs))
    return json.dumps(
        to_jsonable_python(payload),
        separators=(",", ":"),
        sort_keys=True,
        ensure_ascii=False,
    )


def cache_key_for_call(namespace: str, args: tuple[Any, ...], kwargs: dict[str, Any] | None = None) -> str:
    return get_cache_key(namespace, serialize_args(args, kwargs))
