"""Text helpers for Notion rich-text decorations and public slugs.

Notion stores rich text as a list of *decorations*::

    [["Plain text"], ["Bold", [["b"]]], ["Link", [["a", "https://..."]]]]

The first element of each decoration is the visible text; the optional
second element lists formatting marks.  Mentions and dates use the special
``"‣"`` glyph with their payload inside the marks.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

# Linux file names are limited to 255 bytes and a percent-encoded CJK
# character takes 9, so encoded slugs are capped well below that.
MAX_ENCODED_SLUG_LENGTH = 200
MIN_TRUNCATED_SLUG_LENGTH = 10
SLUG_ID_SUFFIX_LENGTH = 8


def get_text_content(decorations: Any) -> str:
    """Join the visible text of every decoration, ignoring formatting marks."""
    if not decorations or not isinstance(decorations, list):
        return ""
    parts: list[str] = []
    for decoration in decorations:
        if isinstance(decoration, list) and decoration and isinstance(decoration[0], str):
            parts.append(decoration[0])
        elif isinstance(decoration, str):
            parts.append(decoration)
    return "".join(parts)


def get_file_value(decorations: Any) -> str:
    """Return the URL of the first file in a file-property decoration list.

    File properties look like ``[["name.png", [["a", "https://..."]]]]`` or,
    for external files, ``[["https://..."]]``.
    """
    if not decorations or not isinstance(decorations, list):
        return ""
    first = decorations[0]
    if not isinstance(first, list) or not first:
        return ""
    if len(first) > 1 and isinstance(first[1], list):
        for mark in first[1]:
            if isinstance(mark, list) and len(mark) > 1 and mark[0] == "a" and mark[1]:
                return str(mark[1])
    return first[0] if isinstance(first[0], str) else ""


def get_date_value(decorations: Any) -> dict[str, Any] | None:
    """Return the first date payload (``{"type": "date", "start_date": ...}``)."""
    if not decorations or not isinstance(decorations, list):
        return None
    for decoration in decorations:
        if not isinstance(decoration, list) or len(decoration) < 2:
            continue
        for mark in decoration[1] or []:
            if isinstance(mark, list) and len(mark) > 1 and mark[0] == "d" and isinstance(mark[1], dict):
                return mark[1]
    return None


def encoded_length(text: str) -> int:
    """Length of *text* after ``encodeURIComponent``-style percent-encoding."""
    return len(quote(text, safe="-_.!~*'()"))


def normalize_slug(slug: str, page_id: str, max_encoded_length: int = MAX_ENCODED_SLUG_LENGTH) -> str:
    """Bound a slug's percent-encoded length without splitting characters.

    Slugs that fit are returned unchanged.  Longer slugs are truncated one
    character at a time; a truncation shorter than ten characters falls back
    to the raw page id, anything longer gets the first eight hex digits of
    the page id appended so independently truncated slugs do not collide.
    """
    if not slug:
        return page_id

    if encoded_length(slug) <= max_encoded_length:
        return slug

    result = ""
    for char in slug:
        candidate = result + char
        if encoded_length(candidate) > max_encoded_length:
            break
        result = candidate

    if len(result) < MIN_TRUNCATED_SLUG_LENGTH:
        return page_id

    short_id = page_id.replace("-", "")[:SLUG_ID_SUFFIX_LENGTH]
    return f"{result}-{short_id}"


def id_to_uuid(page_id: str) -> str:
    """Convert a dashless 32-hex Notion id to its dashed UUID form."""
    raw = page_id.replace("-", "")
    if len(raw) != 32:
        return page_id
    return f"{raw[:8]}-{raw[8:12]}-{raw[12:16]}-{raw[16:20]}-{raw[20:]}"
