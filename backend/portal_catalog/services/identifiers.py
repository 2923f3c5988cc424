"""
Identifier extraction from portal markup and API payloads.

Pure functions. Each pattern class is independent so a markup change on the
portal degrades discovery instead of breaking it; callers union the results.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from typing import Any

__all__ = [
    "extract_ids",
    "ids_from_view_urls",
    "ids_from_data_attributes",
    "ids_from_hrefs",
    "ids_from_bare_tokens",
    "extract_api_items",
    "is_valid_identifier",
]

_UUID = r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"

VIEW_URL_RE = re.compile(rf"/datasets/view/({_UUID})")
DATA_ATTRIBUTE_RE = re.compile(rf"data-(?:dataset-)?id\s*=\s*[\"']({_UUID})[\"']")
HREF_RE = re.compile(rf"href\s*=\s*[\"'][^\"']*?({_UUID})[^\"']*[\"']")
BARE_TOKEN_RE = re.compile(rf"(?<![0-9a-fA-F-])({_UUID})(?![0-9a-fA-F-])")
IDENTIFIER_RE = re.compile(rf"^{_UUID}$")

# Keys that wrap the item list in portal/CKAN JSON responses
LIST_KEYS = ("data", "results", "items", "content")
ID_KEYS = ("id", "uuid", "datasetId", "datasetID", "package_id")
TITLE_KEYS = ("titleAr", "title_ar", "title", "nameAr", "name", "titleEn")


def _is_placeholder(value: str) -> bool:
    # Template ids: one repeated hex digit, or an all-zero first group
    digits = value.replace("-", "")
    return len(set(digits)) == 1 or value.startswith("00000000")


def is_valid_identifier(value: Any) -> bool:
    """True for a UUID-shaped, non-placeholder string."""
    if not isinstance(value, str):
        return False
    value = value.strip().lower()
    return bool(IDENTIFIER_RE.match(value)) and not _is_placeholder(value)


def _collect(pattern: re.Pattern[str], text: str) -> set[str]:
    found = set()
    for match in pattern.finditer(text):
        value = match.group(1).lower()
        if not _is_placeholder(value):
            found.add(value)
    return found


def ids_from_view_urls(text: str) -> set[str]:
    """Identifiers inside canonical /datasets/view/<id> links."""
    return _collect(VIEW_URL_RE, text)


def ids_from_data_attributes(text: str) -> set[str]:
    """Identifiers in data-id / data-dataset-id attributes."""
    return _collect(DATA_ATTRIBUTE_RE, text)


def ids_from_hrefs(text: str) -> set[str]:
    """Identifiers anywhere inside an href value."""
    return _collect(HREF_RE, text)


def ids_from_bare_tokens(text: str) -> set[str]:
    """Any UUID-shaped token in the text, placeholders excluded."""
    return _collect(BARE_TOKEN_RE, text)


EXTRACTORS = (
    ids_from_view_urls,
    ids_from_data_attributes,
    ids_from_hrefs,
    ids_from_bare_tokens,
)


def extract_ids(text: str | None) -> set[str]:
    """Union of all four pattern classes."""
    if not text:
        return set()
    found: set[str] = set()
    for extractor in EXTRACTORS:
        found |= extractor(text)
    return found


def _item_lists(payload: Any) -> Iterable[list[Any]]:
    if isinstance(payload, list):
        yield payload
        return
    if not isinstance(payload, dict):
        return
    for key in LIST_KEYS:
        value = payload.get(key)
        if isinstance(value, list):
            yield value
        elif isinstance(value, dict):
            # e.g. {"data": {"content": [...]}}
            yield from _item_lists(value)
    # CKAN wraps everything in "result"
    result = payload.get("result")
    if isinstance(result, list):
        yield result
    elif isinstance(result, dict):
        yield from _item_lists(result)


def _first_string(item: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = item.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def extract_api_items(payload: Any) -> dict[str, str | None]:
    """
    Identifier -> best-effort title pairs from a JSON API payload.

    Accepts a parsed object or raw JSON text. Invalid JSON yields an empty dict.
    Bare strings inside an item list (CKAN package_list) are taken as identifiers.
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError:
            return {}

    items: dict[str, str | None] = {}
    for item_list in _item_lists(payload):
        for item in item_list:
            if isinstance(item, str):
                if is_valid_identifier(item):
                    items.setdefault(item.strip().lower(), None)
                continue
            if not isinstance(item, dict):
                continue
            for key in ID_KEYS:
                value = item.get(key)
                if is_valid_identifier(value):
                    identifier = value.strip().lower()
                    title = _first_string(item, TITLE_KEYS)
                    if items.get(identifier) is None:
                        items[identifier] = title
                    break
    return items
