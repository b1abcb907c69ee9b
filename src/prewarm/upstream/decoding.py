"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Decoder for the list shapes the upstream service returns.

Upstream list endpoints are not consistent: some return a bare JSON
array, some wrap it as ``{"sectors": [...]}`` and some as
``{"items": [...]}``. `decode_collection` tries those shapes in exactly
that order and reports which one matched.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from ..types import JSONObject, JSONValue

CollectionShape = Literal["array", "sectors", "items", "empty"]

WRAPPER_KEYS: tuple[Literal["sectors", "items"], ...] = ("sectors", "items")
ID_FIELDS: tuple[str, ...] = ("id", "Sector_id")


@dataclass(frozen=True, slots=True)
class DecodedCollection:
    """Rows of a list response tagged with the shape they were found in."""

    shape: CollectionShape
    rows: list[JSONValue]


def decode_collection(data: JSONValue) -> DecodedCollection:
    if isinstance(data, list):
        return DecodedCollection(shape="array", rows=list(data))
    if isinstance(data, dict):
        for key in WRAPPER_KEYS:
            rows = data.get(key)
            if isinstance(rows, list):
                return DecodedCollection(shape=key, rows=list(rows))
    return DecodedCollection(shape="empty", rows=[])


def extract_entity_ids(rows: Sequence[JSONValue], fields: Sequence[str] = ID_FIELDS) -> list[str]:
    """Pull ids from rows using the first present, non-empty field in `fields`."""
    ids: list[str] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        for name in fields:
            value = row.get(name)
            if value is None or value == "" or isinstance(value, bool):
                continue
            ids.append(str(value))
            break
    return ids


def normalize_sector_list(data: JSONValue) -> JSONObject:
    """Return a sector list payload that always carries a ``sectors`` array."""
    decoded = decode_collection(data)
    if decoded.shape == "sectors" and isinstance(data, dict):
        return dict(data)
    return {"sectors": decoded.rows}


def filter_by_name(payload: JSONObject, search: str, *, field: str = "sector_name") -> JSONObject:
    """Case-insensitive substring filter over ``payload["sectors"]``."""
    needle = search.strip().lower()
    rows = decode_collection(payload).rows
    if not needle:
        return payload
    filtered = [
        row
        for row in rows
        if isinstance(row, dict) and needle in str(row.get(field) or "").lower()
    ]
    return {**payload, "sectors": filtered}
