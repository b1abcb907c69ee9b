"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: cache/base.py.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from ..types import JSONValue


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """One cached payload with write and expiry timestamps (epoch seconds)."""

    key: str
    payload: JSONValue
    written_at_s: float
    expires_at_s: float

    def is_expired(self, now_s: float) -> bool:
        return now_s > self.expires_at_s

    def age_s(self, now_s: float) -> float:
        return max(0.0, now_s - self.written_at_s)


class CacheStore(Protocol):
    """
    Key/value contract shared by every cache backend.

    `get` returns None for missing or expired keys and raises
    `CacheBackendUnavailable` when the backend itself fails; callers
    decide whether that is equivalent to a miss.
    """

    backend_id: str

    async def get(self, key: str) -> JSONValue | None: ...

    async def set(self, key: str, payload: JSONValue, *, ttl_s: float) -> None: ...

    async def has_any(self) -> bool: ...

    async def delete(self, key: str) -> None: ...


def validate_ttl(ttl_s: float) -> float:
    if ttl_s <= 0:
        raise ValueError(f"Cache ttl must be > 0 seconds, got {ttl_s}")
    return float(ttl_s)
