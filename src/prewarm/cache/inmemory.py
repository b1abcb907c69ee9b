"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: cache/inmemory.py.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from ..types import JSONValue
from .base import CacheEntry, CacheStore, validate_ttl

logger = logging.getLogger("prewarm.cache.inmemory")


class InMemoryCacheStore(CacheStore):
    """
    Process-local TTL store. Not shared across instances, lost on restart.

    Entries are replaced wholesale on `set`, so readers never observe a
    half-written payload.
    """

    backend_id = "inmemory"

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._rows: dict[str, CacheEntry] = {}

    async def get(self, key: str) -> JSONValue | None:
        row = self._rows.get(key)
        if row is None:
            logger.debug("MISS %s", key)
            return None
        now = self._clock()
        if row.is_expired(now):
            logger.debug("EXPIRED %s", key)
            self._rows.pop(key, None)
            return None
        logger.debug("HIT %s (age=%.0fs)", key, row.age_s(now))
        return row.payload

    async def set(self, key: str, payload: JSONValue, *, ttl_s: float) -> None:
        ttl = validate_ttl(ttl_s)
        now = self._clock()
        self._rows[key] = CacheEntry(
            key=key,
            payload=payload,
            written_at_s=now,
            expires_at_s=now + ttl,
        )
        logger.debug("SET %s (ttl=%.0fs)", key, ttl)

    async def has_any(self) -> bool:
        now = self._clock()
        return any(not row.is_expired(now) for row in self._rows.values())

    async def delete(self, key: str) -> None:
        self._rows.pop(key, None)

    def entry(self, key: str) -> CacheEntry | None:
        """Return the raw entry, expired or not."""
        return self._rows.get(key)

    def stats(self) -> dict[str, object]:
        return {"size": len(self._rows), "keys": sorted(self._rows)}

    def cleanup_expired(self) -> int:
        """Drop expired entries and return how many were removed."""
        now = self._clock()
        expired = [key for key, row in self._rows.items() if row.is_expired(now)]
        for key in expired:
            self._rows.pop(key, None)
        return len(expired)
