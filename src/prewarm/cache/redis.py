"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: cache/redis.py.
"""

from __future__ import annotations

import json
import logging
import math
import time
from typing import Any

from ..errors import CacheBackendUnavailable
from ..types import JSONValue
from .base import CacheStore, validate_ttl

logger = logging.getLogger("prewarm.cache.redis")


class RedisCacheStore(CacheStore):
    """
    Durable Redis-backed store shared across instances.

    Payloads are stored as JSON strings under ``{prefix}:{key}`` with a
    native Redis TTL. Every write also refreshes ``{prefix}:warmed_at``,
    which `has_any` reads instead of scanning the keyspace.

    Args:
        redis_client: An ``redis.asyncio.Redis`` client instance.
        prefix: Key prefix for namespacing.
    """

    backend_id = "redis"

    def __init__(self, redis_client: Any, *, prefix: str = "prewarm") -> None:
        self._redis = redis_client
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    def _warmed_at_key(self) -> str:
        return f"{self._prefix}:warmed_at"

    async def get(self, key: str) -> JSONValue | None:
        try:
            raw = await self._redis.get(self._key(key))
        except Exception as exc:  # noqa: BLE001
            raise CacheBackendUnavailable(f"Redis read failed for '{key}': {exc}") from exc
        if raw is None:
            logger.debug("MISS %s", key)
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError):
            logger.error("Redis value for '%s' is not JSON; treating as miss", key)
            return None
        logger.debug("HIT %s", key)
        return payload

    async def set(self, key: str, payload: JSONValue, *, ttl_s: float) -> None:
        ttl = int(math.ceil(validate_ttl(ttl_s)))
        blob = json.dumps(payload, ensure_ascii=False)
        try:
            await self._redis.setex(self._key(key), ttl, blob)
            await self._redis.setex(self._warmed_at_key(), ttl, str(time.time()))
        except Exception as exc:  # noqa: BLE001
            raise CacheBackendUnavailable(f"Redis write failed for '{key}': {exc}") from exc
        logger.debug("SET %s (ttl=%ds)", key, ttl)

    async def has_any(self) -> bool:
        try:
            marker = await self._redis.get(self._warmed_at_key())
        except Exception as exc:  # noqa: BLE001
            raise CacheBackendUnavailable(f"Redis warmed_at check failed: {exc}") from exc
        return marker is not None

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(self._key(key))
        except Exception as exc:  # noqa: BLE001
            raise CacheBackendUnavailable(f"Redis delete failed for '{key}': {exc}") from exc
