"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Factory helpers for selecting a cache backend per namespace.
"""

from __future__ import annotations

from typing import Any

from ..settings import WarmSettings
from .base import CacheStore
from .inmemory import InMemoryCacheStore

ENTITY_NAMESPACE = "entity"
SNAPSHOT_NAMESPACE = "snapshot"


def create_cache_store(
    backend: str,
    *,
    namespace: str,
    settings: WarmSettings | None = None,
    redis_client: Any | None = None,
) -> CacheStore:
    """
    Create one cache store for `namespace`.

    Backends:
    - `inmemory`
    - `redis` (uses `redis_client` when supplied, else builds one from
      the settings' Redis URL)
    """
    key = backend.strip().lower()
    if key in ("mem", "memory", "inmemory", "in_memory"):
        return InMemoryCacheStore()

    if key == "redis":
        from .redis import RedisCacheStore

        settings = settings or WarmSettings()
        client = redis_client
        if client is None:
            try:
                import redis.asyncio as redis
            except ModuleNotFoundError as exc:  # pragma: no cover
                raise RuntimeError(
                    "Redis cache backend requires `redis` to be installed."
                ) from exc
            client = redis.Redis.from_url(settings.redis_url())
        return RedisCacheStore(client, prefix=f"{settings.redis_prefix}:{namespace}")

    raise ValueError(f"Unknown cache backend: {backend}")


def create_cache_stores_from_settings(
    settings: WarmSettings,
    *,
    redis_client: Any | None = None,
) -> dict[str, CacheStore]:
    """Build the entity and snapshot stores from their configured backends."""
    return {
        ENTITY_NAMESPACE: create_cache_store(
            settings.entity_cache_backend,
            namespace=ENTITY_NAMESPACE,
            settings=settings,
            redis_client=redis_client,
        ),
        SNAPSHOT_NAMESPACE: create_cache_store(
            settings.snapshot_cache_backend,
            namespace=SNAPSHOT_NAMESPACE,
            settings=settings,
            redis_client=redis_client,
        ),
    }
