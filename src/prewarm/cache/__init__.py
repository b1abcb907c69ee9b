"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: cache/__init__.py.
"""

from .base import CacheEntry, CacheStore
from .factory import (
    ENTITY_NAMESPACE,
    SNAPSHOT_NAMESPACE,
    create_cache_store,
    create_cache_stores_from_settings,
)
from .inmemory import InMemoryCacheStore
from .redis import RedisCacheStore

__all__ = [
    "CacheEntry",
    "CacheStore",
    "InMemoryCacheStore",
    "RedisCacheStore",
    "ENTITY_NAMESPACE",
    "SNAPSHOT_NAMESPACE",
    "create_cache_store",
    "create_cache_stores_from_settings",
]
