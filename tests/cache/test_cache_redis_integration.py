from __future__ import annotations

import os
import uuid

import pytest

from prewarm.cache import RedisCacheStore


def _redis_url() -> str | None:
    return os.getenv("PREWARM_TEST_REDIS_URL")


@pytest.mark.skipif(_redis_url() is None, reason="PREWARM_TEST_REDIS_URL is not set")
@pytest.mark.asyncio
async def test_redis_store_round_trip_with_real_redis():
    redis = pytest.importorskip("redis.asyncio")
    client = redis.Redis.from_url(_redis_url())
    prefix = f"itest:prewarm:{uuid.uuid4().hex}"
    store = RedisCacheStore(client, prefix=prefix)

    assert await store.has_any() is False
    await store.set("companies:initial:v1:per20", {"items": [1, 2]}, ttl_s=60)

    assert await store.get("companies:initial:v1:per20") == {"items": [1, 2]}
    assert await store.has_any() is True
    ttl = await client.ttl(f"{prefix}:companies:initial:v1:per20")
    assert 0 < ttl <= 60

    await store.delete("companies:initial:v1:per20")
    assert await store.get("companies:initial:v1:per20") is None

    await client.delete(f"{prefix}:warmed_at")
    await client.aclose()
