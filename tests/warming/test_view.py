from __future__ import annotations

import asyncio

from prewarm.cache import InMemoryCacheStore
from prewarm.errors import CacheBackendUnavailable
from prewarm.types import UpstreamCallResult
from prewarm.warming import AggregateView, EndpointTemplate


def run_async(coro):
    return asyncio.run(coro)


class _ScriptedAggregator:
    def __init__(self, failing=()) -> None:
        self.failing = set(failing)
        self.calls = []

    async def fetch_all(self, requests, *, token=None, **kwargs):
        _ = kwargs
        self.calls.append(([r.url for r in requests], token))
        return [
            UpstreamCallResult(
                label=r.label,
                ok=False,
                status=500,
                error="http: HTTP 500",
                error_kind="http",
            )
            if r.label in self.failing
            else UpstreamCallResult(label=r.label, ok=True, status=200, data={"from": r.label})
            for r in requests
        ]


class _BrokenStore:
    backend_id = "broken"

    async def get(self, key):
        raise CacheBackendUnavailable(f"down: {key}")

    async def set(self, key, payload, *, ttl_s):
        raise CacheBackendUnavailable(f"down: {key}")

    async def has_any(self):
        raise CacheBackendUnavailable("down")

    async def delete(self, key):
        raise CacheBackendUnavailable(f"down: {key}")


FOUR_ENDPOINTS = (
    EndpointTemplate("a", "/a/{entity_id}"),
    EndpointTemplate("b", "/b/{entity_id}"),
    EndpointTemplate("c", "/c?id={entity_id}"),
    EndpointTemplate("d", "/d?id={entity_id}"),
)


def _view(store, aggregator, *, endpoints=FOUR_ENDPOINTS, cache_partial=False):
    return AggregateView(
        name="demo",
        store=store,
        aggregator=aggregator,
        key_template="demo:{entity_id}",
        ttl_s=60,
        endpoints=endpoints,
        base_url="http://up/api/",
        cache_partial=cache_partial,
    )


def test_endpoint_template_builds_urls():
    template = EndpointTemplate("x", "/sectors/{entity_id}")
    assert template.url_for("http://up/api/", "a b") == "http://up/api/sectors/a%20b"
    assert (
        EndpointTemplate("y", "/overview?Sector_id={entity_id}").url_for(
            "http://up", "7", {"top": "15"}
        )
        == "http://up/overview?Sector_id=7&top=15"
    )
    assert (
        EndpointTemplate("z", "https://other/list").url_for("http://up", "", {"page": "1"})
        == "https://other/list?page=1"
    )


def test_all_calls_ok_caches_composed_payload():
    async def scenario() -> None:
        store = InMemoryCacheStore()
        aggregator = _ScriptedAggregator()
        view = _view(store, aggregator)

        result = await view.warm(view.build_target("42"), token="tok")

        assert result.succeeded is True
        assert result.partial is False
        assert result.cached is True
        cached = await store.get("demo:42")
        assert cached == result.payload
        assert cached["entityId"] == "42"
        assert cached["datasets"]["c"] == {"from": "c"}
        assert aggregator.calls[0][0][0] == "http://up/api/a/42"
        assert aggregator.calls[0][1] == "tok"

    run_async(scenario())


def test_two_of_four_failing_is_partial_and_not_cached():
    async def scenario() -> None:
        store = InMemoryCacheStore()
        view = _view(store, _ScriptedAggregator(failing={"b", "d"}))

        result = await view.warm(view.build_target("42"), token=None)

        assert result.succeeded is False
        assert result.partial is True
        assert result.cached is False
        assert await store.get("demo:42") is None
        assert result.result_for("a").data == {"from": "a"}
        assert result.result_for("c").data == {"from": "c"}
        assert result.result_for("b").error_kind == "http"
        assert result.payload["datasets"]["b"] is None

    run_async(scenario())


def test_partial_results_are_cached_when_enabled():
    async def scenario() -> None:
        store = InMemoryCacheStore()
        view = _view(store, _ScriptedAggregator(failing={"b"}), cache_partial=True)

        result = await view.warm(view.build_target("1"), token=None)

        assert result.succeeded is False
        assert result.cached is True
        assert await store.get("demo:1") is not None

    run_async(scenario())


def test_optional_endpoint_failure_still_succeeds():
    endpoints = (
        EndpointTemplate("main", "/main/{entity_id}"),
        EndpointTemplate("extra", "/extra/{entity_id}", required=False),
    )

    async def scenario() -> None:
        store = InMemoryCacheStore()
        view = _view(store, _ScriptedAggregator(failing={"extra"}), endpoints=endpoints)

        result = await view.warm(view.build_target("9"), token=None)

        assert result.succeeded is True
        assert result.partial is True
        assert result.cached is True

    run_async(scenario())


def test_all_calls_failing_yields_no_payload():
    async def scenario() -> None:
        store = InMemoryCacheStore()
        view = _view(store, _ScriptedAggregator(failing={"a", "b", "c", "d"}))

        result = await view.warm(view.build_target("5"), token=None)

        assert result.payload is None
        assert result.succeeded is False
        assert result.partial is False
        assert result.error is not None and "a: http: HTTP 500" in result.error
        assert await store.has_any() is False

    run_async(scenario())


def test_broken_store_fails_open():
    async def scenario() -> None:
        view = _view(_BrokenStore(), _ScriptedAggregator())

        assert await view.read("42") is None
        result = await view.warm(view.build_target("42"), token=None)
        assert result.succeeded is True
        assert result.cached is False
        assert result.payload is not None

    run_async(scenario())
