"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Aggregate views: how one cache key is built from upstream calls.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from urllib.parse import quote, urlencode

from ..cache.base import CacheStore
from ..errors import CacheBackendUnavailable
from ..metrics import NoOpWarmMetrics, WarmMetrics
from ..types import JSONObject, JSONValue, UpstreamCallResult, UpstreamRequest, WarmResult, WarmTarget
from ..upstream.aggregator import UpstreamAggregator

logger = logging.getLogger("prewarm.warming.view")

Composer = Callable[[str, Sequence[UpstreamCallResult]], JSONValue]


@dataclass(frozen=True, slots=True)
class EndpointTemplate:
    """
    One upstream call of a view.

    `path` is formatted with ``entity_id`` (URL-quoted) and appended to the
    view's base URL unless it is already absolute.
    """

    label: str
    path: str
    required: bool = True

    def url_for(self, base_url: str, entity_id: str, params: Mapping[str, str] | None = None) -> str:
        path = self.path.format(entity_id=quote(entity_id, safe=""))
        url = path if path.startswith(("http://", "https://")) else f"{base_url.rstrip('/')}{path}"
        if params:
            joiner = "&" if "?" in url else "?"
            url = f"{url}{joiner}{urlencode(list(params.items()))}"
        return url


def timings_block(results: Sequence[UpstreamCallResult]) -> JSONObject:
    return {
        "fetchMs": {r.label: round(r.elapsed_ms) for r in results},
        "statuses": {r.label: r.status for r in results},
        "errors": {r.label: r.error for r in results if r.error},
    }


def compose_datasets(entity_id: str, results: Sequence[UpstreamCallResult]) -> JSONValue:
    """Default composer: every call's data keyed by label."""
    return {
        "entityId": entity_id,
        "datasets": {r.label: r.data for r in results},
        "timings": timings_block(results),
    }


def compose_single(entity_id: str, results: Sequence[UpstreamCallResult]) -> JSONValue:
    """Composer for one-call views: the call's body is the payload."""
    _ = entity_id
    return results[0].data if results else None


class AggregateView:
    """
    Binds a cache key template, its upstream calls and a payload composer.

    `warm` fetches and writes one target; `read` is the fail-open cache
    read used by serving paths.
    """

    def __init__(
        self,
        *,
        name: str,
        store: CacheStore,
        aggregator: UpstreamAggregator,
        key_template: str,
        ttl_s: float,
        endpoints: Sequence[EndpointTemplate],
        base_url: str,
        compose: Composer = compose_datasets,
        cache_partial: bool = False,
        metrics: WarmMetrics | None = None,
    ) -> None:
        if not endpoints:
            raise ValueError(f"View '{name}' needs at least one endpoint")
        self.name = name
        self.store = store
        self.aggregator = aggregator
        self.key_template = key_template
        self.ttl_s = ttl_s
        self.endpoints = tuple(endpoints)
        self.base_url = base_url
        self._compose = compose
        self._cache_partial = cache_partial
        self._metrics: WarmMetrics = metrics or NoOpWarmMetrics()

    def key_for(self, entity_id: str) -> str:
        return self.key_template.format(entity_id=entity_id)

    def build_target(self, entity_id: str, params: Mapping[str, str] | None = None) -> WarmTarget:
        return WarmTarget(
            entity_id=entity_id,
            upstream_requests=tuple(
                UpstreamRequest(
                    url=endpoint.url_for(self.base_url, entity_id, params),
                    label=endpoint.label,
                    required=endpoint.required,
                )
                for endpoint in self.endpoints
            ),
        )

    async def read(self, entity_id: str) -> JSONValue | None:
        key = self.key_for(entity_id)
        try:
            payload = await self.store.get(key)
        except CacheBackendUnavailable as exc:
            logger.error("Cache read failed for %s, treating as miss: %s", key, exc)
            return None
        if payload is None:
            self._metrics.incr("cache_miss_total", tags={"view": self.name})
        else:
            self._metrics.incr("cache_hit_total", tags={"view": self.name})
        return payload

    async def warm(self, target: WarmTarget, *, token: str | None, cache: bool = True) -> WarmResult:
        """Fetch every call of `target`, compose the payload and cache it."""
        started = time.perf_counter()
        results = await self.aggregator.fetch_all(target.upstream_requests, token=token)

        ok_by_label = {r.label: r.ok for r in results}
        required_ok = all(
            ok_by_label.get(req.label, False)
            for req in target.upstream_requests
            if req.required
        )
        any_ok = any(r.ok for r in results)
        all_ok = all(r.ok for r in results)
        succeeded = required_ok and any_ok
        partial = any_ok and not all_ok

        payload = self._compose(target.entity_id, results) if any_ok else None
        cached = False
        if cache and payload is not None and (succeeded or self._cache_partial):
            cached = await self._write(self.key_for(target.entity_id), payload)

        error = None
        if not any_ok:
            error = "; ".join(f"{r.label}: {r.error}" for r in results if r.error) or "no data"
        return WarmResult(
            entity_id=target.entity_id,
            succeeded=succeeded,
            partial=partial,
            payload=payload,
            call_results=tuple(results),
            elapsed_ms=(time.perf_counter() - started) * 1000,
            cached=cached,
            error=error,
        )

    async def _write(self, key: str, payload: JSONValue) -> bool:
        try:
            await self.store.set(key, payload, ttl_s=self.ttl_s)
        except CacheBackendUnavailable:
            logger.exception("Cache write failed for %s; serving uncached payload", key)
            return False
        return True
