"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Request-time serving paths: per-entity views and list snapshots.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass

from ..errors import AggregateUnavailable, CacheBackendUnavailable, UpstreamHttpError
from ..types import JSONObject, JSONValue, WarmResult
from .jobs import ListSnapshot
from .trigger import BackgroundWarmTrigger
from .view import AggregateView

logger = logging.getLogger("prewarm.warming.serving")


@dataclass(frozen=True, slots=True)
class ServeResult:
    entity_id: str
    payload: JSONValue
    from_cache: bool
    cache_ms: float | None = None
    warm_result: WarmResult | None = None
    background_triggered: bool = False

    def to_body(self) -> JSONObject:
        body: JSONObject = dict(self.payload) if isinstance(self.payload, dict) else {"data": self.payload}
        body["fromCache"] = self.from_cache
        if self.cache_ms is not None:
            body["cacheMs"] = round(self.cache_ms, 2)
        return body


class OnDemandServer:
    """
    Serve one entity from cache, or fetch-and-cache it for this caller.

    A miss on a store that looked entirely empty also fires the
    background sweep through `trigger`; the caller never waits on it.
    """

    def __init__(self, view: AggregateView, trigger: BackgroundWarmTrigger | None = None) -> None:
        self._view = view
        self._trigger = trigger

    async def serve(self, entity_id: str, *, token: str | None) -> ServeResult:
        started = time.perf_counter()
        cached = await self._view.read(entity_id)
        if cached is not None:
            cache_ms = (time.perf_counter() - started) * 1000
            logger.info("Served %s %s from cache in %.1fms", self._view.name, entity_id, cache_ms)
            return ServeResult(entity_id=entity_id, payload=cached, from_cache=True, cache_ms=cache_ms)

        # Checked before our own write, which would make the store look warm.
        was_cold = await self._looks_cold()
        result = await self._view.warm(self._view.build_target(entity_id), token=token)
        triggered = self._trigger.fire() if was_cold and self._trigger is not None else False

        if result.payload is None:
            raise AggregateUnavailable(
                f"All upstream calls failed for {self._view.name} {entity_id}"
            )
        return ServeResult(
            entity_id=entity_id,
            payload=result.payload,
            from_cache=False,
            warm_result=result,
            background_triggered=triggered,
        )

    async def trigger_background_warm_if_cold(self) -> bool:
        """Fire the background sweep if the store looks empty. Returns whether it fired."""
        if self._trigger is None:
            return False
        if not await self._looks_cold():
            return False
        return self._trigger.fire()

    async def _looks_cold(self) -> bool:
        try:
            return not await self._view.store.has_any()
        except CacheBackendUnavailable as exc:
            logger.error("Cache warm check failed, assuming cold: %s", exc)
            return True


class SnapshotServer:
    """
    Serve list endpoints, using the warmed snapshot for the first page.

    Only the initial parameter set is cached; anything else is proxied.
    """

    def __init__(self, snapshot: ListSnapshot, view: AggregateView) -> None:
        self.snapshot = snapshot
        self._view = view

    async def serve(self, params: Mapping[str, str], *, token: str | None) -> ServeResult:
        initial = self.snapshot.is_initial(params)
        if initial:
            started = time.perf_counter()
            cached = await self._view.read(self.snapshot.entity_id)
            if cached is not None:
                return ServeResult(
                    entity_id=self.snapshot.entity_id,
                    payload=cached,
                    from_cache=True,
                    cache_ms=(time.perf_counter() - started) * 1000,
                )

        query = dict(self.snapshot.initial_params) if initial else dict(params)
        target = self._view.build_target(self.snapshot.entity_id, params=query)
        result = await self._view.warm(target, token=token, cache=initial)
        if not result.succeeded:
            call = result.call_results[0] if result.call_results else None
            if call is not None and call.error_kind == "http":
                raise UpstreamHttpError(call.status, call.error or "")
            raise AggregateUnavailable(result.error or f"{self.snapshot.name} fetch failed")
        return ServeResult(
            entity_id=self.snapshot.entity_id,
            payload=result.payload,
            from_cache=False,
            warm_result=result,
        )
