"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Bounded batch warmer: N workers draining one shared cursor of targets.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Protocol

from ..metrics import NoOpWarmMetrics, WarmMetrics
from ..settings import clamp
from ..types import WarmJobSummary, WarmResult, WarmTarget

logger = logging.getLogger("prewarm.warming.batch")

MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 8


class Warmable(Protocol):
    """Anything that can warm one target; `AggregateView` in production."""

    async def warm(self, target: WarmTarget, *, token: str | None) -> WarmResult: ...


class BatchWarmer:
    """
    Warm many targets with a fixed worker pool.

    Each worker takes the next index from a shared cursor, warms that
    target (the view writes the cache entry as soon as the target
    completes), then waits `delay_s` before taking another. One failing
    target never aborts the sweep.
    """

    def __init__(
        self,
        view: Warmable,
        *,
        concurrency: int = 4,
        delay_s: float = 0.2,
        metrics: WarmMetrics | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._view = view
        self._concurrency = concurrency
        self._delay_s = max(0.0, delay_s)
        self._metrics: WarmMetrics = metrics or NoOpWarmMetrics()
        self._sleep = sleep

    async def warm_all(
        self,
        targets: Sequence[WarmTarget],
        *,
        token: str | None,
        concurrency: int | None = None,
    ) -> list[WarmResult]:
        """Warm every target; results come back in completion order."""
        if not targets:
            return []
        requested = self._concurrency if concurrency is None else concurrency
        workers = min(int(clamp(requested, MIN_CONCURRENCY, MAX_CONCURRENCY)), len(targets))

        results: list[WarmResult] = []
        cursor = 0

        def take() -> WarmTarget | None:
            nonlocal cursor
            if cursor >= len(targets):
                return None
            target = targets[cursor]
            cursor += 1
            return target

        async def worker() -> None:
            while True:
                target = take()
                if target is None:
                    return
                result = await self._warm_one(target, token=token)
                results.append(result)
                if self._delay_s and cursor < len(targets):
                    await self._sleep(self._delay_s)

        logger.info("Warming %d target(s) with %d worker(s)", len(targets), workers)
        await asyncio.gather(*(worker() for _ in range(workers)))
        return results

    async def sweep(
        self,
        job: str,
        targets: Sequence[WarmTarget],
        *,
        token: str | None,
        concurrency: int | None = None,
    ) -> WarmJobSummary:
        """Run `warm_all` and fold the results into a job summary."""
        started = time.perf_counter()
        results = await self.warm_all(targets, token=token, concurrency=concurrency)
        summary = WarmJobSummary(
            job=job,
            results=results,
            elapsed_ms=(time.perf_counter() - started) * 1000,
        )
        logger.info(
            "Sweep %s finished in %.0fms (warmed=%d, partial=%d, failed=%d)",
            job,
            summary.elapsed_ms,
            summary.succeeded,
            summary.partial,
            summary.failed,
        )
        return summary

    async def _warm_one(self, target: WarmTarget, *, token: str | None) -> WarmResult:
        started = time.perf_counter()
        try:
            result = await self._view.warm(target, token=token)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Target %s failed", target.entity_id)
            result = WarmResult(
                entity_id=target.entity_id,
                succeeded=False,
                partial=False,
                payload=None,
                elapsed_ms=(time.perf_counter() - started) * 1000,
                error=str(exc) or type(exc).__name__,
            )

        if result.succeeded:
            outcome = "success"
        elif result.partial:
            outcome = "partial"
        else:
            outcome = "failed"
        self._metrics.incr("warm_target_total", tags={"outcome": outcome})
        logger.info(
            "Target %s %s in %.0fms",
            result.entity_id,
            outcome,
            result.elapsed_ms,
        )
        return result
