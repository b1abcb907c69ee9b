from __future__ import annotations

import asyncio
import time

from prewarm.cache import InMemoryCacheStore
from prewarm.types import UpstreamCallResult, UpstreamRequest, WarmResult, WarmTarget
from prewarm.warming import AggregateView, BatchWarmer, EndpointTemplate


def run_async(coro):
    return asyncio.run(coro)


def _targets(count: int) -> list[WarmTarget]:
    return [
        WarmTarget(
            entity_id=str(i),
            upstream_requests=(UpstreamRequest(url=f"http://up/{i}", label="main"),),
        )
        for i in range(count)
    ]


class _SlowWarmable:
    def __init__(self, *, delay_s: float = 0.02, failing=()) -> None:
        self.delay_s = delay_s
        self.failing = set(failing)
        self.in_flight = 0
        self.peak = 0
        self.seen: list[str] = []

    async def warm(self, target: WarmTarget, *, token: str | None) -> WarmResult:
        _ = token
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        self.seen.append(target.entity_id)
        try:
            await asyncio.sleep(self.delay_s)
            if target.entity_id in self.failing:
                raise RuntimeError(f"boom {target.entity_id}")
            return WarmResult(
                entity_id=target.entity_id,
                succeeded=True,
                partial=False,
                payload={"id": target.entity_id},
                cached=True,
            )
        finally:
            self.in_flight -= 1


class _RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)


def test_warm_all_never_exceeds_concurrency():
    async def scenario() -> None:
        view = _SlowWarmable()
        warmer = BatchWarmer(view, concurrency=4, delay_s=0)
        results = await warmer.warm_all(_targets(20), token="t")

        assert len(results) == 20
        assert sorted(int(r.entity_id) for r in results) == list(range(20))
        assert view.peak == 4

    run_async(scenario())


def test_concurrency_is_clamped_to_one_through_eight():
    async def scenario() -> None:
        high = _SlowWarmable()
        await BatchWarmer(high, concurrency=50, delay_s=0).warm_all(_targets(20), token=None)
        assert high.peak == 8

        low = _SlowWarmable()
        await BatchWarmer(low, concurrency=0, delay_s=0).warm_all(_targets(5), token=None)
        assert low.peak == 1

    run_async(scenario())


def test_three_targets_with_two_workers_take_two_rounds():
    async def scenario() -> float:
        view = _SlowWarmable(delay_s=0.1)
        warmer = BatchWarmer(view, concurrency=2, delay_s=0)
        started = time.perf_counter()
        results = await warmer.warm_all(_targets(3), token=None)
        assert len(results) == 3
        assert view.peak == 2
        return time.perf_counter() - started

    elapsed = run_async(scenario())
    assert 0.18 <= elapsed < 0.29


def test_failing_target_does_not_abort_sweep():
    async def scenario() -> None:
        view = _SlowWarmable(failing={"2"})
        warmer = BatchWarmer(view, concurrency=2, delay_s=0)
        summary = await warmer.sweep("demo", _targets(5), token=None)

        assert summary.total == 5
        assert summary.succeeded == 4
        assert summary.failed == 1
        [failed] = [r for r in summary.results if not r.succeeded]
        assert failed.entity_id == "2"
        assert failed.error == "boom 2"
        body = summary.to_dict()
        assert body["success"] is True
        assert body["warmed"] == 4
        assert body["job"] == "demo"

    run_async(scenario())


def test_politeness_delay_runs_between_targets_only():
    async def scenario() -> None:
        sleep = _RecordingSleep()
        warmer = BatchWarmer(_SlowWarmable(delay_s=0), concurrency=1, delay_s=0.2, sleep=sleep)
        await warmer.warm_all(_targets(3), token=None)
        assert sleep.calls == [0.2, 0.2]

    run_async(scenario())


def test_empty_targets_return_no_results():
    async def scenario() -> None:
        warmer = BatchWarmer(_SlowWarmable(), concurrency=4)
        assert await warmer.warm_all([], token=None) == []

    run_async(scenario())


def test_each_target_is_cached_as_soon_as_it_completes():
    release = None

    class _GatedAggregator:
        async def fetch_all(self, requests, *, token=None, **kwargs):
            _ = (token, kwargs)
            if any("slow" in r.url for r in requests):
                await release.wait()
            return [
                UpstreamCallResult(label=r.label, ok=True, status=200, data={"url": r.url})
                for r in requests
            ]

    async def scenario() -> None:
        nonlocal release
        release = asyncio.Event()
        store = InMemoryCacheStore()
        view = AggregateView(
            name="demo",
            store=store,
            aggregator=_GatedAggregator(),
            key_template="demo:{entity_id}",
            ttl_s=60,
            endpoints=(EndpointTemplate("main", "/{entity_id}"),),
            base_url="http://up",
        )
        warmer = BatchWarmer(view, concurrency=2, delay_s=0)
        task = asyncio.create_task(
            warmer.warm_all([view.build_target("slow"), view.build_target("fast")], token=None)
        )

        for _ in range(100):
            if await store.get("demo:fast") is not None:
                break
            await asyncio.sleep(0.01)

        assert await store.get("demo:fast") == {"url": "http://up/fast"}
        assert not task.done()

        release.set()
        results = await task
        assert [r.entity_id for r in results] == ["fast", "slow"]
        assert await store.get("demo:slow") is not None

    run_async(scenario())
