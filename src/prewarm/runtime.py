"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Composition root wiring settings, stores, views, jobs and serving paths.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from .cache import ENTITY_NAMESPACE, SNAPSHOT_NAMESPACE, CacheStore, create_cache_stores_from_settings
from .metrics import NoOpWarmMetrics, WarmMetrics
from .settings import WarmSettings
from .types import WarmJobSummary
from .upstream import (
    CredentialChain,
    RetryPolicy,
    TimeoutPolicy,
    UpstreamAggregator,
    build_credential_chain,
)
from .warming import (
    DEFAULT_LIST_SNAPSHOTS,
    SECTOR_OVERVIEW_ENDPOINTS,
    SECTOR_OVERVIEW_KEY,
    AggregateView,
    BackgroundWarmTrigger,
    BatchWarmer,
    EndpointTemplate,
    ListSnapshot,
    OnDemandServer,
    SectorOverviewJob,
    SnapshotJob,
    SnapshotServer,
    TriggerState,
    WarmJob,
    compose_sector_overview,
)


@dataclass(slots=True)
class WarmRuntime:
    """Everything the HTTP host and the CLI need, built once per process."""

    settings: WarmSettings
    aggregator: UpstreamAggregator
    stores: dict[str, CacheStore]
    sector_view: AggregateView
    sector_job: SectorOverviewJob
    jobs: dict[str, WarmJob]
    overview_server: OnDemandServer
    list_servers: dict[str, SnapshotServer]
    trigger: BackgroundWarmTrigger
    user_credentials: CredentialChain
    service_credentials: CredentialChain
    metrics: WarmMetrics

    @classmethod
    def from_settings(
        cls,
        settings: WarmSettings | None = None,
        *,
        stores: Mapping[str, CacheStore] | None = None,
        redis_client: Any | None = None,
        http_client: httpx.AsyncClient | None = None,
        metrics: WarmMetrics | None = None,
        trigger_state: TriggerState | None = None,
        sector_endpoints: Sequence[EndpointTemplate] = SECTOR_OVERVIEW_ENDPOINTS,
        snapshots: Sequence[ListSnapshot] = DEFAULT_LIST_SNAPSHOTS,
    ) -> "WarmRuntime":
        settings = settings or WarmSettings.from_env()
        metrics = metrics or NoOpWarmMetrics()
        resolved_stores = (
            dict(stores)
            if stores is not None
            else create_cache_stores_from_settings(settings, redis_client=redis_client)
        )
        aggregator = UpstreamAggregator(
            client=http_client,
            timeout=TimeoutPolicy(request_timeout_s=settings.timeout_s),
            retry=RetryPolicy(max_retries=settings.max_retries, backoff_s=settings.retry_backoff_s),
        )

        sector_view = AggregateView(
            name="sector_overview",
            store=resolved_stores[ENTITY_NAMESPACE],
            aggregator=aggregator,
            key_template=SECTOR_OVERVIEW_KEY,
            ttl_s=settings.entity_ttl_s,
            endpoints=sector_endpoints,
            base_url=settings.upstream_base_url,
            compose=compose_sector_overview,
            cache_partial=settings.cache_partial_results,
            metrics=metrics,
        )
        sector_job = SectorOverviewJob(
            sector_view,
            BatchWarmer(
                sector_view,
                concurrency=settings.concurrency,
                delay_s=settings.politeness_delay_s,
                metrics=metrics,
            ),
            list_url=EndpointTemplate("sector_list", settings.sector_list_path).url_for(
                settings.upstream_base_url, ""
            ),
        )

        jobs: dict[str, WarmJob] = {sector_job.name: sector_job}
        list_servers: dict[str, SnapshotServer] = {}
        for snapshot in snapshots:
            view = AggregateView(
                name=f"{snapshot.name}_list",
                store=resolved_stores[SNAPSHOT_NAMESPACE],
                aggregator=aggregator,
                key_template=snapshot.key,
                ttl_s=settings.snapshot_ttl_s,
                endpoints=[EndpointTemplate(snapshot.name, snapshot.path)],
                base_url=settings.base_url_for(snapshot.name),
                compose=snapshot.compose,
                metrics=metrics,
            )
            job_name = snapshot.name if snapshot.name not in jobs else f"{snapshot.name}-list"
            jobs[job_name] = SnapshotJob(
                job_name,
                snapshot,
                view,
                BatchWarmer(view, concurrency=1, delay_s=0.0, metrics=metrics),
            )
            list_servers[snapshot.name] = SnapshotServer(snapshot, view)

        user_credentials = build_credential_chain(
            settings.user_credentials, settings, client=http_client
        )
        service_credentials = build_credential_chain(
            settings.service_credentials, settings, client=http_client
        )

        async def sweep() -> WarmJobSummary:
            credential = await service_credentials.resolve()
            return await sector_job.run(token=credential.token)

        trigger = BackgroundWarmTrigger(trigger_state or TriggerState(), sweep, metrics=metrics)
        return cls(
            settings=settings,
            aggregator=aggregator,
            stores=resolved_stores,
            sector_view=sector_view,
            sector_job=sector_job,
            jobs=jobs,
            overview_server=OnDemandServer(sector_view, trigger),
            list_servers=list_servers,
            trigger=trigger,
            user_credentials=user_credentials,
            service_credentials=service_credentials,
            metrics=metrics,
        )

    async def aclose(self) -> None:
        await self.trigger.shutdown()
        await self.aggregator.close()
