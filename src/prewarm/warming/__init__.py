"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Cache warming package: views, batch warmer, trigger gate and serving paths.

Quick start::

    from prewarm.warming import BatchWarmer, should_run

    warmer = BatchWarmer(view, concurrency=4, delay_s=0.2)
    results = await warmer.warm_all(targets, token=token)
"""

from .batch import BatchWarmer, Warmable
from .gate import GateDecision, local_hour, should_run, verify_manual_secret
from .jobs import (
    DEFAULT_LIST_SNAPSHOTS,
    SECTOR_OVERVIEW_ENDPOINTS,
    SECTOR_OVERVIEW_KEY,
    ListSnapshot,
    SectorOverviewJob,
    SnapshotJob,
    WarmJob,
    compose_sector_list,
    compose_sector_overview,
)
from .serving import OnDemandServer, ServeResult, SnapshotServer
from .trigger import BackgroundWarmTrigger, TriggerSnapshot, TriggerState
from .view import AggregateView, EndpointTemplate, compose_datasets, compose_single

__all__ = [
    "AggregateView",
    "EndpointTemplate",
    "compose_datasets",
    "compose_single",
    "BatchWarmer",
    "Warmable",
    "GateDecision",
    "local_hour",
    "should_run",
    "verify_manual_secret",
    "ListSnapshot",
    "DEFAULT_LIST_SNAPSHOTS",
    "SECTOR_OVERVIEW_ENDPOINTS",
    "SECTOR_OVERVIEW_KEY",
    "SectorOverviewJob",
    "SnapshotJob",
    "WarmJob",
    "compose_sector_overview",
    "compose_sector_list",
    "TriggerState",
    "TriggerSnapshot",
    "BackgroundWarmTrigger",
    "OnDemandServer",
    "SnapshotServer",
    "ServeResult",
]
