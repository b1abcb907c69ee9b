"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Warm jobs: the sector overview sweep and list snapshot refreshes.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

from ..errors import NoWarmTargets
from ..types import JSONValue, UpstreamCallResult, UpstreamRequest, WarmJobSummary
from ..upstream.decoding import decode_collection, extract_entity_ids, normalize_sector_list
from .batch import BatchWarmer
from .view import AggregateView, Composer, EndpointTemplate, compose_single, timings_block

logger = logging.getLogger("prewarm.warming.jobs")

SECTOR_OVERVIEW_KEY = "sector:{entity_id}:overview"

SECTOR_OVERVIEW_ENDPOINTS: tuple[EndpointTemplate, ...] = (
    EndpointTemplate("sector", "/sectors/{entity_id}"),
    EndpointTemplate("overview", "/overview_data?Sector_id={entity_id}"),
    EndpointTemplate(
        "recent_transactions",
        "/sectors_resent_trasnactions?Sector_id={entity_id}&top_15=true",
    ),
)


def compose_sector_overview(entity_id: str, results: Sequence[UpstreamCallResult]) -> JSONValue:
    """Join sector details, the overview bundle and recent transactions."""
    by_label = {r.label: r for r in results}

    def data(label: str) -> JSONValue:
        result = by_label.get(label)
        return result.data if result is not None and result.ok else None

    overview = data("overview")
    if not isinstance(overview, dict):
        overview = {}
    return {
        "sectorId": entity_id,
        "sectorData": data("sector"),
        "splitDatasets": {
            "marketMap": overview.get("market_map"),
            "strategic": overview.get("strategic_acquirers"),
            "pe": overview.get("pe_investors"),
            "recentTransactions": data("recent_transactions"),
        },
        "timings": timings_block(results),
    }


def compose_sector_list(entity_id: str, results: Sequence[UpstreamCallResult]) -> JSONValue:
    return normalize_sector_list(compose_single(entity_id, results))


@dataclass(frozen=True, slots=True)
class ListSnapshot:
    """
    A full-list snapshot cached under a versioned key.

    Attributes:
        name: List name, also the route segment (``/{name}/list``).
        path: Upstream path (or absolute URL) without query.
        key: Cache key of the snapshot.
        initial_params: First-page query params; only this set is cached.
        compose: Payload composer for the single upstream call.
    """

    name: str
    path: str
    key: str
    initial_params: tuple[tuple[str, str], ...] = ()
    compose: Composer = compose_single
    entity_id: str = "initial"

    def is_initial(self, params: Mapping[str, str]) -> bool:
        expected = dict(self.initial_params)
        return all(name in expected and str(value) == expected[name] for name, value in params.items())


DEFAULT_LIST_SNAPSHOTS: tuple[ListSnapshot, ...] = (
    ListSnapshot(
        name="companies",
        path="/Get_new_companies",
        key="companies:initial:v1:per20",
        initial_params=(("Offset", "1"), ("Per_page", "20")),
    ),
    ListSnapshot(
        name="individuals",
        path="/get_all_individuals",
        key="individuals:initial:v1:offset0:per50",
        initial_params=(("Offset", "0"), ("Per_page", "50")),
    ),
    ListSnapshot(
        name="investors",
        path="/investors_with_d_a_list",
        key="investors:initial:v1:page1:per50",
        initial_params=(("page", "1"), ("per_page", "50")),
    ),
    ListSnapshot(
        name="sectors",
        path="/Primary_sectors_with_companies_counts",
        key="sectors:list:v1",
        compose=compose_sector_list,
    ),
)


class WarmJob(Protocol):
    name: str

    async def run(self, *, token: str | None) -> WarmJobSummary: ...


class SectorOverviewJob:
    """Discover every sector id upstream, then warm each sector overview."""

    name = "sectors"

    def __init__(self, view: AggregateView, warmer: BatchWarmer, *, list_url: str) -> None:
        self._view = view
        self._warmer = warmer
        self._list_url = list_url

    async def discover_ids(self, *, token: str | None) -> list[str]:
        [result] = await self._view.aggregator.fetch_all(
            [UpstreamRequest(url=self._list_url, label="sector_list")],
            token=token,
        )
        if not result.ok:
            logger.error("Failed to fetch sector list: %s", result.error)
            return []
        decoded = decode_collection(result.data)
        ids = list(dict.fromkeys(extract_entity_ids(decoded.rows)))
        logger.info("Found %d sector(s) to warm (shape=%s)", len(ids), decoded.shape)
        return ids

    async def run(self, *, token: str | None) -> WarmJobSummary:
        ids = await self.discover_ids(token=token)
        if not ids:
            raise NoWarmTargets("No sectors found to warm")
        targets = [self._view.build_target(entity_id) for entity_id in ids]
        return await self._warmer.sweep(self.name, targets, token=token)


class SnapshotJob:
    """Refresh one list snapshot with its first-page params."""

    def __init__(self, name: str, snapshot: ListSnapshot, view: AggregateView, warmer: BatchWarmer) -> None:
        self.name = name
        self.snapshot = snapshot
        self._view = view
        self._warmer = warmer

    async def run(self, *, token: str | None) -> WarmJobSummary:
        target = self._view.build_target(
            self.snapshot.entity_id, params=dict(self.snapshot.initial_params)
        )
        return await self._warmer.sweep(self.name, [target], token=token)
