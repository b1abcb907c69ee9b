"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Metrics adapters for warming and serving observability.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Protocol

logger = logging.getLogger("prewarm.metrics")


class WarmMetrics(Protocol):
    """Minimal metrics interface for cache and warm instrumentation."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        """Increment a counter metric."""


class NoOpWarmMetrics:
    """Default metrics sink when no metrics backend is provided."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        _ = name
        _ = value
        _ = tags


# Counters emitted by the warming layer: name -> (label, help text).
WARM_COUNTERS: dict[str, tuple[str, str]] = {
    "cache_hit_total": ("view", "Aggregate reads served from cache"),
    "cache_miss_total": ("view", "Aggregate reads that went upstream"),
    "warm_target_total": ("outcome", "Warm targets by outcome (success, partial, failed)"),
    "background_sweep_total": ("outcome", "Background sweeps by outcome (started, success, failed)"),
}


class PrometheusWarmMetrics(WarmMetrics):
    """
    Prometheus counters for cache reads, warm targets and background sweeps.

    Every counter in `WARM_COUNTERS` is registered up front with its single
    label, so scrapes show all series from process start. Names outside that
    set are logged once and dropped.

    Requires `prometheus_client` package.
    """

    def __init__(self, *, namespace: str = "prewarm", registry: object | None = None) -> None:
        try:
            from prometheus_client import REGISTRY, Counter
        except ModuleNotFoundError as exc:  # pragma: no cover
            raise RuntimeError(
                "PrometheusWarmMetrics requires `prometheus_client` to be installed."
            ) from exc

        target = registry if registry is not None else REGISTRY
        self._counters = {
            name: (
                label,
                Counter(
                    name=name,
                    documentation=help_text,
                    namespace=namespace,
                    labelnames=(label,),
                    registry=target,
                ),
            )
            for name, (label, help_text) in WARM_COUNTERS.items()
        }
        self._unknown: set[str] = set()

    def incr(self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None) -> None:
        entry = self._counters.get(name)
        if entry is None:
            if name not in self._unknown:
                self._unknown.add(name)
                logger.warning("Dropping unknown warm metric %r", name)
            return
        label, counter = entry
        counter.labels(str((tags or {}).get(label, "unknown"))).inc(value)
