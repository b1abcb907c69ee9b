from __future__ import annotations

import os
from contextlib import contextmanager

import pytest

from prewarm.errors import (
    UpstreamHttpError,
    UpstreamNetworkError,
    UpstreamTimeout,
    classify_error,
)
from prewarm.metrics import NoOpWarmMetrics, PrometheusWarmMetrics
from prewarm.settings import DAY_S, HOUR_S, WarmSettings


@contextmanager
def preserved_env():
    snapshot = os.environ.copy()
    try:
        yield
    finally:
        os.environ.clear()
        os.environ.update(snapshot)


def test_defaults_match_daily_schedule():
    settings = WarmSettings()
    assert settings.run_hour == 6
    assert settings.timezone == "Europe/London"
    assert settings.snapshot_ttl_s == 26 * HOUR_S
    assert settings.entity_ttl_s == 2 * HOUR_S
    assert settings.concurrency == 4
    assert settings.cache_partial_results is False


def test_out_of_range_values_are_clamped():
    settings = WarmSettings(
        timeout_s=1,
        max_retries=9,
        retry_backoff_s=10,
        concurrency=64,
        politeness_delay_s=-1,
        entity_ttl_s=5,
        snapshot_ttl_s=30 * DAY_S,
        run_hour=27,
    )
    assert settings.timeout_s == 5.0
    assert settings.max_retries == 3
    assert settings.retry_backoff_s == 2.0
    assert settings.concurrency == 8
    assert settings.politeness_delay_s == 0.0
    assert settings.entity_ttl_s == 60
    assert settings.snapshot_ttl_s == 7 * DAY_S
    assert settings.run_hour == 23


def test_non_finite_values_fall_back_to_defaults():
    settings = WarmSettings(
        timeout_s=float("nan"),
        retry_backoff_s=float("nan"),
        concurrency=float("inf"),
        snapshot_ttl_s=float("-inf"),
        run_hour=float("nan"),
    )
    assert settings.timeout_s == 20.0
    assert settings.retry_backoff_s == 0.3
    assert settings.concurrency == 8
    assert settings.snapshot_ttl_s == 60
    assert settings.run_hour == 6

    with preserved_env():
        os.environ["PREWARM_TIMEOUT_S"] = "nan"
        os.environ["PREWARM_RETRY_BACKOFF_S"] = "NaN"
        os.environ["PREWARM_CONCURRENCY"] = "inf"
        os.environ["PREWARM_ENTITY_TTL_S"] = "-inf"
        from_env = WarmSettings.from_env()

    assert from_env.timeout_s == 20.0
    assert from_env.retry_backoff_s == 0.3
    assert from_env.concurrency == 4
    assert from_env.entity_ttl_s == 2 * HOUR_S


def test_list_base_urls_override_per_snapshot():
    with preserved_env():
        os.environ["PREWARM_UPSTREAM_BASE_URL"] = "https://core.example/api"
        os.environ["PREWARM_LIST_BASE_URLS"] = (
            "Companies=https://companies.example/api, sectors=https://sectors.example/api,broken"
        )
        settings = WarmSettings.from_env()

    assert settings.list_base_urls == (
        ("companies", "https://companies.example/api"),
        ("sectors", "https://sectors.example/api"),
    )
    assert settings.base_url_for("companies") == "https://companies.example/api"
    assert settings.base_url_for("investors") == "https://core.example/api"


def test_from_env_reads_prefixed_and_legacy_names():
    with preserved_env():
        for name in list(os.environ):
            if name.startswith(("PREWARM_", "CRON_")):
                os.environ.pop(name)
        os.environ["PREWARM_UPSTREAM_BASE_URL"] = "https://up.example/api"
        os.environ["PREWARM_CONCURRENCY"] = "2"
        os.environ["PREWARM_CACHE_PARTIAL"] = "true"
        os.environ["PREWARM_RUN_HOUR"] = "7"
        os.environ["PREWARM_SERVICE_CREDENTIALS"] = "login, service"
        os.environ["CRON_MANUAL_SECRET"] = "legacy-secret"
        os.environ["PREWARM_TIMEOUT_S"] = "not-a-number"

        settings = WarmSettings.from_env()

    assert settings.upstream_base_url == "https://up.example/api"
    assert settings.concurrency == 2
    assert settings.cache_partial_results is True
    assert settings.run_hour == 7
    assert settings.service_credentials == ("login", "service")
    assert settings.manual_secret == "legacy-secret"
    assert settings.timeout_s == 20.0


def test_redis_url_is_built_from_parts():
    with preserved_env():
        for name in ("PREWARM_REDIS_URL", "REDIS_URL"):
            os.environ.pop(name, None)
        os.environ["PREWARM_REDIS_HOST"] = "cache"
        os.environ["PREWARM_REDIS_PASSWORD"] = "pw"
        os.environ["PREWARM_REDIS_PORT"] = "6380"
        os.environ.pop("PREWARM_REDIS_DB", None)
        assert WarmSettings().redis_url() == "redis://:pw@cache:6380/0"

        os.environ["REDIS_URL"] = "redis://elsewhere:6379/2"
        assert WarmSettings().redis_url() == "redis://elsewhere:6379/2"


def test_classify_error_maps_transport_errors():
    assert isinstance(classify_error(TimeoutError()), UpstreamTimeout)
    assert isinstance(classify_error(ConnectionResetError("reset")), UpstreamNetworkError)
    assert isinstance(classify_error(KeyError("odd")), UpstreamNetworkError)
    http = UpstreamHttpError(502)
    assert classify_error(http) is http
    assert str(http) == "HTTP 502"


def test_noop_metrics_accepts_any_counter():
    NoOpWarmMetrics().incr("cache_hit_total", tags={"view": "x"})


def test_prometheus_metrics_counts_with_labels():
    prometheus_client = pytest.importorskip("prometheus_client")
    registry = prometheus_client.CollectorRegistry()
    metrics = PrometheusWarmMetrics(registry=registry)

    metrics.incr("warm_target_total", tags={"outcome": "success"})
    metrics.incr("warm_target_total", tags={"outcome": "success"})
    metrics.incr("warm_target_total", tags={"outcome": "failed"})

    assert registry.get_sample_value(
        "prewarm_warm_target_total", {"outcome": "success"}
    ) == 2.0
    assert registry.get_sample_value(
        "prewarm_warm_target_total", {"outcome": "failed"}
    ) == 1.0


def test_prometheus_metrics_registers_warm_counters_up_front():
    prometheus_client = pytest.importorskip("prometheus_client")
    registry = prometheus_client.CollectorRegistry()
    metrics = PrometheusWarmMetrics(registry=registry)

    metrics.incr("cache_hit_total", tags={"view": "sector_overview"})
    metrics.incr("cache_miss_total", tags={"view": "sector_overview", "extra": "ignored"})
    metrics.incr("background_sweep_total")
    metrics.incr("not_a_warm_counter", tags={"view": "x"})

    assert registry.get_sample_value(
        "prewarm_cache_hit_total", {"view": "sector_overview"}
    ) == 1.0
    assert registry.get_sample_value(
        "prewarm_cache_miss_total", {"view": "sector_overview"}
    ) == 1.0
    assert registry.get_sample_value(
        "prewarm_background_sweep_total", {"outcome": "unknown"}
    ) == 1.0
    assert registry.get_sample_value("prewarm_not_a_warm_counter_total", {"view": "x"}) is None
    names = {metric.name for metric in registry.collect()}
    assert {"prewarm_cache_hit", "prewarm_warm_target", "prewarm_background_sweep"} <= names
