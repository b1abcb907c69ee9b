"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Warming settings and explicit, clamped config loading.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass

HOUR_S = 60 * 60
DAY_S = 24 * HOUR_S

MIN_TIMEOUT_S = 5.0
MAX_TIMEOUT_S = 120.0
MAX_RETRIES = 3


def _env_first(*names: str, default: str | None = None) -> str | None:
    """
    Return the first non-empty environment variable in `names`.

    Args:
        *names: Environment variable names to check in order.
        default: Value returned if no non-empty variable is found.
    """
    for name in names:
        raw = os.getenv(name)
        if raw is None:
            continue
        value = raw.strip()
        if value:
            return value
    return default


def _env_float(name: str, default: float) -> float:
    raw = _env_first(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if math.isfinite(value) else default


def _env_bool(name: str, default: bool) -> bool:
    raw = _env_first(name)
    if raw is None:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = _env_first(name)
    if raw is None:
        return default
    return tuple(part.strip().lower() for part in raw.split(",") if part.strip())


def _env_mapping(name: str) -> tuple[tuple[str, str], ...]:
    """Parse ``name=value,name=value`` pairs; malformed parts are ignored."""
    raw = _env_first(name)
    if raw is None:
        return ()
    pairs: list[tuple[str, str]] = []
    for part in raw.split(","):
        key, sep, value = part.partition("=")
        if sep and key.strip() and value.strip():
            pairs.append((key.strip().lower(), value.strip()))
    return tuple(pairs)


def clamp(value: float, low: float, high: float, default: float | None = None) -> float:
    """Clamp `value` into [low, high]. NaN becomes `default` (or `low`)."""
    if math.isnan(value):
        return low if default is None else default
    return min(max(value, low), high)


def _bounded_int(value: float, low: int, high: int, default: int) -> int:
    # Clamp before int() so inf cannot overflow.
    return int(clamp(float(value), low, high, default))


@dataclass(frozen=True, slots=True)
class WarmSettings:
    """Explicit settings for cache warming, serving and upstream access."""

    upstream_base_url: str = "http://localhost:8080/api"
    sector_list_path: str = "/Primary_sectors_with_companies_counts"
    list_base_urls: tuple[tuple[str, str], ...] = ()
    auth_url: str | None = None
    auth_email: str | None = None
    auth_password: str | None = None
    service_token: str | None = None
    manual_secret: str | None = None
    auth_cookie_name: str = "auth_token"

    timeout_s: float = 20.0
    max_retries: int = 1
    retry_backoff_s: float = 0.3
    concurrency: int = 4
    politeness_delay_s: float = 0.2

    entity_ttl_s: int = 2 * HOUR_S
    snapshot_ttl_s: int = 26 * HOUR_S
    cache_partial_results: bool = False

    run_hour: int = 6
    timezone: str = "Europe/London"

    entity_cache_backend: str = "inmemory"
    snapshot_cache_backend: str = "redis"
    redis_prefix: str = "prewarm"

    user_credentials: tuple[str, ...] = ("cookie", "header")
    service_credentials: tuple[str, ...] = ("service", "header", "login")

    def __post_init__(self) -> None:
        # Clamp so misconfiguration cannot produce runaway resource usage.
        object.__setattr__(
            self,
            "timeout_s",
            clamp(float(self.timeout_s), MIN_TIMEOUT_S, MAX_TIMEOUT_S, 20.0),
        )
        object.__setattr__(
            self, "max_retries", _bounded_int(self.max_retries, 0, MAX_RETRIES, 1)
        )
        object.__setattr__(
            self, "retry_backoff_s", clamp(float(self.retry_backoff_s), 0.05, 2.0, 0.3)
        )
        object.__setattr__(self, "concurrency", _bounded_int(self.concurrency, 1, 8, 4))
        object.__setattr__(
            self, "politeness_delay_s", clamp(float(self.politeness_delay_s), 0.0, 1.0, 0.2)
        )
        object.__setattr__(
            self, "entity_ttl_s", _bounded_int(self.entity_ttl_s, 60, 7 * DAY_S, 2 * HOUR_S)
        )
        object.__setattr__(
            self, "snapshot_ttl_s", _bounded_int(self.snapshot_ttl_s, 60, 7 * DAY_S, 26 * HOUR_S)
        )
        object.__setattr__(self, "run_hour", _bounded_int(self.run_hour, 0, 23, 6))
        object.__setattr__(
            self,
            "list_base_urls",
            tuple((str(k).lower(), str(v)) for k, v in dict(self.list_base_urls).items()),
        )

    def base_url_for(self, list_name: str) -> str:
        """Upstream base URL for one list snapshot; falls back to `upstream_base_url`."""
        return dict(self.list_base_urls).get(list_name.lower(), self.upstream_base_url)

    @staticmethod
    def from_env() -> "WarmSettings":
        """Load settings from `PREWARM_*` environment variables."""
        return WarmSettings(
            upstream_base_url=_env_first(
                "PREWARM_UPSTREAM_BASE_URL", default="http://localhost:8080/api"
            )
            or "http://localhost:8080/api",
            sector_list_path=_env_first(
                "PREWARM_SECTOR_LIST_PATH",
                default="/Primary_sectors_with_companies_counts",
            )
            or "/Primary_sectors_with_companies_counts",
            list_base_urls=_env_mapping("PREWARM_LIST_BASE_URLS"),
            auth_url=_env_first("PREWARM_AUTH_URL"),
            auth_email=_env_first("PREWARM_AUTH_EMAIL", "CRON_AUTH_EMAIL"),
            auth_password=_env_first("PREWARM_AUTH_PASSWORD", "CRON_AUTH_PASSWORD"),
            service_token=_env_first("PREWARM_SERVICE_TOKEN"),
            manual_secret=_env_first("PREWARM_MANUAL_SECRET", "CRON_MANUAL_SECRET"),
            auth_cookie_name=_env_first("PREWARM_AUTH_COOKIE", default="auth_token")
            or "auth_token",
            timeout_s=_env_float("PREWARM_TIMEOUT_S", 20.0),
            max_retries=int(_env_float("PREWARM_MAX_RETRIES", 1)),
            retry_backoff_s=_env_float("PREWARM_RETRY_BACKOFF_S", 0.3),
            concurrency=int(_env_float("PREWARM_CONCURRENCY", 4)),
            politeness_delay_s=_env_float("PREWARM_POLITENESS_DELAY_S", 0.2),
            entity_ttl_s=int(_env_float("PREWARM_ENTITY_TTL_S", 2 * HOUR_S)),
            snapshot_ttl_s=int(_env_float("PREWARM_SNAPSHOT_TTL_S", 26 * HOUR_S)),
            cache_partial_results=_env_bool("PREWARM_CACHE_PARTIAL", False),
            run_hour=int(_env_float("PREWARM_RUN_HOUR", 6)),
            timezone=_env_first("PREWARM_TIMEZONE", default="Europe/London")
            or "Europe/London",
            entity_cache_backend=(
                _env_first("PREWARM_ENTITY_CACHE_BACKEND", default="inmemory") or "inmemory"
            ).lower(),
            snapshot_cache_backend=(
                _env_first("PREWARM_SNAPSHOT_CACHE_BACKEND", default="redis") or "redis"
            ).lower(),
            redis_prefix=_env_first("PREWARM_REDIS_PREFIX", default="prewarm") or "prewarm",
            user_credentials=_env_list("PREWARM_USER_CREDENTIALS", ("cookie", "header")),
            service_credentials=_env_list(
                "PREWARM_SERVICE_CREDENTIALS", ("service", "header", "login")
            ),
        )

    def redis_url(self) -> str:
        """Resolve Redis URL from `PREWARM_REDIS_URL`, `REDIS_URL` or host parts."""
        url = _env_first("PREWARM_REDIS_URL", "REDIS_URL")
        if url:
            return url
        host = _env_first("PREWARM_REDIS_HOST", default="localhost") or "localhost"
        port = _env_first("PREWARM_REDIS_PORT", default="6379") or "6379"
        db = _env_first("PREWARM_REDIS_DB", default="0") or "0"
        password = _env_first("PREWARM_REDIS_PASSWORD", default="") or ""
        if password:
            return f"redis://:{password}@{host}:{port}/{db}"
        return f"redis://{host}:{port}/{db}"
