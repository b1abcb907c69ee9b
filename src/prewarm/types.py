"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Shared value types for cache warming: targets, call results, warm results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, TypeAlias

JSONPrimitive: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONPrimitive | list["JSONValue"] | dict[str, "JSONValue"]
JSONObject: TypeAlias = dict[str, JSONValue]

ErrorKind = Literal["timeout", "network", "http", "decode"]


@dataclass(frozen=True, slots=True)
class UpstreamRequest:
    """One upstream GET needed to build an aggregate view."""

    url: str
    label: str
    required: bool = True


@dataclass(frozen=True, slots=True)
class WarmTarget:
    """One logical cache key and the upstream calls that populate it."""

    entity_id: str
    upstream_requests: tuple[UpstreamRequest, ...]


@dataclass(frozen=True, slots=True)
class UpstreamCallResult:
    """
    Outcome of one upstream call after retries.

    Attributes:
        label: Request label, unique within one target.
        ok: Whether the call returned a 2xx JSON body.
        status: HTTP status, or 0 when no response was received.
        data: Decoded JSON body for successful calls.
        error: Human-readable error, prefixed with the error kind.
        elapsed_ms: Wall time across all attempts.
        error_kind: `timeout`, `network`, `http` or `decode` on failure.
        attempts: Number of attempts made, including the first.
    """

    label: str
    ok: bool
    status: int
    data: JSONValue = None
    error: str | None = None
    elapsed_ms: float = 0.0
    error_kind: ErrorKind | None = None
    attempts: int = 1

    def to_dict(self) -> JSONObject:
        return {
            "label": self.label,
            "ok": self.ok,
            "status": self.status,
            "error": self.error,
            "errorKind": self.error_kind,
            "elapsedMs": round(self.elapsed_ms),
            "attempts": self.attempts,
        }


@dataclass(frozen=True, slots=True)
class WarmResult:
    """Result of one warm attempt for one target. Never persisted."""

    entity_id: str
    succeeded: bool
    partial: bool
    payload: JSONValue
    call_results: tuple[UpstreamCallResult, ...] = ()
    elapsed_ms: float = 0.0
    cached: bool = False
    error: str | None = None

    def result_for(self, label: str) -> UpstreamCallResult | None:
        for result in self.call_results:
            if result.label == label:
                return result
        return None

    def to_dict(self) -> JSONObject:
        if self.succeeded:
            status = "success"
        elif self.partial:
            status = "partial"
        else:
            status = "failed"
        return {
            "entityId": self.entity_id,
            "status": status,
            "cached": self.cached,
            "ms": round(self.elapsed_ms),
            "error": self.error,
            "calls": [result.to_dict() for result in self.call_results],
        }


@dataclass(slots=True)
class WarmJobSummary:
    """Aggregate over one sweep, used only for logging and responses."""

    job: str
    results: list[WarmResult] = field(default_factory=list)
    skipped: int = 0
    elapsed_ms: float = 0.0

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for result in self.results if result.succeeded)

    @property
    def partial(self) -> int:
        return sum(1 for result in self.results if result.partial and not result.succeeded)

    @property
    def failed(self) -> int:
        return sum(1 for result in self.results if not result.succeeded and not result.partial)

    def to_dict(self) -> JSONObject:
        return {
            "success": True,
            "job": self.job,
            "totalMs": round(self.elapsed_ms),
            "warmed": self.succeeded,
            "partial": self.partial,
            "failed": self.failed,
            "skipped": self.skipped,
            "results": [result.to_dict() for result in self.results],
        }
