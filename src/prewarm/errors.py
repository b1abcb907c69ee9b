"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Error taxonomy for upstream calls, credentials and cache backends.
"""

from __future__ import annotations

import asyncio
import socket

import httpx


class PrewarmError(RuntimeError):
    """Base error carrying a machine-readable code for HTTP responses."""

    code = "internal_error"
    status_code = 500


class UpstreamTimeout(PrewarmError):
    """Raised when one upstream call exceeds its timer."""

    code = "upstream_timeout"


class UpstreamNetworkError(PrewarmError):
    """Raised when the upstream call fails before any response arrives."""

    code = "upstream_network"


class UpstreamHttpError(PrewarmError):
    """Raised for a non-2xx upstream response. Never retried."""

    code = "upstream_http"

    def __init__(self, status: int, body: str = "") -> None:
        super().__init__(f"HTTP {status}")
        self.status = status
        self.body = body


class UpstreamDecodeError(PrewarmError):
    """Raised when a 2xx upstream body is not valid JSON."""

    code = "upstream_decode"

    def __init__(self, message: str, *, status: int = 0) -> None:
        super().__init__(message)
        self.status = status


class AggregateUnavailable(PrewarmError):
    """Raised when every upstream call for an on-demand view failed."""

    code = "upstream_unavailable"


class NoWarmTargets(PrewarmError):
    """Raised when a sweep discovers nothing to warm."""

    code = "no_targets"


class AuthFailure(PrewarmError):
    """Raised when no credential source yields an upstream token."""

    code = "auth_failure"

    def __init__(self, message: str, *, tried: list[str], details: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.tried = list(tried)
        self.details = dict(details or {})


class CacheBackendUnavailable(PrewarmError):
    """Raised when a cache backend cannot be read or written."""

    code = "cache_unavailable"


class Unauthorized(PrewarmError):
    """Raised for a missing or invalid manual-trigger secret or user token."""

    code = "unauthorized"
    status_code = 401


def classify_error(error: BaseException) -> PrewarmError:
    """Classify transport exceptions into the upstream error taxonomy."""
    if isinstance(error, PrewarmError):
        return error
    if isinstance(error, (asyncio.TimeoutError, TimeoutError, socket.timeout, httpx.TimeoutException)):
        return UpstreamTimeout(str(error) or "timed out")
    if isinstance(error, (httpx.TransportError, ConnectionError, OSError)):
        return UpstreamNetworkError(str(error) or type(error).__name__)
    return UpstreamNetworkError(f"{type(error).__name__}: {error}")
