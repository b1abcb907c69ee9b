"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Concurrent multi-endpoint fetch with per-call timeout and bounded retry.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Awaitable, Callable, Sequence

import httpx

from ..errors import (
    UpstreamDecodeError,
    UpstreamHttpError,
    UpstreamNetworkError,
    UpstreamTimeout,
    classify_error,
)
from ..settings import MAX_RETRIES, MAX_TIMEOUT_S
from ..types import ErrorKind, JSONValue, UpstreamCallResult, UpstreamRequest
from .contracts import RetryPolicy, TimeoutPolicy

logger = logging.getLogger("prewarm.upstream.aggregator")

Sleep = Callable[[float], Awaitable[None]]


def _error_kind(error: Exception) -> ErrorKind:
    if isinstance(error, UpstreamTimeout):
        return "timeout"
    if isinstance(error, UpstreamHttpError):
        return "http"
    if isinstance(error, UpstreamDecodeError):
        return "decode"
    return "network"


def _short_label(url: str) -> str:
    return url.split("?")[0].rstrip("/").split("/")[-1]


class UpstreamAggregator:
    """
    Fetch every request of one aggregate concurrently and report per-call results.

    `fetch_all` never raises for upstream failures. Timeouts and network
    errors are retried up to `max_retries` times with a fixed backoff; a
    non-2xx response is the upstream's answer and is returned as-is.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: TimeoutPolicy | None = None,
        retry: RetryPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout or TimeoutPolicy()
        self._retry = retry or RetryPolicy()
        self._sleep = sleep

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout.request_timeout_s + 1.0),
                follow_redirects=True,
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._owns_client and self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def fetch_all(
        self,
        requests: Sequence[UpstreamRequest],
        *,
        token: str | None = None,
        timeout_s: float | None = None,
        max_retries: int | None = None,
    ) -> list[UpstreamCallResult]:
        """
        Issue all requests concurrently and wait for every one of them.

        Per-call overrides are bounded like the configured policy: `max_retries`
        is clamped into [0, MAX_RETRIES] and `timeout_s` is capped at
        MAX_TIMEOUT_S. A shorter timeout is honored; a non-positive or
        non-finite one falls back to the policy timeout.
        """
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        timeout = self._timeout.request_timeout_s
        if timeout_s is not None and math.isfinite(timeout_s) and timeout_s > 0:
            timeout = min(timeout_s, MAX_TIMEOUT_S)
        retries = self._retry.max_retries
        if max_retries is not None:
            retries = min(max(0, int(max_retries)), MAX_RETRIES)

        results = await asyncio.gather(
            *(
                self._fetch_one(request, headers=headers, timeout_s=timeout, retries=retries)
                for request in requests
            )
        )
        return list(results)

    async def _fetch_one(
        self,
        request: UpstreamRequest,
        *,
        headers: dict[str, str],
        timeout_s: float,
        retries: int,
    ) -> UpstreamCallResult:
        started = time.perf_counter()
        last: Exception = UpstreamNetworkError("no attempt made")
        status = 0
        attempts = 0
        for attempt in range(retries + 1):
            attempts += 1
            try:
                status, data = await self._attempt(request, headers=headers, timeout_s=timeout_s)
            except (UpstreamHttpError, UpstreamDecodeError) as error:
                last = error
                status = getattr(error, "status", status)
                break
            except Exception as error:  # noqa: BLE001
                last = classify_error(error)
                if attempt < retries:
                    logger.warning(
                        "Upstream %s failed (%s), retry %d/%d in %.2fs",
                        request.label,
                        last,
                        attempt + 1,
                        retries,
                        self._retry.backoff_s,
                    )
                    await self._sleep(self._retry.backoff_s)
                    continue
                break
            else:
                elapsed_ms = (time.perf_counter() - started) * 1000
                logger.debug(
                    "Upstream %s ok in %.0fms (status=%d)",
                    _short_label(request.url),
                    elapsed_ms,
                    status,
                )
                return UpstreamCallResult(
                    label=request.label,
                    ok=True,
                    status=status,
                    data=data,
                    elapsed_ms=elapsed_ms,
                    attempts=attempts,
                )

        elapsed_ms = (time.perf_counter() - started) * 1000
        kind = _error_kind(last)
        logger.info(
            "Upstream %s failed after %.0fms and %d attempt(s): %s",
            request.label,
            elapsed_ms,
            attempts,
            last,
        )
        return UpstreamCallResult(
            label=request.label,
            ok=False,
            status=status,
            data=None,
            error=f"{kind}: {last}",
            elapsed_ms=elapsed_ms,
            error_kind=kind,
            attempts=attempts,
        )

    async def _attempt(
        self,
        request: UpstreamRequest,
        *,
        headers: dict[str, str],
        timeout_s: float,
    ) -> tuple[int, JSONValue]:
        client = await self._get_client()
        try:
            # Cancelling the in-flight get closes its connection.
            response = await asyncio.wait_for(
                client.get(request.url, headers=headers),
                timeout=timeout_s,
            )
        except asyncio.TimeoutError as exc:
            raise UpstreamTimeout(f"timed out after {timeout_s:.2f}s") from exc

        if not response.is_success:
            raise UpstreamHttpError(response.status_code, response.text[:500])
        try:
            return response.status_code, response.json()
        except ValueError as exc:
            raise UpstreamDecodeError(
                f"invalid JSON body from {request.label}", status=response.status_code
            ) from exc
