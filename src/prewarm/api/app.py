"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

FastAPI host exposing scheduled warm endpoints and cached read endpoints.

The `x-cron-request: true` marker switches the overview read to the service
credential chain. It is only honored when a valid manual secret header comes
with it; otherwise the caller is treated as a user.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from starlette.requests import Request

from ..errors import AuthFailure, PrewarmError, Unauthorized
from ..runtime import WarmRuntime
from ..upstream import CredentialChain, CredentialContext, filter_by_name
from ..warming import SnapshotServer, WarmJob, should_run, verify_manual_secret
from ..warming.gate import resolve_timezone
from .responses import error_body, error_status

logger = logging.getLogger("prewarm.api")

MANUAL_SECRET_HEADERS = ("x-manual-secret", "x-cron-manual-secret")
INTERNAL_MARKER_HEADER = "x-cron-request"


class WarmServiceHostError(RuntimeError):
    """Raised for invalid service host setup."""


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _provided_secret(request: Request) -> str | None:
    return next(
        (request.headers[h] for h in MANUAL_SECRET_HEADERS if h in request.headers),
        None,
    )


def _credential_context(request: Request) -> CredentialContext:
    return CredentialContext(
        headers={str(k): str(v) for k, v in request.headers.items()},
        cookies=dict(request.cookies),
    )


class WarmServiceHost:
    """Expose warm jobs and cached views via FastAPI endpoints."""

    def __init__(
        self,
        *,
        runtime: WarmRuntime,
        service_name: str = "prewarm",
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        try:
            resolve_timezone(runtime.settings.timezone)
        except ValueError as exc:
            raise WarmServiceHostError(str(exc)) from exc
        self.runtime = runtime
        self.service_name = service_name
        self._clock = clock

    def create_app(self):
        """Create and return FastAPI app exposing warm and read endpoints."""
        try:
            from fastapi import FastAPI
            from fastapi.responses import JSONResponse
        except Exception as exc:  # pragma: no cover - optional runtime path
            raise WarmServiceHostError(
                "FastAPI is required to host prewarm endpoints"
            ) from exc

        runtime = self.runtime
        settings = runtime.settings

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            yield
            await runtime.aclose()

        app = FastAPI(title=self.service_name, lifespan=lifespan)

        def _error(exc: PrewarmError, *, message: str | None = None, status_code: int | None = None):
            return JSONResponse(
                error_body(exc, message=message),
                status_code=status_code or error_status(exc),
            )

        def _job_endpoint(job_name: str, job: WarmJob):
            async def run_job(request: Request):
                force = request.query_params.get("force", "").strip().lower() in ("1", "true")
                provided = _provided_secret(request)
                decision = should_run(
                    self._clock(),
                    settings.run_hour,
                    settings.timezone,
                    force,
                    verify_manual_secret(provided, settings.manual_secret),
                )
                if decision.unauthorized:
                    logger.warning("Rejected manual trigger of %s: %s", job_name, decision.reason)
                    return _error(Unauthorized("Unauthorized"))
                if not decision.should_run:
                    logger.info(
                        "Skipping %s (local hour=%02d)", job_name, decision.local_hour
                    )
                    return {
                        "success": True,
                        "skipped": True,
                        "reason": decision.reason,
                        "currentHour": decision.local_hour,
                    }

                try:
                    credential = await runtime.service_credentials.resolve(
                        _credential_context(request)
                    )
                    logger.info("Running %s with %s credentials", job_name, credential.source)
                    summary = await job.run(token=credential.token)
                except AuthFailure as exc:
                    logger.error("Cannot authenticate %s: tried %s", job_name, exc.tried)
                    return _error(exc, message="Failed to authenticate with upstream", status_code=500)
                except PrewarmError as exc:
                    logger.error("Warm job %s failed: %s", job_name, exc)
                    return _error(exc, status_code=500)

                body = summary.to_dict()
                if summary.total and summary.succeeded == 0:
                    body["success"] = False
                    body["error"] = "All warm targets failed"
                    return JSONResponse(body, status_code=502)
                return body

            run_job.__name__ = f"warm_{job_name.replace('-', '_')}"
            return run_job

        def _list_endpoint(server: SnapshotServer):
            async def list_view(request: Request):
                params = dict(request.query_params)
                search = ""
                if server.snapshot.name == "sectors":
                    search = params.pop("search", "")
                try:
                    credential = await runtime.user_credentials.resolve(_credential_context(request))
                except AuthFailure:
                    return JSONResponse({"error": "Unauthorized", "code": "unauthorized"}, status_code=401)
                try:
                    result = await server.serve(params, token=credential.token)
                except PrewarmError as exc:
                    logger.error("List %s failed: %s", server.snapshot.name, exc)
                    return _error(exc)
                body = result.to_body()
                if search:
                    body = filter_by_name(body, search)
                return body

            list_view.__name__ = f"list_{server.snapshot.name}"
            return list_view

        for job_name, job in runtime.jobs.items():
            app.add_api_route(
                f"/cron/warm-{job_name}",
                _job_endpoint(job_name, job),
                methods=["GET", "POST"],
            )

        for name, server in runtime.list_servers.items():
            app.add_api_route(f"/{name}/list", _list_endpoint(server), methods=["GET"])

        @app.get("/sector/{sector_id}/overview")
        async def sector_overview(sector_id: str, request: Request) -> Any:
            internal = request.headers.get(INTERNAL_MARKER_HEADER, "").lower() == "true"
            if internal and not verify_manual_secret(
                _provided_secret(request), settings.manual_secret
            ):
                logger.warning("Ignoring %s without a valid manual secret", INTERNAL_MARKER_HEADER)
                internal = False
            chain: CredentialChain = (
                runtime.service_credentials if internal else runtime.user_credentials
            )
            try:
                credential = await chain.resolve(_credential_context(request))
            except AuthFailure:
                return JSONResponse({"error": "Unauthorized", "code": "unauthorized"}, status_code=401)

            try:
                result = await runtime.overview_server.serve(sector_id, token=credential.token)
            except PrewarmError as exc:
                logger.error("Overview for sector %s failed: %s", sector_id, exc)
                return JSONResponse(
                    {"error": "Failed to fetch overview data", "code": exc.code},
                    status_code=500,
                )
            return result.to_body()

        @app.get("/health")
        async def health() -> dict[str, Any]:
            snapshot = runtime.trigger.state.snapshot()
            return {
                "status": "ok",
                "service": self.service_name,
                "backgroundWarm": {
                    "triggered": snapshot.triggered,
                    "inProgress": snapshot.in_progress,
                },
                "jobs": sorted(runtime.jobs),
            }

        return app


def create_app_from_env():
    """Build the app from `PREWARM_*` environment variables (uvicorn factory)."""
    return WarmServiceHost(runtime=WarmRuntime.from_settings()).create_app()
