"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

JSON error bodies for the HTTP surface. Never carries tracebacks.
"""

from __future__ import annotations

from typing import Any

from ..errors import AuthFailure, PrewarmError, UpstreamHttpError


def error_body(error: PrewarmError, *, message: str | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {
        "success": False,
        "error": message or str(error) or error.code,
        "code": error.code,
    }
    if isinstance(error, AuthFailure):
        body["tried"] = list(error.tried)
        body["details"] = dict(error.details)
    if isinstance(error, UpstreamHttpError):
        body["upstreamStatus"] = error.status
    return body


def error_status(error: PrewarmError) -> int:
    if isinstance(error, UpstreamHttpError):
        return 502
    return error.status_code
