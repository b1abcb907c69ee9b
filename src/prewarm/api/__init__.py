"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

HTTP surface for warm jobs and cached read endpoints.

Run locally::

    uvicorn prewarm.api:create_app_from_env --factory --port 8000
"""

from .app import (
    INTERNAL_MARKER_HEADER,
    MANUAL_SECRET_HEADERS,
    WarmServiceHost,
    WarmServiceHostError,
    create_app_from_env,
)
from .responses import error_body, error_status

__all__ = [
    "WarmServiceHost",
    "WarmServiceHostError",
    "create_app_from_env",
    "MANUAL_SECRET_HEADERS",
    "INTERNAL_MARKER_HEADER",
    "error_body",
    "error_status",
]
