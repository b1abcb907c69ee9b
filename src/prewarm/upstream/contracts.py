"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Typed policies for upstream calls.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded retry with a short fixed backoff, for timeouts and network errors only."""

    max_retries: int = 1
    backoff_s: float = 0.3


@dataclass(frozen=True, slots=True)
class TimeoutPolicy:
    """Per-call timer. Each request in a batch gets its own."""

    request_timeout_s: float = 20.0
