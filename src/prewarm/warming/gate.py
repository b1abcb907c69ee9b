"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Decision gate for scheduled warm jobs.

The scheduler fires more often than once a day and in a different base
timezone than the target hour, so each invocation asks the gate whether
it is the configured local hour. A manual override with a valid
pre-shared secret always runs; an override with a bad secret is
unauthorized rather than silently skipped.
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

GateOutcome = Literal["run", "skip", "unauthorized"]


@dataclass(frozen=True, slots=True)
class GateDecision:
    outcome: GateOutcome
    local_hour: int
    reason: str | None = None

    @property
    def should_run(self) -> bool:
        return self.outcome == "run"

    @property
    def unauthorized(self) -> bool:
        return self.outcome == "unauthorized"


def resolve_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {name}") from exc


def local_hour(now: datetime, timezone: str) -> int:
    """Hour of `now` in `timezone`. Naive datetimes are taken as UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=dt_timezone.utc)
    return now.astimezone(resolve_timezone(timezone)).hour


def verify_manual_secret(provided: str | None, configured: str | None) -> bool:
    if not configured or not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), configured.encode("utf-8"))


def should_run(
    now: datetime,
    configured_hour: int,
    timezone: str,
    manual_override_provided: bool,
    manual_secret_valid: bool,
) -> GateDecision:
    hour = local_hour(now, timezone)
    if manual_override_provided:
        if manual_secret_valid:
            return GateDecision(outcome="run", local_hour=hour, reason="manual override")
        return GateDecision(
            outcome="unauthorized", local_hour=hour, reason="invalid manual secret"
        )
    if hour == configured_hour:
        return GateDecision(outcome="run", local_hour=hour)
    return GateDecision(
        outcome="skip",
        local_hour=hour,
        reason=f"Not {configured_hour:02d}:00 {timezone}",
    )
