#!/usr/bin/env python3
"""
Run one warm job outside the HTTP server, ignoring the hour gate.

Usage examples:
  PYTHONPATH=src python scripts/warm_once.py sectors
  PYTHONPATH=src python scripts/warm_once.py companies --snapshot-backend inmemory
  PYTHONPATH=src python scripts/warm_once.py sectors --concurrency 2 --json
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys

from prewarm.errors import PrewarmError
from prewarm.runtime import WarmRuntime
from prewarm.settings import WarmSettings

JOBS = ("sectors", "companies", "individuals", "investors", "sectors-list")


async def run_job(
    *,
    job: str,
    concurrency: int | None,
    entity_backend: str | None,
    snapshot_backend: str | None,
    as_json: bool,
) -> int:
    settings = WarmSettings.from_env()
    overrides: dict[str, object] = {}
    if concurrency is not None:
        overrides["concurrency"] = concurrency
    if entity_backend:
        overrides["entity_cache_backend"] = entity_backend
    if snapshot_backend:
        overrides["snapshot_cache_backend"] = snapshot_backend
    if overrides:
        settings = dataclasses.replace(settings, **overrides)

    runtime = WarmRuntime.from_settings(settings)
    try:
        credential = await runtime.service_credentials.resolve()
        summary = await runtime.jobs[job].run(token=credential.token)
    except PrewarmError as exc:
        print(f"error={exc.code} {exc}", file=sys.stderr)
        return 1
    finally:
        await runtime.aclose()

    if as_json:
        print(json.dumps(summary.to_dict(), indent=2))
    else:
        print(f"job={summary.job}")
        print(f"targets={summary.total}")
        print(f"warmed={summary.succeeded}")
        print(f"partial={summary.partial}")
        print(f"failed={summary.failed}")
        print(f"elapsed_ms={summary.elapsed_ms:.0f}")
    return 0 if summary.total == 0 or summary.succeeded else 2


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Warm one cache job now")
    parser.add_argument("job", choices=JOBS)
    parser.add_argument("--concurrency", type=int, default=None)
    parser.add_argument("--entity-backend", choices=("inmemory", "redis"), default=None)
    parser.add_argument("--snapshot-backend", choices=("inmemory", "redis"), default=None)
    parser.add_argument("--json", action="store_true", dest="as_json")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    sys.exit(
        asyncio.run(
            run_job(
                job=args.job,
                concurrency=args.concurrency,
                entity_backend=args.entity_backend,
                snapshot_backend=args.snapshot_backend,
                as_json=args.as_json,
            )
        )
    )


if __name__ == "__main__":
    main()
