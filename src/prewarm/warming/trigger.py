"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

At-most-one background sweep: trigger flags and the task that owns them.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from ..metrics import NoOpWarmMetrics, WarmMetrics
from ..types import WarmJobSummary

logger = logging.getLogger("prewarm.warming.trigger")

SweepFactory = Callable[[], Awaitable[WarmJobSummary]]


@dataclass(frozen=True, slots=True)
class TriggerSnapshot:
    triggered: bool
    in_progress: bool


class TriggerState:
    """
    Process-wide `triggered` / `in_progress` flags with compare-and-set.

    `try_begin` flips both flags only when both are clear, under a lock,
    so two concurrent cold requests cannot both win. Successful sweeps
    leave `triggered` set for the process lifetime; failed sweeps clear
    it so a later cold request can retry.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._triggered = False
        self._in_progress = False

    def try_begin(self) -> bool:
        with self._lock:
            if self._triggered or self._in_progress:
                return False
            self._triggered = True
            self._in_progress = True
            return True

    def finish(self, *, success: bool) -> None:
        with self._lock:
            self._in_progress = False
            if not success:
                self._triggered = False

    def reset(self) -> None:
        with self._lock:
            self._triggered = False
            self._in_progress = False

    def snapshot(self) -> TriggerSnapshot:
        with self._lock:
            return TriggerSnapshot(triggered=self._triggered, in_progress=self._in_progress)


class BackgroundWarmTrigger:
    """Spawn the full-dataset sweep as a tracked background task."""

    def __init__(
        self,
        state: TriggerState,
        sweep: SweepFactory,
        *,
        metrics: WarmMetrics | None = None,
    ) -> None:
        self._state = state
        self._sweep = sweep
        self._metrics: WarmMetrics = metrics or NoOpWarmMetrics()
        self._tasks: set[asyncio.Task[WarmJobSummary]] = set()
        self.last_summary: WarmJobSummary | None = None
        self.last_error: BaseException | None = None

    @property
    def state(self) -> TriggerState:
        return self._state

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    def fire(self) -> bool:
        """Start a sweep unless one was already triggered. Returns whether this call won."""
        if not self._state.try_begin():
            logger.debug("Background warm already triggered or in progress, skipping")
            return False

        try:
            task = asyncio.get_running_loop().create_task(self._sweep())
        except Exception:
            self._state.finish(success=False)
            raise
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        self._metrics.incr("background_sweep_total", tags={"outcome": "started"})
        logger.info("Background cache warm started")
        return True

    def _task_done(self, task: asyncio.Task[WarmJobSummary]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            success = False
            self.last_error = asyncio.CancelledError()
            logger.warning("Background cache warm cancelled")
        elif task.exception() is not None:
            success = False
            self.last_error = task.exception()
            logger.error(
                "Background cache warm failed: %s",
                self.last_error,
                exc_info=self.last_error,
            )
        else:
            success = True
            self.last_summary = task.result()
            self.last_error = None
            logger.info(
                "Background cache warm finished (warmed=%d, failed=%d)",
                self.last_summary.succeeded,
                self.last_summary.failed,
            )
        self._state.finish(success=success)
        self._metrics.incr(
            "background_sweep_total",
            tags={"outcome": "success" if success else "failed"},
        )

    async def wait_idle(self) -> None:
        """Wait for in-flight sweeps to finish (their errors stay in `last_error`)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
            # Done callbacks run on the next loop iteration.
            await asyncio.sleep(0)

    async def shutdown(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.wait_idle()
