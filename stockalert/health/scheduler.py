"""Periodic and manual triggering of health checks."""

from __future__ import annotations

import asyncio

import structlog

from stockalert.core.types import HealthCheckReport
from stockalert.health.orchestrator import HealthCheckOrchestrator

logger = structlog.get_logger(__name__)


class HealthCheckScheduler:
    """Background task that runs a non-forced health check on an interval.

    Scheduled runs go through the orchestrator's throttle like any other
    non-forced call.  Manual runs use ``run_now`` (awaited, for reporting
    statistics back to the user) or ``trigger`` (fire-and-forget).

    Usage::

        scheduler = HealthCheckScheduler(orchestrator, interval_secs=3600)
        await scheduler.start()
        # ...
        await scheduler.stop()
    """

    def __init__(
        self,
        orchestrator: HealthCheckOrchestrator,
        interval_secs: float = 3600.0,
    ) -> None:
        self._orchestrator = orchestrator
        self._interval_secs = interval_secs
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self._background: set[asyncio.Task[HealthCheckReport]] = set()
        self._run_count = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def run_count(self) -> int:
        """Number of scheduled loop iterations that reached the orchestrator."""
        return self._run_count

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("health_scheduler_started", interval_secs=self._interval_secs)

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("health_scheduler_stopped")

    async def run_now(self, force: bool = True) -> HealthCheckReport:
        """Run a health check immediately and return its report."""
        return await self._orchestrator.run_health_check(force=force)

    def trigger(self, force: bool = False) -> asyncio.Task[HealthCheckReport]:
        """Start a health check in the background without awaiting it."""
        task = asyncio.create_task(self._orchestrator.run_health_check(force=force))
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task[HealthCheckReport]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("health_check_background_error", error=repr(exc))

    # ── Internal loop ───────────────────────────────────────────

    async def _loop(self) -> None:
        while self._running:
            try:
                self._run_count += 1
                await self._orchestrator.run_health_check(force=False)
            except asyncio.CancelledError:
                return
            except Exception:
                logger.exception("health_scheduler_loop_error")
            try:
                await asyncio.sleep(self._interval_secs)
            except asyncio.CancelledError:
                return
