"""
Periodic sweep scheduler.

Runs a reconciliation sweep once per interval (hourly by default) in a
background asyncio task. A sweep is awaited before the next sleep starts,
so runs never overlap.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..config import DEFAULT_INTERVAL_SECONDS, ReconciliationSettings
from .engine import ReconciliationEngine
from .models import SweepSummary

logger = logging.getLogger(__name__)


@dataclass
class SweepScheduler:
    """
    Background service that triggers reconciliation sweeps.

    Usage:
        scheduler = SweepScheduler(engine=engine, interval_seconds=3600)
        await scheduler.start()
        # ... later ...
        await scheduler.stop()
    """

    engine: ReconciliationEngine
    settings_loader: Callable[[], ReconciliationSettings] = ReconciliationSettings.from_env
    interval_seconds: int = DEFAULT_INTERVAL_SECONDS
    run_on_start: bool = False
    enabled: bool = True

    # Internal state
    _running: bool = field(default=False, repr=False)
    _task: Optional["asyncio.Task[None]"] = field(default=None, repr=False)
    _run_count: int = field(default=0, repr=False)
    last_summary: Optional[SweepSummary] = field(default=None, repr=False)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def run_count(self) -> int:
        return self._run_count

    async def start(self) -> Optional["asyncio.Task[None]"]:
        """Start the scheduler background task.

        Returns:
            The background task, or None if disabled.
        """
        if not self.enabled:
            logger.info("Reconciliation scheduler disabled")
            return None

        if self._running:
            logger.warning("Reconciliation scheduler already running")
            return self._task

        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Reconciliation scheduler started (interval={self.interval_seconds}s)")
        return self._task

    async def stop(self) -> None:
        """Stop the scheduler."""
        if not self._running:
            return

        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info(f"Reconciliation scheduler stopped after {self._run_count} sweeps")

    async def run_once(self) -> SweepSummary:
        """Run a single sweep with freshly loaded settings."""
        settings = self.settings_loader()
        summary = await self.engine.run_sweep(settings)
        self._run_count += 1
        self.last_summary = summary
        return summary

    async def _loop(self) -> None:
        if self.run_on_start:
            await self._safe_run()

        while self._running:
            await asyncio.sleep(self.interval_seconds)
            await self._safe_run()

    async def _safe_run(self) -> None:
        try:
            summary = await self.run_once()
            logger.info(
                f"Scheduled sweep {summary.id}: checked {summary.checked}, "
                f"reconciled {summary.reconciled}"
            )
        except Exception as e:
            logger.error(f"Scheduled reconciliation sweep failed: {e}")
