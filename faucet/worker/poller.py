"""
Faucet worker loop.

Each tick acquires and fully processes at most one claim, then records a
heartbeat. A failing tick is logged and the loop carries on. Balance checks
piggyback on the loop but are rate-limited to a much longer interval.

Any number of worker processes may run this loop against the same ledger;
row locks taken during acquisition keep them from processing the same claim.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

import structlog

from faucet.core.database import utcnow
from faucet.models import WorkerHealthStatus
from faucet.monitoring.balances import BalanceMonitor
from faucet.monitoring.health import HealthReporter
from .processor import ClaimProcessor, ProcessResult


logger = structlog.get_logger(__name__)


class WorkerStatus(Enum):
    """Status of the worker loop."""
    STOPPED = "stopped"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass
class WorkerStats:
    """Counters for the lifetime of one worker process."""
    ticks: int = 0
    claims_processed: int = 0
    tick_errors: int = 0
    last_tick: Optional[datetime] = None
    last_error: Optional[str] = None
    started_at: Optional[datetime] = None


class FaucetWorker:
    """Timer-driven claim processing loop."""

    def __init__(
        self,
        processor: ClaimProcessor,
        health: HealthReporter,
        balance_monitor: Optional[BalanceMonitor] = None,
        poll_interval: float = 10.0,
        balance_check_interval: float = 1800.0,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.processor = processor
        self.health = health
        self.balance_monitor = balance_monitor
        self.poll_interval = poll_interval
        self.balance_check_interval = balance_check_interval
        self.monotonic = monotonic

        self.status = WorkerStatus.STOPPED
        self.stats = WorkerStats()
        self._stop_event = asyncio.Event()
        self._last_balance_check: Optional[float] = None
        self.logger = logger.bind(service="faucet_worker")

    async def run(self) -> None:
        """Run ticks until `stop()` is called."""
        if self.status != WorkerStatus.STOPPED:
            self.logger.warning("Worker already running", current_status=self.status.value)
            return

        self.status = WorkerStatus.RUNNING
        self.stats.started_at = utcnow()
        self._stop_event.clear()
        await self.health.heartbeat(WorkerHealthStatus.STARTING)

        self.logger.info(
            "Faucet worker started",
            poll_interval=self.poll_interval,
            balance_check_interval=self.balance_check_interval,
        )

        try:
            while not self._stop_event.is_set():
                await self.run_once()
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.poll_interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            self.status = WorkerStatus.STOPPED
            self.logger.info(
                "Faucet worker stopped",
                ticks=self.stats.ticks,
                claims_processed=self.stats.claims_processed,
                tick_errors=self.stats.tick_errors,
            )

    def stop(self) -> None:
        """Ask the loop to exit after the current tick."""
        if self.status == WorkerStatus.RUNNING:
            self.status = WorkerStatus.STOPPING
            self.logger.info("Stopping faucet worker")
        self._stop_event.set()

    async def run_once(self) -> Optional[ProcessResult]:
        """One tick: process at most one claim, heartbeat, maybe check balances."""
        self.stats.ticks += 1
        self.stats.last_tick = utcnow()
        result = None

        try:
            result = await self.processor.process_next()
        except Exception as e:
            self.stats.tick_errors += 1
            self.stats.last_error = str(e) or type(e).__name__
            self.logger.error("Worker tick failed", error=self.stats.last_error, exc_info=True)
            await self.health.heartbeat(WorkerHealthStatus.ERROR, self.stats.last_error)
        else:
            if result is not None:
                self.stats.claims_processed += 1
                self.logger.info(
                    "Claim finished",
                    claim_id=result.claim_id,
                    transition=result.transition.value,
                )
            else:
                self.logger.debug("No claims to process")
            await self.health.heartbeat(WorkerHealthStatus.HEALTHY)

        await self._maybe_check_balances()
        return result

    def balance_check_due(self) -> bool:
        if self.balance_monitor is None:
            return False
        if self._last_balance_check is None:
            return True
        return self.monotonic() - self._last_balance_check >= self.balance_check_interval

    async def _maybe_check_balances(self) -> None:
        if not self.balance_check_due():
            return
        self._last_balance_check = self.monotonic()
        try:
            await self.balance_monitor.check_balances()
        except Exception as e:
            self.logger.error("Balance check raised", error=str(e))

