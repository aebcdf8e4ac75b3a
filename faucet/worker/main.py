"""
Main entry point for the faucet worker service.
"""

import asyncio
import signal
from typing import Optional

import structlog

from faucet.chains.registry import AdapterRegistry
from faucet.core.config import FaucetConfig, settings
from faucet.core.database import DatabaseManager, close_database, get_session_maker, init_database
from faucet.core.exceptions import DatabaseError
from faucet.core.logging import setup_logging
from faucet.monitoring.balances import BalanceMonitor
from faucet.monitoring.health import HealthReporter
from .poller import FaucetWorker
from .processor import ClaimProcessor
from .retry import RetryPolicy


logger = structlog.get_logger(__name__)


class WorkerService:
    """Wires configuration, database and adapters into a running worker."""

    def __init__(self, config: Optional[FaucetConfig] = None):
        self.config = config or FaucetConfig.from_settings(settings)
        self.registry: Optional[AdapterRegistry] = None
        self.worker: Optional[FaucetWorker] = None

    async def initialize(self) -> None:
        logger.info("Initializing faucet worker service", worker_type=self.config.worker_type)

        await init_database()
        if not await DatabaseManager.health_check():
            raise DatabaseError("Database is not reachable")
        session_factory = get_session_maker()

        self.registry = AdapterRegistry.build(self.config)
        retry_policy = RetryPolicy.from_config(self.config.retry)

        self.worker = FaucetWorker(
            processor=ClaimProcessor(session_factory, self.registry, retry_policy),
            health=HealthReporter(session_factory, self.config.worker_type),
            balance_monitor=BalanceMonitor(session_factory, self.registry, self.config.thresholds),
            poll_interval=self.config.poll_interval,
            balance_check_interval=self.config.balance_check_interval,
        )

        logger.info(
            "Faucet worker service initialized",
            max_retries=retry_policy.max_retries,
            backoff_seconds=list(retry_policy.backoff_seconds),
        )

    async def start(self) -> None:
        await self.worker.run()

    def stop(self) -> None:
        if self.worker:
            self.worker.stop()

    async def shutdown(self) -> None:
        if self.registry:
            await self.registry.close()
        await close_database()
        logger.info("Faucet worker service shut down")


async def main() -> None:
    """Run the worker until SIGINT/SIGTERM."""
    setup_logging()

    service = WorkerService()

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, service.stop)
        except NotImplementedError:
            # Windows event loops have no signal handler support.
            pass

    try:
        await service.initialize()
        await service.start()
    except Exception as e:
        logger.error("Faucet worker service failed", error=str(e))
        raise
    finally:
        await service.shutdown()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
