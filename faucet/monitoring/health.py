"""
Worker heartbeat records. Advisory only: a failed heartbeat is logged and
never interrupts claim processing.
"""

from datetime import datetime
from typing import Callable, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from faucet.core.database import utcnow
from faucet.models import WorkerHealth, WorkerHealthStatus
from .upsert import upsert


logger = structlog.get_logger(__name__)


class HealthReporter:
    """Upserts one heartbeat row per worker type."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        worker_type: str,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.worker_type = worker_type
        self.clock = clock
        self.logger = logger.bind(service="health_reporter", worker_type=worker_type)

    async def heartbeat(self, status: WorkerHealthStatus, error: Optional[str] = None) -> bool:
        """Record a heartbeat. Returns False if it could not be written."""
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    await upsert(
                        session,
                        WorkerHealth,
                        {
                            "worker_type": self.worker_type,
                            "last_heartbeat": self.clock(),
                            "status": status,
                            "error_message": error[:255] if error else None,
                        },
                        index_elements=["worker_type"],
                    )
            return True
        except Exception as e:
            self.logger.warning("Failed to record heartbeat", status=status.value, error=str(e))
            return False
