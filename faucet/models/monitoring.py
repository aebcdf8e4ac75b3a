"""
Advisory monitoring rows: worker heartbeats and faucet wallet balances.
Neither table is read by the worker's own decision logic.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, DECIMAL, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel


class WorkerHealthStatus(Enum):
    STARTING = "starting"
    HEALTHY = "healthy"
    ERROR = "error"


class WorkerHealth(BaseModel):
    """Last heartbeat per worker type, overwritten in place."""

    __tablename__ = "worker_health"

    worker_type: Mapped[str] = mapped_column(String(64), primary_key=True)

    last_heartbeat: Mapped[datetime] = mapped_column(
        DateTime,
        comment="Time of the last heartbeat (UTC)"
    )

    status: Mapped[WorkerHealthStatus] = mapped_column(
        SQLEnum(
            WorkerHealthStatus,
            name="workerhealthstatus",
            values_callable=lambda e: [member.value for member in e],
        ),
        comment="starting, healthy or error"
    )

    error_message: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True
    )

    def __repr__(self) -> str:
        return f"<WorkerHealth(worker_type={self.worker_type}, status={self.status.value})>"


class FaucetBalance(BaseModel):
    """Faucet wallet balances per chain."""

    __tablename__ = "faucet_balances"

    blockchain: Mapped[str] = mapped_column(String(32), primary_key=True)

    wallet_address: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    native_balance: Mapped[Decimal] = mapped_column(
        DECIMAL(36, 18),
        comment="Native currency balance in whole units"
    )

    token_balance: Mapped[Decimal] = mapped_column(
        DECIMAL(36, 18),
        comment="Faucet token balance in whole units"
    )

    is_low: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        comment="Either balance is below its threshold"
    )

    last_checked: Mapped[datetime] = mapped_column(DateTime)

    def __repr__(self) -> str:
        return f"<FaucetBalance(chain={self.blockchain}, low={self.is_low})>"
