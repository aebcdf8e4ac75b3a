"""
Database models for the faucet ledger.

Claims and recipients are written by the intake API; the worker owns claim
state transitions and the monitoring tables.
"""

from .base import Base, BaseModel, TimestampMixin
from .user import Recipient
from .claim import Claim, ClaimStatus, ERROR_MESSAGE_MAX_LENGTH
from .monitoring import WorkerHealth, WorkerHealthStatus, FaucetBalance

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "Recipient",
    "Claim",
    "ClaimStatus",
    "ERROR_MESSAGE_MAX_LENGTH",
    "WorkerHealth",
    "WorkerHealthStatus",
    "FaucetBalance",
]
