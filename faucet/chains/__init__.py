"""
Chain adapters that submit faucet transfers.
"""

from .types import Chain, ClaimJob, ConfirmationStatus, DispatchOutcome, WalletBalance
from .base import ChainAdapter
from .registry import AdapterRegistry

__all__ = [
    "Chain",
    "ClaimJob",
    "ConfirmationStatus",
    "DispatchOutcome",
    "WalletBalance",
    "ChainAdapter",
    "AdapterRegistry",
]
