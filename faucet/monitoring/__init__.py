"""
Advisory monitoring: worker heartbeats and faucet wallet balances.
"""

from .health import HealthReporter
from .balances import BalanceMonitor

__all__ = ["HealthReporter", "BalanceMonitor"]
