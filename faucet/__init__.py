"""
Token faucet claim fulfillment worker.

Discovers pending claims in the shared ledger, disburses tokens through a
chain adapter and records the outcome.
"""

__version__ = "0.1.0"
