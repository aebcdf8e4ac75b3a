"""
Custom exception classes for the faucet worker.
Provides structured error handling across all modules.
"""

from typing import Any, Optional, Dict


class FaucetException(Exception):
    """Base exception class for the faucet worker."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(FaucetException):
    """Raised when there's a configuration error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONFIGURATION_ERROR", details)


class DatabaseError(FaucetException):
    """Raised when there's a database error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "DATABASE_ERROR", details)


class InsufficientFundsError(FaucetException):
    """Raised when the faucet wallet cannot cover a disbursement."""

    def __init__(self, required: Any, available: Any, asset: str = "token"):
        super().__init__(
            f"Insufficient faucet {asset} balance: required {required}, available {available}",
            "INSUFFICIENT_FUNDS",
            {"required": str(required), "available": str(available), "asset": asset}
        )


class UnsupportedChainError(FaucetException):
    """Raised when a claim targets a chain without an adapter."""

    def __init__(self, chain: str, reason: str = "Blockchain not supported"):
        super().__init__(
            f"{reason}: {chain}",
            "UNSUPPORTED_CHAIN",
            {"chain": chain}
        )


class AmbiguousDispatchError(FaucetException):
    """
    Raised when submission or confirmation failed after the transaction
    identifier was already known. The transfer may still have landed.
    """

    def __init__(self, transaction_hash: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.transaction_hash = transaction_hash
        super().__init__(
            message,
            "AMBIGUOUS_DISPATCH",
            {"transaction_hash": transaction_hash, **(details or {})}
        )
