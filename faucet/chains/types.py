"""
Shared types for chain adapters: chain selection, dispatch outcomes,
confirmation lookups and balance snapshots.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional


class Chain(Enum):
    """Chains a claim can target. Anything unknown resolves to UNSUPPORTED."""
    SOLANA = "solana"
    ETHEREUM = "ethereum"
    BASE = "base"
    BNB = "bnb"
    SUI = "sui"
    UNSUPPORTED = "unsupported"

    @classmethod
    def resolve(cls, identifier: Optional[str]) -> "Chain":
        """Map a raw chain identifier from the ledger to a Chain."""
        if not identifier:
            return cls.UNSUPPORTED
        try:
            chain = cls(identifier.strip().lower())
        except ValueError:
            return cls.UNSUPPORTED
        return chain

    @property
    def is_evm(self) -> bool:
        return self in (Chain.ETHEREUM, Chain.BASE, Chain.BNB)


@dataclass(frozen=True)
class ClaimJob:
    """Immutable view of a claim handed to an adapter."""
    claim_id: int
    wallet_address: str
    chain: Chain
    chain_identifier: str
    provisional_tx_hash: Optional[str] = None


@dataclass(frozen=True)
class DispatchOutcome:
    """Result of one dispatch attempt, folded into the claim by the recorder."""
    succeeded: bool
    transaction_hash: Optional[str] = None
    error_message: Optional[str] = None
    retryable: bool = True
    recovered: bool = False
    # The earlier provisional transaction is known to have failed on-chain.
    provisional_spent: bool = False

    @classmethod
    def success(cls, transaction_hash: str, recovered: bool = False) -> "DispatchOutcome":
        return cls(succeeded=True, transaction_hash=transaction_hash, recovered=recovered)

    @classmethod
    def failure(
        cls,
        error_message: str,
        retryable: bool = True,
        transaction_hash: Optional[str] = None,
        provisional_spent: bool = False,
    ) -> "DispatchOutcome":
        return cls(
            succeeded=False,
            error_message=error_message,
            retryable=retryable,
            transaction_hash=transaction_hash,
            provisional_spent=provisional_spent,
        )


class ConfirmationStatus(Enum):
    """On-chain status of a known transaction identifier."""
    CONFIRMED = "confirmed"
    FAILED = "failed"
    # Seen by the cluster but not final; it may still land or be dropped.
    PENDING = "pending"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class WalletBalance:
    """Faucet wallet balances on one chain, in whole units."""
    chain: Chain
    wallet_address: str
    native_balance: Decimal
    token_balance: Decimal
    explorer_url: Optional[str] = None
