"""
Chain adapter interface.
"""

from abc import ABC, abstractmethod
from typing import Optional

from .types import Chain, ClaimJob, ConfirmationStatus, DispatchOutcome, WalletBalance


class ChainAdapter(ABC):
    """
    Strategy that turns a claim into a submitted transfer on one chain family.

    `dispatch` returns a definitive outcome, or raises
    `AmbiguousDispatchError` when the transaction identifier is known but the
    submission or confirmation call failed. Adapters that can derive the
    identifier before submission set `supports_presubmit_recovery` and
    implement `lookup_transaction`.
    """

    chain: Chain = Chain.UNSUPPORTED
    supports_presubmit_recovery: bool = False

    @abstractmethod
    async def dispatch(self, job: ClaimJob) -> DispatchOutcome:
        """Send the disbursement for a claim."""

    async def lookup_transaction(self, transaction_hash: str) -> ConfirmationStatus:
        """Query the on-chain status of a previously signed transaction."""
        raise NotImplementedError(
            f"{type(self).__name__} cannot look up transactions by identifier"
        )

    @property
    def is_configured(self) -> bool:
        return False

    async def fetch_balance(self) -> Optional[WalletBalance]:
        """Faucet wallet balances, or None when the chain has no wallet."""
        return None

    async def close(self) -> None:
        """Release RPC connections."""
