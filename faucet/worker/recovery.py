"""
Confirmation recovery for ambiguous dispatches.

A transfer can land on-chain while the client call reporting it raises
(RPC blip, local timeout). Treating that as a failure would pay the
recipient twice on retry. For adapters that know the transaction identifier
before submission, one out-of-band status query decides: confirmed means
success with the known identifier, failed on-chain drops it, and anything
else is a genuine failure that keeps the identifier as provisional.

A provisional identifier is looked up again before the claim is resent. The
resend only happens once the chain says the earlier transaction failed or
does not exist; while its status is unknown or not final the claim is held.
"""

from typing import Optional

import structlog

from faucet.chains.base import ChainAdapter
from faucet.chains.types import ClaimJob, ConfirmationStatus, DispatchOutcome
from faucet.core.exceptions import AmbiguousDispatchError


logger = structlog.get_logger(__name__)


class ConfirmationRecovery:
    """Resolves ambiguous outcomes by looking up the known identifier."""

    def __init__(self):
        self.logger = logger.bind(service="confirmation_recovery")

    async def _lookup(self, adapter: ChainAdapter, transaction_hash: str) -> ConfirmationStatus:
        try:
            return await adapter.lookup_transaction(transaction_hash)
        except Exception as e:
            # Unknown is not absent: the transaction may still land.
            self.logger.warning(
                "Confirmation lookup failed",
                chain=adapter.chain.value,
                tx_hash=transaction_hash,
                error=str(e),
            )
            return ConfirmationStatus.PENDING

    async def resolve(self, adapter: ChainAdapter, error: AmbiguousDispatchError) -> DispatchOutcome:
        """Reclassify an ambiguous dispatch as success or failure."""
        tx_hash = error.transaction_hash

        if not adapter.supports_presubmit_recovery:
            return DispatchOutcome.failure(error.message, transaction_hash=tx_hash)

        status = await self._lookup(adapter, tx_hash)
        if status == ConfirmationStatus.CONFIRMED:
            self.logger.info(
                "Ambiguous dispatch confirmed on-chain",
                chain=adapter.chain.value,
                tx_hash=tx_hash,
            )
            return DispatchOutcome.success(tx_hash, recovered=True)

        if status == ConfirmationStatus.FAILED:
            # Landed with an error: nothing was paid, the identifier is spent.
            return DispatchOutcome.failure(
                f"{error.message} (failed on-chain)",
                provisional_spent=True,
            )

        return DispatchOutcome.failure(error.message, transaction_hash=tx_hash)

    async def check_provisional(self, adapter: ChainAdapter, job: ClaimJob) -> Optional[ConfirmationStatus]:
        """
        Status of the transaction left behind by an earlier ambiguous
        attempt, or None when there is nothing the adapter can look up.
        Lookup errors report PENDING.
        """
        if not job.provisional_tx_hash or not adapter.supports_presubmit_recovery:
            return None
        return await self._lookup(adapter, job.provisional_tx_hash)

    def held_outcome(self, job: ClaimJob, status: Optional[ConfirmationStatus]) -> Optional[DispatchOutcome]:
        """
        Outcome that settles the claim without a new transfer, or None when
        it is safe to dispatch again.
        """
        tx_hash = job.provisional_tx_hash

        if status == ConfirmationStatus.CONFIRMED:
            self.logger.info(
                "Earlier ambiguous transaction confirmed, skipping resend",
                claim_id=job.claim_id,
                chain=job.chain.value,
                tx_hash=tx_hash,
            )
            return DispatchOutcome.success(tx_hash, recovered=True)

        if status == ConfirmationStatus.PENDING:
            self.logger.warning(
                "Earlier transaction not final, resend deferred",
                claim_id=job.claim_id,
                chain=job.chain.value,
                tx_hash=tx_hash,
            )
            return DispatchOutcome.failure(
                f"Earlier transaction {tx_hash} not final yet, resend deferred",
                transaction_hash=tx_hash,
            )

        return None
