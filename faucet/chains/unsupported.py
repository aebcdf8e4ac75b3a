"""
Fallback adapter for chains without an implementation.
"""

import structlog

from faucet.core.exceptions import UnsupportedChainError
from .base import ChainAdapter
from .types import Chain, ClaimJob, DispatchOutcome


logger = structlog.get_logger(__name__)

# Chains that intake accepts but the worker cannot pay out on yet.
NOT_IMPLEMENTED = {Chain.SUI}


class UnsupportedChainAdapter(ChainAdapter):
    """Fails every claim immediately; retrying cannot help."""

    def __init__(self, chain: Chain = Chain.UNSUPPORTED):
        self.chain = chain
        self.logger = logger.bind(service="unsupported_adapter", chain=chain.value)

    async def dispatch(self, job: ClaimJob) -> DispatchOutcome:
        reason = (
            "Faucet not implemented for blockchain"
            if job.chain in NOT_IMPLEMENTED
            else "Blockchain not supported"
        )
        error = UnsupportedChainError(job.chain_identifier or "<empty>", reason)
        self.logger.warning(
            "Claim targets unsupported chain",
            claim_id=job.claim_id,
            chain_identifier=job.chain_identifier,
        )
        return DispatchOutcome.failure(error.message, retryable=False)
