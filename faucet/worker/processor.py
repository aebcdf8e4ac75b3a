"""
Processes one claim end-to-end inside a single ledger transaction:
acquire (row lock) → check earlier transaction → dispatch → recover →
record → commit.

Adapter exceptions never escape: they are converted to outcomes before the
recorder runs. Ledger errors roll the whole transaction back, leaving the
claim exactly as it was, and propagate to the poller.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from faucet.chains.base import ChainAdapter
from faucet.chains.registry import AdapterRegistry
from faucet.chains.types import Chain, ClaimJob, ConfirmationStatus, DispatchOutcome
from faucet.core.database import utcnow
from faucet.core.exceptions import (
    AmbiguousDispatchError,
    ConfigurationError,
    FaucetException,
    UnsupportedChainError,
)
from faucet.models import Claim
from .acquisition import acquire_next_claim
from .recorder import OutcomeRecorder, Transition
from .recovery import ConfirmationRecovery
from .retry import RetryPolicy


logger = structlog.get_logger(__name__)

NON_RETRYABLE_ERRORS = (ConfigurationError, UnsupportedChainError)


@dataclass(frozen=True)
class ProcessResult:
    """What happened to the claim processed in one tick."""
    claim_id: int
    chain: Chain
    transition: Transition
    outcome: DispatchOutcome


class ClaimProcessor:
    """Acquires and fully processes at most one claim per call."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: AdapterRegistry,
        retry_policy: RetryPolicy,
        recovery: Optional[ConfirmationRecovery] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.registry = registry
        self.retry_policy = retry_policy
        self.recorder = OutcomeRecorder(retry_policy)
        self.recovery = recovery or ConfirmationRecovery()
        self.clock = clock
        self.logger = logger.bind(service="claim_processor")

    async def process_next(self) -> Optional[ProcessResult]:
        """Process the next eligible claim; None when there is no work."""
        async with self.session_factory() as session:
            async with session.begin():
                acquired = await acquire_next_claim(
                    session, self.clock(), self.retry_policy.max_retries
                )
                if acquired is None:
                    return None

                claim, wallet_address = acquired
                job = self._to_job(claim, wallet_address)
                self.logger.info(
                    "Processing claim",
                    claim_id=job.claim_id,
                    chain=job.chain_identifier,
                    retry_count=claim.retry_count,
                )

                outcome = await self.execute(job)
                transition = self.recorder.record(claim, outcome, self.clock())

        return ProcessResult(
            claim_id=job.claim_id,
            chain=job.chain,
            transition=transition,
            outcome=outcome,
        )

    def _to_job(self, claim: Claim, wallet_address: str) -> ClaimJob:
        return ClaimJob(
            claim_id=claim.id,
            wallet_address=wallet_address,
            chain=Chain.resolve(claim.blockchain),
            chain_identifier=claim.blockchain,
            provisional_tx_hash=claim.tx_hash,
        )

    async def execute(self, job: ClaimJob) -> DispatchOutcome:
        """Dispatch a claim and turn every adapter result into an outcome."""
        adapter = self.registry.for_chain(job.chain)

        provisional = await self.recovery.check_provisional(adapter, job)
        held = self.recovery.held_outcome(job, provisional)
        if held is not None:
            return held

        outcome = await self._dispatch(adapter, job)
        if provisional == ConfirmationStatus.FAILED:
            outcome = replace(outcome, provisional_spent=True)
        return outcome

    async def _dispatch(self, adapter: ChainAdapter, job: ClaimJob) -> DispatchOutcome:
        log = self.logger.bind(claim_id=job.claim_id, chain=job.chain.value)

        try:
            return await adapter.dispatch(job)

        except AmbiguousDispatchError as e:
            log.warning("Ambiguous dispatch, checking chain", tx_hash=e.transaction_hash)
            return await self.recovery.resolve(adapter, e)

        except NON_RETRYABLE_ERRORS as e:
            log.error("Dispatch failed permanently", error=e.message, code=e.code)
            return DispatchOutcome.failure(e.message, retryable=False)

        except FaucetException as e:
            log.error("Dispatch failed", error=e.message, code=e.code)
            return DispatchOutcome.failure(e.message)

        except Exception as e:
            log.error("Dispatch raised", error=str(e), error_type=type(e).__name__)
            return DispatchOutcome.failure(str(e) or type(e).__name__)
