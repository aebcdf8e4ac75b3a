"""
Outcome recording: folds a dispatch outcome into the locked claim row.

Exactly one transition is written per processed claim, inside the same
transaction that holds the row lock.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

import structlog

from faucet.chains.types import DispatchOutcome
from faucet.models import Claim, ClaimStatus, ERROR_MESSAGE_MAX_LENGTH
from .retry import RetryPolicy


logger = structlog.get_logger(__name__)


class Transition(Enum):
    SUCCEEDED = "succeeded"
    RETRY_SCHEDULED = "retry_scheduled"
    FAILED_PERMANENTLY = "failed_permanently"


def truncate_error(message: str) -> str:
    message = message or "Unknown error"
    if len(message) <= ERROR_MESSAGE_MAX_LENGTH:
        return message
    return message[: ERROR_MESSAGE_MAX_LENGTH - 3] + "..."


class OutcomeRecorder:
    """Applies success, scheduled-retry or final-failure writes."""

    def __init__(self, retry_policy: RetryPolicy):
        self.retry_policy = retry_policy
        self.logger = logger.bind(service="outcome_recorder")

    def record(self, claim: Claim, outcome: DispatchOutcome, attempted_at: datetime) -> Transition:
        if claim.is_final:
            # Acquisition never returns success rows; refuse to rewrite one.
            raise ValueError(f"Claim {claim.id} already succeeded")

        claim.last_attempt_at = attempted_at

        if outcome.succeeded:
            return self._record_success(claim, outcome)

        retry_count = claim.retry_count + 1
        if outcome.retryable and not self.retry_policy.is_exhausted(retry_count):
            return self._record_retry(claim, outcome, retry_count, attempted_at)
        return self._record_final_failure(claim, outcome, retry_count)

    def _record_success(self, claim: Claim, outcome: DispatchOutcome) -> Transition:
        claim.status = ClaimStatus.SUCCESS
        claim.tx_hash = outcome.transaction_hash
        claim.error_message = None
        claim.retry_count = 0
        claim.next_retry_at = None

        self.logger.info(
            "Claim succeeded",
            claim_id=claim.id,
            chain=claim.blockchain,
            tx_hash=outcome.transaction_hash,
            recovered=outcome.recovered,
        )
        return Transition.SUCCEEDED

    def _failure_hash(self, claim: Claim, outcome: DispatchOutcome) -> Optional[str]:
        """
        Hash to keep on a failed claim: the newest provisional one, else the
        earlier one unless the chain showed it failed. It is looked up again
        before the next resend.
        """
        if outcome.transaction_hash:
            return outcome.transaction_hash
        if outcome.provisional_spent:
            return None
        return claim.tx_hash

    def _record_retry(
        self,
        claim: Claim,
        outcome: DispatchOutcome,
        retry_count: int,
        attempted_at: datetime,
    ) -> Transition:
        claim.status = ClaimStatus.FAILED
        claim.error_message = truncate_error(outcome.error_message)
        claim.retry_count = retry_count
        claim.next_retry_at = self.retry_policy.next_attempt(retry_count, attempted_at)
        claim.tx_hash = self._failure_hash(claim, outcome)

        self.logger.warning(
            "Claim failed, retry scheduled",
            claim_id=claim.id,
            chain=claim.blockchain,
            retry_count=retry_count,
            next_retry_at=claim.next_retry_at.isoformat(),
            error=claim.error_message,
        )
        return Transition.RETRY_SCHEDULED

    def _record_final_failure(
        self,
        claim: Claim,
        outcome: DispatchOutcome,
        retry_count: int,
    ) -> Transition:
        claim.status = ClaimStatus.FAILED
        claim.error_message = truncate_error(outcome.error_message)
        claim.retry_count = max(retry_count, self.retry_policy.max_retries)
        claim.next_retry_at = None
        claim.tx_hash = self._failure_hash(claim, outcome)

        self.logger.error(
            "Claim failed permanently",
            claim_id=claim.id,
            chain=claim.blockchain,
            retry_count=claim.retry_count,
            retryable=outcome.retryable,
            error=claim.error_message,
        )
        return Transition.FAILED_PERMANENTLY
