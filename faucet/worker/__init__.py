"""
Claim fulfillment engine: acquisition, dispatch, recovery, retry and recording.
"""

from .acquisition import acquire_next_claim, eligible_claims_query
from .processor import ClaimProcessor, ProcessResult
from .recorder import OutcomeRecorder, Transition
from .recovery import ConfirmationRecovery
from .retry import RetryPolicy
from .poller import FaucetWorker

__all__ = [
    "acquire_next_claim",
    "eligible_claims_query",
    "ClaimProcessor",
    "ProcessResult",
    "OutcomeRecorder",
    "Transition",
    "ConfirmationRecovery",
    "RetryPolicy",
    "FaucetWorker",
]
