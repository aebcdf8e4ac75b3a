"""
Test outcome recording on claim rows.
"""

from datetime import timedelta

import pytest

from faucet.chains.types import DispatchOutcome
from faucet.models import Claim, ClaimStatus
from faucet.worker.recorder import OutcomeRecorder, Transition, truncate_error

from conftest import NOW


def make_claim(status=ClaimStatus.PENDING, retry_count=0, **kwargs) -> Claim:
    return Claim(id=7, user_id=1, blockchain="solana", status=status, retry_count=retry_count, **kwargs)


@pytest.fixture
def recorder(retry_policy) -> OutcomeRecorder:
    return OutcomeRecorder(retry_policy)


def test_success_resets_retry_state(recorder):
    claim = make_claim(
        status=ClaimStatus.FAILED,
        retry_count=2,
        error_message="RPC timeout",
        next_retry_at=NOW - timedelta(minutes=1),
    )

    transition = recorder.record(claim, DispatchOutcome.success("sig-1"), NOW)

    assert transition == Transition.SUCCEEDED
    assert claim.status == ClaimStatus.SUCCESS
    assert claim.tx_hash == "sig-1"
    assert claim.retry_count == 0
    assert claim.error_message is None
    assert claim.next_retry_at is None
    assert claim.last_attempt_at == NOW


def test_first_failure_schedules_first_tier(recorder):
    claim = make_claim()

    transition = recorder.record(claim, DispatchOutcome.failure("Insufficient SPX token"), NOW)

    assert transition == Transition.RETRY_SCHEDULED
    assert claim.status == ClaimStatus.FAILED
    assert claim.retry_count == 1
    assert claim.next_retry_at == NOW + timedelta(seconds=60)
    assert claim.error_message == "Insufficient SPX token"
    assert claim.tx_hash is None


def test_second_failure_schedules_second_tier(recorder):
    claim = make_claim(status=ClaimStatus.FAILED, retry_count=1)

    recorder.record(claim, DispatchOutcome.failure("boom"), NOW)

    assert claim.retry_count == 2
    assert claim.next_retry_at == NOW + timedelta(seconds=300)


def test_retry_keeps_provisional_hash(recorder):
    claim = make_claim()

    recorder.record(claim, DispatchOutcome.failure("not confirmed", transaction_hash="sig-p"), NOW)

    assert claim.status == ClaimStatus.FAILED
    assert claim.tx_hash == "sig-p"


def test_failure_without_hash_keeps_earlier_hash(recorder):
    claim = make_claim(status=ClaimStatus.FAILED, retry_count=1, tx_hash="sig-p")

    recorder.record(claim, DispatchOutcome.failure("Insufficient SPX token"), NOW)

    assert claim.retry_count == 2
    assert claim.tx_hash == "sig-p"


def test_failed_earlier_transaction_clears_hash(recorder):
    claim = make_claim(status=ClaimStatus.FAILED, retry_count=1, tx_hash="sig-p")

    recorder.record(
        claim,
        DispatchOutcome.failure("Insufficient SPX token", provisional_spent=True),
        NOW,
    )

    assert claim.tx_hash is None


def test_final_failure_keeps_earlier_hash(recorder):
    claim = make_claim(status=ClaimStatus.FAILED, retry_count=2, tx_hash="sig-p")

    transition = recorder.record(claim, DispatchOutcome.failure("still down"), NOW)

    assert transition == Transition.FAILED_PERMANENTLY
    assert claim.tx_hash == "sig-p"


def test_last_failure_is_final(recorder):
    claim = make_claim(status=ClaimStatus.FAILED, retry_count=2)

    transition = recorder.record(claim, DispatchOutcome.failure("still down"), NOW)

    assert transition == Transition.FAILED_PERMANENTLY
    assert claim.status == ClaimStatus.FAILED
    assert claim.retry_count == 3
    assert claim.next_retry_at is None


def test_non_retryable_failure_exhausts_immediately(recorder):
    claim = make_claim()

    transition = recorder.record(
        claim,
        DispatchOutcome.failure("Faucet not implemented for blockchain: sui", retryable=False),
        NOW,
    )

    assert transition == Transition.FAILED_PERMANENTLY
    assert claim.retry_count == 3
    assert claim.next_retry_at is None
    assert claim.error_message == "Faucet not implemented for blockchain: sui"


def test_success_row_cannot_be_rewritten(recorder):
    claim = make_claim(status=ClaimStatus.SUCCESS, tx_hash="sig-1")

    with pytest.raises(ValueError):
        recorder.record(claim, DispatchOutcome.failure("late"), NOW)

    assert claim.tx_hash == "sig-1"


def test_long_error_truncated_to_column(recorder):
    claim = make_claim()

    recorder.record(claim, DispatchOutcome.failure("x" * 1000), NOW)

    assert len(claim.error_message) == 255
    assert claim.error_message.endswith("...")


def test_truncate_error_defaults():
    assert truncate_error("") == "Unknown error"
    assert truncate_error("short") == "short"
