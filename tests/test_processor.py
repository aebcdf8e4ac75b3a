"""
End-to-end claim processing against the SQLite ledger with scripted adapters.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from solders.keypair import Keypair

from faucet.chains.types import Chain, ConfirmationStatus, DispatchOutcome
from faucet.chains.unsupported import UnsupportedChainAdapter
from faucet.core.exceptions import AmbiguousDispatchError, ConfigurationError
from faucet.models import ClaimStatus
from faucet.worker.processor import ClaimProcessor
from faucet.worker.recorder import Transition

from conftest import (
    NOW,
    FakeAdapter,
    add_claim,
    get_claim,
    make_registry,
    make_solana_adapter,
    minutes_ago,
)


def make_processor(session_factory, retry_policy, *adapters, now=NOW) -> ClaimProcessor:
    return ClaimProcessor(
        session_factory,
        make_registry(*adapters),
        retry_policy,
        clock=lambda: now,
    )


@pytest.mark.asyncio
async def test_no_work(session_factory, retry_policy):
    processor = make_processor(session_factory, retry_policy, FakeAdapter(Chain.SOLANA))

    assert await processor.process_next() is None


@pytest.mark.asyncio
async def test_pending_claim_paid(session_factory, retry_policy):
    adapter = FakeAdapter(Chain.SOLANA)
    claim_id = await add_claim(session_factory, wallet_address="WalletXYZ")
    processor = make_processor(session_factory, retry_policy, adapter)

    result = await processor.process_next()

    assert result.claim_id == claim_id
    assert result.transition == Transition.SUCCEEDED
    assert adapter.dispatched[0].wallet_address == "WalletXYZ"

    claim = await get_claim(session_factory, claim_id)
    assert claim.status == ClaimStatus.SUCCESS
    assert claim.tx_hash == f"solana-tx-{claim_id}-1"
    assert claim.last_attempt_at == NOW


@pytest.mark.asyncio
async def test_chain_identifier_is_normalized(session_factory, retry_policy):
    adapter = FakeAdapter(Chain.BASE)
    claim_id = await add_claim(session_factory, blockchain=" Base ")
    processor = make_processor(session_factory, retry_policy, adapter)

    await processor.process_next()

    assert len(adapter.dispatched) == 1
    assert (await get_claim(session_factory, claim_id)).status == ClaimStatus.SUCCESS


@pytest.mark.asyncio
async def test_solana_insufficient_funds_schedules_retry(session_factory, retry_policy):
    client = MagicMock()
    client.get_account_info = AsyncMock(return_value=MagicMock(value=None))
    client.send_raw_transaction = AsyncMock()
    adapter = make_solana_adapter(client)

    claim_id = await add_claim(session_factory, wallet_address=str(Keypair().pubkey()))
    processor = make_processor(session_factory, retry_policy, adapter)

    result = await processor.process_next()

    assert result.transition == Transition.RETRY_SCHEDULED
    client.send_raw_transaction.assert_not_awaited()

    claim = await get_claim(session_factory, claim_id)
    assert claim.status == ClaimStatus.FAILED
    assert claim.retry_count == 1
    assert claim.next_retry_at == NOW + timedelta(seconds=60)
    assert "Insufficient" in claim.error_message
    assert claim.tx_hash is None


@pytest.mark.asyncio
async def test_retry_success_clears_retry_state(session_factory, retry_policy):
    adapter = FakeAdapter(Chain.ETHEREUM)
    claim_id = await add_claim(
        session_factory,
        blockchain="ethereum",
        status=ClaimStatus.FAILED,
        retry_count=2,
        next_retry_at=minutes_ago(1),
    )
    processor = make_processor(session_factory, retry_policy, adapter)

    result = await processor.process_next()

    assert result.transition == Transition.SUCCEEDED
    claim = await get_claim(session_factory, claim_id)
    assert claim.status == ClaimStatus.SUCCESS
    assert claim.retry_count == 0
    assert claim.next_retry_at is None
    assert claim.error_message is None


@pytest.mark.asyncio
async def test_ambiguous_dispatch_recovered_as_success(session_factory, retry_policy):
    adapter = FakeAdapter(
        Chain.SOLANA,
        results=[AmbiguousDispatchError("sig-a", "confirmation timed out")],
        supports_recovery=True,
        lookup=ConfirmationStatus.CONFIRMED,
    )
    claim_id = await add_claim(session_factory)
    processor = make_processor(session_factory, retry_policy, adapter)

    result = await processor.process_next()

    assert result.transition == Transition.SUCCEEDED
    assert result.outcome.recovered
    assert adapter.lookups == ["sig-a"]

    claim = await get_claim(session_factory, claim_id)
    assert claim.status == ClaimStatus.SUCCESS
    assert claim.tx_hash == "sig-a"


@pytest.mark.asyncio
async def test_unrecovered_ambiguous_dispatch_checked_before_resend(session_factory, retry_policy):
    adapter = FakeAdapter(
        Chain.SOLANA,
        results=[AmbiguousDispatchError("sig-a", "confirmation timed out")],
        supports_recovery=True,
        lookup=ConfirmationStatus.NOT_FOUND,
    )
    claim_id = await add_claim(session_factory)

    first = await make_processor(session_factory, retry_policy, adapter).process_next()

    assert first.transition == Transition.RETRY_SCHEDULED
    claim = await get_claim(session_factory, claim_id)
    assert claim.status == ClaimStatus.FAILED
    assert claim.tx_hash == "sig-a"
    assert claim.retry_count == 1

    # The transaction lands after the attempt gave up on it.
    adapter.lookup = ConfirmationStatus.CONFIRMED
    later = make_processor(session_factory, retry_policy, adapter, now=NOW + timedelta(minutes=2))
    second = await later.process_next()

    assert second.transition == Transition.SUCCEEDED
    assert len(adapter.dispatched) == 1
    claim = await get_claim(session_factory, claim_id)
    assert claim.status == ClaimStatus.SUCCESS
    assert claim.tx_hash == "sig-a"
    assert claim.retry_count == 0


@pytest.mark.asyncio
async def test_ambiguous_dispatch_failed_on_chain_drops_hash(session_factory, retry_policy):
    adapter = FakeAdapter(
        Chain.SOLANA,
        results=[AmbiguousDispatchError("sig-a", "confirmation timed out")],
        supports_recovery=True,
        lookup=ConfirmationStatus.FAILED,
    )
    claim_id = await add_claim(session_factory)

    await make_processor(session_factory, retry_policy, adapter).process_next()

    claim = await get_claim(session_factory, claim_id)
    assert claim.status == ClaimStatus.FAILED
    assert claim.tx_hash is None
    assert "failed on-chain" in claim.error_message


@pytest.mark.asyncio
async def test_lookup_error_keeps_transaction_hash(session_factory, retry_policy):
    adapter = FakeAdapter(
        Chain.SOLANA,
        results=[AmbiguousDispatchError("sig-a", "rpc blip")],
        supports_recovery=True,
        lookup=RuntimeError("rpc down"),
    )
    claim_id = await add_claim(session_factory)

    result = await make_processor(session_factory, retry_policy, adapter).process_next()

    assert result.transition == Transition.RETRY_SCHEDULED
    assert (await get_claim(session_factory, claim_id)).tx_hash == "sig-a"


async def add_retried_claim(session_factory, blockchain="solana", tx_hash="sig-a"):
    return await add_claim(
        session_factory,
        blockchain=blockchain,
        status=ClaimStatus.FAILED,
        retry_count=1,
        next_retry_at=minutes_ago(1),
        tx_hash=tx_hash,
    )


@pytest.mark.asyncio
async def test_unknown_earlier_transaction_holds_resend(session_factory, retry_policy):
    adapter = FakeAdapter(
        Chain.SOLANA,
        results=[DispatchOutcome.failure("Insufficient faucet SPX token balance")],
        supports_recovery=True,
        lookup=RuntimeError("rpc down"),
    )
    claim_id = await add_retried_claim(session_factory)

    result = await make_processor(session_factory, retry_policy, adapter).process_next()

    assert result.transition == Transition.RETRY_SCHEDULED
    assert adapter.lookups == ["sig-a"]
    assert adapter.dispatched == []
    claim = await get_claim(session_factory, claim_id)
    assert claim.tx_hash == "sig-a"
    assert claim.retry_count == 2
    assert claim.next_retry_at == NOW + timedelta(seconds=300)


@pytest.mark.asyncio
async def test_earlier_transaction_not_final_holds_resend(session_factory, retry_policy):
    adapter = FakeAdapter(Chain.SOLANA, supports_recovery=True, lookup=ConfirmationStatus.PENDING)
    claim_id = await add_retried_claim(session_factory)

    result = await make_processor(session_factory, retry_policy, adapter).process_next()

    assert result.transition == Transition.RETRY_SCHEDULED
    assert adapter.dispatched == []
    claim = await get_claim(session_factory, claim_id)
    assert claim.status == ClaimStatus.FAILED
    assert claim.tx_hash == "sig-a"
    assert "not final" in claim.error_message


@pytest.mark.asyncio
async def test_earlier_transaction_failed_on_chain_is_resent_and_cleared(session_factory, retry_policy):
    adapter = FakeAdapter(
        Chain.SOLANA,
        results=[DispatchOutcome.failure("Insufficient faucet SPX token balance")],
        supports_recovery=True,
        lookup=ConfirmationStatus.FAILED,
    )
    claim_id = await add_retried_claim(session_factory)

    await make_processor(session_factory, retry_policy, adapter).process_next()

    assert len(adapter.dispatched) == 1
    claim = await get_claim(session_factory, claim_id)
    assert claim.tx_hash is None
    assert claim.retry_count == 2


@pytest.mark.asyncio
async def test_earlier_transaction_not_found_is_resent_and_kept(session_factory, retry_policy):
    adapter = FakeAdapter(
        Chain.SOLANA,
        results=[DispatchOutcome.failure("Insufficient faucet SPX token balance")],
        supports_recovery=True,
        lookup=ConfirmationStatus.NOT_FOUND,
    )
    claim_id = await add_retried_claim(session_factory)

    await make_processor(session_factory, retry_policy, adapter).process_next()

    assert len(adapter.dispatched) == 1
    assert (await get_claim(session_factory, claim_id)).tx_hash == "sig-a"


@pytest.mark.asyncio
async def test_evm_failure_without_hash_keeps_earlier_hash(session_factory, retry_policy):
    adapter = FakeAdapter(Chain.ETHEREUM, results=[DispatchOutcome.failure("rpc down")])
    claim_id = await add_retried_claim(session_factory, blockchain="ethereum", tx_hash="0xabc")

    await make_processor(session_factory, retry_policy, adapter).process_next()

    assert adapter.lookups == []
    assert len(adapter.dispatched) == 1
    assert adapter.dispatched[0].provisional_tx_hash == "0xabc"
    assert (await get_claim(session_factory, claim_id)).tx_hash == "0xabc"


@pytest.mark.asyncio
async def test_ambiguous_without_lookup_support_not_queried(session_factory, retry_policy):
    adapter = FakeAdapter(
        Chain.ETHEREUM,
        results=[AmbiguousDispatchError("0xabc", "receipt timeout")],
        supports_recovery=False,
    )
    claim_id = await add_claim(session_factory, blockchain="ethereum")

    result = await make_processor(session_factory, retry_policy, adapter).process_next()

    assert result.transition == Transition.RETRY_SCHEDULED
    assert adapter.lookups == []
    claim = await get_claim(session_factory, claim_id)
    assert claim.tx_hash == "0xabc"
    assert claim.error_message == "receipt timeout"


@pytest.mark.asyncio
async def test_unexpected_exception_schedules_retry(session_factory, retry_policy):
    adapter = FakeAdapter(Chain.SOLANA, results=[RuntimeError("connection reset")])
    claim_id = await add_claim(session_factory)

    result = await make_processor(session_factory, retry_policy, adapter).process_next()

    assert result.transition == Transition.RETRY_SCHEDULED
    claim = await get_claim(session_factory, claim_id)
    assert claim.status == ClaimStatus.FAILED
    assert claim.retry_count == 1
    assert claim.error_message == "connection reset"


@pytest.mark.asyncio
async def test_configuration_error_fails_permanently(session_factory, retry_policy):
    adapter = FakeAdapter(Chain.SOLANA, results=[ConfigurationError("SPX_TOKEN_MINT not set")])
    claim_id = await add_claim(session_factory)

    result = await make_processor(session_factory, retry_policy, adapter).process_next()

    assert result.transition == Transition.FAILED_PERMANENTLY
    claim = await get_claim(session_factory, claim_id)
    assert claim.retry_count == 3
    assert claim.next_retry_at is None


@pytest.mark.asyncio
async def test_unknown_chain_fails_permanently(session_factory, retry_policy):
    claim_id = await add_claim(session_factory, blockchain="dogecoin")
    processor = make_processor(session_factory, retry_policy)

    result = await processor.process_next()

    assert result.chain == Chain.UNSUPPORTED
    assert result.transition == Transition.FAILED_PERMANENTLY
    claim = await get_claim(session_factory, claim_id)
    assert claim.status == ClaimStatus.FAILED
    assert claim.error_message == "Blockchain not supported: dogecoin"
    assert claim.retry_count == 3

    # Exhausted claims are never picked up again.
    assert await processor.process_next() is None


@pytest.mark.asyncio
async def test_sui_fails_permanently(session_factory, retry_policy):
    claim_id = await add_claim(session_factory, blockchain="sui")
    processor = make_processor(session_factory, retry_policy, UnsupportedChainAdapter(Chain.SUI))

    await processor.process_next()

    claim = await get_claim(session_factory, claim_id)
    assert claim.error_message == "Faucet not implemented for blockchain: sui"
    assert claim.retry_count == 3


@pytest.mark.asyncio
async def test_success_is_terminal(session_factory, retry_policy):
    adapter = FakeAdapter(Chain.SOLANA)
    claim_id = await add_claim(session_factory)
    processor = make_processor(session_factory, retry_policy, adapter)

    await processor.process_next()
    assert await processor.process_next() is None

    assert len(adapter.dispatched) == 1
    assert (await get_claim(session_factory, claim_id)).status == ClaimStatus.SUCCESS


@pytest.mark.asyncio
async def test_retry_exhaustion_over_ticks(session_factory, retry_policy):
    adapter = FakeAdapter(
        Chain.SOLANA,
        results=[DispatchOutcome.failure("rpc down") for _ in range(5)],
    )
    claim_id = await add_claim(session_factory)

    now = NOW
    transitions = []
    for _ in range(5):
        result = await make_processor(session_factory, retry_policy, adapter, now=now).process_next()
        if result is None:
            break
        transitions.append(result.transition)
        now = now + timedelta(hours=1)

    assert transitions == [
        Transition.RETRY_SCHEDULED,
        Transition.RETRY_SCHEDULED,
        Transition.FAILED_PERMANENTLY,
    ]
    assert len(adapter.dispatched) == 3
    claim = await get_claim(session_factory, claim_id)
    assert claim.retry_count == 3
    assert claim.next_retry_at is None


@pytest.mark.asyncio
async def test_ledger_error_rolls_back_claim(session_factory, retry_policy):
    adapter = FakeAdapter(Chain.SOLANA)
    claim_id = await add_claim(session_factory)
    processor = make_processor(session_factory, retry_policy, adapter)
    processor.recorder.record = MagicMock(side_effect=RuntimeError("ledger unavailable"))

    with pytest.raises(RuntimeError):
        await processor.process_next()

    claim = await get_claim(session_factory, claim_id)
    assert claim.status == ClaimStatus.PENDING
    assert claim.retry_count == 0
    assert claim.tx_hash is None
    assert claim.last_attempt_at is None


@pytest.mark.asyncio
async def test_workers_never_share_a_claim(session_factory, retry_policy):
    adapter = FakeAdapter(Chain.SOLANA)
    claim_ids = [
        await add_claim(session_factory, created_at=minutes_ago(10 - i)) for i in range(6)
    ]
    workers = [make_processor(session_factory, retry_policy, adapter) for _ in range(3)]

    done = False
    while not done:
        done = True
        for worker in workers:
            if await worker.process_next() is not None:
                done = False

    dispatched = [job.claim_id for job in adapter.dispatched]
    assert sorted(dispatched) == sorted(claim_ids)

    hashes = set()
    for claim_id in claim_ids:
        claim = await get_claim(session_factory, claim_id)
        assert claim.status == ClaimStatus.SUCCESS
        hashes.add(claim.tx_hash)
    assert len(hashes) == len(claim_ids)
