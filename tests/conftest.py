"""
Shared fixtures: an in-memory SQLite ledger and scriptable chain adapters.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

import base58
import pytest
import pytest_asyncio
from solders.keypair import Keypair
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from faucet.chains.base import ChainAdapter
from faucet.chains.registry import AdapterRegistry
from faucet.chains.solana_adapter import SolanaAdapter
from faucet.chains.types import Chain, ClaimJob, ConfirmationStatus, DispatchOutcome, WalletBalance
from faucet.core.config import DisbursementConfig, SolanaNetworkConfig
from faucet.models import Base, Claim, ClaimStatus, Recipient
from faucet.worker.retry import RetryPolicy


NOW = datetime(2026, 10, 16, 12, 0, 0)


class FakeAdapter(ChainAdapter):
    """Adapter whose dispatch results are scripted by the test."""

    def __init__(
        self,
        chain: Chain,
        results: Optional[List] = None,
        supports_recovery: bool = False,
        lookup: ConfirmationStatus = ConfirmationStatus.NOT_FOUND,
        balance: Optional[WalletBalance] = None,
    ):
        self.chain = chain
        self.results = list(results or [])
        self.supports_presubmit_recovery = supports_recovery
        self.lookup = lookup
        self.balance = balance
        self.dispatched: List[ClaimJob] = []
        self.lookups: List[str] = []
        self._counter = 0

    @property
    def is_configured(self) -> bool:
        return True

    async def dispatch(self, job: ClaimJob) -> DispatchOutcome:
        self.dispatched.append(job)
        self._counter += 1
        result = self.results.pop(0) if self.results else None
        if result is None:
            return DispatchOutcome.success(f"{self.chain.value}-tx-{job.claim_id}-{self._counter}")
        if isinstance(result, Exception):
            raise result
        return result

    async def lookup_transaction(self, transaction_hash: str) -> ConfirmationStatus:
        self.lookups.append(transaction_hash)
        if isinstance(self.lookup, Exception):
            raise self.lookup
        return self.lookup

    async def fetch_balance(self) -> Optional[WalletBalance]:
        if isinstance(self.balance, Exception):
            raise self.balance
        return self.balance


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def retry_policy() -> RetryPolicy:
    return RetryPolicy(max_retries=3, backoff_seconds=(60, 300, 1800))


@pytest.fixture
def clock():
    return lambda: NOW


def make_registry(*adapters: ChainAdapter) -> AdapterRegistry:
    return AdapterRegistry({adapter.chain: adapter for adapter in adapters})


async def add_claim(
    session_factory,
    blockchain: str = "solana",
    wallet_address: str = "RecipientWallet1111111111111111111111111111",
    status: ClaimStatus = ClaimStatus.PENDING,
    retry_count: int = 0,
    next_retry_at: Optional[datetime] = None,
    created_at: Optional[datetime] = None,
    tx_hash: Optional[str] = None,
) -> int:
    """Insert a recipient and claim the way the intake API does."""
    async with session_factory() as session:
        async with session.begin():
            recipient = Recipient(wallet_address=wallet_address)
            session.add(recipient)
            await session.flush()

            claim = Claim(
                user_id=recipient.id,
                blockchain=blockchain,
                status=status,
                retry_count=retry_count,
                next_retry_at=next_retry_at,
                tx_hash=tx_hash,
            )
            if created_at is not None:
                claim.created_at = created_at
            session.add(claim)
            await session.flush()
            return claim.id


async def get_claim(session_factory, claim_id: int) -> Claim:
    async with session_factory() as session:
        return await session.get(Claim, claim_id)


def minutes_ago(minutes: int) -> datetime:
    return NOW - timedelta(minutes=minutes)


def make_solana_adapter(client, token_amount: Decimal = Decimal("10")) -> SolanaAdapter:
    """Solana adapter with a throwaway faucet key, talking to a mocked client."""
    config = SolanaNetworkConfig(
        rpc_url="http://localhost:8899",
        token_mint=str(Keypair().pubkey()),
        private_key=base58.b58encode(bytes(Keypair())).decode(),
    )
    return SolanaAdapter(config, DisbursementConfig(token_amount=token_amount), client=client)
