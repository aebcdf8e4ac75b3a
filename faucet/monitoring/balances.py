"""
Faucet wallet balance monitor.

Queries every configured chain for the faucet wallet's native and token
balances, upserts `faucet_balances` and logs low-balance alerts. Runs on a
much coarser interval than the claim loop and never blocks disbursement.
"""

from datetime import datetime
from decimal import Decimal
from typing import Callable, List

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from faucet.chains.registry import AdapterRegistry
from faucet.chains.types import Chain, WalletBalance
from faucet.core.config import BalanceThresholds
from faucet.core.database import utcnow
from faucet.models import FaucetBalance
from .upsert import upsert


logger = structlog.get_logger(__name__)


class BalanceMonitor:
    """Records faucet balances per chain and flags low ones."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: AdapterRegistry,
        thresholds: BalanceThresholds,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_factory = session_factory
        self.registry = registry
        self.thresholds = thresholds
        self.clock = clock
        self.logger = logger.bind(service="balance_monitor")

    def native_threshold(self, chain: Chain) -> Decimal:
        if chain == Chain.SOLANA:
            return self.thresholds.solana_native
        return self.thresholds.evm_native

    def is_low(self, balance: WalletBalance) -> bool:
        return (
            balance.native_balance < self.native_threshold(balance.chain)
            or balance.token_balance < self.thresholds.token
        )

    async def collect(self) -> List[WalletBalance]:
        """Fetch balances from every configured adapter, skipping failures."""
        balances = []
        for adapter in self.registry.configured():
            try:
                balance = await adapter.fetch_balance()
            except Exception as e:
                self.logger.error("Balance check failed", chain=adapter.chain.value, error=str(e))
                continue
            if balance is not None:
                balances.append(balance)
        return balances

    async def check_balances(self) -> List[WalletBalance]:
        """Collect, persist and report balances. Never raises."""
        self.logger.info("Starting balance check")
        try:
            balances = await self.collect()
            if not balances:
                self.logger.info("No balances to update")
                return []

            checked_at = self.clock()
            async with self.session_factory() as session:
                async with session.begin():
                    for balance in balances:
                        await upsert(
                            session,
                            FaucetBalance,
                            {
                                "blockchain": balance.chain.value,
                                "wallet_address": balance.wallet_address,
                                "native_balance": balance.native_balance,
                                "token_balance": balance.token_balance,
                                "is_low": self.is_low(balance),
                                "last_checked": checked_at,
                            },
                            index_elements=["blockchain"],
                        )

            for balance in balances:
                self._report(balance)
            return balances

        except Exception as e:
            self.logger.error("Balance monitor failed", error=str(e))
            return []

    def _report(self, balance: WalletBalance) -> None:
        if self.is_low(balance):
            self.logger.warning(
                "LOW BALANCE ALERT",
                chain=balance.chain.value,
                native_balance=str(balance.native_balance),
                native_threshold=str(self.native_threshold(balance.chain)),
                token_balance=str(balance.token_balance),
                token_threshold=str(self.thresholds.token),
                wallet=balance.wallet_address,
                explorer_url=balance.explorer_url,
            )
        else:
            self.logger.info(
                "Balance OK",
                chain=balance.chain.value,
                native_balance=str(balance.native_balance),
                token_balance=str(balance.token_balance),
            )
