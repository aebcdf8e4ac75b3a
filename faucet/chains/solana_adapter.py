"""
Solana adapter: pays claims in the faucet SPL token.

Every disbursement is a single transaction holding a compute budget
(priority fee), a small SOL top-up for the recipient's future fees, the
recipient's associated token account creation when it is missing, and a
`transfer_checked` of the configured token amount.

The signature of a Solana transaction is its first signer's signature, so it
is known as soon as the transaction is signed locally. If submission or
confirmation then fails, the adapter raises `AmbiguousDispatchError` carrying
that signature and the worker checks the chain before deciding the claim
failed.
"""

import asyncio
from decimal import Decimal
from typing import Optional

import structlog
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.types import TxOpts
from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import transfer, TransferParams
from solders.transaction import Transaction
from solders.transaction_status import TransactionConfirmationStatus
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import (
    TransferCheckedParams,
    create_associated_token_account,
    get_associated_token_address,
    transfer_checked,
)

from faucet.core.config import DisbursementConfig, SolanaNetworkConfig, parse_solana_keypair
from faucet.core.exceptions import (
    AmbiguousDispatchError,
    ConfigurationError,
    InsufficientFundsError,
)
from .base import ChainAdapter
from .types import Chain, ClaimJob, ConfirmationStatus, DispatchOutcome, WalletBalance


logger = structlog.get_logger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000

LANDED_STATUSES = (
    TransactionConfirmationStatus.Confirmed,
    TransactionConfirmationStatus.Finalized,
)


class SolanaAdapter(ChainAdapter):
    """Disburses the faucet SPL token on Solana."""

    chain = Chain.SOLANA
    supports_presubmit_recovery = True

    def __init__(
        self,
        config: SolanaNetworkConfig,
        disbursement: DisbursementConfig,
        client: Optional[AsyncClient] = None,
    ):
        self.config = config
        self.disbursement = disbursement
        self.commitment = Commitment(config.commitment)
        self.logger = logger.bind(service="solana_adapter")

        self.keypair: Optional[Keypair] = None
        self.mint: Optional[Pubkey] = None
        self.client: Optional[AsyncClient] = client
        self.config_error: Optional[str] = None

        missing = config.missing()
        if missing:
            self.config_error = f"Solana faucet not configured: missing {', '.join(missing)}"
            self.logger.warning("Solana adapter disabled", missing=missing)
            return

        try:
            self.keypair = parse_solana_keypair(config.private_key)
            self.mint = Pubkey.from_string(config.token_mint)
        except ConfigurationError as e:
            self.config_error = e.message
        except ValueError as e:
            self.config_error = f"Invalid SPX_TOKEN_MINT: {e}"

        if self.config_error:
            self.logger.error("Solana adapter misconfigured", error=self.config_error)
            return

        if self.client is None:
            self.client = AsyncClient(
                config.rpc_url,
                commitment=self.commitment,
                timeout=disbursement.rpc_timeout,
            )

        self.logger.info(
            "Solana adapter initialized",
            faucet_pubkey=str(self.keypair.pubkey()),
            mint=str(self.mint),
        )

    @property
    def is_configured(self) -> bool:
        return self.config_error is None

    @property
    def faucet_token_account(self) -> Pubkey:
        return get_associated_token_address(self.keypair.pubkey(), self.mint)

    async def close(self) -> None:
        if self.client is not None:
            await self.client.close()

    async def _account_exists(self, address: Pubkey) -> bool:
        response = await self.client.get_account_info(address)
        return response.value is not None

    async def _faucet_token_balance(self) -> tuple:
        """Return (raw amount, decimals) held by the faucet token account."""
        response = await self.client.get_token_account_balance(self.faucet_token_account)
        return int(response.value.amount), response.value.decimals

    def _to_base_units(self, amount: Decimal, decimals: int) -> int:
        return int(amount * (Decimal(10) ** decimals))

    async def dispatch(self, job: ClaimJob) -> DispatchOutcome:
        if self.config_error:
            return DispatchOutcome.failure(self.config_error, retryable=False)

        log = self.logger.bind(claim_id=job.claim_id, recipient=job.wallet_address)

        try:
            recipient = Pubkey.from_string(job.wallet_address)
        except ValueError:
            return DispatchOutcome.failure(
                f"Invalid Solana recipient address: {job.wallet_address}",
                retryable=False,
            )

        if not await self._account_exists(self.faucet_token_account):
            error = InsufficientFundsError(
                required=self.disbursement.token_amount, available=0, asset="SPX token"
            )
            log.warning("Faucet token account missing", token_account=str(self.faucet_token_account))
            return DispatchOutcome.failure(error.message)

        balance, decimals = await self._faucet_token_balance()
        amount = self._to_base_units(self.disbursement.token_amount, decimals)
        if amount <= 0:
            return DispatchOutcome.failure(
                f"Claim amount {self.disbursement.token_amount} is below one base unit of the token",
                retryable=False,
            )
        if balance < amount:
            error = InsufficientFundsError(required=amount, available=balance, asset="SPX token")
            log.warning("Faucet token balance too low", required=amount, available=balance)
            return DispatchOutcome.failure(error.message)

        payer = self.keypair.pubkey()
        source = self.faucet_token_account
        destination = get_associated_token_address(recipient, self.mint)

        instructions = [
            set_compute_unit_limit(self.config.compute_unit_limit),
            set_compute_unit_price(self.config.priority_fee_micro_lamports),
            transfer(
                TransferParams(
                    from_pubkey=payer,
                    to_pubkey=recipient,
                    lamports=int(self.config.fee_topup_sol * LAMPORTS_PER_SOL),
                )
            ),
        ]
        if not await self._account_exists(destination):
            instructions.append(create_associated_token_account(payer, recipient, self.mint))
        instructions.append(
            transfer_checked(
                TransferCheckedParams(
                    program_id=TOKEN_PROGRAM_ID,
                    source=source,
                    mint=self.mint,
                    dest=destination,
                    owner=payer,
                    amount=amount,
                    decimals=decimals,
                )
            )
        )

        blockhash = await self.client.get_latest_blockhash(self.commitment)
        transaction = Transaction.new_signed_with_payer(
            instructions,
            payer,
            [self.keypair],
            blockhash.value.blockhash,
        )
        signature = transaction.signatures[0]
        log = log.bind(tx_hash=str(signature))

        try:
            await self.client.send_raw_transaction(
                bytes(transaction),
                opts=TxOpts(skip_confirmation=True, preflight_commitment=self.commitment),
            )
            confirmation = await asyncio.wait_for(
                self.client.confirm_transaction(
                    signature,
                    commitment=self.commitment,
                    last_valid_block_height=blockhash.value.last_valid_block_height,
                ),
                timeout=self.disbursement.confirm_timeout,
            )
        except Exception as e:
            log.warning("Solana submission did not confirm", error=str(e) or type(e).__name__)
            raise AmbiguousDispatchError(
                str(signature),
                f"Solana transaction {signature} not confirmed: {str(e) or type(e).__name__}",
            ) from e

        status = confirmation.value[0] if confirmation.value else None
        if status is not None and status.err is not None:
            log.error("Solana transaction failed on-chain", err=str(status.err))
            return DispatchOutcome.failure(f"Solana transaction failed: {status.err}")

        log.info("Solana disbursement confirmed", amount=amount)
        return DispatchOutcome.success(str(signature))

    async def lookup_transaction(self, transaction_hash: str) -> ConfirmationStatus:
        response = await self.client.get_signature_statuses(
            [Signature.from_string(transaction_hash)],
            search_transaction_history=True,
        )
        status = response.value[0] if response.value else None
        if status is None:
            return ConfirmationStatus.NOT_FOUND
        if status.err is not None:
            return ConfirmationStatus.FAILED
        if status.confirmation_status in LANDED_STATUSES:
            return ConfirmationStatus.CONFIRMED
        # Processed only; may still land or be dropped.
        return ConfirmationStatus.PENDING

    async def fetch_balance(self) -> Optional[WalletBalance]:
        if self.config_error:
            return None

        owner = self.keypair.pubkey()
        lamports = await self.client.get_balance(owner)

        token_balance = Decimal(0)
        if await self._account_exists(self.faucet_token_account):
            response = await self.client.get_token_account_balance(self.faucet_token_account)
            token_balance = Decimal(response.value.amount) / (Decimal(10) ** response.value.decimals)

        return WalletBalance(
            chain=self.chain,
            wallet_address=str(owner),
            native_balance=Decimal(lamports.value) / LAMPORTS_PER_SOL,
            token_balance=token_balance,
            explorer_url=f"{self.config.explorer}/account/{owner}",
        )
