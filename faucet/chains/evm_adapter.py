"""
EVM adapter: pays claims with the faucet ERC-20 token on EVM-compatible
networks (Ethereum, Base, BNB Chain). One instance per network; all of them
share the faucet EVM key.
"""

from decimal import Decimal
from typing import Optional

import structlog
from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3
from web3.providers.rpc import AsyncHTTPProvider

from faucet.core.config import DisbursementConfig, EvmNetworkConfig
from faucet.core.exceptions import AmbiguousDispatchError, InsufficientFundsError
from .base import ChainAdapter
from .types import Chain, ClaimJob, DispatchOutcome, WalletBalance


logger = structlog.get_logger(__name__)

ERC20_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
]

WEI_PER_ETHER = Decimal(10) ** 18


class EvmAdapter(ChainAdapter):
    """Disburses the faucet ERC-20 token on one EVM network."""

    supports_presubmit_recovery = False

    def __init__(
        self,
        chain: Chain,
        config: EvmNetworkConfig,
        disbursement: DisbursementConfig,
        web3: Optional[AsyncWeb3] = None,
    ):
        self.chain = chain
        self.config = config
        self.disbursement = disbursement
        self.logger = logger.bind(service="evm_adapter", chain=chain.value)

        self.web3: Optional[AsyncWeb3] = web3
        self.account: Optional[LocalAccount] = None
        self.contract = None
        self.config_error: Optional[str] = None

        missing = config.missing()
        if missing:
            self.config_error = (
                f"Network configuration missing for {config.name}: {', '.join(missing)}"
            )
            self.logger.warning("EVM adapter disabled", missing=missing)
            return

        try:
            self.account = Account.from_key(config.private_key)
            token_address = AsyncWeb3.to_checksum_address(config.token_contract)
        except ValueError as e:
            self.config_error = f"Invalid EVM faucet configuration for {config.name}: {e}"
            self.logger.error("EVM adapter misconfigured", error=self.config_error)
            return

        if self.web3 is None:
            self.web3 = AsyncWeb3(
                AsyncHTTPProvider(
                    config.rpc_url,
                    request_kwargs={"timeout": disbursement.rpc_timeout},
                )
            )
        self.contract = self.web3.eth.contract(address=token_address, abi=ERC20_ABI)

        self.logger.info(
            "EVM adapter initialized",
            network=config.name,
            faucet_address=self.account.address,
            token_contract=token_address,
        )

    @property
    def is_configured(self) -> bool:
        return self.config_error is None

    async def close(self) -> None:
        if self.web3 is not None and hasattr(self.web3.provider, "disconnect"):
            await self.web3.provider.disconnect()

    async def dispatch(self, job: ClaimJob) -> DispatchOutcome:
        if self.config_error:
            return DispatchOutcome.failure(self.config_error, retryable=False)

        log = self.logger.bind(claim_id=job.claim_id, recipient=job.wallet_address)

        try:
            recipient = AsyncWeb3.to_checksum_address(job.wallet_address)
        except ValueError:
            return DispatchOutcome.failure(
                f"Invalid EVM recipient address: {job.wallet_address}",
                retryable=False,
            )

        decimals = await self.contract.functions.decimals().call()
        amount = int(self.disbursement.token_amount * (Decimal(10) ** decimals))
        if amount <= 0:
            return DispatchOutcome.failure(
                f"Claim amount {self.disbursement.token_amount} is below one base unit of the token",
                retryable=False,
            )
        balance = await self.contract.functions.balanceOf(self.account.address).call()

        if balance < amount:
            error = InsufficientFundsError(required=amount, available=balance, asset="SPX token")
            log.warning("Faucet token balance too low", required=amount, available=balance)
            return DispatchOutcome.failure(error.message)

        nonce = await self.web3.eth.get_transaction_count(self.account.address, "pending")
        transaction = await self.contract.functions.transfer(recipient, amount).build_transaction(
            {"from": self.account.address, "nonce": nonce}
        )
        signed = self.account.sign_transaction(transaction)
        tx_hash = AsyncWeb3.to_hex(signed.hash)
        log = log.bind(tx_hash=tx_hash)

        try:
            await self.web3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = await self.web3.eth.wait_for_transaction_receipt(
                signed.hash,
                timeout=self.disbursement.confirm_timeout,
            )
        except Exception as e:
            log.warning("EVM submission did not confirm", error=str(e) or type(e).__name__)
            raise AmbiguousDispatchError(
                tx_hash,
                f"{self.config.name} transaction {tx_hash} not confirmed: {str(e) or type(e).__name__}",
            ) from e

        if receipt["status"] != 1:
            log.error("EVM transfer reverted", block=receipt.get("blockNumber"))
            return DispatchOutcome.failure(f"{self.config.name} transfer reverted: {tx_hash}")

        log.info("EVM disbursement confirmed", amount=amount, block=receipt.get("blockNumber"))
        return DispatchOutcome.success(tx_hash)

    async def fetch_balance(self) -> Optional[WalletBalance]:
        if self.config_error:
            return None

        address = self.account.address
        native = await self.web3.eth.get_balance(address)
        raw_token = await self.contract.functions.balanceOf(address).call()
        decimals = await self.contract.functions.decimals().call()

        return WalletBalance(
            chain=self.chain,
            wallet_address=address,
            native_balance=Decimal(native) / WEI_PER_ETHER,
            token_balance=Decimal(raw_token) / (Decimal(10) ** decimals),
            explorer_url=f"{self.config.explorer}/address/{address}",
        )
