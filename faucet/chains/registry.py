"""
Adapter registry: one adapter per chain, built once at startup.
"""

from typing import Dict, List

import structlog

from faucet.core.config import FaucetConfig
from .base import ChainAdapter
from .evm_adapter import EvmAdapter
from .solana_adapter import SolanaAdapter
from .types import Chain
from .unsupported import UnsupportedChainAdapter


logger = structlog.get_logger(__name__)


class AdapterRegistry:
    """Resolves the adapter responsible for a chain."""

    def __init__(self, adapters: Dict[Chain, ChainAdapter]):
        self._adapters = dict(adapters)
        self._fallback = UnsupportedChainAdapter()

    @classmethod
    def build(cls, config: FaucetConfig) -> "AdapterRegistry":
        adapters: Dict[Chain, ChainAdapter] = {
            Chain.SOLANA: SolanaAdapter(config.solana, config.disbursement),
            Chain.SUI: UnsupportedChainAdapter(Chain.SUI),
        }
        for chain in Chain:
            if chain.is_evm:
                adapters[chain] = EvmAdapter(chain, config.evm[chain.value], config.disbursement)

        registry = cls(adapters)
        logger.info(
            "Chain adapters ready",
            configured=[adapter.chain.value for adapter in registry.configured()],
        )
        return registry

    def for_chain(self, chain: Chain) -> ChainAdapter:
        return self._adapters.get(chain, self._fallback)

    def configured(self) -> List[ChainAdapter]:
        """Adapters with a usable wallet and RPC endpoint."""
        return [adapter for adapter in self._adapters.values() if adapter.is_configured]

    async def close(self) -> None:
        for adapter in self._adapters.values():
            try:
                await adapter.close()
            except Exception as e:
                logger.warning("Failed to close adapter", chain=adapter.chain.value, error=str(e))
