"""Balance source protocols: on-chain holdings abstraction."""
from typing import Protocol

from ..config import ChainConfig
from ..models import BalanceResult, MultiChainBalances


class BalanceSource(Protocol):
    """Holdings of one address on one chain."""

    async def fetch_balances(self, address: str, chain: ChainConfig) -> BalanceResult: ...


class MultiChainBalanceSource(Protocol):
    """Priced holdings of one address on every chain in a single call."""

    async def fetch_all_chains_balances(self, address: str) -> MultiChainBalances: ...
