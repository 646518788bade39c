"""Portfolio aggregation across chains and the address → snapshot store."""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from typing import Callable, Iterator

from ..chains.debank.client import DEBANK_CHAIN_NAMES
from ..config import STRATEGY_MULTI_CHAIN, ChainConfig
from ..errors import ProviderError
from ..interfaces.balance_source import MultiChainBalanceSource
from ..models import ChainBalance, FetchStatus, PortfolioSnapshot, PricedToken
from .chain_aggregator import MIN_VALUE_USD, ChainAggregator, chain_balance_from_tokens

logger = logging.getLogger(__name__)


def rank_chains(chains: list[ChainBalance]) -> tuple[ChainBalance, ...]:
    """Sort by net worth descending, keeping configured order on ties."""
    return tuple(sorted(chains, key=lambda c: c.net_worth, reverse=True))


def build_snapshot(
    address: str, chains: list[ChainBalance], updated_at: float
) -> PortfolioSnapshot:
    """Merge per-chain results; ERROR only when every chain failed."""
    ranked = rank_chains(chains)
    failed = [c for c in ranked if c.is_error]
    if ranked and len(failed) == len(ranked):
        return PortfolioSnapshot(
            address=address,
            chains=ranked,
            status=FetchStatus.ERROR,
            error=failed[0].error,
        )
    return PortfolioSnapshot(
        address=address,
        total_net_worth=sum((c.net_worth for c in ranked), 0.0),
        chains=ranked,
        status=FetchStatus.FETCHED,
        updated_at=updated_at,
    )


class PortfolioAggregator:
    """Net worth of one address across every configured chain.

    ``per_chain`` fans the ChainAggregator out over all chains; ``multi_chain``
    asks a multi-chain provider once and groups its flat token list by chain.
    """

    def __init__(
        self,
        chains: dict[str, ChainConfig],
        strategy: str,
        chain_aggregator: ChainAggregator | None = None,
        multichain_source: MultiChainBalanceSource | None = None,
        min_value: float = MIN_VALUE_USD,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        if strategy == STRATEGY_MULTI_CHAIN and multichain_source is None:
            raise ValueError("multi_chain strategy needs a multi-chain balance source")
        if strategy != STRATEGY_MULTI_CHAIN and chain_aggregator is None:
            raise ValueError("per_chain strategy needs a chain aggregator")
        self._chains = chains
        self.strategy = strategy
        self._chain_aggregator = chain_aggregator
        self._multichain = multichain_source
        self._min_value = min_value
        self._wall_clock = wall_clock

    async def aggregate_portfolio(self, address: str) -> PortfolioSnapshot:
        if self.strategy == STRATEGY_MULTI_CHAIN:
            return await self._aggregate_multi_chain(address)
        return await self._aggregate_per_chain(address)

    async def _aggregate_chain_safe(self, address: str, chain: ChainConfig) -> ChainBalance:
        try:
            return await self._chain_aggregator.aggregate_chain(address, chain)
        except ProviderError as e:
            logger.warning("%s · %s unavailable: %s", address, chain.name, e)
            return ChainBalance(
                chain_id=chain.id, chain_name=chain.name, is_error=True, error=str(e)
            )

    async def _aggregate_per_chain(self, address: str) -> PortfolioSnapshot:
        results = await asyncio.gather(
            *(self._aggregate_chain_safe(address, chain) for chain in self._chains.values())
        )
        return build_snapshot(address, list(results), self._wall_clock())

    async def _aggregate_multi_chain(self, address: str) -> PortfolioSnapshot:
        try:
            balances = await self._multichain.fetch_all_chains_balances(address)
        except ProviderError as e:
            logger.warning("Multi-chain balances for %s unavailable: %s", address, e)
            return PortfolioSnapshot(address=address, status=FetchStatus.ERROR, error=str(e))

        by_tag = {c.multichain_id: c for c in self._chains.values() if c.multichain_id}
        grouped: dict[str, list[PricedToken]] = {c.id: [] for c in self._chains.values()}
        names = {c.id: c.name for c in self._chains.values()}

        for token in balances.tokens:
            chain = by_tag.get(token.chain)
            if chain is not None:
                chain_id = chain.id
                token = dataclasses.replace(token, chain=chain_id)
            else:
                chain_id = token.chain
                names.setdefault(chain_id, DEBANK_CHAIN_NAMES.get(chain_id, chain_id))
            grouped.setdefault(chain_id, []).append(token)

        chains = [
            chain_balance_from_tokens(chain_id, names[chain_id], tokens, self._min_value)
            for chain_id, tokens in grouped.items()
        ]
        return build_snapshot(address, chains, self._wall_clock())


class PortfolioStore:
    """Authoritative map of tracked addresses to their latest snapshot.

    Keys are lowercase; the snapshot keeps the address as first added.
    """

    def __init__(self) -> None:
        self._snapshots: dict[str, PortfolioSnapshot] = {}

    @staticmethod
    def key(address: str) -> str:
        return address.lower()

    def __contains__(self, address: str) -> bool:
        return self.key(address) in self._snapshots

    def __len__(self) -> int:
        return len(self._snapshots)

    def __iter__(self) -> Iterator[PortfolioSnapshot]:
        return iter(list(self._snapshots.values()))

    def add(self, address: str) -> bool:
        """Track an address; returns False if it was already tracked."""
        if address in self:
            return False
        self._snapshots[self.key(address)] = PortfolioSnapshot(address=address)
        return True

    def remove(self, address: str) -> bool:
        return self._snapshots.pop(self.key(address), None) is not None

    def get(self, address: str) -> PortfolioSnapshot | None:
        return self._snapshots.get(self.key(address))

    def put(self, snapshot: PortfolioSnapshot) -> PortfolioSnapshot:
        """Store a snapshot, keeping the display address already tracked."""
        existing = self._snapshots.get(self.key(snapshot.address))
        if existing is not None and existing.address != snapshot.address:
            snapshot = dataclasses.replace(snapshot, address=existing.address)
        self._snapshots[self.key(snapshot.address)] = snapshot
        return snapshot

    def mark_loading(self, address: str) -> PortfolioSnapshot:
        """Enter LOADING, keeping any previous data readable."""
        current = self.get(address) or PortfolioSnapshot(address=address)
        return self.put(dataclasses.replace(current, status=FetchStatus.LOADING))

    def addresses(self) -> list[str]:
        return [s.address for s in self._snapshots.values()]
