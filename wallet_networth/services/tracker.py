"""Caller-facing coordinator: owns the caches, the store and the cooldown."""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from typing import Any, Awaitable, Callable, Iterable

from ..chains.alchemy import AlchemyClient
from ..chains.debank import DebankClient
from ..config import STRATEGY_MULTI_CHAIN, STRATEGY_PER_CHAIN, AppConfig
from ..errors import ConfigurationError
from ..interfaces.balance_source import BalanceSource, MultiChainBalanceSource
from ..interfaces.price_oracle import PriceOracle
from ..models import BulkRefreshResult, FetchStatus, PortfolioSnapshot
from ..oracles import CoinGeckoOracle
from ..snapshot_io import snapshot_from_record, snapshot_to_record
from .bulk_refresh import BulkRefreshCoordinator, ConfirmCallback
from .chain_aggregator import ChainAggregator
from .portfolio import PortfolioAggregator, PortfolioStore
from .price_cache import PriceCache
from .single_flight import SingleFlight

logger = logging.getLogger(__name__)


class PortfolioTracker:
    """Tracks addresses and keeps their portfolio snapshots.

    One instance holds all process state (price cache, snapshots, bulk refresh
    cooldown). Providers can be injected; otherwise they are built from config,
    and a provider that is missing credentials is disabled on its own.
    """

    def __init__(
        self,
        config: AppConfig,
        balance_source: BalanceSource | None = None,
        multichain_source: MultiChainBalanceSource | None = None,
        oracle: PriceOracle | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._config = config

        if balance_source is None and multichain_source is None:
            balance_source = self._build_provider("Alchemy", AlchemyClient, config.providers.alchemy)
            multichain_source = self._build_provider("DeBank", DebankClient, config.providers.debank)

        strategy = config.portfolio.strategy
        if strategy == STRATEGY_MULTI_CHAIN and multichain_source is None:
            strategy = STRATEGY_PER_CHAIN
            logger.warning("No multi-chain provider available, falling back to per_chain")
        if strategy == STRATEGY_PER_CHAIN and balance_source is None and multichain_source is not None:
            strategy = STRATEGY_MULTI_CHAIN
            logger.warning("No per-chain balance provider available, falling back to multi_chain")
        if balance_source is None and multichain_source is None:
            logger.warning("No balance provider is configured, only imports are available")

        self._oracle: PriceOracle = oracle or CoinGeckoOracle(config.providers.coingecko)
        self.price_cache = PriceCache(
            self._oracle,
            config.price_cache,
            native_coin_ids=config.native_coin_ids(),
            clock=clock,
            sleep=sleep,
        )

        chain_aggregator = None
        if balance_source is not None:
            chain_aggregator = ChainAggregator(
                balance_source, self.price_cache, config.portfolio.min_value_usd
            )
        self._strategy = strategy
        self._aggregator: PortfolioAggregator | None = None
        if balance_source is not None or multichain_source is not None:
            self._aggregator = PortfolioAggregator(
                config.chains,
                strategy,
                chain_aggregator=chain_aggregator,
                multichain_source=multichain_source,
                min_value=config.portfolio.min_value_usd,
            )

        self.store = PortfolioStore()
        self.bulk = BulkRefreshCoordinator(
            self.refresh, self.price_cache, config.bulk_refresh, clock=clock
        )
        self._refreshes: SingleFlight = SingleFlight()

    @staticmethod
    def _build_provider(label: str, factory: Callable[[Any], Any], provider_config: Any) -> Any:
        try:
            return factory(provider_config)
        except ConfigurationError as e:
            logger.error("%s disabled: %s", label, e)
            return None

    @property
    def strategy(self) -> str:
        return self._strategy

    # ------------------------------------------------------------------
    # Address management
    # ------------------------------------------------------------------

    def add_address(self, address: str) -> bool:
        return self.store.add(address)

    def remove_address(self, address: str) -> bool:
        """Stop tracking an address and drop its snapshot."""
        return self.store.remove(address)

    def addresses(self) -> list[str]:
        return self.store.addresses()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_snapshot(self, address: str) -> PortfolioSnapshot | None:
        """Current snapshot without any network call; None if untracked."""
        return self.store.get(address)

    def is_loaded(self, address: str) -> bool:
        snapshot = self.store.get(address)
        return snapshot is not None and snapshot.is_fetched

    async def refresh(self, address: str) -> PortfolioSnapshot:
        """Fetch a fresh snapshot; concurrent refreshes of one address share a fetch.

        Raises:
            ConfigurationError: no balance provider is configured.
        """
        if self._aggregator is None:
            raise ConfigurationError("No balance provider is configured")
        self.store.add(address)
        return await self._refreshes.do(address.lower(), lambda: self._refresh(address))

    async def _refresh(self, address: str) -> PortfolioSnapshot:
        previous = self.store.get(address)
        self.store.mark_loading(address)

        try:
            snapshot = await self._aggregator.aggregate_portfolio(address)
        except Exception as e:
            logger.error("Refresh of %s failed: %s", address, e)
            snapshot = PortfolioSnapshot(
                address=address, status=FetchStatus.ERROR, error=str(e) or type(e).__name__
            )

        if snapshot.status == FetchStatus.ERROR and previous is not None and previous.is_fetched:
            # keep the last good figures readable
            snapshot = dataclasses.replace(previous, status=FetchStatus.ERROR, error=snapshot.error)

        if address not in self.store:
            # removed while in flight
            return snapshot
        stored = self.store.put(snapshot)
        logger.info(
            "%s: $%.2f across %d chains (%s)",
            stored.address, stored.total_net_worth,
            len(stored.chains_with_value), stored.status.value,
        )
        return stored

    async def refresh_all(
        self,
        addresses: Iterable[str] | None = None,
        confirm: ConfirmCallback | None = None,
    ) -> BulkRefreshResult:
        """Load every unloaded address (all tracked ones by default)."""
        targets = list(addresses) if addresses is not None else self.addresses()
        for address in targets:
            self.store.add(address)
        return await self.bulk.run(targets, self.store, confirm)

    # ------------------------------------------------------------------
    # Interchange
    # ------------------------------------------------------------------

    def import_snapshot(self, record: dict[str, Any]) -> PortfolioSnapshot:
        """Install an exported record as if freshly fetched."""
        snapshot = snapshot_from_record(record, imported_at=time.time())
        self.store.add(snapshot.address)
        return self.store.put(snapshot)

    def export_snapshots(self) -> list[dict[str, Any]]:
        return [snapshot_to_record(s) for s in self.store if s.is_fetched]
