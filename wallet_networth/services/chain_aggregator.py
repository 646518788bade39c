"""Per-chain aggregation: balances + prices → priced token list and net worth."""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Mapping

from ..config import ChainConfig
from ..interfaces.balance_source import BalanceSource
from ..models import (
    NATIVE_TOKEN_ADDRESS,
    BalanceResult,
    ChainBalance,
    PricedToken,
    TokenHolding,
)
from .price_cache import PriceCache

logger = logging.getLogger(__name__)

MIN_VALUE_USD = 0.01


def rank_tokens(tokens: Iterable[PricedToken], min_value: float = MIN_VALUE_USD) -> tuple[PricedToken, ...]:
    """Drop unpriced and dust tokens, then sort by value descending.

    The sort is stable, so equal values keep provider order.
    """
    kept = [t for t in tokens if t.value is not None and t.value >= min_value]
    return tuple(sorted(kept, key=lambda t: t.value, reverse=True))


def chain_balance_from_tokens(
    chain_id: str,
    chain_name: str,
    tokens: Iterable[PricedToken],
    min_value: float = MIN_VALUE_USD,
) -> ChainBalance:
    ranked = rank_tokens(tokens, min_value)
    return ChainBalance(
        chain_id=chain_id,
        chain_name=chain_name,
        net_worth=sum((t.value for t in ranked), 0.0),
        tokens=ranked,
    )


def build_chain_balance(
    chain: ChainConfig,
    balances: BalanceResult,
    token_prices: Mapping[str, float],
    native_price: float | None,
    min_value: float = MIN_VALUE_USD,
) -> ChainBalance:
    """Price a chain's holdings; no I/O."""
    candidates: list[PricedToken] = []

    if balances.native_balance > 0 and native_price:
        native = TokenHolding(
            address=NATIVE_TOKEN_ADDRESS,
            raw_balance=balances.native_raw or round(balances.native_balance * 10**18),
            decimals=18,
            balance_formatted=balances.native_balance,
            symbol=chain.native_symbol,
            name=chain.native_symbol,
        )
        candidates.append(PricedToken.from_holding(native, chain.id, native_price))

    for holding in balances.holdings:
        price = token_prices.get(holding.address.lower())
        candidates.append(PricedToken.from_holding(holding, chain.id, price))

    return chain_balance_from_tokens(chain.id, chain.name, candidates, min_value)


class ChainAggregator:
    """Fetch and price one address's holdings on one chain."""

    def __init__(
        self,
        balance_source: BalanceSource,
        price_cache: PriceCache,
        min_value: float = MIN_VALUE_USD,
    ) -> None:
        self._source = balance_source
        self._prices = price_cache
        self._min_value = min_value

    async def _fetch_priced_holdings(
        self, address: str, chain: ChainConfig
    ) -> tuple[BalanceResult, dict[str, float]]:
        balances = await self._source.fetch_balances(address, chain)
        token_prices = await self._prices.get_prices(
            chain.price_platform, (h.address for h in balances.holdings)
        )
        return balances, token_prices

    async def aggregate_chain(self, address: str, chain: ChainConfig) -> ChainBalance:
        """Build the ChainBalance for ``address`` on ``chain``.

        Raises:
            ProviderError: the balance source failed for this chain.
        """
        (balances, token_prices), native_price = await asyncio.gather(
            self._fetch_priced_holdings(address, chain),
            self._prices.get_native_price(chain.native_coin_id),
        )

        result = build_chain_balance(
            chain, balances, token_prices, native_price, self._min_value
        )
        logger.info(
            "%s · %s: $%.2f across %d tokens",
            address, chain.name, result.net_worth, len(result.tokens),
        )
        return result
