"""Unit tests for per-chain pricing and ranking."""
from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from tests.conftest import DUST, USDC, WALLET, make_holding
from wallet_networth.config import ChainConfig
from wallet_networth.errors import ProviderError
from wallet_networth.models import NATIVE_TOKEN_ADDRESS, BalanceResult, PricedToken
from wallet_networth.services.chain_aggregator import (
    ChainAggregator,
    build_chain_balance,
    rank_tokens,
)


def _token(symbol: str, value: float | None) -> PricedToken:
    return PricedToken(
        address=f"0x{symbol.lower():0>40}",
        chain="ethereum",
        symbol=symbol,
        name=symbol,
        decimals=18,
        balance="1",
        balance_formatted=1.0,
        price=value,
        value=value,
    )


class TestRankTokens:
    def test_drops_dust_and_unpriced(self) -> None:
        ranked = rank_tokens([_token("A", 5.0), _token("B", 0.009), _token("C", None)])
        assert [t.symbol for t in ranked] == ["A"]

    def test_keeps_threshold_value(self) -> None:
        assert len(rank_tokens([_token("A", 0.01)])) == 1

    def test_sorted_descending_and_stable(self) -> None:
        ranked = rank_tokens(
            [_token("A", 1.0), _token("B", 7.0), _token("C", 1.0), _token("D", 3.0)]
        )
        assert [t.symbol for t in ranked] == ["B", "D", "A", "C"]


class TestBuildChainBalance:
    def test_native_plus_dust_token(self, ethereum: ChainConfig) -> None:
        balances = BalanceResult(
            native_balance=2.0,
            native_raw=2 * 10**18,
            holdings=(make_holding(DUST, 0.5, "DUST"),),
        )
        result = build_chain_balance(ethereum, balances, {DUST.lower(): 0.01}, 3000.0)

        assert result.net_worth == 6000.0
        assert len(result.tokens) == 1
        native = result.tokens[0]
        assert native.address == NATIVE_TOKEN_ADDRESS
        assert native.symbol == "ETH"
        assert native.balance == str(2 * 10**18)
        assert native.value == 6000.0

    def test_net_worth_is_sum_of_kept_tokens(
        self, ethereum: ChainConfig, sample_balances: BalanceResult
    ) -> None:
        prices = {USDC.lower(): 1.0, DUST.lower(): 0.001}
        result = build_chain_balance(ethereum, sample_balances, prices, 3000.0)

        assert [t.symbol for t in result.tokens] == ["ETH", "USDC"]
        assert result.net_worth == pytest.approx(7500.0)
        assert result.net_worth == sum(t.value for t in result.tokens)

    def test_unpriced_tokens_excluded(
        self, ethereum: ChainConfig, sample_balances: BalanceResult
    ) -> None:
        result = build_chain_balance(ethereum, sample_balances, {}, 3000.0)
        assert [t.symbol for t in result.tokens] == ["ETH"]

    def test_missing_native_price_excludes_native(
        self, ethereum: ChainConfig, sample_balances: BalanceResult
    ) -> None:
        result = build_chain_balance(ethereum, sample_balances, {USDC.lower(): 1.0}, None)
        assert [t.symbol for t in result.tokens] == ["USDC"]
        assert result.net_worth == pytest.approx(1500.0)

    def test_zero_native_balance_excluded(self, ethereum: ChainConfig) -> None:
        result = build_chain_balance(ethereum, BalanceResult(native_balance=0.0), {}, 3000.0)
        assert result.tokens == ()
        assert result.net_worth == 0.0

    def test_empty_chain(self, ethereum: ChainConfig) -> None:
        result = build_chain_balance(ethereum, BalanceResult(native_balance=0.0), {}, None)
        assert result.chain_id == "ethereum"
        assert result.chain_name == "Ethereum"
        assert not result.is_error


class TestChainAggregator:
    @pytest.mark.asyncio
    async def test_aggregate_chain(
        self, ethereum: ChainConfig, sample_balances: BalanceResult
    ) -> None:
        source = AsyncMock()
        source.fetch_balances = AsyncMock(return_value=sample_balances)
        prices = AsyncMock()
        prices.get_prices = AsyncMock(return_value={USDC.lower(): 1.0})
        prices.get_native_price = AsyncMock(return_value=3000.0)

        result = await ChainAggregator(source, prices).aggregate_chain(WALLET, ethereum)

        source.fetch_balances.assert_awaited_once_with(WALLET, ethereum)
        platform, addresses = prices.get_prices.await_args.args
        assert platform == "ethereum"
        assert list(addresses) == [USDC, DUST]
        prices.get_native_price.assert_awaited_once_with("ethereum")
        assert result.net_worth == pytest.approx(7500.0)

    @pytest.mark.asyncio
    async def test_balance_failure_propagates(self, ethereum: ChainConfig) -> None:
        source = AsyncMock()
        source.fetch_balances = AsyncMock(side_effect=ProviderError("RPC Error: down"))
        prices = AsyncMock()
        prices.get_native_price = AsyncMock(return_value=3000.0)

        with pytest.raises(ProviderError, match="down"):
            await ChainAggregator(source, prices).aggregate_chain(WALLET, ethereum)
