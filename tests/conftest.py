"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from wallet_networth.config import (
    AppConfig,
    BulkRefreshConfig,
    ChainConfig,
    PortfolioConfig,
    PriceCacheConfig,
)
from wallet_networth.models import BalanceResult, TokenHolding

WALLET = "0xAAAA000000000000000000000000000000000001"
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
DUST = "0x1111111111111111111111111111111111111111"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def ethereum() -> ChainConfig:
    return ChainConfig(
        id="ethereum",
        name="Ethereum",
        native_symbol="ETH",
        balance_network="eth-mainnet",
        price_platform="ethereum",
        native_coin_id="ethereum",
        multichain_id="eth",
    )


@pytest.fixture()
def arbitrum() -> ChainConfig:
    return ChainConfig(
        id="arbitrum",
        name="Arbitrum",
        native_symbol="ETH",
        balance_network="arb-mainnet",
        price_platform="arbitrum-one",
        native_coin_id="ethereum",
        multichain_id="arb",
    )


@pytest.fixture()
def polygon() -> ChainConfig:
    return ChainConfig(
        id="polygon",
        name="Polygon",
        native_symbol="POL",
        balance_network="polygon-mainnet",
        price_platform="polygon-pos",
        native_coin_id="matic-network",
        multichain_id="matic",
    )


@pytest.fixture()
def sample_app_config(
    ethereum: ChainConfig, arbitrum: ChainConfig, polygon: ChainConfig
) -> AppConfig:
    return AppConfig(
        portfolio=PortfolioConfig(strategy="per_chain", min_value_usd=0.01),
        price_cache=PriceCacheConfig(
            ttl_seconds=300.0,
            chunk_size=100,
            rate_limit_backoff_seconds=10.0,
            inter_chunk_delay_seconds=1.5,
        ),
        bulk_refresh=BulkRefreshConfig(cooldown_seconds=300.0, unit_cost_per_address=10),
        chains={"ethereum": ethereum, "arbitrum": arbitrum, "polygon": polygon},
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def fake_sleep() -> AsyncMock:
    return AsyncMock(return_value=None)


# ---------------------------------------------------------------------------
# Model fixtures
# ---------------------------------------------------------------------------


def make_holding(
    address: str, balance: float, symbol: str = "TKN", decimals: int = 18
) -> TokenHolding:
    return TokenHolding(
        address=address,
        raw_balance=int(balance * 10**decimals),
        decimals=decimals,
        balance_formatted=balance,
        symbol=symbol,
        name=symbol,
    )


@pytest.fixture()
def sample_balances() -> BalanceResult:
    """2 ETH, 1500 USDC and a dust token."""
    return BalanceResult(
        native_balance=2.0,
        native_raw=2 * 10**18,
        holdings=(
            make_holding(USDC, 1500.0, "USDC", 6),
            make_holding(DUST, 5.0, "DUST"),
        ),
    )


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    portfolio:
      strategy: per_chain
      min_value_usd: 0.01
    price_cache:
      ttl_seconds: 120
      chunk_size: 50
      rate_limit_backoff_seconds: 5
      inter_chunk_delay_seconds: 0.5
    bulk_refresh:
      cooldown_seconds: 60
      unit_cost_per_address: 3
    providers:
      alchemy:
        api_key: "alchemy-key"
        timeout: 10
      coingecko:
        base_url: "https://cg.example.com/api/v3"
      debank:
        api_key: "debank-key"
    chains:
      ethereum:
        name: Ethereum
        native_symbol: ETH
        balance_network: eth-mainnet
        price_platform: ethereum
        native_coin_id: ethereum
        multichain_id: eth
      arbitrum:
        name: Arbitrum
        native_symbol: ETH
        balance_network: arb-mainnet
        price_platform: arbitrum-one
        native_coin_id: ethereum
        multichain_id: arb
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file


@pytest.fixture()
def sample_record() -> dict:
    return {
        "address": WALLET,
        "totalNetWorth": 1234.56,
        "chainBreakdown": [
            {
                "chainId": "ethereum",
                "chainName": "Ethereum",
                "netWorth": 1234.56,
                "tokens": [
                    {
                        "address": "0x0000000000000000000000000000000000000000",
                        "chain": "ethereum",
                        "symbol": "ETH",
                        "name": "ETH",
                        "decimals": 18,
                        "balance": "411520000000000000",
                        "balanceFormatted": 0.41152,
                        "price": 3000.0,
                        "value": 1234.56,
                        "logoUrl": None,
                    }
                ],
            }
        ],
        "updatedAt": 1700000000.0,
    }
