"""Unit tests for Alchemy payload parsing (pure functions, no I/O)."""
from __future__ import annotations

import pytest

from wallet_networth.chains.alchemy.parser import (
    build_holding,
    parse_native_balance,
    parse_quantity,
    parse_token_balances,
)
from wallet_networth.errors import ProviderError

USDC = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"


class TestParseQuantity:
    def test_hex(self) -> None:
        assert parse_quantity("0x1bc16d674ec80000") == 2 * 10**18

    def test_bare_prefix_is_zero(self) -> None:
        assert parse_quantity("0x") == 0

    def test_decimal_string(self) -> None:
        assert parse_quantity("1500") == 1500

    def test_int_passthrough(self) -> None:
        assert parse_quantity(7) == 7

    @pytest.mark.parametrize("bad", ["", "0xzz", None, True, 1.5])
    def test_malformed(self, bad: object) -> None:
        with pytest.raises(ProviderError, match="Malformed quantity"):
            parse_quantity(bad)


class TestParseNativeBalance:
    def test_wei_and_units(self) -> None:
        wei, units = parse_native_balance("0x1bc16d674ec80000")
        assert wei == 2 * 10**18
        assert units == pytest.approx(2.0)


class TestParseTokenBalances:
    def test_skips_zero_and_errored_entries(self) -> None:
        result = {
            "address": "0xwallet",
            "tokenBalances": [
                {"contractAddress": USDC, "tokenBalance": "0x59682f00"},
                {"contractAddress": "0xzero", "tokenBalance": "0x0"},
                {
                    "contractAddress": "0xbroken",
                    "tokenBalance": None,
                    "error": "execution reverted",
                },
            ],
        }
        balances, page_key = parse_token_balances(result)
        assert balances == [(USDC, 1_500_000_000)]
        assert page_key is None

    def test_skips_non_object_entries(self) -> None:
        balances, _ = parse_token_balances(
            {"tokenBalances": ["0xabc", None, {"contractAddress": USDC, "tokenBalance": "0x1"}]}
        )
        assert balances == [(USDC, 1)]

    def test_page_key(self) -> None:
        _, page_key = parse_token_balances({"tokenBalances": [], "pageKey": "next-1"})
        assert page_key == "next-1"

    def test_missing_balances_raises(self) -> None:
        with pytest.raises(ProviderError, match="Malformed token balance"):
            parse_token_balances({"unexpected": True})


class TestBuildHolding:
    def test_complete_metadata(self) -> None:
        holding = build_holding(
            USDC,
            1_500_000_000,
            {"symbol": "USDC", "name": "USD Coin", "decimals": 6, "logo": "https://x/usdc.png"},
        )
        assert holding is not None
        assert holding.balance_formatted == pytest.approx(1500.0)
        assert holding.name == "USD Coin"
        assert holding.logo_url == "https://x/usdc.png"

    def test_zero_decimals_allowed(self) -> None:
        holding = build_holding(USDC, 3, {"symbol": "NFTX", "decimals": 0})
        assert holding is not None
        assert holding.balance_formatted == 3.0
        assert holding.name == "NFTX"

    def test_non_object_metadata(self) -> None:
        assert build_holding(USDC, 1, ["USDC", 6]) is None

    @pytest.mark.parametrize(
        "metadata",
        [{"decimals": 18}, {"symbol": "X"}, {"symbol": "X", "decimals": "abc"}, {}],
    )
    def test_incomplete_metadata(self, metadata: dict) -> None:
        assert build_holding(USDC, 1, metadata) is None
