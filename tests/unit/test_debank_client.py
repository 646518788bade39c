"""Unit tests for the DeBank multi-chain client."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from wallet_networth.chains.debank import DebankClient
from wallet_networth.chains.debank.client import parse_token
from wallet_networth.config import DebankConfig
from wallet_networth.errors import ConfigurationError, ProviderError, RateLimited
from wallet_networth.models import NATIVE_TOKEN_ADDRESS

WALLET = "0xAAAA000000000000000000000000000000000001"

ETH_ITEM = {
    "id": "eth",
    "chain": "eth",
    "name": "ETH",
    "symbol": "ETH",
    "decimals": 18,
    "logo_url": "https://static.debank.com/eth.png",
    "price": 3000.0,
    "amount": 2.0,
    "raw_amount": 2 * 10**18,
}
SCAM_ITEM = {
    "id": "0x1111111111111111111111111111111111111111",
    "chain": "arb",
    "symbol": "SCAM",
    "decimals": 18,
    "price": 0,
    "amount": 1000.0,
}


@pytest.fixture()
def client() -> DebankClient:
    return DebankClient(
        DebankConfig(base_url="https://pro-openapi.example.com", api_key="key", timeout=5)
    )


def _mock_session(status: int = 200, data: object = None):
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.json = AsyncMock(return_value=data)
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)

    mock_session = AsyncMock()
    mock_session.get = MagicMock(return_value=mock_response)
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=None)
    return mock_session


class TestParseToken:
    def test_native_gets_zero_address(self) -> None:
        token = parse_token(ETH_ITEM)
        assert token.address == NATIVE_TOKEN_ADDRESS
        assert token.chain == "eth"
        assert token.value == 6000.0
        assert token.balance == str(2 * 10**18)

    def test_zero_price_is_unpriced(self) -> None:
        token = parse_token(SCAM_ITEM)
        assert token.price is None
        assert token.value is None
        assert token.balance == str(1000 * 10**18)
        assert token.name == "SCAM"

    def test_malformed_price_is_unpriced(self) -> None:
        token = parse_token({**ETH_ITEM, "price": "n/a", "raw_amount": "garbage"})
        assert token.price is None
        assert token.value is None
        assert token.balance == str(2 * 10**18)

    def test_malformed_entry(self) -> None:
        with pytest.raises(ProviderError):
            parse_token({"chain": "eth"})


class TestDebankClient:
    def test_requires_api_key(self) -> None:
        with pytest.raises(ConfigurationError):
            DebankClient(DebankConfig(api_key=""))

    @pytest.mark.asyncio
    async def test_fetch_all_chains_balances(self, client: DebankClient) -> None:
        session = _mock_session(data=[ETH_ITEM, SCAM_ITEM])

        with patch("wallet_networth.chains.debank.client.aiohttp.ClientSession", return_value=session):
            with patch("wallet_networth.chains.debank.client.aiohttp.TCPConnector"):
                result = await client.fetch_all_chains_balances(WALLET)

        assert len(result.tokens) == 2
        assert result.total_usd == 6000.0
        url = session.get.call_args.args[0]
        assert url == "https://pro-openapi.example.com/v1/user/all_token_list"
        kwargs = session.get.call_args.kwargs
        assert kwargs["params"] == {"id": WALLET.lower(), "is_all": "true"}
        assert kwargs["headers"]["AccessKey"] == "key"

    @pytest.mark.asyncio
    async def test_rate_limited(self, client: DebankClient) -> None:
        with patch(
            "wallet_networth.chains.debank.client.aiohttp.ClientSession",
            return_value=_mock_session(status=429),
        ):
            with patch("wallet_networth.chains.debank.client.aiohttp.TCPConnector"):
                with pytest.raises(RateLimited):
                    await client.fetch_all_chains_balances(WALLET)

    @pytest.mark.asyncio
    async def test_non_list_response(self, client: DebankClient) -> None:
        with patch(
            "wallet_networth.chains.debank.client.aiohttp.ClientSession",
            return_value=_mock_session(data={"error": "bad"}),
        ):
            with patch("wallet_networth.chains.debank.client.aiohttp.TCPConnector"):
                with pytest.raises(ProviderError, match="Malformed"):
                    await client.fetch_all_chains_balances(WALLET)
