"""Alchemy JSON-RPC balance source for EVM chains."""
from __future__ import annotations

import asyncio
import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ...config import AlchemyConfig, ChainConfig
from ...errors import ConfigurationError, ProviderError
from ...models import BalanceResult, TokenHolding
from . import parser

logger = logging.getLogger(__name__)


class AlchemyClient:
    """Native and ERC20 balances of one address on one chain."""

    def __init__(self, config: AlchemyConfig) -> None:
        if not config.api_key:
            raise ConfigurationError("Alchemy API key is not set")
        self.api_key = config.api_key
        self.url_template = config.url_template
        self.timeout = config.timeout

    def endpoint(self, network: str) -> str:
        return self.url_template.format(network=network, api_key=self.api_key)

    async def rpc_call(self, network: str, method: str, params: list[Any]) -> Any:
        """Make one JSON-RPC call against the network's endpoint."""
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.post(
                    self.endpoint(network),
                    json=payload,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status != 200:
                        raise ProviderError(
                            f"Alchemy {method} on {network}: HTTP {response.status}"
                        )
                    result = await response.json()
        except ProviderError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError, OSError) as e:
            raise ProviderError(f"Alchemy {method} on {network} failed: {e}") from e

        if not isinstance(result, dict):
            raise ProviderError(f"Alchemy {method} on {network}: malformed response")
        if "error" in result:
            raise ProviderError(f"RPC Error: {result['error']}")
        return result.get("result")

    async def get_native_balance(self, address: str, chain: ChainConfig) -> tuple[int, float]:
        """Return ``(wei, balance)`` of the chain's native coin."""
        result = await self.rpc_call(
            chain.balance_network, "eth_getBalance", [address, "latest"]
        )
        return parser.parse_native_balance(result)

    async def get_token_balances(self, address: str, chain: ChainConfig) -> list[TokenHolding]:
        """Get all non-zero ERC20 balances with metadata (paginated)."""
        balances: list[tuple[str, int]] = []
        page_key = None

        while True:
            params: list[Any] = [address, "erc20"]
            if page_key:
                params.append({"pageKey": page_key})
            result = await self.rpc_call(
                chain.balance_network, "alchemy_getTokenBalances", params
            )
            page, page_key = parser.parse_token_balances(result)
            balances.extend(page)
            if not page_key:
                break

        holdings = await asyncio.gather(
            *(self._get_holding(chain, contract, raw) for contract, raw in balances)
        )
        return [h for h in holdings if h is not None]

    async def _get_holding(
        self, chain: ChainConfig, contract: str, raw: int
    ) -> TokenHolding | None:
        try:
            metadata = await self.rpc_call(
                chain.balance_network, "alchemy_getTokenMetadata", [contract]
            )
        except ProviderError as e:
            logger.debug("Skipping %s on %s: metadata unavailable (%s)", contract, chain.id, e)
            return None

        holding = parser.build_holding(contract, raw, metadata or {})
        if holding is None:
            logger.debug("Skipping %s on %s: incomplete metadata", contract, chain.id)
        return holding

    async def fetch_balances(self, address: str, chain: ChainConfig) -> BalanceResult:
        """Fetch native balance and token holdings concurrently."""
        (native_raw, native_balance), holdings = await asyncio.gather(
            self.get_native_balance(address, chain),
            self.get_token_balances(address, chain),
        )
        logger.debug(
            "%s on %s: %.6f %s, %d tokens",
            address, chain.id, native_balance, chain.native_symbol, len(holdings),
        )
        return BalanceResult(
            native_balance=native_balance,
            holdings=tuple(holdings),
            native_raw=native_raw,
        )
