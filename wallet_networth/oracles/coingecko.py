"""CoinGecko price oracle."""
from __future__ import annotations

import asyncio
import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ..config import CoinGeckoConfig
from ..errors import ProviderError, RateLimited

logger = logging.getLogger(__name__)


class CoinGeckoOracle:
    """Fetch USD prices from the CoinGecko simple price endpoints."""

    def __init__(self, config: CoinGeckoConfig) -> None:
        self.base_url = config.base_url.rstrip("/")
        self.api_key = config.api_key
        self.timeout = config.timeout

    async def _get(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        """GET a JSON object, mapping 429 to RateLimited and the rest to ProviderError."""
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["x-cg-demo-api-key"] = self.api_key

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.get(
                    f"{self.base_url}{path}",
                    params=params,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status == 429:
                        raise RateLimited(f"CoinGecko {path}: HTTP 429")
                    if response.status != 200:
                        raise ProviderError(f"CoinGecko {path}: HTTP {response.status}")
                    data = await response.json()
        except ProviderError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError, OSError) as e:
            raise ProviderError(f"CoinGecko {path} failed: {e}") from e

        if not isinstance(data, dict):
            raise ProviderError(f"CoinGecko {path}: malformed response")
        return data

    @staticmethod
    def _usd_prices(data: dict[str, Any]) -> dict[str, float]:
        prices: dict[str, float] = {}
        for key, price_data in data.items():
            if not isinstance(price_data, dict):
                continue
            usd = price_data.get("usd")
            if usd is None:
                continue
            try:
                prices[key.lower()] = float(usd)
            except (TypeError, ValueError):
                logger.debug("Ignoring malformed CoinGecko price for %s: %r", key, usd)
        return prices

    async def batch_token_prices(
        self, platform: str, addresses: list[str]
    ) -> dict[str, float]:
        """Prices for contract addresses on one asset platform, keyed lowercase."""
        if not addresses:
            return {}
        data = await self._get(
            f"/simple/token_price/{platform}",
            {"contract_addresses": ",".join(addresses), "vs_currencies": "usd"},
        )
        prices = self._usd_prices(data)
        logger.debug(
            "CoinGecko priced %d/%d tokens on %s", len(prices), len(addresses), platform
        )
        return prices

    async def batch_prices(self, coin_ids: list[str]) -> dict[str, float]:
        """Prices for CoinGecko coin ids."""
        if not coin_ids:
            return {}
        data = await self._get(
            "/simple/price", {"ids": ",".join(coin_ids), "vs_currencies": "usd"}
        )
        return self._usd_prices(data)

    async def single_price(self, coin_id: str) -> float | None:
        prices = await self.batch_prices([coin_id])
        return prices.get(coin_id.lower())
