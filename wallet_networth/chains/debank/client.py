"""DeBank OpenAPI client: every chain's priced tokens in one call."""
from __future__ import annotations

import asyncio
import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ...config import DebankConfig
from ...errors import ConfigurationError, ProviderError, RateLimited
from ...models import NATIVE_TOKEN_ADDRESS, MultiChainBalances, PricedToken

logger = logging.getLogger(__name__)

# Display names for DeBank chain ids that may not be configured locally.
DEBANK_CHAIN_NAMES: dict[str, str] = {
    "eth": "Ethereum",
    "bsc": "BNB Chain",
    "xdai": "Gnosis",
    "matic": "Polygon",
    "ftm": "Fantom",
    "avax": "Avalanche",
    "op": "Optimism",
    "arb": "Arbitrum",
    "celo": "Celo",
    "cro": "Cronos",
    "metis": "Metis",
    "aurora": "Aurora",
    "mobm": "Moonbeam",
    "movr": "Moonriver",
    "klay": "Klaytn",
    "nova": "Arbitrum Nova",
    "canto": "Canto",
    "kava": "Kava",
    "pze": "Polygon zkEVM",
    "era": "zkSync Era",
    "core": "Core",
    "pls": "PulseChain",
    "ron": "Ronin",
    "linea": "Linea",
    "base": "Base",
    "mantle": "Mantle",
    "scroll": "Scroll",
    "opbnb": "opBNB",
    "manta": "Manta Pacific",
    "blast": "Blast",
    "mode": "Mode",
    "taiko": "Taiko",
    "zora": "Zora",
}


def parse_token(item: dict[str, Any]) -> PricedToken:
    """Convert one ``all_token_list`` entry into a PricedToken.

    DeBank reports native coins with a non-contract id (e.g. ``"eth"``); those
    get the zero address. A zero or missing price means no price.
    """
    try:
        token_id = str(item["id"])
        chain = str(item["chain"])
        decimals = int(item.get("decimals") or 0)
        amount = float(item.get("amount") or 0.0)
    except (KeyError, TypeError, ValueError) as e:
        raise ProviderError(f"Malformed DeBank token entry: {item!r}") from e

    address = token_id if token_id.startswith("0x") else NATIVE_TOKEN_ADDRESS
    raw_price = item.get("price")
    try:
        price = float(raw_price) if raw_price else None
    except (TypeError, ValueError):
        logger.debug("Ignoring malformed DeBank price for %s: %r", token_id, raw_price)
        price = None
    symbol = item.get("symbol") or ""

    try:
        raw_amount = int(item["raw_amount"])
    except (KeyError, TypeError, ValueError):
        raw_amount = round(amount * 10**decimals)

    return PricedToken(
        address=address,
        chain=chain,
        symbol=symbol,
        name=item.get("name") or symbol,
        decimals=decimals,
        balance=str(raw_amount),
        balance_formatted=amount,
        price=price,
        value=amount * price if price is not None else None,
        logo_url=item.get("logo_url") or None,
    )


class DebankClient:
    """Fetch a wallet's tokens across all chains from DeBank."""

    def __init__(self, config: DebankConfig) -> None:
        if not config.api_key:
            raise ConfigurationError("DeBank API key is not set")
        self.base_url = config.base_url.rstrip("/")
        self.api_key = config.api_key
        self.timeout = config.timeout

    async def _get(self, path: str, params: dict[str, str]) -> Any:
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.get(
                    f"{self.base_url}{path}",
                    params=params,
                    headers={"AccessKey": self.api_key, "Accept": "application/json"},
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status == 429:
                        raise RateLimited(f"DeBank {path}: HTTP 429")
                    if response.status != 200:
                        raise ProviderError(f"DeBank {path}: HTTP {response.status}")
                    return await response.json()
        except ProviderError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError, OSError) as e:
            raise ProviderError(f"DeBank {path} failed: {e}") from e

    async def fetch_all_chains_balances(self, address: str) -> MultiChainBalances:
        """Get every token the address holds on every chain DeBank indexes."""
        data = await self._get(
            "/v1/user/all_token_list",
            {"id": address.lower(), "is_all": "true"},
        )
        if not isinstance(data, list):
            raise ProviderError("Malformed DeBank token list response")

        tokens = tuple(parse_token(item) for item in data)
        total = sum(t.value for t in tokens if t.value is not None)
        logger.info(
            "DeBank returned %d tokens for %s (total $%.2f)", len(tokens), address, total
        )
        return MultiChainBalances(tokens=tokens, total_usd=total)
