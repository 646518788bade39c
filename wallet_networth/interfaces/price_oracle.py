"""Price oracle protocol: USD price feed abstraction.

Implementations raise ``RateLimited`` on HTTP 429 and ``ProviderError`` on any
other failure.
"""
from typing import Protocol


class PriceOracle(Protocol):
    """Abstract interface for fetching USD prices."""

    async def batch_token_prices(
        self, platform: str, addresses: list[str]
    ) -> dict[str, float]: ...

    async def single_price(self, coin_id: str) -> float | None: ...

    async def batch_prices(self, coin_ids: list[str]) -> dict[str, float]: ...
