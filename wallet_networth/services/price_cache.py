"""TTL price cache in front of the price oracle.

Two sub-caches share the TTL policy:

* token batches, keyed by ``(platform, sorted lowercase addresses)``; fetched in
  chunks, retrying a rate-limited chunk until it succeeds;
* native coin prices, keyed by coin id; a rate-limited or failed lookup falls
  back to the last known price, however old.

Lookups through either path are coalesced so that at most one request per key
is outstanding. Ordinary provider failures never escape this class.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Iterable

from ..config import PriceCacheConfig
from ..errors import ProviderError, RateLimited
from ..interfaces.price_oracle import PriceOracle
from ..models import PriceCacheEntry
from .single_flight import SingleFlight

logger = logging.getLogger(__name__)

TokenKey = tuple[str, tuple[str, ...]]


def normalize_addresses(addresses: Iterable[str]) -> tuple[str, ...]:
    """Lowercase, deduplicate and sort token addresses."""
    return tuple(sorted({a.lower() for a in addresses}))


def chunked(items: tuple[str, ...], size: int) -> list[tuple[str, ...]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class PriceCache:
    """Cached USD prices for tokens and native coins."""

    def __init__(
        self,
        oracle: PriceOracle,
        config: PriceCacheConfig | None = None,
        native_coin_ids: Iterable[str] = (),
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._oracle = oracle
        self._config = config or PriceCacheConfig()
        self._native_coin_ids = tuple(native_coin_ids)
        self._clock = clock
        self._sleep = sleep
        self._token_entries: dict[TokenKey, PriceCacheEntry] = {}
        self._native_entries: dict[str, PriceCacheEntry] = {}
        self._flight: SingleFlight = SingleFlight()

    @property
    def ttl(self) -> float:
        return self._config.ttl_seconds

    def _is_live(self, entry: PriceCacheEntry | None) -> bool:
        return entry is not None and entry.is_live(self._clock(), self.ttl)

    # ------------------------------------------------------------------
    # Token batches
    # ------------------------------------------------------------------

    async def get_prices(self, platform: str, addresses: Iterable[str]) -> dict[str, float]:
        """Prices for token contracts on one platform, keyed by lowercase address.

        Addresses without a price are omitted.
        """
        normalized = normalize_addresses(addresses)
        if not normalized:
            return {}

        key: TokenKey = (platform, normalized)
        entry = self._token_entries.get(key)
        if self._is_live(entry):
            return dict(entry.value)

        return await self._flight.do(
            ("tokens", key), lambda: self._fetch_token_prices(key)
        )

    async def _fetch_token_prices(self, key: TokenKey) -> dict[str, float]:
        platform, addresses = key
        chunks = chunked(addresses, self._config.chunk_size)
        prices: dict[str, float] = {}

        for index, chunk in enumerate(chunks):
            while True:
                try:
                    result = await self._oracle.batch_token_prices(platform, list(chunk))
                except RateLimited:
                    logger.warning(
                        "Rate limited pricing chunk %d/%d on %s, retrying in %.1fs",
                        index + 1, len(chunks), platform,
                        self._config.rate_limit_backoff_seconds,
                    )
                    await self._sleep(self._config.rate_limit_backoff_seconds)
                    continue
                except ProviderError as e:
                    logger.warning(
                        "Skipping price chunk %d/%d on %s: %s",
                        index + 1, len(chunks), platform, e,
                    )
                    break

                prices.update({a.lower(): p for a, p in result.items()})
                if index < len(chunks) - 1:
                    await self._sleep(self._config.inter_chunk_delay_seconds)
                break

        self._token_entries[key] = PriceCacheEntry.for_prices(prices, self._clock())
        logger.debug("Cached %d/%d token prices on %s", len(prices), len(addresses), platform)
        return dict(prices)

    # ------------------------------------------------------------------
    # Native coins
    # ------------------------------------------------------------------

    async def get_native_price(self, coin_id: str) -> float | None:
        """USD price of a native coin, or None when unknown."""
        if not coin_id:
            return None

        entry = self._native_entries.get(coin_id)
        if self._is_live(entry):
            return entry.value

        return await self._flight.do(
            ("native", coin_id), lambda: self._fetch_native_price(coin_id)
        )

    async def _fetch_native_price(self, coin_id: str) -> float | None:
        cached = self._native_entries.get(coin_id)
        fallback = cached.value if cached is not None else None

        try:
            price = await self._oracle.single_price(coin_id)
        except RateLimited:
            logger.warning("Rate limited pricing %s, using cached price %s", coin_id, fallback)
            return fallback
        except ProviderError as e:
            logger.warning("Failed to price %s (%s), using cached price %s", coin_id, e, fallback)
            return fallback

        if price is not None:
            self._native_entries[coin_id] = PriceCacheEntry(value=price, timestamp=self._clock())
        return price

    async def preload_native_prices(self, coin_ids: Iterable[str] | None = None) -> None:
        """Fetch every stale native coin price in one request.

        Each coin in the batch is registered as in flight, so concurrent
        ``get_native_price`` calls wait for the batch instead of sending their
        own request. Coins with a lookup already in flight are left to it.
        """
        ids = tuple(dict.fromkeys(coin_ids if coin_ids is not None else self._native_coin_ids))
        to_fetch = [
            c for c in ids
            if c
            and not self._is_live(self._native_entries.get(c))
            and ("native", c) not in self._flight
        ]
        if not to_fetch:
            return

        batch = asyncio.ensure_future(self._fetch_native_batch(to_fetch))

        async def price_of(coin_id: str) -> float | None:
            prices = await asyncio.shield(batch)
            return prices.get(coin_id)

        waiters = [
            self._flight.start(("native", c), lambda c=c: price_of(c)) for c in to_fetch
        ]
        await asyncio.gather(*(asyncio.shield(w) for w in waiters))

    async def _fetch_native_batch(self, coin_ids: list[str]) -> dict[str, float | None]:
        try:
            prices = await self._oracle.batch_prices(coin_ids)
        except ProviderError as e:
            logger.warning("Failed to preload native prices: %s", e)
            return {
                c: self._native_entries[c].value
                for c in coin_ids
                if c in self._native_entries
            }

        now = self._clock()
        for coin_id in coin_ids:
            price = prices.get(coin_id)
            if price is not None:
                self._native_entries[coin_id] = PriceCacheEntry(value=price, timestamp=now)
        logger.info("Preloaded %d/%d native prices", len(prices), len(coin_ids))
        return {c: prices.get(c) for c in coin_ids}
