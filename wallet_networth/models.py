"""Data models: all frozen (immutable)."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

NATIVE_TOKEN_ADDRESS = "0x0000000000000000000000000000000000000000"


@dataclass(frozen=True)
class TokenHolding:
    """Raw balance of one token (or the native coin) as reported by a provider."""

    address: str
    raw_balance: int
    decimals: int
    balance_formatted: float
    symbol: str = ""
    name: str = ""
    logo_url: str | None = None

    @property
    def is_native(self) -> bool:
        return self.address == NATIVE_TOKEN_ADDRESS


@dataclass(frozen=True)
class BalanceResult:
    """Everything one address holds on one chain."""

    native_balance: float
    holdings: tuple[TokenHolding, ...] = ()
    native_raw: int = 0


@dataclass(frozen=True)
class PricedToken:
    """A holding with its USD price and value."""

    address: str
    chain: str
    symbol: str
    name: str
    decimals: int
    balance: str
    balance_formatted: float
    price: float | None
    value: float | None
    logo_url: str | None = None

    @classmethod
    def from_holding(
        cls, holding: TokenHolding, chain: str, price: float | None
    ) -> PricedToken:
        value = holding.balance_formatted * price if price is not None else None
        return cls(
            address=holding.address,
            chain=chain,
            symbol=holding.symbol,
            name=holding.name or holding.symbol,
            decimals=holding.decimals,
            balance=str(holding.raw_balance),
            balance_formatted=holding.balance_formatted,
            price=price,
            value=value,
            logo_url=holding.logo_url,
        )


@dataclass(frozen=True)
class ChainBalance:
    """Priced holdings of one address on one chain."""

    chain_id: str
    chain_name: str
    net_worth: float = 0.0
    tokens: tuple[PricedToken, ...] = ()
    is_error: bool = False
    error: str | None = None


class FetchStatus(str, enum.Enum):
    NOT_FETCHED = "not_fetched"
    LOADING = "loading"
    FETCHED = "fetched"
    ERROR = "error"


@dataclass(frozen=True)
class PortfolioSnapshot:
    """Net worth of one address across all chains."""

    address: str
    total_net_worth: float = 0.0
    chains: tuple[ChainBalance, ...] = ()
    status: FetchStatus = FetchStatus.NOT_FETCHED
    updated_at: float | None = None
    error: str | None = None

    @property
    def chains_with_value(self) -> tuple[ChainBalance, ...]:
        return tuple(c for c in self.chains if c.net_worth > 0)

    @property
    def is_fetched(self) -> bool:
        """True once at least one fetch (or import) has completed."""
        return self.updated_at is not None


@dataclass(frozen=True)
class MultiChainBalances:
    """Flat, chain-tagged token list from an all-chains provider call."""

    tokens: tuple[PricedToken, ...] = ()
    total_usd: float = 0.0


@dataclass(frozen=True)
class PriceCacheEntry:
    """Cached price lookup; replaced wholesale on re-fetch."""

    value: Mapping[str, float] | float
    timestamp: float

    @classmethod
    def for_prices(cls, prices: dict[str, float], timestamp: float) -> PriceCacheEntry:
        return cls(value=MappingProxyType(dict(prices)), timestamp=timestamp)

    def is_live(self, now: float, ttl: float) -> bool:
        return now - self.timestamp < ttl


class RefreshStatus(str, enum.Enum):
    COMPLETED = "completed"
    NOTHING_TO_DO = "nothing_to_do"
    COOLDOWN_ACTIVE = "cooldown_active"
    DECLINED = "declined"


@dataclass(frozen=True)
class BulkRefreshPlan:
    """Addresses a bulk refresh would load and what it would cost."""

    unloaded: tuple[str, ...] = ()
    estimated_cost: int = 0


@dataclass(frozen=True)
class BulkRefreshResult:
    """Outcome of a bulk refresh request."""

    status: RefreshStatus
    plan: BulkRefreshPlan = field(default_factory=BulkRefreshPlan)
    succeeded: tuple[str, ...] = ()
    failed: dict[str, str] = field(default_factory=dict)
    cooldown_remaining: float = 0.0
