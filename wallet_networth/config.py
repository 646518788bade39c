"""Configuration loader: reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

STRATEGY_PER_CHAIN = "per_chain"
STRATEGY_MULTI_CHAIN = "multi_chain"
STRATEGIES = (STRATEGY_PER_CHAIN, STRATEGY_MULTI_CHAIN)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChainConfig:
    id: str = ""
    name: str = ""
    native_symbol: str = ""
    balance_network: str = ""
    price_platform: str = ""
    native_coin_id: str = ""
    multichain_id: str = ""


@dataclass(frozen=True)
class PortfolioConfig:
    strategy: str = STRATEGY_PER_CHAIN
    min_value_usd: float = 0.01


@dataclass(frozen=True)
class PriceCacheConfig:
    ttl_seconds: float = 300.0
    chunk_size: int = 100
    rate_limit_backoff_seconds: float = 10.0
    inter_chunk_delay_seconds: float = 1.5


@dataclass(frozen=True)
class BulkRefreshConfig:
    cooldown_seconds: float = 300.0
    unit_cost_per_address: int = 10


@dataclass(frozen=True)
class AlchemyConfig:
    api_key: str = ""
    url_template: str = "https://{network}.g.alchemy.com/v2/{api_key}"
    timeout: int = 30


@dataclass(frozen=True)
class CoinGeckoConfig:
    base_url: str = "https://api.coingecko.com/api/v3"
    api_key: str = ""
    timeout: int = 30


@dataclass(frozen=True)
class DebankConfig:
    base_url: str = "https://pro-openapi.debank.com"
    api_key: str = ""
    timeout: int = 30


@dataclass(frozen=True)
class ProvidersConfig:
    alchemy: AlchemyConfig = field(default_factory=AlchemyConfig)
    coingecko: CoinGeckoConfig = field(default_factory=CoinGeckoConfig)
    debank: DebankConfig = field(default_factory=DebankConfig)


@dataclass(frozen=True)
class AppConfig:
    portfolio: PortfolioConfig = field(default_factory=PortfolioConfig)
    price_cache: PriceCacheConfig = field(default_factory=PriceCacheConfig)
    bulk_refresh: BulkRefreshConfig = field(default_factory=BulkRefreshConfig)
    providers: ProvidersConfig = field(default_factory=ProvidersConfig)
    chains: dict[str, ChainConfig] = field(default_factory=dict)

    def native_coin_ids(self) -> tuple[str, ...]:
        """Distinct native coin ids across configured chains, in chain order."""
        seen: dict[str, None] = {}
        for chain in self.chains.values():
            if chain.native_coin_id:
                seen.setdefault(chain.native_coin_id, None)
        return tuple(seen)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_portfolio(raw: dict[str, Any]) -> PortfolioConfig:
    return PortfolioConfig(
        strategy=raw.get("strategy", STRATEGY_PER_CHAIN),
        min_value_usd=float(raw.get("min_value_usd", 0.01)),
    )


def _build_price_cache(raw: dict[str, Any]) -> PriceCacheConfig:
    return PriceCacheConfig(
        ttl_seconds=float(raw.get("ttl_seconds", 300.0)),
        chunk_size=int(raw.get("chunk_size", 100)),
        rate_limit_backoff_seconds=float(raw.get("rate_limit_backoff_seconds", 10.0)),
        inter_chunk_delay_seconds=float(raw.get("inter_chunk_delay_seconds", 1.5)),
    )


def _build_bulk_refresh(raw: dict[str, Any]) -> BulkRefreshConfig:
    return BulkRefreshConfig(
        cooldown_seconds=float(raw.get("cooldown_seconds", 300.0)),
        unit_cost_per_address=int(raw.get("unit_cost_per_address", 10)),
    )


def _build_providers(raw: dict[str, Any]) -> ProvidersConfig:
    al = raw.get("alchemy", {})
    cg = raw.get("coingecko", {})
    db = raw.get("debank", {})
    return ProvidersConfig(
        alchemy=AlchemyConfig(
            api_key=al.get("api_key", ""),
            url_template=al.get("url_template", AlchemyConfig.url_template),
            timeout=int(al.get("timeout", 30)),
        ),
        coingecko=CoinGeckoConfig(
            base_url=cg.get("base_url", CoinGeckoConfig.base_url),
            api_key=cg.get("api_key", ""),
            timeout=int(cg.get("timeout", 30)),
        ),
        debank=DebankConfig(
            base_url=db.get("base_url", DebankConfig.base_url),
            api_key=db.get("api_key", ""),
            timeout=int(db.get("timeout", 30)),
        ),
    )


def _build_chains(raw: dict[str, Any]) -> dict[str, ChainConfig]:
    chains: dict[str, ChainConfig] = {}
    for chain_id, cfg in raw.items():
        chains[chain_id] = ChainConfig(
            id=chain_id,
            name=cfg.get("name", ""),
            native_symbol=cfg.get("native_symbol", ""),
            balance_network=cfg.get("balance_network", ""),
            price_platform=cfg.get("price_platform", chain_id),
            native_coin_id=cfg.get("native_coin_id", ""),
            multichain_id=cfg.get("multichain_id", ""),
        )
    return chains


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (two levels up from this file).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        portfolio=_build_portfolio(raw.get("portfolio", {})),
        price_cache=_build_price_cache(raw.get("price_cache", {})),
        bulk_refresh=_build_bulk_refresh(raw.get("bulk_refresh", {})),
        providers=_build_providers(raw.get("providers", {})),
        chains=_build_chains(raw.get("chains", {})),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.chains:
        raise ValueError("At least one chain must be configured")

    if cfg.portfolio.strategy not in STRATEGIES:
        raise ValueError(
            f"Unknown portfolio strategy '{cfg.portfolio.strategy}' "
            f"(expected one of {', '.join(STRATEGIES)})"
        )

    for chain in cfg.chains.values():
        if not chain.name:
            raise ValueError(f"Chain '{chain.id}' has no name")
        if not chain.native_symbol:
            raise ValueError(f"Chain '{chain.id}' has no native symbol")

    if cfg.price_cache.ttl_seconds <= 0:
        raise ValueError("price_cache.ttl_seconds must be positive")
    if cfg.price_cache.chunk_size <= 0:
        raise ValueError("price_cache.chunk_size must be positive")
    if (
        cfg.price_cache.rate_limit_backoff_seconds < 0
        or cfg.price_cache.inter_chunk_delay_seconds < 0
    ):
        raise ValueError("price_cache delays must not be negative")
    if cfg.bulk_refresh.cooldown_seconds < 0:
        raise ValueError("bulk_refresh.cooldown_seconds must not be negative")
