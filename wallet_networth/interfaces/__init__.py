"""Provider interfaces for the portfolio pipeline."""
from .balance_source import BalanceSource, MultiChainBalanceSource
from .price_oracle import PriceOracle

__all__ = ["BalanceSource", "MultiChainBalanceSource", "PriceOracle"]
