"""Service modules"""
from .bulk_refresh import BulkRefreshCoordinator
from .chain_aggregator import ChainAggregator
from .portfolio import PortfolioAggregator, PortfolioStore
from .price_cache import PriceCache
from .single_flight import SingleFlight
from .tracker import PortfolioTracker

__all__ = [
    "BulkRefreshCoordinator",
    "ChainAggregator",
    "PortfolioAggregator",
    "PortfolioStore",
    "PortfolioTracker",
    "PriceCache",
    "SingleFlight",
]
