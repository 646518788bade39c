"""Cross-chain wallet net worth with cached, rate-limit aware price lookups."""

__version__ = "0.1.0"
