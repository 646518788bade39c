"""Exception taxonomy for provider and configuration failures."""
from __future__ import annotations


class WalletNetworthError(Exception):
    """Base class for all errors raised by this package."""


class ProviderError(WalletNetworthError):
    """A balance or price provider was unreachable or returned bad data."""


class RateLimited(ProviderError):
    """The provider answered HTTP 429."""


class ConfigurationError(WalletNetworthError):
    """A provider is missing a required setting such as an API key."""
