from .client import AlchemyClient

__all__ = ["AlchemyClient"]
