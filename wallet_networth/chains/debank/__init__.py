from .client import DebankClient

__all__ = ["DebankClient"]
