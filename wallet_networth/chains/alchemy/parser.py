"""Pure parsing functions for Alchemy JSON-RPC payloads, no I/O."""
from __future__ import annotations

from typing import Any

from ...errors import ProviderError
from ...models import TokenHolding

NATIVE_DECIMALS = 18


def parse_quantity(value: Any) -> int:
    """Parse a JSON-RPC hex quantity (``"0x1bc16d674ec80000"``) into an int.

    Raises:
        ProviderError: if the value is not a hex or decimal integer string.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if not isinstance(value, str) or not value:
        raise ProviderError(f"Malformed quantity: {value!r}")
    try:
        if value.lower().startswith("0x"):
            return int(value, 16) if len(value) > 2 else 0
        return int(value)
    except ValueError as e:
        raise ProviderError(f"Malformed quantity: {value!r}") from e


def to_units(raw: int, decimals: int) -> float:
    """Convert a raw integer balance to human units."""
    return raw / (10**decimals)


def parse_native_balance(result: Any) -> tuple[int, float]:
    """Return ``(wei, ether_units)`` from an ``eth_getBalance`` result."""
    wei = parse_quantity(result)
    return wei, to_units(wei, NATIVE_DECIMALS)


def parse_token_balances(result: Any) -> tuple[list[tuple[str, int]], str | None]:
    """Parse one ``alchemy_getTokenBalances`` page.

    Returns the non-zero ``(contract_address, raw_balance)`` pairs in provider
    order and the next page key (``None`` on the last page).
    """
    if not isinstance(result, dict) or "tokenBalances" not in result:
        raise ProviderError("Malformed token balance response")

    balances: list[tuple[str, int]] = []
    for entry in result.get("tokenBalances") or []:
        if not isinstance(entry, dict) or entry.get("error"):
            continue
        contract = entry.get("contractAddress")
        raw_value = entry.get("tokenBalance")
        if not contract or raw_value is None:
            continue
        raw = parse_quantity(raw_value)
        if raw > 0:
            balances.append((contract, raw))

    return balances, result.get("pageKey") or None


def build_holding(contract: str, raw: int, metadata: dict[str, Any]) -> TokenHolding | None:
    """Combine a balance with ``alchemy_getTokenMetadata`` output.

    Tokens without a symbol or decimals cannot be displayed or valued and
    yield ``None``.
    """
    if not isinstance(metadata, dict):
        return None
    symbol = metadata.get("symbol")
    decimals = metadata.get("decimals")
    if not symbol or decimals is None:
        return None

    try:
        decimals = int(decimals)
    except (TypeError, ValueError):
        return None

    return TokenHolding(
        address=contract,
        raw_balance=raw,
        decimals=decimals,
        balance_formatted=to_units(raw, decimals),
        symbol=symbol,
        name=metadata.get("name") or symbol,
        logo_url=metadata.get("logo") or None,
    )
