"""Snapshot interchange records (JSON) for export and import."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from .models import ChainBalance, FetchStatus, PortfolioSnapshot, PricedToken

logger = logging.getLogger(__name__)


def token_to_record(token: PricedToken) -> dict[str, Any]:
    return {
        "address": token.address,
        "chain": token.chain,
        "symbol": token.symbol,
        "name": token.name,
        "decimals": token.decimals,
        "balance": token.balance,
        "balanceFormatted": token.balance_formatted,
        "price": token.price,
        "value": token.value,
        "logoUrl": token.logo_url,
    }


def snapshot_to_record(snapshot: PortfolioSnapshot) -> dict[str, Any]:
    """Serialize a snapshot into the export shape."""
    return {
        "address": snapshot.address,
        "totalNetWorth": snapshot.total_net_worth,
        "chainBreakdown": [
            {
                "chainId": chain.chain_id,
                "chainName": chain.chain_name,
                "netWorth": chain.net_worth,
                "tokens": [token_to_record(t) for t in chain.tokens],
            }
            for chain in snapshot.chains
        ],
        "updatedAt": snapshot.updated_at,
    }


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)


def token_from_record(raw: dict[str, Any], chain_id: str) -> PricedToken:
    return PricedToken(
        address=str(raw["address"]),
        chain=str(raw.get("chain") or chain_id),
        symbol=str(raw.get("symbol", "")),
        name=str(raw.get("name") or raw.get("symbol", "")),
        decimals=int(raw.get("decimals", 0)),
        balance=str(raw.get("balance", "0")),
        balance_formatted=float(raw.get("balanceFormatted", 0.0)),
        price=_optional_float(raw.get("price")),
        value=_optional_float(raw.get("value")),
        logo_url=raw.get("logoUrl") or None,
    )


def snapshot_from_record(
    record: dict[str, Any], imported_at: float | None = None
) -> PortfolioSnapshot:
    """Build a FETCHED snapshot from an export record, keeping its figures as-is.

    Raises:
        ValueError: if the record is missing required fields or has bad types.
    """
    try:
        address = str(record["address"])
        total = float(record["totalNetWorth"])
        chains = tuple(
            ChainBalance(
                chain_id=str(c["chainId"]),
                chain_name=str(c.get("chainName") or c["chainId"]),
                net_worth=float(c["netWorth"]),
                tokens=tuple(
                    token_from_record(t, str(c["chainId"])) for t in c.get("tokens", [])
                ),
            )
            for c in record["chainBreakdown"]
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid snapshot record: {e}") from e

    if not address:
        raise ValueError("Invalid snapshot record: empty address")

    updated_at = record.get("updatedAt")
    if updated_at is None:
        updated_at = imported_at
    return PortfolioSnapshot(
        address=address,
        total_net_worth=total,
        chains=chains,
        status=FetchStatus.FETCHED,
        updated_at=float(updated_at) if updated_at is not None else 0.0,
    )


def dump_records(records: list[dict[str, Any]], path: str | Path) -> None:
    path = Path(path)
    path.write_text(json.dumps(records, indent=2))
    logger.info("Exported %d snapshots to %s", len(records), path)


def load_records(path: str | Path) -> list[dict[str, Any]]:
    """Read records written by ``dump_records`` (a list, or a single record)."""
    data = json.loads(Path(path).read_text())
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of snapshot records in {path}")
    return data
