"""Plain-text formatting of snapshots for the command line."""
from __future__ import annotations

from datetime import datetime, timezone

from .models import BulkRefreshResult, FetchStatus, PortfolioSnapshot, RefreshStatus


def format_currency(value: float | None) -> str:
    if value is None:
        return "-"
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_token_balance(balance: float, decimals: int = 4) -> str:
    if balance == 0:
        return "0"
    if balance < 0.0001:
        return "<0.0001"
    if balance >= 1_000_000:
        return f"{balance / 1_000_000:.2f}M"
    if balance >= 1_000:
        return f"{balance / 1_000:.2f}K"
    return f"{balance:.{decimals}f}"


def shorten_address(address: str) -> str:
    if not address or len(address) < 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def _format_time(epoch: float | None) -> str:
    if not epoch:
        return "never"
    return datetime.fromtimestamp(epoch, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def build_portfolio_report(snapshot: PortfolioSnapshot, max_tokens: int = 10) -> str:
    """Render one snapshot: total, then chains with value and their top tokens."""
    lines = [
        f"📊 {shorten_address(snapshot.address)} · {format_currency(snapshot.total_net_worth)}",
    ]
    if snapshot.status == FetchStatus.ERROR:
        lines.append(f"⚠️ Error: {snapshot.error or 'unknown'}")
    elif snapshot.status == FetchStatus.NOT_FETCHED:
        lines.append("Not loaded yet.")
        return "\n".join(lines)

    for chain in snapshot.chains_with_value:
        lines.append("")
        lines.append(f"━━ {chain.chain_name} · {format_currency(chain.net_worth)} ━━")
        for token in chain.tokens[:max_tokens]:
            lines.append(
                f"  {token.symbol:<10} {format_token_balance(token.balance_formatted):>12}"
                f"  @ {format_currency(token.price):>12}  = {format_currency(token.value)}"
            )
        hidden = len(chain.tokens) - max_tokens
        if hidden > 0:
            lines.append(f"  … {hidden} more")

    failed = [c.chain_name for c in snapshot.chains if c.is_error]
    if failed:
        lines.append("")
        lines.append(f"Unavailable: {', '.join(failed)}")

    lines.append("")
    lines.append(f"Updated {_format_time(snapshot.updated_at)}")
    return "\n".join(lines)


def build_bulk_refresh_summary(result: BulkRefreshResult) -> str:
    if result.status == RefreshStatus.NOTHING_TO_DO:
        return "All addresses are already loaded."
    if result.status == RefreshStatus.COOLDOWN_ACTIVE:
        return f"Bulk refresh is cooling down, try again in {result.cooldown_remaining:.0f}s."
    if result.status == RefreshStatus.DECLINED:
        return "Bulk refresh cancelled."

    lines = [f"Loaded {len(result.succeeded)}/{len(result.plan.unloaded)} addresses."]
    for address, error in result.failed.items():
        lines.append(f"  ✗ {shorten_address(address)}: {error}")
    return "\n".join(lines)
