"""Command-line interface for the wallet net worth tracker."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .addresses import is_valid_evm_address, parse_address_csv
from .config import load_config
from .errors import ConfigurationError
from .logging_setup import configure_logging
from .models import BulkRefreshPlan
from .report import build_bulk_refresh_summary, build_portfolio_report
from .services import PortfolioTracker
from .snapshot_io import dump_records, load_records

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="wallet-networth",
        description="Cross-chain wallet net worth",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    check_parser = sub.add_parser("check", help="Fetch and print net worth of addresses")
    check_parser.add_argument("addresses", nargs="+", help="EVM addresses")
    check_parser.add_argument(
        "--export", default=None, help="Write the snapshots as JSON to this path"
    )

    load_parser = sub.add_parser("load-all", help="Bulk refresh many addresses")
    load_parser.add_argument("addresses", nargs="*", help="EVM addresses")
    load_parser.add_argument(
        "--file", default=None, help="Text/CSV file with one address per line"
    )
    load_parser.add_argument(
        "--yes", action="store_true", help="Skip the cost confirmation prompt"
    )
    load_parser.add_argument(
        "--export", default=None, help="Write the snapshots as JSON to this path"
    )

    show_parser = sub.add_parser("show", help="Print previously exported snapshots")
    show_parser.add_argument("snapshot", help="JSON file written by --export")

    return parser


def _collect_addresses(args: argparse.Namespace) -> list[str]:
    addresses: list[str] = []
    for address in args.addresses:
        if is_valid_evm_address(address):
            addresses.append(address)
        else:
            logger.warning("Ignoring invalid address: %s", address)

    if getattr(args, "file", None):
        parsed = parse_address_csv(Path(args.file).read_text())
        for bad in parsed.invalid_lines:
            logger.warning("%s line %d (%s): %s", args.file, bad.line, bad.value, bad.reason)
        addresses.extend(parsed.valid_addresses)
    return addresses


def _prompt(plan: BulkRefreshPlan) -> bool:
    answer = input(
        f"Load {len(plan.unloaded)} addresses (~{plan.estimated_cost} API units)? [y/N] "
    )
    return answer.strip().lower() in ("y", "yes")


async def _run(args: argparse.Namespace) -> int:
    """Execute the selected command."""
    configure_logging(args.log_level)
    config = load_config(args.config)
    tracker = PortfolioTracker(config)

    if args.command == "show":
        for record in load_records(args.snapshot):
            snapshot = tracker.import_snapshot(record)
            print(build_portfolio_report(snapshot))
            print()
        return 0

    addresses = _collect_addresses(args)
    if not addresses:
        print("No valid addresses given.", file=sys.stderr)
        return 1

    if args.command == "check":
        snapshots = await asyncio.gather(*(tracker.refresh(a) for a in addresses))
        for snapshot in snapshots:
            print(build_portfolio_report(snapshot))
            print()
    else:
        confirm = (lambda plan: True) if args.yes else _prompt
        result = await tracker.refresh_all(addresses, confirm=confirm)
        print(build_bulk_refresh_summary(result))
        for address in result.succeeded:
            print()
            print(build_portfolio_report(tracker.get_snapshot(address)))

    if args.export:
        dump_records(tracker.export_snapshots(), args.export)
    return 0


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        code = asyncio.run(_run(args))
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(code)
