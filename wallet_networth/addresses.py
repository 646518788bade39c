"""EVM address validation and address-list (CSV) parsing."""
from __future__ import annotations

import re
from dataclasses import dataclass, field

_EVM_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


def is_valid_evm_address(address: str) -> bool:
    return bool(_EVM_ADDRESS_RE.match(address))


@dataclass(frozen=True)
class InvalidLine:
    line: int
    value: str
    reason: str


@dataclass(frozen=True)
class AddressListResult:
    valid_addresses: tuple[str, ...] = ()
    invalid_lines: tuple[InvalidLine, ...] = field(default_factory=tuple)


def parse_address_csv(text: str) -> AddressListResult:
    """Parse one address per line; blank lines are ignored.

    Duplicates are detected case-insensitively and the first spelling wins.
    Line numbers count non-blank lines only.
    """
    lines = [line.strip() for line in text.splitlines()]
    lines = [line for line in lines if line]

    valid: list[str] = []
    invalid: list[InvalidLine] = []
    seen: set[str] = set()

    for index, address in enumerate(lines, start=1):
        if not is_valid_evm_address(address):
            shown = f"{address[:20]}..." if len(address) > 20 else address
            invalid.append(InvalidLine(index, shown, "Invalid EVM address format"))
            continue

        if address.lower() in seen:
            invalid.append(InvalidLine(index, f"{address[:10]}...", "Duplicate address in file"))
            continue

        seen.add(address.lower())
        valid.append(address)

    return AddressListResult(valid_addresses=tuple(valid), invalid_lines=tuple(invalid))
