"""Destination address whitelist.

The whitelist file is a two-column CSV: address, allowance multiplier.
A multiplier scales the per-account lifetime limit for that address; a
multiplier of 0 keeps the row in the file but denies the address.
"""

import csv
import logging
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Optional, Union

from faucet.errors import ConfigError

logger = logging.getLogger(__name__)


class Whitelist:
    """Immutable address -> multiplier table."""

    def __init__(self, entries: Mapping[str, int]):
        for address, multiplier in entries.items():
            if multiplier < 0:
                raise ConfigError(f"negative whitelist multiplier for {address}: {multiplier}")
        self._entries = MappingProxyType(dict(entries))

    def multiplier(self, address: str) -> int:
        """Return the allowance multiplier, 0 if the address is not listed."""
        return self._entries.get(address, 0)

    def allows(self, address: str) -> bool:
        return self.multiplier(address) > 0

    def __contains__(self, address: object) -> bool:
        return address in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def load_whitelist(path: Union[str, Path]) -> Whitelist:
    """Load a whitelist CSV file.

    Raises:
        ConfigError: file unreadable, a row is short, or a multiplier is not an integer
    """
    logger.info(f"Loading whitelist addresses from: {path}")

    entries: dict[str, int] = {}
    try:
        with open(path, newline="", encoding="utf-8") as fh:
            for line_no, row in enumerate(csv.reader(fh), start=1):
                if not row or not any(cell.strip() for cell in row):
                    continue
                if len(row) < 2:
                    raise ConfigError(f"{path}:{line_no}: expected 'address,multiplier'")
                address = row[0].strip()
                try:
                    multiplier = int(row[1].strip())
                except ValueError:
                    raise ConfigError(
                        f"{path}:{line_no}: multiplier {row[1].strip()!r} is not an integer"
                    )
                entries[address] = multiplier
    except OSError as e:
        raise ConfigError(f"cannot read whitelist file {path}: {e}") from e

    logger.info(f"Loaded {len(entries)} whitelisted addresses")
    return Whitelist(entries)


def load_optional_whitelist(path: Optional[str]) -> Optional[Whitelist]:
    """Return None when no whitelist file is configured."""
    if not path:
        return None
    return load_whitelist(path)
