"""Base interface for ledger access.

The faucet talks to the chain through two operations:
1. History query: transactions sent by the faucet account to a recipient,
   one page at a time
2. Submission: a bank send from the faucet account, signed by the chain's
   own keyring

Implementations own transport concerns (subprocess, HTTP, timeouts). The
quota engine only sees the types defined here.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from faucet.coins import CoinSet

logger = logging.getLogger(__name__)

# Bech32: lowercase human-readable prefix, separator "1", data charset
BECH32_ADDRESS_RE = re.compile(r"^[a-z][a-z0-9]{0,82}1[02-9ac-hj-np-z]{6,}$")


@dataclass(frozen=True)
class LedgerEvent:
    """A typed event emitted by a transaction (e.g. "transfer")."""

    type: str
    attributes: tuple[tuple[str, str], ...] = ()

    def get(self, key: str) -> Optional[str]:
        """Return the first attribute value for key."""
        for attr_key, value in self.attributes:
            if attr_key == key:
                return value
        return None


@dataclass(frozen=True)
class LedgerTransaction:
    """An indexed transaction with its events."""

    txhash: str
    events: tuple[LedgerEvent, ...] = ()
    height: Optional[int] = None
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class TxPage:
    """One page of a history query."""

    transactions: list[LedgerTransaction]
    total: Optional[int]                    # Matches across all pages, None if not reported
    page: int = 1


@dataclass(frozen=True)
class SubmitResult:
    """A transaction that has been included in a block."""

    txhash: str
    height: Optional[int] = None
    gas_used: Optional[int] = None
    raw: dict = field(default_factory=dict, compare=False)


class LedgerClient(ABC):
    """Abstract base class for ledger clients."""

    @property
    @abstractmethod
    def faucet_address(self) -> str:
        """Address of the faucet account. Valid after prepare()."""

    def validate_address(self, address: str) -> bool:
        """Check the destination address format.

        Addresses end up in history query strings and command lines, so
        anything outside the bech32 alphabet is refused before any I/O.
        """
        return len(address) <= 90 and bool(BECH32_ADDRESS_RE.match(address))

    async def prepare(self) -> None:
        """Resolve the faucet account before serving traffic."""

    @abstractmethod
    async def query_transfers(
        self, sender: str, recipient: str, page: int, limit: int
    ) -> TxPage:
        """Get one page of transactions from sender to recipient.

        Args:
            sender: Faucet account address
            recipient: Destination address
            page: 1-based page number
            limit: Page size

        Raises:
            LedgerQueryError: transport failure or malformed response
        """

    @abstractmethod
    async def send(self, recipient: str, coins: CoinSet) -> SubmitResult:
        """Send coins from the faucet account and wait for inclusion.

        Callers must serialize calls to this method; the faucet account's
        sequence number allows only one in-flight transaction.

        Raises:
            LedgerSubmitError: broadcast rejected, failed on chain, or unconfirmed
        """

    async def close(self) -> None:
        """Release transport resources."""
