"""Coin and CoinSet value types.

Amounts are plain Python ints (arbitrary precision). Token amounts routinely
exceed 64 bits and are never converted to float or Decimal.

Coin strings follow the ledger SDK format: an integer amount immediately
followed by a denomination, e.g. "1000000uarch". Lists are comma separated:
"1000000uarch,20ustake".
"""

import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Optional

from faucet.errors import InvalidCoinError

DENOM_PATTERN = r"[a-zA-Z][a-zA-Z0-9/:._-]{2,127}"

_COIN_RE = re.compile(rf"^([0-9]+)\s*({DENOM_PATTERN})$")
_DENOM_RE = re.compile(rf"^{DENOM_PATTERN}$")


def validate_denom(denom: str) -> str:
    """Return denom unchanged if it is well formed, else raise InvalidCoinError."""
    if not _DENOM_RE.match(denom):
        raise InvalidCoinError(f"invalid denomination: {denom!r}")
    return denom


@dataclass(frozen=True)
class Coin:
    """A single (denomination, amount) pair."""

    denom: str
    amount: int

    def __post_init__(self):
        validate_denom(self.denom)
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise InvalidCoinError(f"amount must be an integer, got {self.amount!r}")
        if self.amount < 0:
            raise InvalidCoinError(f"negative amount: {self.amount}{self.denom}")

    @classmethod
    def parse(cls, text: str) -> "Coin":
        """Parse a single coin string such as "1000uarch"."""
        match = _COIN_RE.match(text.strip())
        if not match:
            raise InvalidCoinError(f"invalid coin: {text!r}")
        return cls(denom=match.group(2), amount=int(match.group(1)))

    def __str__(self) -> str:
        return f"{self.amount}{self.denom}"


class CoinSet(Mapping):
    """Immutable mapping of denomination to amount.

    Zero amounts are dropped on construction, so an empty CoinSet and a set
    holding only zero amounts compare equal.
    """

    __slots__ = ("_amounts",)

    def __init__(self, amounts: Optional[Mapping[str, int]] = None):
        cleaned: dict[str, int] = {}
        for denom, amount in (amounts or {}).items():
            coin = Coin(denom, amount)
            if coin.amount:
                cleaned[coin.denom] = coin.amount
        self._amounts = cleaned

    @classmethod
    def from_coins(cls, coins: Iterable[Coin]) -> "CoinSet":
        """Build a CoinSet, rejecting repeated denominations."""
        amounts: dict[str, int] = {}
        for coin in coins:
            if coin.denom in amounts:
                raise InvalidCoinError(f"duplicate denomination: {coin.denom}")
            amounts[coin.denom] = coin.amount
        return cls(amounts)

    @classmethod
    def from_strings(cls, items: Iterable[str]) -> "CoinSet":
        """Parse a list of coin strings (each may itself be comma separated)."""
        coins = []
        for item in items:
            for part in item.split(","):
                if part.strip():
                    coins.append(Coin.parse(part))
        return cls.from_coins(coins)

    @classmethod
    def parse(cls, text: str) -> "CoinSet":
        """Parse a comma-separated coin list. An empty string yields an empty set."""
        return cls.from_strings([text])

    def amount_of(self, denom: str) -> int:
        return self._amounts.get(denom, 0)

    @property
    def denoms(self) -> list[str]:
        return sorted(self._amounts)

    def coins(self) -> list[Coin]:
        """Return the coins sorted by denomination."""
        return [Coin(denom, self._amounts[denom]) for denom in self.denoms]

    def __getitem__(self, denom: str) -> int:
        return self._amounts[denom]

    def __iter__(self) -> Iterator[str]:
        return iter(self.denoms)

    def __len__(self) -> int:
        return len(self._amounts)

    def __add__(self, other: "CoinSet") -> "CoinSet":
        if not isinstance(other, CoinSet):
            return NotImplemented
        total = dict(self._amounts)
        for denom, amount in other.items():
            total[denom] = total.get(denom, 0) + amount
        return CoinSet(total)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CoinSet):
            return self._amounts == other._amounts
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self._amounts.items()))

    def __str__(self) -> str:
        return ",".join(str(coin) for coin in self.coins())

    def __repr__(self) -> str:
        return f"CoinSet({str(self)!r})"
