"""Simulated ledger client (no chain binary, no network).

Keeps an in-memory transaction history shaped like the real chain's:
every send produces a transaction with the bank transfer event plus the fee
transfer to the fee collector module account.
"""

import asyncio
import logging
import secrets
from datetime import datetime, timezone
from typing import Optional

from faucet.chain.base import (
    LedgerClient,
    LedgerEvent,
    LedgerTransaction,
    SubmitResult,
    TxPage,
)
from faucet.coins import CoinSet
from faucet.errors import LedgerQueryError, LedgerSubmitError

logger = logging.getLogger(__name__)

FEE_COLLECTOR = "archway17xpfvakm2amg962yls6f84z3kell8c5l48s3ed"


def transfer_event(sender: str, recipient: str, amount: str) -> LedgerEvent:
    return LedgerEvent(
        type="transfer",
        attributes=(("recipient", recipient), ("sender", sender), ("amount", amount)),
    )


class SimulatedLedgerClient(LedgerClient):
    """In-memory ledger for dry runs and tests."""

    def __init__(
        self,
        address: str,
        fee: str = "5000uarch",
        latency: float = 0.0,
    ):
        self._address = address
        self.fee = fee
        self.latency = latency
        self._transactions: list[LedgerTransaction] = []
        self._height = 1000

        # Failure injection and counters
        self.query_error: Optional[Exception] = None
        self.send_error: Optional[Exception] = None
        self.query_calls = 0
        self.send_calls = 0
        self.in_flight_sends = 0
        self.max_in_flight_sends = 0

    @property
    def faucet_address(self) -> str:
        return self._address

    @property
    def transactions(self) -> list[LedgerTransaction]:
        return list(self._transactions)

    def add_transaction(self, *events: LedgerEvent) -> LedgerTransaction:
        """Append a transaction with arbitrary events to the history."""
        self._height += 1
        tx = LedgerTransaction(
            txhash=secrets.token_hex(32).upper(),
            events=tuple(events),
            height=self._height,
            timestamp=datetime.now(timezone.utc),
        )
        self._transactions.append(tx)
        return tx

    def add_transfer(self, recipient: str, amount: str, sender: Optional[str] = None) -> LedgerTransaction:
        """Record a past transfer as if the faucet had sent it."""
        sender = sender or self._address
        return self.add_transaction(
            transfer_event(sender, FEE_COLLECTOR, self.fee),
            LedgerEvent(type="message", attributes=(("sender", sender),)),
            transfer_event(sender, recipient, amount),
        )

    def _matches(self, tx: LedgerTransaction, sender: str, recipient: str) -> bool:
        sent = any(e.type == "message" and e.get("sender") == sender for e in tx.events)
        received = any(
            e.type == "transfer" and ("recipient", recipient) in e.attributes for e in tx.events
        )
        return sent and received

    async def query_transfers(
        self, sender: str, recipient: str, page: int, limit: int
    ) -> TxPage:
        self.query_calls += 1
        if self.latency:
            await asyncio.sleep(self.latency)
        if self.query_error:
            raise self.query_error

        if page < 1 or limit < 1:
            raise LedgerQueryError(f"invalid page {page} / limit {limit}")

        matches = [tx for tx in self._transactions if self._matches(tx, sender, recipient)]
        start = (page - 1) * limit
        return TxPage(transactions=matches[start:start + limit], total=len(matches), page=page)

    async def send(self, recipient: str, coins: CoinSet) -> SubmitResult:
        self.send_calls += 1
        self.in_flight_sends += 1
        self.max_in_flight_sends = max(self.max_in_flight_sends, self.in_flight_sends)
        try:
            if self.latency:
                await asyncio.sleep(self.latency)
            if self.send_error:
                raise self.send_error
            if not coins:
                raise LedgerSubmitError("cannot send an empty coin set")

            tx = self.add_transfer(recipient, str(coins))
            logger.info(f"[SIMULATED] Sent {coins} to {recipient} in {tx.txhash}")
            return SubmitResult(txhash=tx.txhash, height=tx.height)
        finally:
            self.in_flight_sends -= 1
