"""Cumulative transfer totals derived from ledger history.

Nothing is cached: every call re-reads the faucet's history to the
destination, so the ledger stays the single source of truth. The history
is paged through to the end. Stopping after the first page would
under-count prior transfers and let an account exceed its lifetime limit.
"""

import logging

from faucet.chain.base import LedgerClient, LedgerEvent, LedgerTransaction
from faucet.coins import CoinSet
from faucet.errors import InvalidCoinError, LedgerDecodeError, LedgerQueryError

logger = logging.getLogger(__name__)


TRANSFER_KEYS = ("recipient", "sender", "amount")


def transfer_groups(event: LedgerEvent) -> list[dict[str, str]]:
    """Split a transfer event into one dict per transfer.

    Message logs of older SDKs merge every transfer of a message into a
    single event with repeated recipient/sender/amount attributes. A
    repeated key starts the next transfer.
    """
    groups: list[dict[str, str]] = []
    current: dict[str, str] = {}
    for key, value in event.attributes:
        if key not in TRANSFER_KEYS:
            continue
        if key in current:
            groups.append(current)
            current = {}
        current[key] = value
    if current:
        groups.append(current)
    return groups


def transferred_in(tx: LedgerTransaction, sender: str, recipient: str) -> CoinSet:
    """Sum the transfers of one transaction from sender to recipient.

    A faucet transaction also carries the fee transfer to the fee collector,
    which is excluded by the recipient check. Transfers without a sender
    attribute (older SDKs) are attributed to the transaction's signer.

    Raises:
        LedgerDecodeError: an amount attribute is missing or not a coin list
    """
    total = CoinSet()
    for event in tx.events:
        if event.type != "transfer":
            continue
        for transfer in transfer_groups(event):
            if transfer.get("recipient") != recipient:
                continue
            transfer_sender = transfer.get("sender")
            if transfer_sender is not None and transfer_sender != sender:
                continue

            amount = transfer.get("amount")
            if amount is None or not amount.strip():
                raise LedgerDecodeError(f"transfer to {recipient} in {tx.txhash} has no amount")
            try:
                # Coins within one attribute never repeat a denom; summing is safe.
                total = total + CoinSet.parse(amount)
            except InvalidCoinError as e:
                raise LedgerDecodeError(f"cannot decode amount {amount!r} in {tx.txhash}: {e}") from e
    return total


class QuotaStore:
    """Derives how much the faucet has already sent to an account."""

    def __init__(self, ledger: LedgerClient, page_size: int = 100, max_pages: int = 1000):
        self._ledger = ledger
        self.page_size = page_size
        self.max_pages = max_pages

    def accepts_address(self, address: str) -> bool:
        return self._ledger.validate_address(address)

    async def total_transferred(self, destination: str) -> CoinSet:
        """Return the per-denom total sent from the faucet to destination.

        Raises:
            LedgerQueryError: query failed, or history exceeds max_pages
            LedgerDecodeError: a transfer amount could not be parsed
        """
        sender = self._ledger.faucet_address
        total = CoinSet()
        seen: set[str] = set()
        collected = 0
        page = 1

        while True:
            if page > self.max_pages:
                raise LedgerQueryError(
                    f"transfer history for {destination} exceeds {self.max_pages} pages"
                )

            result = await self._ledger.query_transfers(sender, destination, page, self.page_size)

            for tx in result.transactions:
                # Pages can shift if a transaction lands mid-scan.
                if tx.txhash and tx.txhash in seen:
                    continue
                seen.add(tx.txhash)
                total = total + transferred_in(tx, sender, destination)

            collected += len(result.transactions)

            if not result.transactions:
                if result.total is not None and collected < result.total:
                    raise LedgerQueryError(
                        f"history for {destination} ended at page {page} with "
                        f"{collected} of {result.total} transactions"
                    )
                break
            if result.total is not None:
                # Nodes may cap the page size below ours; trust the count.
                if collected >= result.total:
                    break
            elif len(result.transactions) < self.page_size:
                break
            page += 1

        logger.debug(
            f"History for {destination}: {collected} txs over {page} page(s), total {total or 'none'}"
        )
        return total
