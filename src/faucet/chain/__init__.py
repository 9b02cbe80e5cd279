"""Ledger access: history queries and transfer submission."""

from faucet.chain.base import (
    LedgerClient,
    LedgerEvent,
    LedgerTransaction,
    SubmitResult,
    TxPage,
)

__all__ = [
    "LedgerClient",
    "LedgerEvent",
    "LedgerTransaction",
    "SubmitResult",
    "TxPage",
]
