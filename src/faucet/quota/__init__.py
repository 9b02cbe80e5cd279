"""Quota enforcement: transfer history aggregation and request validation."""

from faucet.quota.models import (
    Limits,
    OutcomeKind,
    TransferOutcome,
    TransferRequest,
    TransferState,
)

__all__ = [
    "Limits",
    "OutcomeKind",
    "TransferOutcome",
    "TransferRequest",
    "TransferState",
]
