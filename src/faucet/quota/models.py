"""Request, limit and outcome types for the quota engine."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from faucet.coins import CoinSet


@dataclass(frozen=True)
class Limits:
    """Per-request and lifetime per-account ceilings.

    Only denominations present in max_per_account are distributable.
    """

    max_per_request: CoinSet
    max_per_account: CoinSet

    def is_supported(self, denom: str) -> bool:
        return denom in self.max_per_account

    def request_limit(self, denom: str) -> Optional[int]:
        """Per-request ceiling, or None when only the lifetime limit applies."""
        return self.max_per_request.get(denom)


@dataclass(frozen=True)
class TransferRequest:
    """Request to send coins to a destination account."""

    address: str
    coins: CoinSet


class OutcomeKind(str, Enum):
    """How a transfer request ended."""

    COMMITTED = "committed"          # Transaction included in a block
    REJECTED = "rejected"            # Caller error, nothing submitted
    SYSTEM_ERROR = "system_error"    # Query, lock or submission failure


class TransferState(str, Enum):
    """Per-request processing state."""

    RECEIVED = "received"
    LOCKED = "locked"
    VALIDATING = "validating"
    REJECTED = "rejected"
    LOCKED_GLOBAL = "locked_global"
    SUBMITTING = "submitting"
    COMMITTED = "committed"
    SUBMIT_FAILED = "submit_failed"


@dataclass
class TransferOutcome:
    """Result of a transfer request. There is no partial success."""

    kind: OutcomeKind
    error: Optional[str] = None
    status_code: int = 200
    txhash: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.kind is OutcomeKind.COMMITTED

    @property
    def is_caller_error(self) -> bool:
        return self.kind is OutcomeKind.REJECTED

    @classmethod
    def committed(cls, txhash: Optional[str] = None) -> "TransferOutcome":
        return cls(kind=OutcomeKind.COMMITTED, txhash=txhash)

    @classmethod
    def rejected(cls, error: Exception) -> "TransferOutcome":
        return cls(
            kind=OutcomeKind.REJECTED,
            error=str(error),
            status_code=getattr(error, "status_code", 400),
        )

    @classmethod
    def failed(cls, error: Exception) -> "TransferOutcome":
        return cls(
            kind=OutcomeKind.SYSTEM_ERROR,
            error=str(error),
            status_code=getattr(error, "status_code", 500),
            txhash=getattr(error, "txhash", None),
        )
