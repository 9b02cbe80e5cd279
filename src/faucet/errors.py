"""Exception hierarchy for the faucet.

Errors fall in two families that the HTTP layer must keep apart:

- CallerError: the request itself is unacceptable (bad coins, over a limit,
  not whitelisted). Safe for the caller to retry with a different request.
- LedgerError / LockTimeoutError: the faucet could not reach a decision or
  could not submit. Opaque to the caller and never retried internally.

ConfigError is raised only at startup and aborts the process.
"""

from typing import Optional


class FaucetError(Exception):
    """Base class for all faucet errors."""


class ConfigError(FaucetError):
    """Raised for invalid startup configuration."""


# ======================
# Caller errors
# ======================


class CallerError(FaucetError):
    """The request was rejected; nothing was submitted."""

    status_code: int = 400


class InvalidCoinError(CallerError):
    """A coin string could not be parsed."""


class NoCoinsError(CallerError):
    def __init__(self) -> None:
        super().__init__("no coins requested")


class NoAddressError(CallerError):
    def __init__(self) -> None:
        super().__init__("no destination address provided")


class InvalidAddressError(CallerError):
    def __init__(self, address: str):
        self.address = address
        super().__init__(f"invalid destination address: {address!r}")


class NotWhitelistedError(CallerError):
    status_code = 403

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"address {address} is not whitelisted")


class DenomNotSupportedError(CallerError):
    def __init__(self, denom: str):
        self.denom = denom
        super().__init__(f"denomination {denom} is not distributed by this faucet")


class ExceedsPerRequestLimitError(CallerError):
    def __init__(self, denom: str, requested: int, limit: int):
        self.denom = denom
        self.requested = requested
        self.limit = limit
        super().__init__(
            f"requested {requested}{denom} exceeds the per-request limit of {limit}{denom}"
        )


class ExceedsAccountLifetimeLimitError(CallerError):
    def __init__(self, denom: str, transferred: int, requested: int, limit: int):
        self.denom = denom
        self.transferred = transferred
        self.requested = requested
        self.limit = limit
        super().__init__(
            f"account already received {transferred}{denom}; another {requested}{denom} "
            f"would exceed the account limit of {limit}{denom}"
        )


# ======================
# System errors
# ======================


class LedgerError(FaucetError):
    """Base class for failures talking to the ledger."""

    status_code: int = 500


class LedgerQueryError(LedgerError):
    """History query failed or returned a malformed envelope."""


class LedgerDecodeError(LedgerError):
    """A transfer event carried an amount that could not be parsed."""


class LedgerSubmitError(LedgerError):
    """Transaction submission failed or its fate could not be confirmed."""

    def __init__(self, message: str, txhash: Optional[str] = None):
        self.txhash = txhash
        super().__init__(message)


class LockTimeoutError(FaucetError):
    """Raised when a lock cannot be acquired within the timeout period."""

    status_code: int = 503
