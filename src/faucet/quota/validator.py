"""Request validation against per-request and lifetime limits.

Checks run in a fixed order and stop at the first failure. Everything up
to the per-request ceiling is decided from the request alone, so malformed
or oversized requests never cause a ledger query.
"""

import logging
from typing import Optional

from faucet.errors import (
    DenomNotSupportedError,
    ExceedsAccountLifetimeLimitError,
    ExceedsPerRequestLimitError,
    InvalidAddressError,
    NoAddressError,
    NoCoinsError,
    NotWhitelistedError,
)
from faucet.quota.models import Limits, TransferRequest
from faucet.quota.store import QuotaStore
from faucet.whitelist import Whitelist

logger = logging.getLogger(__name__)


def check_request_shape(
    request: TransferRequest,
    limits: Limits,
    quota_store: QuotaStore,
    whitelist: Optional[Whitelist] = None,
) -> None:
    """Run the checks that need no ledger access.

    Raises:
        CallerError: the first failed check
    """
    if not request.coins:
        raise NoCoinsError()
    if not request.address:
        raise NoAddressError()
    if not quota_store.accepts_address(request.address):
        raise InvalidAddressError(request.address)
    if whitelist is not None and not whitelist.allows(request.address):
        raise NotWhitelistedError(request.address)

    # Whole-request rejection: one bad denom fails every coin in the request.
    for denom in request.coins.denoms:
        if not limits.is_supported(denom):
            raise DenomNotSupportedError(denom)

    for coin in request.coins.coins():
        limit = limits.request_limit(coin.denom)
        if limit is not None and coin.amount > limit:
            raise ExceedsPerRequestLimitError(coin.denom, coin.amount, limit)


async def validate(
    request: TransferRequest,
    limits: Limits,
    quota_store: QuotaStore,
    whitelist: Optional[Whitelist] = None,
) -> None:
    """Validate a transfer request.

    Args:
        request: Parsed request
        limits: Configured ceilings
        quota_store: Source of already-transferred totals
        whitelist: Optional address whitelist

    Raises:
        CallerError: request rejected
        LedgerQueryError, LedgerDecodeError: history unavailable (fail closed)
    """
    check_request_shape(request, limits, quota_store, whitelist)

    transferred = await quota_store.total_transferred(request.address)
    multiplier = whitelist.multiplier(request.address) if whitelist is not None else 1

    for coin in request.coins.coins():
        already = transferred.amount_of(coin.denom)
        lifetime_limit = limits.max_per_account[coin.denom] * multiplier
        if already + coin.amount > lifetime_limit:
            raise ExceedsAccountLifetimeLimitError(coin.denom, already, coin.amount, lifetime_limit)

    logger.debug(
        f"Request for {request.coins} to {request.address} within limits "
        f"(sent so far: {transferred or 'none'})"
    )
