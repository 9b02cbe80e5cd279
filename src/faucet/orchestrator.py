"""Transfer orchestration: the only component allowed to submit transfers.

Per request:
1. Acquire the destination's lock (held until the transfer settles)
2. Validate the request, including the ledger history for the destination
3. Acquire the global submission lock (one in-flight tx for the faucet account)
4. Submit and wait for block inclusion
5. Release both locks and report the outcome

Holding the destination lock across validate and submit is what keeps two
concurrent requests for the same account from both passing the quota
check. The global lock exists because every transfer is signed by the same
account, whose sequence number admits one pending transaction at a time.

Submissions are never retried: a failed or unconfirmed broadcast may still
land, and a retry could pay out twice.
"""

import asyncio
import logging
from typing import Optional

from faucet.chain.base import LedgerClient, SubmitResult
from faucet.coins import CoinSet
from faucet.errors import CallerError, LedgerError, LedgerSubmitError, LockTimeoutError
from faucet.quota.models import (
    Limits,
    TransferOutcome,
    TransferRequest,
    TransferState,
)
from faucet.quota.store import QuotaStore
from faucet.quota.validator import validate
from faucet.utils.locks import AddressLockTable
from faucet.whitelist import Whitelist

logger = logging.getLogger(__name__)


class TransferOrchestrator:
    """Serializes validate-then-submit per destination and submissions globally."""

    def __init__(
        self,
        ledger: LedgerClient,
        limits: Limits,
        whitelist: Optional[Whitelist] = None,
        lock_timeout: Optional[float] = 60.0,
        history_page_size: int = 100,
        max_history_pages: int = 1000,
    ):
        self._ledger = ledger
        self.limits = limits
        self.whitelist = whitelist
        self.quota_store = QuotaStore(ledger, page_size=history_page_size, max_pages=max_history_pages)
        self._destination_locks = AddressLockTable(timeout=lock_timeout)
        self._submit_lock = asyncio.Lock()

    @property
    def faucet_address(self) -> str:
        return self._ledger.faucet_address

    @property
    def pending_destinations(self) -> int:
        """Destinations with a request in progress or waiting."""
        return len(self._destination_locks)

    def _transition(self, address: str, state: TransferState) -> None:
        logger.debug(f"Transfer to {address or '(none)'}: {state.value}")

    async def submit(self, request: TransferRequest) -> TransferOutcome:
        """Process a transfer request end to end.

        Never raises for caller or ledger errors; they are reported in the
        outcome. Cancellation of the calling task propagates, but not before
        an in-flight submission has settled.
        """
        self._transition(request.address, TransferState.RECEIVED)
        try:
            async with self._destination_locks.hold(request.address, operation="transfer"):
                self._transition(request.address, TransferState.LOCKED)
                return await self._validate_and_send(request)
        except LockTimeoutError as e:
            # Nothing was validated or submitted
            logger.warning(f"Transfer to {request.address} not started: {e}")
            return TransferOutcome.failed(e)

    async def _validate_and_send(self, request: TransferRequest) -> TransferOutcome:
        self._transition(request.address, TransferState.VALIDATING)
        try:
            await validate(request, self.limits, self.quota_store, self.whitelist)
        except CallerError as e:
            self._transition(request.address, TransferState.REJECTED)
            logger.info(f"Rejected {request.coins or 'empty request'} to {request.address or '(none)'}: {e}")
            return TransferOutcome.rejected(e)
        except LedgerError as e:
            self._transition(request.address, TransferState.REJECTED)
            logger.error(f"Cannot validate transfer to {request.address}: {e}")
            return TransferOutcome.failed(e)

        try:
            result = await self._send(request.address, request.coins)
        except LedgerSubmitError as e:
            self._transition(request.address, TransferState.SUBMIT_FAILED)
            logger.error(f"Transfer of {request.coins} to {request.address} failed: {e}")
            return TransferOutcome.failed(e)

        self._transition(request.address, TransferState.COMMITTED)
        logger.info(
            f"Sent {request.coins} to {request.address} in {result.txhash}"
            + (f" at height {result.height}" if result.height else "")
        )
        return TransferOutcome.committed(result.txhash)

    async def _send(self, recipient: str, coins: CoinSet) -> SubmitResult:
        async with self._submit_lock:
            self._transition(recipient, TransferState.LOCKED_GLOBAL)
            self._transition(recipient, TransferState.SUBMITTING)

            # The send runs in its own task so a cancelled request cannot
            # abort a broadcast halfway; the locks stay held until it settles.
            task = asyncio.ensure_future(self._ledger.send(recipient, coins))
            interrupted = False
            while not task.done():
                try:
                    await asyncio.wait({task})
                except asyncio.CancelledError:
                    interrupted = True
                    logger.warning(
                        f"Request for {recipient} cancelled during submission; waiting for broadcast to settle"
                    )

            if interrupted:
                if task.exception() is None:
                    logger.info(f"Transfer to {recipient} settled after cancellation: {task.result().txhash}")
                else:
                    logger.error(f"Transfer to {recipient} failed after cancellation: {task.exception()}")
                raise asyncio.CancelledError()

            return task.result()
