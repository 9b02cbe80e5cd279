"""Concurrency control utilities for transfer processing.

Provides per-destination locking so that two requests for the same account
cannot both pass the quota check before either transfer lands.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from faucet.errors import LockTimeoutError

logger = logging.getLogger(__name__)


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.users = 0          # holders plus waiters


class AddressLockTable:
    """Keyed asyncio locks, created on first use and dropped when idle.

    Entries are reference counted so a lock is only removed once no task
    holds or waits on it; addresses seen once do not accumulate.

    Example:
        locks = AddressLockTable()
        async with locks.hold(address, operation="transfer"):
            # Check quota
            # Submit transfer
            ...
    """

    def __init__(self, timeout: Optional[float] = 60.0):
        """Initialize the table.

        Args:
            timeout: Maximum time to wait for a lock (None = wait forever)
        """
        self.timeout = timeout
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def is_locked(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.lock.locked()

    def _checkout(self, key: str) -> _Entry:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _Entry()
        entry.users += 1
        return entry

    def _checkin(self, key: str, entry: _Entry) -> None:
        entry.users -= 1
        if entry.users == 0 and self._entries.get(key) is entry:
            del self._entries[key]

    @asynccontextmanager
    async def hold(self, key: str, operation: str = "transfer") -> AsyncIterator[None]:
        """Hold the lock for key for the duration of the block.

        Raises:
            LockTimeoutError: lock not acquired within the timeout
        """
        entry = self._checkout(key)
        try:
            try:
                if self.timeout:
                    await asyncio.wait_for(entry.lock.acquire(), timeout=self.timeout)
                else:
                    await entry.lock.acquire()
            except asyncio.TimeoutError:
                logger.warning(f"Lock timeout for {key} after {self.timeout}s: {operation}")
                raise LockTimeoutError(
                    f"another request for {key} is still in progress; try again later"
                )

            logger.debug(f"Lock acquired for {key}: {operation}")
            try:
                yield
            finally:
                entry.lock.release()
                logger.debug(f"Lock released for {key}: {operation}")
        finally:
            self._checkin(key, entry)
