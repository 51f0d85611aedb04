"""Per-account mutual exclusion for command handling.

Every command that touches a wallet holds its account's lock from session
lookup through decrypt, orchestration and key wipe, including every wait for
confirmation.  A second command for the same account waits, and gives up with
:class:`AccountBusy` after ``wait_seconds``.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from compound_chat.errors import CompoundChatError, FailureKind
from compound_chat.masking import mask_account_id

logger = logging.getLogger("compound_chat.locks")


class AccountBusy(CompoundChatError):
    def __init__(self) -> None:
        super().__init__(
            FailureKind.ACCOUNT_BUSY,
            "Another request for this account is still in progress",
        )


class AccountLocks:
    """Lazily created ``asyncio.Lock`` per account id."""

    def __init__(self, wait_seconds: float | None = 30.0) -> None:
        self.wait_seconds = wait_seconds
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    def is_locked(self, account_id: str) -> bool:
        lock = self._locks.get(account_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, account_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(account_id, asyncio.Lock())
        self._waiters[account_id] = self._waiters.get(account_id, 0) + 1
        try:
            try:
                if self.wait_seconds is None:
                    await lock.acquire()
                else:
                    await asyncio.wait_for(lock.acquire(), timeout=self.wait_seconds)
            except asyncio.TimeoutError:
                logger.warning(f"Account {mask_account_id(account_id)} busy, request rejected")
                raise AccountBusy() from None
            try:
                yield
            finally:
                lock.release()
        finally:
            self._waiters[account_id] -= 1
            if self._waiters[account_id] == 0:
                # Nobody holds or waits on it any more.
                del self._waiters[account_id]
                self._locks.pop(account_id, None)
