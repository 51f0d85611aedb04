"""Pending multi-step commands, keyed by account id.

A session is opened when a command has its amount and token but still needs
a destination address.  It lives for a fixed time from creation; reads never
refresh it.  Expiry is lazy: reading an expired session deletes it and
reports nothing pending, so correctness never depends on the sweeper having
run.  :meth:`SessionStore.sweep` only bounds memory.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from compound_chat.masking import mask_account_id

logger = logging.getLogger("compound_chat.session")

DEFAULT_TIMEOUT_SECONDS = 5 * 60


class SessionKind(str, Enum):
    SEND = "send"
    WITHDRAW = "withdraw"


@dataclass(frozen=True)
class Session:
    account_id: str
    kind: SessionKind
    amount: str
    token: str
    created_at: float = field(default=0.0)


class SessionStore:
    """One pending session per account, with lazy expiry.

    Parameters
    ----------
    timeout_seconds:
        Lifetime of a session measured from creation.
    clock:
        Monotonic time source; injectable for tests.
    """

    def __init__(
        self,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self._clock = clock or time.monotonic
        self._sessions: dict[str, Session] = {}

    def open(self, account_id: str, kind: SessionKind, amount: str, token: str) -> Session:
        """Open a session, silently replacing any previous one for the account."""
        session = Session(
            account_id=account_id,
            kind=kind,
            amount=amount,
            token=token,
            created_at=self._clock(),
        )
        if account_id in self._sessions:
            logger.debug(f"Replacing pending session for {mask_account_id(account_id)}")
        self._sessions[account_id] = session
        return session

    def get(self, account_id: str) -> Session | None:
        """Return the live session, deleting it if it has expired."""
        session = self._sessions.get(account_id)
        if session is None:
            return None
        if self._expired(session, self._clock()):
            del self._sessions[account_id]
            logger.info(f"Session for {mask_account_id(account_id)} expired")
            return None
        return session

    def clear(self, account_id: str) -> None:
        self._sessions.pop(account_id, None)

    def has_active(self, account_id: str) -> bool:
        return self.get(account_id) is not None

    def sweep(self) -> int:
        """Remove every expired session.  Returns how many were removed."""
        now = self._clock()
        stale = [a for a, s in self._sessions.items() if self._expired(s, now)]
        for account_id in stale:
            del self._sessions[account_id]
        if stale:
            logger.debug(f"Swept {len(stale)} expired sessions")
        return len(stale)

    def __len__(self) -> int:
        return len(self._sessions)

    def _expired(self, session: Session, now: float) -> bool:
        return now - session.created_at > self.timeout_seconds
