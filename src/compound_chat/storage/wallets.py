"""Wallet record persistence.

The core only needs ``get_wallet`` / ``save_wallet`` (plus a transaction
history log).  :class:`SqliteWalletStore` is the production backend;
:class:`MemoryWalletStore` keeps everything in a dict for tests and
throwaway runs.
"""

from __future__ import annotations

import logging
from typing import Protocol

from compound_chat.errors import WalletExists
from compound_chat.masking import mask_account_id
from compound_chat.storage.database import Database
from compound_chat.storage.models import TransactionRecord, WalletRecord

logger = logging.getLogger("compound_chat.storage.wallets")


class WalletStore(Protocol):
    async def get_wallet(self, account_id: str) -> WalletRecord | None:
        ...

    async def save_wallet(self, account_id: str, record: WalletRecord) -> None:
        """Insert *record*; raise :class:`WalletExists` if the account has one."""
        ...

    async def record_transaction(self, record: TransactionRecord) -> None:
        ...

    async def list_transactions(self, account_id: str, limit: int = 10) -> list[TransactionRecord]:
        ...


class SqliteWalletStore:
    """Stores wallets and transaction history in the SQLite database."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def get_wallet(self, account_id: str) -> WalletRecord | None:
        row = await self.db.fetch_one(
            "SELECT * FROM wallets WHERE account_id = ?", (account_id,)
        )
        if row is None:
            return None
        return WalletRecord.model_validate(row)

    async def save_wallet(self, account_id: str, record: WalletRecord) -> None:
        """Insert a wallet.  Existing rows are never overwritten.

        Raises
        ------
        WalletExists
            If a row for *account_id* is already stored, including one written
            by a concurrent caller after :meth:`get_wallet` reported none.
        """
        cursor = await self.db.execute(
            "INSERT OR IGNORE INTO wallets "
            "(account_id, address, encrypted_private_key, salt, iv, auth_tag, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                account_id,
                record.address,
                record.encrypted_private_key,
                record.salt,
                record.iv,
                record.auth_tag,
                record.created_at.isoformat(),
            ),
        )
        if cursor.rowcount == 0:
            existing = await self.get_wallet(account_id)
            logger.warning(f"Wallet for {mask_account_id(account_id)} already stored, not overwritten")
            raise WalletExists(existing.address if existing else record.address)
        logger.info(f"Wallet saved for {mask_account_id(account_id)}")

    async def record_transaction(self, record: TransactionRecord) -> None:
        await self.db.execute(
            "INSERT INTO transactions "
            "(id, account_id, kind, token, amount, tx_hash, to_address, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                record.id,
                record.account_id,
                record.kind.value,
                record.token,
                record.amount,
                record.tx_hash,
                record.to_address,
                record.created_at.isoformat(),
            ),
        )

    async def list_transactions(self, account_id: str, limit: int = 10) -> list[TransactionRecord]:
        rows = await self.db.fetch_all(
            "SELECT * FROM transactions WHERE account_id = ? "
            "ORDER BY created_at DESC LIMIT ?",
            (account_id, limit),
        )
        return [TransactionRecord.model_validate(r) for r in rows]


class MemoryWalletStore:
    """In-process store; data is lost when the process exits."""

    def __init__(self) -> None:
        self._wallets: dict[str, WalletRecord] = {}
        self._transactions: list[TransactionRecord] = []

    async def get_wallet(self, account_id: str) -> WalletRecord | None:
        return self._wallets.get(account_id)

    async def save_wallet(self, account_id: str, record: WalletRecord) -> None:
        existing = self._wallets.get(account_id)
        if existing is not None:
            raise WalletExists(existing.address)
        self._wallets[account_id] = record

    async def record_transaction(self, record: TransactionRecord) -> None:
        self._transactions.append(record)

    async def list_transactions(self, account_id: str, limit: int = 10) -> list[TransactionRecord]:
        mine = [t for t in self._transactions if t.account_id == account_id]
        mine.sort(key=lambda t: t.created_at, reverse=True)
        return mine[:limit]
