"""Pydantic models mapping to the CompoundChat database tables."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from compound_chat.wallet.encryption import EncryptedSecret


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    """Generate a short hex ID (12 characters)."""
    return uuid.uuid4().hex[:12]


class TransactionKind(str, Enum):
    SUPPLY = "supply"
    WITHDRAW = "withdraw"
    SEND = "send"
    APPROVE = "approve"
    TRANSFER = "transfer"


class WalletRecord(BaseModel):
    """Maps to the ``wallets`` table.

    Exactly one record per ``account_id``.  Only the public address is stored
    in the clear; the private key is kept as AES-GCM ciphertext.
    """

    account_id: str
    address: str
    encrypted_private_key: str
    salt: str
    iv: str
    auth_tag: str = ""
    created_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_secret(cls, account_id: str, address: str, secret: EncryptedSecret) -> WalletRecord:
        return cls(
            account_id=account_id,
            address=address,
            encrypted_private_key=secret.ciphertext,
            salt=secret.salt,
            iv=secret.iv,
            auth_tag=secret.auth_tag,
        )

    def secret(self) -> EncryptedSecret:
        return EncryptedSecret(
            ciphertext=self.encrypted_private_key,
            iv=self.iv,
            salt=self.salt,
            auth_tag=self.auth_tag or "",
        )


class TransactionRecord(BaseModel):
    """Maps to the ``transactions`` table (history of confirmed calls)."""

    id: str = Field(default_factory=_new_id)
    account_id: str
    kind: TransactionKind
    token: str
    amount: str  # stored as string to preserve decimal precision
    tx_hash: str
    to_address: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
