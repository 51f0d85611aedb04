"""Wallet lifecycle: create, import, and scoped unlock for signing."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from compound_chat.errors import WalletCorrupted, WalletExists, WalletNotFound
from compound_chat.masking import mask_account_id, mask_address
from compound_chat.storage.models import WalletRecord
from compound_chat.storage.wallets import WalletStore
from compound_chat.wallet.encryption import KeyVault
from compound_chat.wallet.keys import address_from_key, derive_new_wallet, import_wallet
from compound_chat.wallet.secret import SecretKey

logger = logging.getLogger("compound_chat.wallet.custody")


class WalletCustody:
    """Orchestrates key derivation, the key vault, and the wallet store."""

    def __init__(self, store: WalletStore, vault: KeyVault) -> None:
        self.store = store
        self.vault = vault

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def get(self, account_id: str) -> WalletRecord | None:
        return await self.store.get_wallet(account_id)

    async def create(self, account_id: str) -> tuple[WalletRecord, str]:
        """Create a wallet and return it with the mnemonic for one-time display.

        Raises
        ------
        WalletExists
            If the account already has a wallet.
        """
        await self._refuse_overwrite(account_id)
        derived = derive_new_wallet()
        with derived.private_key as key:
            secret = self.vault.encrypt(account_id, key)
        record = WalletRecord.from_secret(account_id, derived.address, secret)
        await self.store.save_wallet(account_id, record)
        logger.info(
            f"Wallet created for {mask_account_id(account_id)}: {mask_address(record.address)}"
        )
        return record, derived.mnemonic or ""

    async def import_phrase(self, account_id: str, phrase: str) -> WalletRecord:
        """Import a wallet from a mnemonic.

        Raises
        ------
        WalletExists
            If the account already has a wallet (re-import is refused).
        InvalidMnemonic
            If the phrase fails validation.
        """
        await self._refuse_overwrite(account_id)
        derived = import_wallet(phrase)
        with derived.private_key as key:
            secret = self.vault.encrypt(account_id, key)
        record = WalletRecord.from_secret(account_id, derived.address, secret)
        await self.store.save_wallet(account_id, record)
        logger.info(
            f"Wallet imported for {mask_account_id(account_id)}: {mask_address(record.address)}"
        )
        return record

    @asynccontextmanager
    async def unlock(self, account_id: str) -> AsyncIterator[tuple[WalletRecord, SecretKey]]:
        """Decrypt the account's key for the duration of the ``async with`` block.

        The key is wiped on every exit path.

        Raises
        ------
        WalletNotFound
            If the account has no wallet.
        WalletCorrupted
            If the record is missing its authentication tag, or the decrypted
            key does not control the stored address.
        AuthenticationFailure
            If decryption fails.
        """
        record = await self.store.get_wallet(account_id)
        if record is None:
            raise WalletNotFound()
        if not record.auth_tag:
            logger.error(f"Wallet for {mask_account_id(account_id)} has no auth tag")
            raise WalletCorrupted()

        key = self.vault.decrypt(record.secret(), account_id)
        try:
            if address_from_key(key).lower() != record.address.lower():
                logger.error(
                    f"Decrypted key for {mask_account_id(account_id)} does not match stored address"
                )
                raise WalletCorrupted("Stored address does not match the decrypted key")
            yield record, key
        finally:
            key.wipe()

    async def _refuse_overwrite(self, account_id: str) -> None:
        existing = await self.store.get_wallet(account_id)
        if existing is not None:
            raise WalletExists(existing.address)
