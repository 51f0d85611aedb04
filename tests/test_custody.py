"""
Tests for compound_chat.wallet.custody.
"""
from __future__ import annotations

import asyncio

import pytest

from compound_chat.errors import (
    AuthenticationFailure,
    InvalidMnemonic,
    WalletCorrupted,
    WalletExists,
    WalletNotFound,
)
from compound_chat.wallet.custody import WalletCustody
from compound_chat.wallet.encryption import KeyVault

from conftest import ACCOUNT, OTHER_ACCOUNT, TEST_ADDRESS, TEST_MNEMONIC, TEST_PRIVATE_KEY


class TestCreate:

    @pytest.mark.asyncio
    async def test_create_stores_encrypted_record(self, custody, store):
        record, mnemonic = await custody.create(ACCOUNT)
        assert len(mnemonic.split()) == 24
        stored = await store.get_wallet(ACCOUNT)
        assert stored.address == record.address
        assert stored.auth_tag
        assert mnemonic not in stored.model_dump_json()

    @pytest.mark.asyncio
    async def test_create_refuses_overwrite(self, custody):
        record, _ = await custody.create(ACCOUNT)
        with pytest.raises(WalletExists) as exc_info:
            await custody.create(ACCOUNT)
        assert exc_info.value.address == record.address
        assert (await custody.get(ACCOUNT)).address == record.address

    @pytest.mark.asyncio
    async def test_concurrent_create_refuses_the_loser(self, custody, store):
        results = await asyncio.gather(
            custody.create(ACCOUNT), custody.create(ACCOUNT), return_exceptions=True
        )
        refused = [r for r in results if isinstance(r, WalletExists)]
        (record, _), = [r for r in results if not isinstance(r, Exception)]
        assert len(refused) == 1
        assert (await store.get_wallet(ACCOUNT)).address == record.address


class TestImport:

    @pytest.mark.asyncio
    async def test_import_known_phrase(self, custody):
        record = await custody.import_phrase(ACCOUNT, TEST_MNEMONIC)
        assert record.address == TEST_ADDRESS
        assert TEST_PRIVATE_KEY not in record.encrypted_private_key

    @pytest.mark.asyncio
    async def test_import_refuses_overwrite(self, custody):
        await custody.create(ACCOUNT)
        with pytest.raises(WalletExists):
            await custody.import_phrase(ACCOUNT, TEST_MNEMONIC)

    @pytest.mark.asyncio
    async def test_import_invalid_phrase_stores_nothing(self, custody, store):
        with pytest.raises(InvalidMnemonic):
            await custody.import_phrase(ACCOUNT, "not a real phrase at all")
        assert await store.get_wallet(ACCOUNT) is None


class TestUnlock:

    @pytest.mark.asyncio
    async def test_unlock_yields_key_and_wipes_it(self, custody):
        await custody.import_phrase(ACCOUNT, TEST_MNEMONIC)
        async with custody.unlock(ACCOUNT) as (record, key):
            assert record.address == TEST_ADDRESS
            assert bytes(key.material).hex() == TEST_PRIVATE_KEY
        assert key.wiped

    @pytest.mark.asyncio
    async def test_key_wiped_when_block_raises(self, custody):
        await custody.import_phrase(ACCOUNT, TEST_MNEMONIC)
        with pytest.raises(RuntimeError):
            async with custody.unlock(ACCOUNT) as (_, key):
                raise RuntimeError("orchestration blew up")
        assert key.wiped

    @pytest.mark.asyncio
    async def test_missing_wallet(self, custody):
        with pytest.raises(WalletNotFound):
            async with custody.unlock(ACCOUNT):
                pass

    @pytest.mark.asyncio
    async def test_missing_auth_tag_is_corruption(self, custody, store):
        record = await custody.import_phrase(ACCOUNT, TEST_MNEMONIC)
        store._wallets[ACCOUNT] = record.model_copy(update={"auth_tag": ""})
        with pytest.raises(WalletCorrupted):
            async with custody.unlock(ACCOUNT):
                pass

    @pytest.mark.asyncio
    async def test_record_moved_to_other_account_fails_auth(self, custody, store):
        record = await custody.import_phrase(ACCOUNT, TEST_MNEMONIC)
        store._wallets[OTHER_ACCOUNT] = record.model_copy(update={"account_id": OTHER_ACCOUNT})
        with pytest.raises(AuthenticationFailure):
            async with custody.unlock(OTHER_ACCOUNT):
                pass

    @pytest.mark.asyncio
    async def test_auth_failure_is_not_reported_as_missing(self, store, custody):
        await custody.import_phrase(ACCOUNT, TEST_MNEMONIC)
        other = WalletCustody(store, KeyVault(b"\x33" * 32))
        with pytest.raises(AuthenticationFailure):
            async with other.unlock(ACCOUNT):
                pass

    @pytest.mark.asyncio
    async def test_address_mismatch_is_corruption(self, custody, store):
        record = await custody.import_phrase(ACCOUNT, TEST_MNEMONIC)
        store._wallets[ACCOUNT] = record.model_copy(
            update={"address": "0x000000000000000000000000000000000000dEaD"}
        )
        with pytest.raises(WalletCorrupted):
            async with custody.unlock(ACCOUNT):
                pass
