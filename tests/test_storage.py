"""
Tests for compound_chat.storage (SQLite-backed wallet store).
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from compound_chat.errors import WalletExists
from compound_chat.storage.database import get_database
from compound_chat.storage.models import TransactionKind, TransactionRecord
from compound_chat.storage.wallets import SqliteWalletStore
from compound_chat.wallet.custody import WalletCustody

from conftest import ACCOUNT, OTHER_ACCOUNT, TEST_ADDRESS, TEST_MNEMONIC


@pytest_asyncio.fixture
async def sqlite_store(tmp_path):
    db = get_database(tmp_path / ".compound-chat")
    await db.connect()
    yield SqliteWalletStore(db)
    await db.close()


def _tx(account_id: str, tx_hash: str, minutes_ago: int, kind=TransactionKind.SEND) -> TransactionRecord:
    return TransactionRecord(
        account_id=account_id,
        kind=kind,
        token="USDC",
        amount="1.5",
        tx_hash=tx_hash,
        to_address=TEST_ADDRESS if kind == TransactionKind.SEND else None,
        created_at=datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
    )


class TestWallets:

    @pytest.mark.asyncio
    async def test_missing_wallet(self, sqlite_store):
        assert await sqlite_store.get_wallet(ACCOUNT) is None

    @pytest.mark.asyncio
    async def test_custody_round_trip(self, sqlite_store, vault):
        custody = WalletCustody(sqlite_store, vault)
        await custody.import_phrase(ACCOUNT, TEST_MNEMONIC)

        stored = await sqlite_store.get_wallet(ACCOUNT)
        assert stored.address == TEST_ADDRESS
        assert stored.auth_tag
        async with custody.unlock(ACCOUNT) as (record, key):
            assert record.address == TEST_ADDRESS
        assert key.wiped

    @pytest.mark.asyncio
    async def test_existing_row_is_never_overwritten(self, sqlite_store, vault):
        custody = WalletCustody(sqlite_store, vault)
        original = await custody.import_phrase(ACCOUNT, TEST_MNEMONIC)

        other, _ = await WalletCustody(sqlite_store, vault).create(OTHER_ACCOUNT)
        with pytest.raises(WalletExists) as exc_info:
            await sqlite_store.save_wallet(ACCOUNT, other.model_copy(update={"account_id": ACCOUNT}))

        assert exc_info.value.address == original.address
        assert (await sqlite_store.get_wallet(ACCOUNT)).address == original.address

    @pytest.mark.asyncio
    async def test_concurrent_create_reports_only_the_stored_wallet(self, sqlite_store, vault):
        custody = WalletCustody(sqlite_store, vault)
        results = await asyncio.gather(
            custody.create(ACCOUNT), custody.create(ACCOUNT), return_exceptions=True
        )

        created = [r for r in results if not isinstance(r, Exception)]
        refused = [r for r in results if isinstance(r, Exception)]
        assert len(created) == 1
        assert len(refused) == 1
        assert isinstance(refused[0], WalletExists)

        record, _ = created[0]
        assert (await sqlite_store.get_wallet(ACCOUNT)).address == record.address

    @pytest.mark.asyncio
    async def test_data_survives_reconnect(self, tmp_path, vault):
        data_dir = tmp_path / ".compound-chat"
        db = get_database(data_dir)
        await db.connect()
        await WalletCustody(SqliteWalletStore(db), vault).import_phrase(ACCOUNT, TEST_MNEMONIC)
        await db.close()

        db = get_database(data_dir)
        await db.connect()
        try:
            record = await SqliteWalletStore(db).get_wallet(ACCOUNT)
            assert record.address == TEST_ADDRESS
        finally:
            await db.close()


class TestTransactions:

    @pytest.mark.asyncio
    async def test_newest_first(self, sqlite_store):
        await sqlite_store.record_transaction(_tx(ACCOUNT, "0xold", 10))
        await sqlite_store.record_transaction(_tx(ACCOUNT, "0xnew", 1, TransactionKind.SUPPLY))
        await sqlite_store.record_transaction(_tx(OTHER_ACCOUNT, "0xother", 5))

        history = await sqlite_store.list_transactions(ACCOUNT)
        assert [h.tx_hash for h in history] == ["0xnew", "0xold"]
        assert history[0].kind == TransactionKind.SUPPLY
        assert history[0].to_address is None
        assert history[1].to_address == TEST_ADDRESS
        assert history[1].amount == "1.5"

    @pytest.mark.asyncio
    async def test_limit(self, sqlite_store):
        for i in range(5):
            await sqlite_store.record_transaction(_tx(ACCOUNT, f"0x{i}", i))
        history = await sqlite_store.list_transactions(ACCOUNT, limit=2)
        assert [h.tx_hash for h in history] == ["0x0", "0x1"]
