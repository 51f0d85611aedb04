"""
Tests for compound_chat.locks.
"""
from __future__ import annotations

import asyncio

import pytest

from compound_chat.errors import FailureKind
from compound_chat.locks import AccountBusy, AccountLocks

from conftest import ACCOUNT, OTHER_ACCOUNT


class TestAccountLocks:

    @pytest.mark.asyncio
    async def test_same_account_is_serialized(self):
        locks = AccountLocks(wait_seconds=None)
        order: list[str] = []

        async def worker(name: str):
            async with locks.hold(ACCOUNT):
                order.append(f"{name}-start")
                await asyncio.sleep(0.01)
                order.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))
        assert order in (
            ["a-start", "a-end", "b-start", "b-end"],
            ["b-start", "b-end", "a-start", "a-end"],
        )

    @pytest.mark.asyncio
    async def test_other_accounts_do_not_block(self):
        locks = AccountLocks(wait_seconds=0.05)
        async with locks.hold(ACCOUNT):
            async with locks.hold(OTHER_ACCOUNT):
                assert locks.is_locked(ACCOUNT)
                assert locks.is_locked(OTHER_ACCOUNT)

    @pytest.mark.asyncio
    async def test_busy_after_wait(self):
        locks = AccountLocks(wait_seconds=0.05)
        async with locks.hold(ACCOUNT):
            with pytest.raises(AccountBusy) as exc_info:
                async with locks.hold(ACCOUNT):
                    pass
        assert exc_info.value.kind == FailureKind.ACCOUNT_BUSY

    @pytest.mark.asyncio
    async def test_released_on_exception(self):
        locks = AccountLocks(wait_seconds=0.05)
        with pytest.raises(ValueError):
            async with locks.hold(ACCOUNT):
                raise ValueError("boom")
        assert not locks.is_locked(ACCOUNT)
        async with locks.hold(ACCOUNT):
            pass

    @pytest.mark.asyncio
    async def test_unused_locks_are_dropped(self):
        locks = AccountLocks()
        async with locks.hold(ACCOUNT):
            pass
        assert locks._locks == {}
        assert locks._waiters == {}
