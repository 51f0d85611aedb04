"""
Pytest configuration and shared fixtures for compound_chat tests.
"""
from __future__ import annotations

import asyncio
from decimal import Decimal

import pytest
import pytest_asyncio

from compound_chat.bot import Bot
from compound_chat.chain.client import PendingTx
from compound_chat.chain.networks import NETWORKS, Network, Token
from compound_chat.chain.units import parse_units
from compound_chat.config import BotConfig, SecurityConfig
from compound_chat.errors import ChainError
from compound_chat.storage.wallets import MemoryWalletStore
from compound_chat.wallet.custody import WalletCustody
from compound_chat.wallet.encryption import KeyVault
from compound_chat.wallet.secret import SecretKey

# Well-known development mnemonic and its first account.
TEST_MNEMONIC = "test test test test test test test test test test test junk"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
TEST_PRIVATE_KEY = "ac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"

MASTER_KEY_HEX = "11" * 32
ACCOUNT = "+254712345678"
OTHER_ACCOUNT = "+254700000001"
EXTERNAL = "0x000000000000000000000000000000000000dEaD"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeChainClient:
    """Recording in-memory chain client.

    Balances are smallest-unit integers keyed by ``(address.lower(), symbol)``.
    Submissions take effect immediately.  ``calls`` records every
    state-changing call in order; ``reads`` records every read.
    """

    DECIMALS = {"ETH": 18, "USDC": 6, "WETH": 18, "USDT": 6, "DAI": 18}

    def __init__(self, network: Network) -> None:
        self.network = network
        self.market_address = network.market_address
        self.balances: dict[tuple[str, str], int] = {}
        self.market_balances: dict[tuple[str, str], int] = {}
        self.allowances: dict[tuple[str, str, str], int] = {}
        self.calls: list[tuple] = []
        self.reads: list[tuple] = []
        self.keys_seen: list[SecretKey] = []
        self.live_at_submit: list[bool] = []
        self.fail_submit: dict[str, Exception] = {}
        self.fail_confirm: set[str] = set()
        self.hang: set[str] = set()
        self.credit_wallet_on_withdraw = True
        self.apr = Decimal("4.25")
        self._pending: dict[str, str] = {}
        self._counter = 0

    # --- helpers -------------------------------------------------------

    def units(self, amount: str, symbol: str) -> int:
        return parse_units(amount, self.DECIMALS[symbol])

    def fund(self, address: str, symbol: str, amount: str) -> None:
        self.balances[(address.lower(), symbol)] = self.units(amount, symbol)

    def fund_market(self, address: str, symbol: str, amount: str) -> None:
        self.market_balances[(address.lower(), symbol)] = self.units(amount, symbol)

    def balance_of(self, address: str, symbol: str) -> int:
        return self.balances.get((address.lower(), symbol), 0)

    def call_kinds(self) -> list[str]:
        return [c[0] for c in self.calls]

    async def _maybe_hang(self, name: str) -> None:
        if name in self.hang:
            await asyncio.sleep(3600)

    def _submit(self, name: str, key: SecretKey, call: tuple) -> PendingTx:
        self.keys_seen.append(key)
        self.live_at_submit.append(not key.wiped)
        if name in self.fail_submit:
            raise self.fail_submit[name]
        self.calls.append(call)
        self._counter += 1
        tx_hash = "0x" + f"{self._counter:064x}"
        self._pending[tx_hash] = name
        return PendingTx(tx_hash)

    # --- reads ---------------------------------------------------------

    async def get_decimals(self, token: Token) -> int:
        self.reads.append(("decimals", token.symbol))
        await self._maybe_hang("decimals")
        return self.DECIMALS[token.symbol]

    async def get_balance(self, address: str, token: Token) -> int:
        self.reads.append(("balance", address, token.symbol))
        await self._maybe_hang("balance")
        return self.balance_of(address, token.symbol)

    async def get_market_balance(self, address: str, token: Token) -> int:
        self.reads.append(("market_balance", address, token.symbol))
        await self._maybe_hang("market_balance")
        return self.market_balances.get((address.lower(), token.symbol), 0)

    async def get_allowance(self, owner: str, spender: str, token: Token) -> int:
        self.reads.append(("allowance", owner, spender, token.symbol))
        await self._maybe_hang("allowance")
        return self.allowances.get((owner.lower(), spender.lower(), token.symbol), 0)

    async def get_supply_apr(self) -> Decimal:
        if "apr" in self.fail_submit:
            raise self.fail_submit["apr"]
        return self.apr

    # --- submissions ---------------------------------------------------

    async def submit_approval(self, private_key, token, spender, amount) -> PendingTx:
        await self._maybe_hang("approve")
        pending = self._submit("approve", private_key, ("approve", token.symbol, spender, amount))
        self.allowances[(TEST_ADDRESS.lower(), spender.lower(), token.symbol)] = amount
        return pending

    async def submit_transfer(self, private_key, token, to, amount) -> PendingTx:
        await self._maybe_hang("transfer")
        pending = self._submit("transfer", private_key, ("transfer", token.symbol, to, amount))
        self.balances[(TEST_ADDRESS.lower(), token.symbol)] = self.balance_of(TEST_ADDRESS, token.symbol) - amount
        self.balances[(to.lower(), token.symbol)] = self.balance_of(to, token.symbol) + amount
        return pending

    async def submit_market_supply(self, private_key, token, amount) -> PendingTx:
        await self._maybe_hang("supply")
        pending = self._submit("supply", private_key, ("supply", token.symbol, amount))
        key = (TEST_ADDRESS.lower(), token.symbol)
        self.balances[key] = self.balance_of(TEST_ADDRESS, token.symbol) - amount
        self.market_balances[key] = self.market_balances.get(key, 0) + amount
        return pending

    async def submit_market_withdraw(self, private_key, token, amount) -> PendingTx:
        await self._maybe_hang("withdraw")
        pending = self._submit("withdraw", private_key, ("withdraw", token.symbol, amount))
        key = (TEST_ADDRESS.lower(), token.symbol)
        self.market_balances[key] = self.market_balances.get(key, 0) - amount
        if self.credit_wallet_on_withdraw:
            self.balances[key] = self.balance_of(TEST_ADDRESS, token.symbol) + amount
        return pending

    async def wait_for(self, pending: PendingTx) -> str:
        name = self._pending[pending.tx_hash]
        await self._maybe_hang(f"confirm_{name}")
        if name in self.fail_confirm:
            raise ChainError(f"Transaction {pending.tx_hash} reverted")
        return pending.tx_hash


@pytest.fixture
def network() -> Network:
    return NETWORKS["sepolia"]


@pytest.fixture
def chain(network) -> FakeChainClient:
    return FakeChainClient(network)


@pytest.fixture
def master_key() -> bytes:
    return bytes.fromhex(MASTER_KEY_HEX)


@pytest.fixture
def vault(master_key) -> KeyVault:
    return KeyVault(master_key)


@pytest.fixture
def store() -> MemoryWalletStore:
    return MemoryWalletStore()


@pytest.fixture
def custody(store, vault) -> WalletCustody:
    return WalletCustody(store, vault)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> BotConfig:
    cfg = BotConfig(security=SecurityConfig(master_key=MASTER_KEY_HEX))
    cfg.transactions.timeout_seconds = 0.5
    cfg.transactions.lock_wait_seconds = 0.2
    return cfg


@pytest.fixture
def bot(config, custody, chain, network, clock) -> Bot:
    return Bot(config=config, custody=custody, client=chain, network=network, clock=clock)


@pytest_asyncio.fixture
async def funded_bot(bot, custody, chain) -> Bot:
    """Bot whose ACCOUNT owns the well-known test wallet."""
    await custody.import_phrase(ACCOUNT, TEST_MNEMONIC)
    chain.fund(TEST_ADDRESS, "ETH", "1")
    chain.fund(TEST_ADDRESS, "USDC", "100")
    return bot
