"""Chain client: balance reads and signed submissions against an EVM node.

:class:`ChainClient` is the capability set the orchestrator needs.
:class:`Web3ChainClient` implements it with ``web3`` and ``eth-account``.
web3's HTTP provider is synchronous, so each call runs in a worker thread to
keep the event loop free while a receipt is being polled.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Protocol

from web3 import Web3
from web3.exceptions import TimeExhausted
from web3.middleware import ExtraDataToPOAMiddleware

from compound_chat.chain.contracts import COMET_ABI, ERC20_ABI, RATE_SCALE, SECONDS_PER_YEAR
from compound_chat.chain.networks import NATIVE_DECIMALS, Network, Token
from compound_chat.errors import ChainError, ChainTimeout, TransactionReverted
from compound_chat.masking import mask_address
from compound_chat.wallet.secret import SecretKey

logger = logging.getLogger("compound_chat.chain.client")


@dataclass(frozen=True)
class PendingTx:
    """A submitted, not yet confirmed transaction."""

    tx_hash: str


def is_valid_address(value: str) -> bool:
    """True for a 0x-prefixed 20-byte hex address (any checksum casing)."""
    return isinstance(value, str) and value.startswith("0x") and Web3.is_address(value)


def same_address(a: str, b: str) -> bool:
    return a.lower() == b.lower()


class ChainClient(Protocol):
    """Everything the orchestrator asks of the chain.

    Amounts are smallest-unit integers.  Submissions return as soon as the
    node accepts the transaction; :meth:`wait_for` blocks until it is mined.
    Implementations raise :class:`~compound_chat.errors.ChainError` (or a
    subclass) on failure.
    """

    market_address: str

    async def get_decimals(self, token: Token) -> int:
        ...

    async def get_balance(self, address: str, token: Token) -> int:
        ...

    async def get_market_balance(self, address: str, token: Token) -> int:
        ...

    async def get_allowance(self, owner: str, spender: str, token: Token) -> int:
        ...

    async def submit_approval(
        self, private_key: SecretKey, token: Token, spender: str, amount: int
    ) -> PendingTx:
        ...

    async def submit_transfer(
        self, private_key: SecretKey, token: Token, to: str, amount: int
    ) -> PendingTx:
        ...

    async def submit_market_supply(self, private_key: SecretKey, token: Token, amount: int) -> PendingTx:
        ...

    async def submit_market_withdraw(self, private_key: SecretKey, token: Token, amount: int) -> PendingTx:
        ...

    async def wait_for(self, pending: PendingTx) -> str:
        ...

    async def get_supply_apr(self) -> Decimal:
        ...


class Web3ChainClient:
    """:class:`ChainClient` backed by a JSON-RPC node.

    Parameters
    ----------
    network:
        Network definition (chain id, market and token addresses).
    rpc_url:
        Overrides ``network.rpc_url``.
    receipt_timeout:
        Seconds to poll for a receipt before raising :class:`ChainTimeout`.
    """

    def __init__(
        self,
        network: Network,
        rpc_url: str | None = None,
        receipt_timeout: float = 120.0,
        market_address: str | None = None,
    ) -> None:
        self.network = network
        self.market_address = Web3.to_checksum_address(market_address or network.market_address)
        self.receipt_timeout = receipt_timeout
        self.w3 = Web3(Web3.HTTPProvider(rpc_url or network.rpc_url))

        # Inject POA middleware for non-mainnet chains
        if network.chain_id != 1:
            self.w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

        self._decimals: dict[str, int] = {}
        self._comet = self.w3.eth.contract(address=self.market_address, abi=COMET_ABI)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_decimals(self, token: Token) -> int:
        if token.is_native:
            return NATIVE_DECIMALS
        # decimals() is immutable for a deployed token, so one read is enough.
        if token.symbol not in self._decimals:
            contract = self._erc20(token)
            self._decimals[token.symbol] = await self._run(contract.functions.decimals().call)
        return self._decimals[token.symbol]

    async def get_balance(self, address: str, token: Token) -> int:
        owner = Web3.to_checksum_address(address)
        if token.is_native:
            return await self._run(self.w3.eth.get_balance, owner)
        return await self._run(self._erc20(token).functions.balanceOf(owner).call)

    async def get_market_balance(self, address: str, token: Token) -> int:
        owner = Web3.to_checksum_address(address)
        return await self._run(self._comet.functions.balanceOf(owner).call)

    async def get_allowance(self, owner: str, spender: str, token: Token) -> int:
        fn = self._erc20(token).functions.allowance(
            Web3.to_checksum_address(owner), Web3.to_checksum_address(spender)
        )
        return await self._run(fn.call)

    async def get_supply_apr(self) -> Decimal:
        """Current supply APR of the market, in percent."""
        utilization = await self._run(self._comet.functions.getUtilization().call)
        rate = await self._run(self._comet.functions.getSupplyRate(utilization).call)
        return Decimal(rate) * SECONDS_PER_YEAR * 100 / RATE_SCALE

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    async def submit_approval(
        self, private_key: SecretKey, token: Token, spender: str, amount: int
    ) -> PendingTx:
        fn = self._erc20(token).functions.approve(Web3.to_checksum_address(spender), amount)
        return await self._run(self._send_contract_call, private_key, fn)

    async def submit_transfer(
        self, private_key: SecretKey, token: Token, to: str, amount: int
    ) -> PendingTx:
        checksum_to = Web3.to_checksum_address(to)
        if token.is_native:
            return await self._run(self._send_native, private_key, checksum_to, amount)
        fn = self._erc20(token).functions.transfer(checksum_to, amount)
        return await self._run(self._send_contract_call, private_key, fn)

    async def submit_market_supply(self, private_key: SecretKey, token: Token, amount: int) -> PendingTx:
        fn = self._comet.functions.supply(self._token_address(token), amount)
        return await self._run(self._send_contract_call, private_key, fn)

    async def submit_market_withdraw(self, private_key: SecretKey, token: Token, amount: int) -> PendingTx:
        fn = self._comet.functions.withdraw(self._token_address(token), amount)
        return await self._run(self._send_contract_call, private_key, fn)

    async def wait_for(self, pending: PendingTx) -> str:
        receipt = await self._run(
            self.w3.eth.wait_for_transaction_receipt, pending.tx_hash, self.receipt_timeout
        )
        if receipt.get("status") != 1:
            raise TransactionReverted(pending.tx_hash)
        return pending.tx_hash

    # ------------------------------------------------------------------
    # Internals (run in worker threads)
    # ------------------------------------------------------------------

    async def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except ChainError:
            raise
        except TimeExhausted as exc:
            raise ChainTimeout(str(exc)) from exc
        except Exception as exc:
            raise ChainError(f"{type(exc).__name__}: {exc}") from exc

    def _erc20(self, token: Token):
        return self.w3.eth.contract(address=self._token_address(token), abi=ERC20_ABI)

    @staticmethod
    def _token_address(token: Token) -> str:
        if token.address is None:
            raise ChainError(f"{token.symbol} is the native coin and has no contract")
        return Web3.to_checksum_address(token.address)

    def _fee_fields(self) -> dict:
        """EIP-1559 fee parameters, or a legacy gas price on pre-London chains."""
        latest = self.w3.eth.get_block("latest")
        base_fee = latest.get("baseFeePerGas")
        if base_fee is None:
            return {"gasPrice": self.w3.eth.gas_price}
        max_priority = Web3.to_wei(1.5, "gwei")
        return {
            "maxFeePerGas": base_fee * 2 + max_priority,
            "maxPriorityFeePerGas": max_priority,
        }

    def _base_tx(self, sender: str) -> dict:
        tx = {
            "from": sender,
            "nonce": self.w3.eth.get_transaction_count(sender, "pending"),
            "chainId": self.network.chain_id,
        }
        tx.update(self._fee_fields())
        return tx

    def _send_contract_call(self, private_key: SecretKey, fn) -> PendingTx:
        sender = self.w3.eth.account.from_key(private_key.material).address
        tx = fn.build_transaction(self._base_tx(sender))
        return self._sign_and_send(private_key, tx)

    def _send_native(self, private_key: SecretKey, to: str, value: int) -> PendingTx:
        sender = self.w3.eth.account.from_key(private_key.material).address
        tx = self._base_tx(sender)
        tx.update({"to": to, "value": value})
        tx["gas"] = self.w3.eth.estimate_gas(tx)
        return self._sign_and_send(private_key, tx)

    def _sign_and_send(self, private_key: SecretKey, tx: dict) -> PendingTx:
        signed = self.w3.eth.account.sign_transaction(tx, private_key.material)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        hex_hash = Web3.to_hex(tx_hash)
        logger.info(f"Submitted tx {hex_hash} from {mask_address(tx['from'])}")
        return PendingTx(tx_hash=hex_hash)
