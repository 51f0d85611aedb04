"""Transaction orchestration for supply, withdraw and send.

The orchestrator turns a validated intent into chain calls: token and amount
validation, a fresh balance read, an approval when the market's allowance is
short, the primary call, and (for withdraw-to-elsewhere) a follow-up
transfer.  Every chain call is bounded by ``step_timeout``.  The result is
always a :class:`TransactionOutcome`; chain problems never escape as
exceptions.

Multi-step flows are not rolled back.  If an approval confirms and the
supply then fails, the approval stays in place and the failure lists the
hashes that did confirm so the remaining step can be retried.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, TypeVar

from compound_chat.chain.client import ChainClient, PendingTx, is_valid_address, same_address
from compound_chat.chain.networks import Network, Token
from compound_chat.chain.units import AmountError, format_units, parse_units
from compound_chat.errors import ChainError, ChainTimeout, FailureKind
from compound_chat.masking import mask_address
from compound_chat.wallet.secret import SecretKey

logger = logging.getLogger("compound_chat.orchestrator")

T = TypeVar("T")


class IntentKind(str, Enum):
    SUPPLY = "supply"
    WITHDRAW = "withdraw"
    SEND = "send"


@dataclass(frozen=True)
class Intent:
    kind: IntentKind
    amount: str
    token: str
    destination: str | None = None


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    message: str
    step: str | None = None
    # Hashes that confirmed before the failing step; nothing is rolled back.
    completed_tx_hashes: tuple[str, ...] = ()


@dataclass(frozen=True)
class TransactionOutcome:
    tx_hashes: tuple[str, ...] = ()
    failure: Failure | None = None
    approval_tx_hash: str | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, *tx_hashes: str, approval_tx_hash: str | None = None) -> TransactionOutcome:
        return cls(tx_hashes=tuple(tx_hashes), approval_tx_hash=approval_tx_hash)

    @classmethod
    def failed(
        cls,
        kind: FailureKind,
        message: str,
        step: str | None = None,
        completed: tuple[str, ...] = (),
    ) -> TransactionOutcome:
        return cls(failure=Failure(kind, message, step, completed))


class _Abort(Exception):
    """Internal: stop the current algorithm with a typed failure."""

    def __init__(self, kind: FailureKind, message: str, step: str | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.step = step


class TransactionOrchestrator:
    """Drives a :class:`ChainClient` through one intent.

    Parameters
    ----------
    client:
        Chain capability set.
    network:
        Supplies the token registry and the market (spender) address.
    step_timeout:
        Seconds allowed for each chain call, including each confirmation wait.
    """

    def __init__(self, client: ChainClient, network: Network, step_timeout: float = 120.0) -> None:
        self.client = client
        self.network = network
        self.step_timeout = step_timeout
        self._handlers: dict[IntentKind, Callable[..., Awaitable[TransactionOutcome]]] = {
            IntentKind.SUPPLY: self._supply,
            IntentKind.WITHDRAW: self._withdraw,
            IntentKind.SEND: self._send,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def execute(self, private_key: SecretKey, owner: str, intent: Intent) -> TransactionOutcome:
        """Run *intent* for the wallet at *owner* signed by *private_key*."""
        handler = self._handlers[intent.kind]
        completed: list[str] = []
        try:
            return await handler(private_key, owner, intent, completed)
        except _Abort as abort:
            logger.warning(
                f"{intent.kind.value} for {mask_address(owner)} aborted at "
                f"{abort.step or 'validation'}: {abort.kind.value}"
            )
            return TransactionOutcome.failed(abort.kind, abort.message, abort.step, tuple(completed))

    async def supply(self, private_key: SecretKey, owner: str, token: str, amount: str) -> TransactionOutcome:
        return await self.execute(private_key, owner, Intent(IntentKind.SUPPLY, amount, token))

    async def withdraw(
        self,
        private_key: SecretKey,
        owner: str,
        token: str,
        amount: str,
        destination: str | None = None,
    ) -> TransactionOutcome:
        return await self.execute(
            private_key, owner, Intent(IntentKind.WITHDRAW, amount, token, destination)
        )

    async def send(
        self, private_key: SecretKey, owner: str, token: str, amount: str, destination: str
    ) -> TransactionOutcome:
        return await self.execute(
            private_key, owner, Intent(IntentKind.SEND, amount, token, destination)
        )

    def supported_tokens(self, market: bool = False) -> list[str]:
        return [t.symbol for t in self.network.tokens.values() if t.market or not market]

    # ------------------------------------------------------------------
    # Algorithms
    # ------------------------------------------------------------------

    async def _supply(
        self, key: SecretKey, owner: str, intent: Intent, completed: list[str]
    ) -> TransactionOutcome:
        token = self._resolve_token(intent.token, market=True)
        decimals, amount = await self._parse_amount(token, intent.amount)

        balance = await self._step("balance check", self.client.get_balance(owner, token))
        self._require_funds(balance, amount, decimals, token, intent.amount, "supply")

        spender = self.client.market_address
        allowance = await self._step("allowance check", self.client.get_allowance(owner, spender, token))
        approval_hash = None
        if allowance < amount:
            logger.info(f"Approving market for {intent.amount} {token.symbol}")
            pending = await self._submit(
                "approval",
                self.client.submit_approval(key, token, spender, amount),
                FailureKind.APPROVAL_FAILED,
            )
            approval_hash = await self._step(
                "approval confirmation", self.client.wait_for(pending), FailureKind.APPROVAL_FAILED
            )
            completed.append(approval_hash)

        logger.info(f"Supplying {intent.amount} {token.symbol} from {mask_address(owner)}")
        pending = await self._submit("supply", self.client.submit_market_supply(key, token, amount))
        tx_hash = await self._step("supply confirmation", self.client.wait_for(pending))
        logger.info(f"Supply confirmed: {tx_hash}")
        return TransactionOutcome.success(tx_hash, approval_tx_hash=approval_hash)

    async def _withdraw(
        self, key: SecretKey, owner: str, intent: Intent, completed: list[str]
    ) -> TransactionOutcome:
        token = self._resolve_token(intent.token, market=True)
        destination = intent.destination
        if destination is not None:
            self._require_address(destination)
        decimals, amount = await self._parse_amount(token, intent.amount)

        supplied = await self._step("market balance check", self.client.get_market_balance(owner, token))
        if supplied < amount:
            raise _Abort(
                FailureKind.INSUFFICIENT_BALANCE,
                f"Insufficient {token.symbol} on the market. You have "
                f"{format_units(supplied, decimals)} but tried to withdraw {intent.amount}",
            )

        logger.info(f"Withdrawing {intent.amount} {token.symbol} to {mask_address(owner)}")
        pending = await self._submit("withdraw", self.client.submit_market_withdraw(key, token, amount))
        withdraw_hash = await self._step("withdraw confirmation", self.client.wait_for(pending))
        completed.append(withdraw_hash)

        if destination is None or same_address(destination, owner):
            return TransactionOutcome.success(withdraw_hash)

        balance = await self._step("wallet balance check", self.client.get_balance(owner, token))
        if balance < amount:
            raise _Abort(
                FailureKind.INSUFFICIENT_BALANCE,
                f"Not enough {token.symbol} in wallet to forward externally "
                f"(have {format_units(balance, decimals)}, need {intent.amount})",
                "wallet balance check",
            )

        logger.info(f"Forwarding {intent.amount} {token.symbol} to {mask_address(destination)}")
        pending = await self._submit("transfer", self.client.submit_transfer(key, token, destination, amount))
        transfer_hash = await self._step("transfer confirmation", self.client.wait_for(pending))
        return TransactionOutcome.success(withdraw_hash, transfer_hash)

    async def _send(
        self, key: SecretKey, owner: str, intent: Intent, completed: list[str]
    ) -> TransactionOutcome:
        token = self._resolve_token(intent.token, market=False)
        if intent.destination is None:
            raise _Abort(FailureKind.INVALID_DESTINATION, "A destination address is required")
        self._require_address(intent.destination)
        decimals, amount = await self._parse_amount(token, intent.amount)

        balance = await self._step("balance check", self.client.get_balance(owner, token))
        self._require_funds(balance, amount, decimals, token, intent.amount, "send")

        logger.info(
            f"Sending {intent.amount} {token.symbol} from {mask_address(owner)} "
            f"to {mask_address(intent.destination)}"
        )
        pending = await self._submit(
            "transfer", self.client.submit_transfer(key, token, intent.destination, amount)
        )
        tx_hash = await self._step("transfer confirmation", self.client.wait_for(pending))
        return TransactionOutcome.success(tx_hash)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_token(self, symbol: str, market: bool) -> Token:
        normalized = (symbol or "").upper()
        token = self.network.tokens.get(normalized)
        if token is None:
            raise _Abort(
                FailureKind.INVALID_TOKEN,
                f"Token {normalized or '?'} not supported. "
                f"Supported: {', '.join(self.supported_tokens())}",
            )
        if market and not token.market:
            raise _Abort(
                FailureKind.UNSUPPORTED_FOR_MARKET,
                f"Token {normalized} not supported by the lending market. "
                f"Supported: {', '.join(self.supported_tokens(market=True))}",
            )
        return token

    async def _parse_amount(self, token: Token, amount: str) -> tuple[int, int]:
        decimals = await self._step("decimals lookup", self.client.get_decimals(token))
        try:
            return decimals, parse_units(amount, decimals)
        except AmountError as exc:
            raise _Abort(FailureKind.INVALID_AMOUNT, str(exc)) from None

    @staticmethod
    def _require_address(destination: str) -> None:
        if not is_valid_address(destination):
            raise _Abort(
                FailureKind.INVALID_DESTINATION,
                "Invalid destination address. Provide a valid Ethereum address (0x...)",
            )

    @staticmethod
    def _require_funds(
        balance: int, amount: int, decimals: int, token: Token, requested: str, verb: str
    ) -> None:
        if balance < amount:
            raise _Abort(
                FailureKind.INSUFFICIENT_BALANCE,
                f"Insufficient {token.symbol}. You have {format_units(balance, decimals)} "
                f"but tried to {verb} {requested}",
                "balance check",
            )

    async def _step(
        self,
        name: str,
        call: Awaitable[T],
        failure_kind: FailureKind = FailureKind.CALL_FAILED,
    ) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self.step_timeout)
        except (asyncio.TimeoutError, ChainTimeout):
            raise _Abort(
                FailureKind.TIMEOUT, f"{name.capitalize()} timed out after {self.step_timeout:g}s", name
            ) from None
        except ChainError as exc:
            raise _Abort(failure_kind, f"{name.capitalize()} failed: {exc}", name) from None

    async def _submit(
        self,
        name: str,
        call: Awaitable[PendingTx],
        failure_kind: FailureKind = FailureKind.CALL_FAILED,
    ) -> PendingTx:
        """Like :meth:`_step`, for calls that sign with the private key.

        A timed-out submission is not abandoned: the worker still holds the
        key and may still broadcast, so it is awaited to completion before the
        failure is reported.  The key scope and the account lock therefore
        outlive every use of the key.
        """
        task = asyncio.ensure_future(call)
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self.step_timeout)
        except (asyncio.TimeoutError, ChainTimeout):
            pass
        except ChainError as exc:
            raise _Abort(failure_kind, f"{name.capitalize()} failed: {exc}", name) from None

        logger.warning(f"{name.capitalize()} timed out, waiting for the signer to settle")
        message = f"{name.capitalize()} timed out after {self.step_timeout:g}s"
        try:
            late = await task
        except ChainError as exc:
            logger.warning(f"Late {name} submission failed: {exc}")
        else:
            message += f". Transaction {late.tx_hash} was still submitted and may confirm"
        raise _Abort(FailureKind.TIMEOUT, message, name)
