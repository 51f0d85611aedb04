"""Bot - the command core that turns inbound messages into replies."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable

from compound_chat import responses
from compound_chat.chain.client import ChainClient, Web3ChainClient, is_valid_address
from compound_chat.chain.networks import Network, get_network
from compound_chat.chain.units import format_units
from compound_chat.config import BotConfig, get_data_dir, load_config
from compound_chat.errors import (
    ChainError,
    CompoundChatError,
    ConfigError,
    FailureKind,
    InvalidDestination,
    SessionExpired,
    WalletExists,
)
from compound_chat.locks import AccountBusy, AccountLocks
from compound_chat.masking import mask_account_id
from compound_chat.orchestrator import (
    Intent,
    IntentKind,
    TransactionOrchestrator,
    TransactionOutcome,
)
from compound_chat.rate_limiter import RateLimiter
from compound_chat.router import CommandKind, ParsedCommand, parse_command, parse_transfer_args
from compound_chat.session import Session, SessionKind, SessionStore
from compound_chat.storage.database import Database, get_database
from compound_chat.storage.models import TransactionKind, TransactionRecord
from compound_chat.storage.wallets import SqliteWalletStore
from compound_chat.wallet.custody import WalletCustody
from compound_chat.wallet.encryption import KeyVault

logger = logging.getLogger("compound_chat.bot")

_MIN_MNEMONIC_WORDS = 12


class Bot:
    """Wallet custody bot driven by short text commands.

    Every inbound message for an account is handled under that account's
    lock: the pending-session lookup, decrypting the key, the whole
    orchestration including confirmations, and wiping the key.  A second
    message for the same account waits for the first to finish.
    """

    def __init__(
        self,
        config: BotConfig,
        custody: WalletCustody,
        client: ChainClient,
        network: Network,
        db: Database | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self.config = config
        self.custody = custody
        self.client = client
        self.network = network
        self.db = db
        self.sessions = SessionStore(config.session.timeout_seconds, clock=clock)
        self.locks = AccountLocks(config.transactions.lock_wait_seconds)
        self.rate_limiter = RateLimiter(
            config.rate_limit.max_messages, config.rate_limit.window_seconds, clock=clock
        )
        self.orchestrator = TransactionOrchestrator(
            client, network, step_timeout=config.transactions.timeout_seconds
        )
        self._cancel_keywords = {k.lower() for k in config.session.cancel_keywords}
        self._self_keywords = {k.lower() for k in config.session.self_keywords}
        self._sweeper: asyncio.Task | None = None
        self._handlers: dict[CommandKind, Callable[[str, ParsedCommand], Awaitable[str]]] = {
            CommandKind.HELP: self._help,
            CommandKind.CREATE: self._create_wallet,
            CommandKind.IMPORT: self._import_wallet,
            CommandKind.WALLET: self._wallet_info,
            CommandKind.DEPOSIT: self._deposit_info,
            CommandKind.BALANCE: self._balance,
            CommandKind.MARKETS: self._markets,
            CommandKind.HISTORY: self._history,
            CommandKind.SUPPLY: self._supply,
            CommandKind.WITHDRAW: self._withdraw,
            CommandKind.SEND: self._send,
            CommandKind.CANCEL: self._cancel_without_session,
            CommandKind.UNKNOWN: self._unknown,
        }

    @classmethod
    async def load(cls, base_path: Path | None = None) -> Bot:
        """Load the bot from a ``.compound-chat`` directory.

        Raises
        ------
        FileNotFoundError
            If ``init`` has not been run.
        ConfigError
            If the master key or the network name is invalid.
        """
        data_dir = get_data_dir(base_path, create=False)
        config_path = data_dir / "config.yaml"

        if not config_path.exists():
            raise FileNotFoundError(
                f"No bot config found at {data_dir}. Run 'compound-chat init' first."
            )

        config = load_config(config_path)
        vault = KeyVault(config.security.master_key_bytes())
        try:
            network = get_network(config.chain.network)
        except KeyError as exc:
            raise ConfigError(str(exc.args[0])) from None

        db = get_database(data_dir)
        await db.connect()

        client = Web3ChainClient(
            network,
            rpc_url=config.chain.rpc_url,
            receipt_timeout=config.transactions.timeout_seconds,
            market_address=config.market.address,
        )
        custody = WalletCustody(SqliteWalletStore(db), vault)
        logger.info(f"Bot loaded on {network.name} (chain {network.chain_id})")
        return cls(config=config, custody=custody, client=client, network=network, db=db)

    def start(self) -> None:
        """Start the background sweeper (needs a running loop)."""
        if self._sweeper is None:
            self._sweeper = asyncio.create_task(
                self._run_sweeper(self.config.session.sweep_interval_seconds)
            )

    async def shutdown(self) -> None:
        """Clean shutdown."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        if self.db is not None:
            await self.db.close()

    async def _run_sweeper(self, interval_seconds: float) -> None:
        """Drop expired sessions and idle rate buckets until cancelled."""
        while True:
            await asyncio.sleep(interval_seconds)
            self.sessions.sweep()
            self.rate_limiter.sweep()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def handle_message(self, account_id: str, text: str) -> str:
        """Reply to one inbound message from *account_id*."""
        if not self.rate_limiter.check_and_record(account_id):
            logger.warning(f"Rate limit hit for {mask_account_id(account_id)}")
            return responses.rate_limited(self.rate_limiter.retry_after(account_id))

        try:
            async with self.locks.hold(account_id):
                return await self._dispatch(account_id, text)
        except AccountBusy as exc:
            return responses.failure(exc.kind, exc.message)
        except Exception:
            logger.exception(f"Error handling message from {mask_account_id(account_id)}")
            return responses.GENERIC_ERROR

    async def handle(
        self,
        account_id: str,
        kind: IntentKind,
        amount: str,
        token: str,
        destination: str | None = None,
    ) -> str:
        """Run an already-parsed intent for *account_id* under its lock.

        A send without a destination opens a session and asks for one, the
        same way the free-text ``send`` command does.
        """
        try:
            async with self.locks.hold(account_id):
                if kind == IntentKind.SEND and destination is None:
                    return await self._ask_destination(
                        account_id, SessionKind.SEND, amount, token.upper()
                    )
                return await self._execute(account_id, kind, amount, token, destination)
        except AccountBusy as exc:
            return responses.failure(exc.kind, exc.message)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def _dispatch(self, account_id: str, text: str) -> str:
        stripped = text.strip()
        lowered = stripped.lower()

        session = self.sessions.get(account_id)
        if session is not None:
            if lowered in self._cancel_keywords:
                self.sessions.clear(account_id)
                logger.info(f"Session cancelled by {mask_account_id(account_id)}")
                return responses.CANCELLED
            if lowered in self._self_keywords or _looks_like_address(stripped):
                return await self._resolve_session(account_id, session, stripped)

        if _looks_like_address(stripped):
            exc = SessionExpired()
            return responses.failure(exc.kind, exc.message)
        if lowered in self._cancel_keywords:
            return responses.NOTHING_TO_CANCEL

        command = parse_command(stripped)
        logger.info(f"Processing {command.kind.value} from {mask_account_id(account_id)}")
        return await self._handlers[command.kind](account_id, command)

    async def _resolve_session(self, account_id: str, session: Session, reply: str) -> str:
        destination = reply
        if reply.lower() in self._self_keywords:
            record = await self.custody.get(account_id)
            if record is None:
                self.sessions.clear(account_id)
                return responses.NO_WALLET
            destination = record.address

        if not is_valid_address(destination):
            error = InvalidDestination(destination)
            # The session stays open so the user can retry or cancel.
            logger.info(f"{error.kind.value} from {mask_account_id(account_id)}, session kept")
            return responses.invalid_destination(error)

        self.sessions.clear(account_id)
        kind = IntentKind(session.kind.value)
        return await self._execute(account_id, kind, session.amount, session.token, destination)

    # ------------------------------------------------------------------
    # Transaction intents
    # ------------------------------------------------------------------

    async def _execute(
        self,
        account_id: str,
        kind: IntentKind,
        amount: str,
        token: str,
        destination: str | None,
    ) -> str:
        token = token.upper()
        try:
            async with self.custody.unlock(account_id) as (record, key):
                if destination is not None and destination.lower() in self._self_keywords:
                    destination = record.address
                outcome = await self.orchestrator.execute(
                    key, record.address, Intent(kind, amount, token, destination)
                )
        except CompoundChatError as exc:
            if exc.kind == FailureKind.WALLET_NOT_FOUND:
                return responses.NO_WALLET
            logger.error(f"Cannot unlock wallet for {mask_account_id(account_id)}: {exc.kind.value}")
            return responses.failure(exc.kind, exc.message)

        await self._record_history(account_id, kind, token, amount, destination, outcome)
        if not outcome.ok:
            return responses.outcome_failure(outcome, self.network)

        hashes = outcome.tx_hashes
        if kind == IntentKind.SUPPLY:
            return responses.supplied(amount, token, hashes[0], self.network)
        if kind == IntentKind.WITHDRAW:
            if len(hashes) > 1 and destination is not None:
                return responses.withdrawn_and_forwarded(
                    amount, token, destination, hashes[0], hashes[1], self.network
                )
            return responses.withdrawn(amount, token, hashes[0], self.network)
        return responses.sent(amount, token, destination or "", hashes[0], self.network)

    async def _record_history(
        self,
        account_id: str,
        kind: IntentKind,
        token: str,
        amount: str,
        destination: str | None,
        outcome: TransactionOutcome,
    ) -> None:
        entries: list[tuple[TransactionKind, str, str | None]] = []
        if outcome.ok:
            if outcome.approval_tx_hash:
                entries.append((TransactionKind.APPROVE, outcome.approval_tx_hash, None))
            primary = TransactionKind(kind.value)
            first_to = destination if kind == IntentKind.SEND else None
            entries.append((primary, outcome.tx_hashes[0], first_to))
            if len(outcome.tx_hashes) > 1:
                entries.append((TransactionKind.TRANSFER, outcome.tx_hashes[1], destination))
        elif outcome.failure is not None:
            # Confirmed steps of a failed flow are not undone; keep them visible.
            completed_kind = TransactionKind.APPROVE if kind == IntentKind.SUPPLY else TransactionKind(kind.value)
            for tx_hash in outcome.failure.completed_tx_hashes:
                entries.append((completed_kind, tx_hash, None))

        for tx_kind, tx_hash, to_address in entries:
            await self.custody.store.record_transaction(
                TransactionRecord(
                    account_id=account_id,
                    kind=tx_kind,
                    token=token,
                    amount=amount,
                    tx_hash=tx_hash,
                    to_address=to_address,
                )
            )

    async def _supply(self, account_id: str, command: ParsedCommand) -> str:
        parsed = parse_transfer_args(command.args)
        if parsed is None or parsed.wants_destination:
            return responses.usage("supply")
        return await self._execute(account_id, IntentKind.SUPPLY, parsed.amount, parsed.token, None)

    async def _withdraw(self, account_id: str, command: ParsedCommand) -> str:
        parsed = parse_transfer_args(command.args)
        if parsed is None:
            return responses.usage("withdraw")
        if parsed.wants_destination and parsed.destination is None:
            return await self._ask_destination(account_id, SessionKind.WITHDRAW, parsed.amount, parsed.token)
        return await self._execute(
            account_id, IntentKind.WITHDRAW, parsed.amount, parsed.token, parsed.destination
        )

    async def _send(self, account_id: str, command: ParsedCommand) -> str:
        parsed = parse_transfer_args(command.args)
        if parsed is None:
            return responses.usage("send")
        if parsed.destination is None:
            return await self._ask_destination(account_id, SessionKind.SEND, parsed.amount, parsed.token)
        return await self._execute(
            account_id, IntentKind.SEND, parsed.amount, parsed.token, parsed.destination
        )

    async def _ask_destination(self, account_id: str, kind: SessionKind, amount: str, token: str) -> str:
        if await self.custody.get(account_id) is None:
            return responses.NO_WALLET
        supported = self.orchestrator.supported_tokens(market=kind == SessionKind.WITHDRAW)
        if token not in supported:
            failure_kind = (
                FailureKind.UNSUPPORTED_FOR_MARKET
                if kind == SessionKind.WITHDRAW and token in self.network.tokens
                else FailureKind.INVALID_TOKEN
            )
            return responses.failure(
                failure_kind, f"Token {token} not supported. Supported: {', '.join(supported)}"
            )
        self.sessions.open(account_id, kind, amount, token)
        logger.info(f"Awaiting {kind.value} destination from {mask_account_id(account_id)}")
        return responses.ask_destination(kind.value, amount, token)

    # ------------------------------------------------------------------
    # Wallet and info commands
    # ------------------------------------------------------------------

    async def _help(self, account_id: str, command: ParsedCommand) -> str:
        return responses.help_text(self.network)

    async def _unknown(self, account_id: str, command: ParsedCommand) -> str:
        return responses.UNKNOWN_COMMAND

    async def _cancel_without_session(self, account_id: str, command: ParsedCommand) -> str:
        return responses.NOTHING_TO_CANCEL

    async def _create_wallet(self, account_id: str, command: ParsedCommand) -> str:
        try:
            record, mnemonic = await self.custody.create(account_id)
        except WalletExists as exc:
            return responses.wallet_exists(exc.address)
        except CompoundChatError as exc:
            logger.error(f"Wallet creation failed for {mask_account_id(account_id)}: {exc.kind.value}")
            return responses.failure(exc.kind, exc.message)
        return responses.wallet_created(record.address, mnemonic, self.network)

    async def _import_wallet(self, account_id: str, command: ParsedCommand) -> str:
        phrase = " ".join(command.args)
        if len(command.args) < _MIN_MNEMONIC_WORDS:
            return responses.import_usage()
        try:
            record = await self.custody.import_phrase(account_id, phrase)
        except WalletExists as exc:
            return responses.wallet_exists(exc.address)
        except CompoundChatError as exc:
            logger.info(f"Wallet import rejected for {mask_account_id(account_id)}: {exc.kind.value}")
            return responses.failure(exc.kind, exc.message)
        return responses.wallet_imported(record.address)

    async def _wallet_info(self, account_id: str, command: ParsedCommand) -> str:
        record = await self.custody.get(account_id)
        if record is None:
            return responses.NO_WALLET
        return responses.wallet_info(record.address, self.network)

    async def _deposit_info(self, account_id: str, command: ParsedCommand) -> str:
        record = await self.custody.get(account_id)
        if record is None:
            return responses.NO_WALLET
        return responses.deposit_info(record.address, self.network)

    async def _balance(self, account_id: str, command: ParsedCommand) -> str:
        record = await self.custody.get(account_id)
        if record is None:
            return responses.NO_WALLET

        timeout = self.config.transactions.timeout_seconds
        wallet: list[tuple[str, str]] = []
        market: list[tuple[str, str]] = []
        try:
            for token in self.network.tokens.values():
                decimals = await asyncio.wait_for(self.client.get_decimals(token), timeout)
                amount = await asyncio.wait_for(self.client.get_balance(record.address, token), timeout)
                wallet.append((token.symbol, format_units(amount, decimals)))
                if token.market:
                    supplied = await asyncio.wait_for(
                        self.client.get_market_balance(record.address, token), timeout
                    )
                    market.append((token.symbol, format_units(supplied, decimals)))
        except (ChainError, asyncio.TimeoutError) as exc:
            logger.warning(f"Balance lookup failed for {mask_account_id(account_id)}: {exc}")
            return responses.failure(FailureKind.CALL_FAILED, "Failed to fetch balance. Try again shortly.")
        return responses.balance(record.address, wallet, market, self.network)

    async def _markets(self, account_id: str, command: ParsedCommand) -> str:
        apr = None
        try:
            apr = await asyncio.wait_for(
                self.client.get_supply_apr(), self.config.transactions.timeout_seconds
            )
        except (ChainError, asyncio.TimeoutError) as exc:
            logger.warning(f"Supply APR lookup failed: {exc}")
        return responses.markets(self.network.market_token.symbol, apr, self.network)

    async def _history(self, account_id: str, command: ParsedCommand) -> str:
        if await self.custody.get(account_id) is None:
            return responses.NO_WALLET
        records = await self.custody.store.list_transactions(account_id)
        return responses.history(records, self.network)


def _looks_like_address(text: str) -> bool:
    return text[:2].lower() == "0x" and " " not in text
