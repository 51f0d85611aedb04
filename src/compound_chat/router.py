"""Free-text command parsing.

Turns an inbound message into a :class:`ParsedCommand`.  Matching is
case-insensitive and prefers two-word aliases ("take out", "my wallet") over
one-word ones.  Arguments keep their original casing so addresses survive.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class CommandKind(str, Enum):
    HELP = "help"
    CREATE = "create"
    IMPORT = "import"
    WALLET = "wallet"
    DEPOSIT = "deposit"
    BALANCE = "balance"
    MARKETS = "markets"
    HISTORY = "history"
    SUPPLY = "supply"
    WITHDRAW = "withdraw"
    SEND = "send"
    CANCEL = "cancel"
    UNKNOWN = "unknown"


ALIASES: dict[str, CommandKind] = {
    "help": CommandKind.HELP,
    "start": CommandKind.HELP,
    "hi": CommandKind.HELP,
    "hello": CommandKind.HELP,
    "create wallet": CommandKind.CREATE,
    "new wallet": CommandKind.CREATE,
    "create": CommandKind.CREATE,
    "import wallet": CommandKind.IMPORT,
    "import": CommandKind.IMPORT,
    "recover": CommandKind.IMPORT,
    "my wallet": CommandKind.WALLET,
    "wallet info": CommandKind.WALLET,
    "wallet": CommandKind.WALLET,
    "address": CommandKind.WALLET,
    "deposit": CommandKind.DEPOSIT,
    "fund": CommandKind.DEPOSIT,
    "topup": CommandKind.DEPOSIT,
    "check balance": CommandKind.BALANCE,
    "balance": CommandKind.BALANCE,
    "bal": CommandKind.BALANCE,
    "markets": CommandKind.MARKETS,
    "market": CommandKind.MARKETS,
    "apy": CommandKind.MARKETS,
    "rates": CommandKind.MARKETS,
    "history": CommandKind.HISTORY,
    "transactions": CommandKind.HISTORY,
    "txs": CommandKind.HISTORY,
    "supply": CommandKind.SUPPLY,
    "lend": CommandKind.SUPPLY,
    "take out": CommandKind.WITHDRAW,
    "withdraw": CommandKind.WITHDRAW,
    "send": CommandKind.SEND,
    "transfer": CommandKind.SEND,
    "cancel": CommandKind.CANCEL,
}


@dataclass(frozen=True)
class ParsedCommand:
    kind: CommandKind
    args: tuple[str, ...] = ()
    text: str = ""


@dataclass(frozen=True)
class TransferArgs:
    """``<amount> <token> [to [<address>]]``."""

    amount: str
    token: str
    destination: str | None = None
    # "to" was typed, with or without an address after it.
    wants_destination: bool = False


def parse_command(message: str) -> ParsedCommand:
    text = message.strip()
    words = text.split()
    lowered = [w.lower() for w in words]

    for width in (2, 1):
        if len(lowered) >= width:
            kind = ALIASES.get(" ".join(lowered[:width]))
            if kind is not None:
                return ParsedCommand(kind, tuple(words[width:]), text)

    return ParsedCommand(CommandKind.UNKNOWN, tuple(words), text)


def parse_transfer_args(args: tuple[str, ...] | list[str]) -> TransferArgs | None:
    """Parse the arguments of supply/withdraw/send, or ``None`` if malformed."""
    if len(args) < 2:
        return None
    amount, token = args[0], args[1].upper()
    rest = list(args[2:])
    if not rest:
        return TransferArgs(amount, token)
    if rest[0].lower() != "to":
        return None
    destination = " ".join(rest[1:]) or None
    return TransferArgs(amount, token, destination, wants_destination=True)
