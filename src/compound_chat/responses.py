"""Reply texts.

Messaging apps render ``*bold*``, ``_italic_`` and backtick code spans, so the
texts use that markup.  Nothing here touches key material; the mnemonic is
only ever passed to :func:`wallet_created`.
"""

from __future__ import annotations

from decimal import Decimal

from compound_chat.chain.networks import Network
from compound_chat.errors import FailureKind, InvalidDestination
from compound_chat.masking import mask_address
from compound_chat.orchestrator import TransactionOutcome
from compound_chat.storage.models import TransactionRecord

NO_WALLET = "❌ You don't have a wallet yet.\n\nType *create wallet* to get started."
UNKNOWN_COMMAND = "I didn't understand that command. Type *help* to see what I can do."
GENERIC_ERROR = "Sorry, something went wrong. Please try again later."
CANCELLED = "🚫 Request cancelled. Nothing was sent."
NOTHING_TO_CANCEL = "There is nothing to cancel."

_USAGE = {
    "supply": "supply [amount] [token]*\nExample: supply 100 USDC",
    "withdraw": "withdraw [amount] [token]*\nExample: withdraw 50 USDC\n\n"
    "💡 To send it elsewhere:\nwithdraw 50 USDC to 0xabc...",
    "send": "send [amount] [token] to [address]*\nExample: send 0.01 ETH to 0xabc...",
}

_FAILURE_TITLES = {
    FailureKind.INVALID_TOKEN: "Unsupported token",
    FailureKind.UNSUPPORTED_FOR_MARKET: "Not available on the market",
    FailureKind.INVALID_AMOUNT: "Invalid amount",
    FailureKind.INSUFFICIENT_BALANCE: "Insufficient balance",
    FailureKind.APPROVAL_FAILED: "Approval failed",
    FailureKind.CALL_FAILED: "Transaction failed",
    FailureKind.TIMEOUT: "Timed out",
    FailureKind.ACCOUNT_BUSY: "Busy",
    FailureKind.SESSION_EXPIRED: "Nothing pending",
    FailureKind.INVALID_DESTINATION: "Invalid destination",
    FailureKind.AUTHENTICATION_FAILURE: "Could not unlock wallet",
    FailureKind.WALLET_CORRUPTED: "Wallet data corrupted",
    FailureKind.INVALID_MNEMONIC: "Invalid recovery phrase",
    FailureKind.RATE_LIMITED: "Slow down",
}


def help_text(network: Network) -> str:
    return f"""👋 *Welcome to CompoundChat!*

Earn interest on your crypto with Compound V3:

💰 *supply [amount] [token]* - Deposit to earn interest
   Example: supply 100 USDC

💸 *withdraw [amount] [token]* - Withdraw your funds
   Example: withdraw 50 USDC
   Add *to [address]* to forward them elsewhere

📤 *send [amount] [token] to [address]* - Send from your wallet
   Example: send 0.01 ETH to 0xabc...

📊 *balance* - Check your wallet & earnings

📈 *markets* - View the lending market & APR

🧾 *history* - Your recent transactions

🔐 *create wallet* - Create a new wallet
📥 *import wallet [phrase]* - Import an existing wallet

❓ *help* - Show this message

_CompoundChat on {network.display_name}_ 🌍"""


def usage(command: str) -> str:
    return f"❌ Invalid format.\n\nUsage: *{_USAGE[command]}"


def failure(kind: FailureKind, message: str) -> str:
    title = _FAILURE_TITLES.get(kind, "Failed")
    return f"❌ *{title}*\n\n{message}"


def invalid_destination(error: InvalidDestination) -> str:
    return failure(
        error.kind,
        f"{error.message}.\n\nPlease provide a valid address (0x...) or type *cancel* to stop.",
    )


def outcome_failure(outcome: TransactionOutcome, network: Network) -> str:
    assert outcome.failure is not None
    text = failure(outcome.failure.kind, outcome.failure.message)
    if outcome.failure.completed_tx_hashes:
        links = "\n".join(f"• {network.tx_url(h)}" for h in outcome.failure.completed_tx_hashes)
        text += f"\n\nThese steps already confirmed and were not undone:\n{links}"
    return text


def wallet_created(address: str, mnemonic: str, network: Network) -> str:
    return f"""✅ *Wallet Created Successfully!*

💼 Your Address:
`{address}`

🔐 *SAVE YOUR RECOVERY PHRASE:*
```
{mnemonic}
```

⚠️ *Security:*
• Write down the 24 words on paper
• NEVER share them with anyone
• CompoundChat can't recover lost phrases

📱 *Next Steps:*
1. Fund your wallet (type *deposit* for the address)
2. Type *balance* to check funds
3. Type *supply 10 USDC* to start earning

_{network.display_name}_"""


def wallet_imported(address: str) -> str:
    return (
        "✅ *Wallet Imported Successfully!*\n\n"
        f"💼 Address:\n`{address}`\n\n"
        "⚠️ *Security:*\n"
        "• Store your recovery words safely\n"
        "• Never share them with anyone\n\n"
        "Next: type *balance* to check funds or *supply 1 USDC* to start earning."
    )


def wallet_exists(address: str) -> str:
    return f"""✅ You already have a wallet!

💼 Address: `{mask_address(address)}`

⚠️ *Note:* You can only have ONE wallet per account. This keeps your funds safe."""


def import_usage() -> str:
    return (
        "❌ Invalid mnemonic.\n\n"
        "Usage: *import wallet [your 12/24-word phrase]*\n"
        "Example: import wallet word1 word2 ..."
    )


def wallet_info(address: str, network: Network) -> str:
    return f"""🔐 *Your Wallet*

📍 Address:
`{address}`

💡 *Tip:* Copy this address to receive funds or view it on the explorer:
{network.address_url(address)}

⚠️ *Keep your recovery phrase safe!* Never share it with anyone."""


def deposit_info(address: str, network: Network) -> str:
    tokens = ", ".join(network.tokens)
    return (
        "💸 *Deposit Funds*\n\n"
        f"Send {tokens} on {network.display_name} to your wallet:\n"
        f"`{address}`\n\n"
        "ℹ️ After funding, type *balance* then *supply [amount] [token]* to start earning."
    )


def balance(address: str, wallet: list[tuple[str, str]], market: list[tuple[str, str]], network: Network) -> str:
    lines = ["💰 *Your Balance*", "", f"💼 Wallet: `{mask_address(address)}`", "", "*In Wallet:*"]
    lines += [f"• {amount} {symbol}" for symbol, amount in wallet]
    supplied = [(s, a) for s, a in market if a != "0"]
    if supplied:
        lines += ["", "*On Compound (Earning):* 📈"]
        lines += [f"• {amount} {symbol}" for symbol, amount in supplied]
    lines += ["", f"_{network.display_name}_"]
    return "\n".join(lines)


def markets(symbol: str, apr: Decimal | None, network: Network) -> str:
    rate = f"{apr:.2f}%" if apr is not None else "unavailable"
    return f"""📈 *Compound V3 Markets* ({network.display_name})

💵 *{symbol}*
• Supply APR: {rate}
• Available to supply ✅
• Available to withdraw ✅

💡 *How to use:*
• *supply 100 {symbol}* - Start earning
• *withdraw 50 {symbol}* - Get your funds back
• *balance* - Check your positions"""


def history(records: list[TransactionRecord], network: Network) -> str:
    if not records:
        return "🧾 No transactions yet.\n\nType *help* to get started."
    lines = ["🧾 *Recent Transactions*", ""]
    for record in records:
        when = record.created_at.strftime("%Y-%m-%d %H:%M")
        line = f"• {when} {record.kind.value} {record.amount} {record.token}"
        if record.to_address:
            line += f" → `{mask_address(record.to_address)}`"
        lines.append(line)
        lines.append(f"  {network.tx_url(record.tx_hash)}")
    return "\n".join(lines)


def ask_destination(kind: str, amount: str, token: str) -> str:
    verb = "withdrawing" if kind == "withdraw" else "sending"
    return f"""📤 *{kind.capitalize()} {token}*

You're {verb} {amount} {token}.

*Where should I send it?*

Reply with:
• Ethereum address (0x...)
• *me* for your own wallet
• Or type *cancel* to abort

⏱️ This request expires in 5 minutes."""


def supplied(amount: str, token: str, tx_hash: str, network: Network) -> str:
    return f"""✅ *Supply Successful!*

💰 Deposited: {amount} {token}

🔗 Transaction:
{network.tx_url(tx_hash)}

Your {token} is now earning interest on Compound!

Type *balance* to see your updated balance."""


def withdrawn(amount: str, token: str, tx_hash: str, network: Network) -> str:
    return f"""✅ *Withdrawal Successful!*

💸 Withdrew: {amount} {token}

🔗 Transaction:
{network.tx_url(tx_hash)}

Funds are back in your wallet!

Type *balance* to see your updated balance."""


def withdrawn_and_forwarded(
    amount: str, token: str, destination: str, withdraw_hash: str, transfer_hash: str, network: Network
) -> str:
    return f"""✅ *Withdrawal & Transfer Successful!*

💸 Withdrew: {amount} {token}
📤 Sent to: `{mask_address(destination)}`

🔗 Transactions:
• Compound Withdraw: {network.tx_url(withdraw_hash)}
• Transfer: {network.tx_url(transfer_hash)}

Type *balance* to see your updated balance."""


def sent(amount: str, token: str, destination: str, tx_hash: str, network: Network) -> str:
    return f"""✅ *{token} Sent Successfully!*

💸 Sent: {amount} {token}
📤 To: `{mask_address(destination)}`

🔗 Transaction:
{network.tx_url(tx_hash)}

Type *balance* to see your updated balance."""


def rate_limited(retry_after: float) -> str:
    return failure(
        FailureKind.RATE_LIMITED,
        f"Too many messages. Try again in {max(1, round(retry_after))} seconds.",
    )
