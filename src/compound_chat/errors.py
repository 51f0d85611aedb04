"""Error taxonomy for CompoundChat.

Every failure the core can report carries a :class:`FailureKind` so the
command layer can render it without inspecting exception types.  The key
layer raises the exceptions below; the transaction orchestrator converts
chain problems into a :class:`~compound_chat.orchestrator.TransactionOutcome`
instead of raising.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class FailureKind(str, Enum):
    # key layer
    INVALID_MNEMONIC = "invalid_mnemonic"
    DERIVATION_FAILED = "derivation_failed"
    ENCRYPTION_FAILED = "encryption_failed"
    AUTHENTICATION_FAILURE = "authentication_failure"
    WALLET_CORRUPTED = "wallet_corrupted"
    WALLET_NOT_FOUND = "wallet_not_found"
    WALLET_EXISTS = "wallet_exists"
    # orchestration layer
    INVALID_TOKEN = "invalid_token"
    UNSUPPORTED_FOR_MARKET = "unsupported_for_market"
    INVALID_AMOUNT = "invalid_amount"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    APPROVAL_FAILED = "approval_failed"
    CALL_FAILED = "call_failed"
    TIMEOUT = "timeout"
    ACCOUNT_BUSY = "account_busy"
    # session layer
    SESSION_EXPIRED = "session_expired"
    INVALID_DESTINATION = "invalid_destination"
    # command core
    RATE_LIMITED = "rate_limited"


class CompoundChatError(Exception):
    """Base class for all CompoundChat errors.

    Parameters
    ----------
    kind:
        Machine-readable failure kind.
    message:
        Human-readable reason, safe to show to the account owner.
    details:
        Optional extra context for logs.  Never put key material here.
    """

    def __init__(self, kind: FailureKind, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details


class ConfigError(Exception):
    """Invalid or incomplete configuration detected at startup."""


# ---------------------------------------------------------------------------
# Key layer
# ---------------------------------------------------------------------------


class WalletError(CompoundChatError):
    """Wallet derivation and lifecycle errors."""


class InvalidMnemonic(WalletError):
    def __init__(self, message: str = "Invalid mnemonic phrase") -> None:
        super().__init__(FailureKind.INVALID_MNEMONIC, message)


class DerivationFailed(WalletError):
    def __init__(self, message: str = "Failed to derive wallet key", details: Any = None) -> None:
        super().__init__(FailureKind.DERIVATION_FAILED, message, details)


class WalletNotFound(WalletError):
    def __init__(self, message: str = "No wallet exists for this account") -> None:
        super().__init__(FailureKind.WALLET_NOT_FOUND, message)


class WalletExists(WalletError):
    def __init__(self, address: str) -> None:
        super().__init__(
            FailureKind.WALLET_EXISTS,
            "A wallet already exists for this account and cannot be overwritten",
            {"address": address},
        )
        self.address = address


class WalletCorrupted(WalletError):
    """Stored record is missing its authentication tag (or other fields)."""

    def __init__(self, message: str = "Wallet data corrupted") -> None:
        super().__init__(FailureKind.WALLET_CORRUPTED, message)


class EncryptionError(CompoundChatError):
    """Encryption-at-rest errors."""


class EncryptionFailed(EncryptionError):
    def __init__(self, message: str = "Failed to encrypt private key", details: Any = None) -> None:
        super().__init__(FailureKind.ENCRYPTION_FAILED, message, details)


class AuthenticationFailure(EncryptionError):
    def __init__(self, message: str = "Failed to decrypt private key") -> None:
        super().__init__(FailureKind.AUTHENTICATION_FAILURE, message)


# ---------------------------------------------------------------------------
# Session layer
# ---------------------------------------------------------------------------


class SessionError(CompoundChatError):
    """Multi-step conversation errors."""


class SessionExpired(SessionError):
    def __init__(self, message: str = "No pending request. It may have expired.") -> None:
        super().__init__(FailureKind.SESSION_EXPIRED, message)


class InvalidDestination(SessionError):
    def __init__(self, destination: str) -> None:
        super().__init__(
            FailureKind.INVALID_DESTINATION,
            "Invalid Ethereum address",
            {"destination": destination},
        )


# ---------------------------------------------------------------------------
# Chain client
# ---------------------------------------------------------------------------


class ChainError(Exception):
    """A chain-facing call failed (RPC error, revert, bad response)."""


class TransactionReverted(ChainError):
    def __init__(self, tx_hash: str) -> None:
        super().__init__(f"Transaction {tx_hash} reverted")
        self.tx_hash = tx_hash


class ChainTimeout(ChainError):
    """The chain client gave up waiting (e.g. receipt polling timed out)."""
