"""CompoundChat storage layer -- async SQLite database and Pydantic models."""

from compound_chat.storage.database import Database, get_database
from compound_chat.storage.models import TransactionKind, TransactionRecord, WalletRecord
from compound_chat.storage.wallets import MemoryWalletStore, SqliteWalletStore, WalletStore

__all__ = [
    "Database",
    "get_database",
    "MemoryWalletStore",
    "SqliteWalletStore",
    "TransactionKind",
    "TransactionRecord",
    "WalletRecord",
    "WalletStore",
]
