"""Configuration system for CompoundChat.

Loads bot config from `.compound-chat/config.yaml`, supports environment
variable expansion, and validates the master encryption key at startup.
"""

from __future__ import annotations

import os
import re
import secrets
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from compound_chat.errors import ConfigError

MASTER_KEY_ENV = "MASTER_ENCRYPTION_KEY"
MIN_MASTER_KEY_BYTES = 32


# ---------------------------------------------------------------------------
# Environment-variable expansion helper
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with their environment values.

    If the variable is not set the placeholder is left as-is so that
    validation can catch it later.
    """

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))

    return _ENV_VAR_RE.sub(_replace, value)


def _expand_env_recursive(obj: object) -> object:
    """Walk an arbitrary nested structure and expand env vars in strings."""
    if isinstance(obj, str):
        return _expand_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _expand_env_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# Pydantic v2 models
# ---------------------------------------------------------------------------


class SecurityConfig(BaseModel):
    """Key custody settings."""

    master_key: str = f"${{{MASTER_KEY_ENV}}}"  # hex, >= 32 bytes

    def master_key_bytes(self) -> bytes:
        """Decode and validate the master key.

        Raises
        ------
        ConfigError
            If the key is missing, still an unexpanded placeholder, not hex,
            or shorter than 32 bytes.
        """
        raw = (self.master_key or "").strip()
        if not raw or _ENV_VAR_RE.search(raw):
            raise ConfigError(
                f"Master encryption key is not set. Export {MASTER_KEY_ENV} "
                "or set security.master_key."
            )
        if raw.startswith(("0x", "0X")):
            raw = raw[2:]
        try:
            key = bytes.fromhex(raw)
        except ValueError:
            raise ConfigError("Master encryption key must be hex encoded") from None
        if len(key) < MIN_MASTER_KEY_BYTES:
            raise ConfigError(
                f"Master encryption key must be at least {MIN_MASTER_KEY_BYTES} bytes "
                f"({MIN_MASTER_KEY_BYTES * 2} hex characters)"
            )
        return key


class ChainConfig(BaseModel):
    """Which network to talk to."""

    network: str = "sepolia"
    rpc_url: Optional[str] = None  # Overrides the network's public RPC


class MarketConfig(BaseModel):
    """Lending market overrides."""

    address: Optional[str] = None  # Overrides the bundled Comet address


class SessionConfig(BaseModel):
    """Pending multi-step command settings."""

    timeout_seconds: int = 300
    sweep_interval_seconds: int = 60
    cancel_keywords: list[str] = Field(default_factory=lambda: ["cancel", "stop", "abort"])
    self_keywords: list[str] = Field(default_factory=lambda: ["me", "my wallet", "self"])


class TransactionConfig(BaseModel):
    """Bounds on chain-facing waits."""

    timeout_seconds: float = 120.0    # per balance read / submission / confirmation
    lock_wait_seconds: float = 30.0   # how long a second command waits for the account


class RateLimitConfig(BaseModel):
    """Inbound message limits, per account."""

    max_messages: int = 10
    window_seconds: int = 60


class ServerConfig(BaseModel):
    """HTTP endpoint settings."""

    port: int = 8430
    host: str = "127.0.0.1"


class LoggingConfig(BaseModel):
    level: str = "INFO"


class BotConfig(BaseModel):
    """Root configuration object for the bot."""

    name: str = "CompoundChat"
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    chain: ChainConfig = Field(default_factory=ChainConfig)
    market: MarketConfig = Field(default_factory=MarketConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    transactions: TransactionConfig = Field(default_factory=TransactionConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------


def get_data_dir(base: Path | None = None, *, create: bool = True) -> Path:
    """Return the ``.compound-chat/`` directory.

    Parameters
    ----------
    base:
        Parent directory that contains (or will contain) the data folder.
        Defaults to the current working directory.
    create:
        If *True* (default), create the directory if it doesn't exist.
    """
    if base is None:
        base = Path.cwd()
    data_dir = base / ".compound-chat"
    if create:
        data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def generate_master_key() -> str:
    """Return a fresh 32-byte master key, hex encoded."""
    return secrets.token_hex(MIN_MASTER_KEY_BYTES)


def load_config(path: Path) -> BotConfig:
    """Load and validate a bot configuration from a YAML file.

    Environment variable placeholders (``${VAR}``) are expanded before
    validation.
    """
    raw_text = path.read_text(encoding="utf-8")
    raw_data = yaml.safe_load(raw_text) or {}
    expanded = _expand_env_recursive(raw_data)
    return BotConfig.model_validate(expanded)


def save_config(config: BotConfig, path: Path) -> None:
    """Serialize a :class:`BotConfig` to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="python", exclude_none=True)
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(data, fh, default_flow_style=False, sort_keys=False)
