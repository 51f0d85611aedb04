"""Encryption at rest for wallet private keys.

Keys are encrypted with AES-256-GCM.  The AES key is derived per account with
HKDF-SHA256 over the process-wide master key, a fresh random salt, and an
``info`` string that embeds the account id.  Decrypting under a different
account id therefore derives a different AES key and fails authentication.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from compound_chat.errors import AuthenticationFailure, EncryptionFailed, WalletCorrupted
from compound_chat.wallet.secret import SecretKey

logger = logging.getLogger("compound_chat.wallet.encryption")

SALT_LENGTH = 32
NONCE_LENGTH = 12  # 96 bits for GCM
TAG_LENGTH = 16
KEY_LENGTH = 32
CONTEXT_PREFIX = "compoundchat-wallet-v1-"


@dataclass(frozen=True)
class EncryptedSecret:
    """Hex-encoded AES-GCM output plus the inputs needed to reverse it."""

    ciphertext: str
    iv: str
    salt: str
    auth_tag: str

    def is_complete(self) -> bool:
        return all((self.ciphertext, self.iv, self.salt, self.auth_tag))


def derive_account_key(master_key: bytes, salt: bytes, account_id: str) -> bytes:
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        info=f"{CONTEXT_PREFIX}{account_id}".encode("utf-8"),
    )
    return hkdf.derive(master_key)


def encrypt_secret(master_key: bytes, account_id: str, plaintext: SecretKey) -> EncryptedSecret:
    """Encrypt *plaintext* for *account_id* with a fresh salt and nonce.

    Raises
    ------
    EncryptionFailed
        If key derivation or encryption fails.
    """
    try:
        salt = secrets.token_bytes(SALT_LENGTH)
        nonce = secrets.token_bytes(NONCE_LENGTH)
        key = derive_account_key(master_key, salt, account_id)
        sealed = AESGCM(key).encrypt(nonce, bytes(plaintext.material), None)
    except Exception as exc:
        logger.error(f"Private key encryption failed: {type(exc).__name__}")
        raise EncryptionFailed() from exc

    return EncryptedSecret(
        ciphertext=sealed[:-TAG_LENGTH].hex(),
        iv=nonce.hex(),
        salt=salt.hex(),
        auth_tag=sealed[-TAG_LENGTH:].hex(),
    )


def decrypt_secret(master_key: bytes, secret: EncryptedSecret, account_id: str) -> SecretKey:
    """Decrypt a stored key for *account_id*.

    The caller owns the returned :class:`SecretKey` and must wipe it (use it
    as a context manager).

    Raises
    ------
    WalletCorrupted
        If the record has no authentication tag (or is otherwise incomplete);
        this is checked before any decryption is attempted.
    AuthenticationFailure
        On tag mismatch, tampered ciphertext, wrong master key or wrong
        account id.
    """
    if not secret.is_complete():
        raise WalletCorrupted()

    try:
        salt = bytes.fromhex(secret.salt)
        nonce = bytes.fromhex(secret.iv)
        sealed = bytes.fromhex(secret.ciphertext) + bytes.fromhex(secret.auth_tag)
    except ValueError as exc:
        raise WalletCorrupted("Wallet data is not valid hex") from exc

    key = derive_account_key(master_key, salt, account_id)
    try:
        plaintext = bytearray(AESGCM(key).decrypt(nonce, sealed, None))
    except (InvalidTag, ValueError) as exc:
        logger.warning("Private key authentication failed")
        raise AuthenticationFailure() from exc

    try:
        return SecretKey(plaintext)
    except ValueError as exc:
        raise AuthenticationFailure("Decrypted key has an unexpected length") from exc


class KeyVault:
    """Binds the process-wide master key to the encrypt/decrypt helpers."""

    def __init__(self, master_key: bytes) -> None:
        if len(master_key) < KEY_LENGTH:
            raise ValueError(f"Master key must be at least {KEY_LENGTH} bytes")
        self._master_key = bytes(master_key)

    def encrypt(self, account_id: str, plaintext: SecretKey) -> EncryptedSecret:
        return encrypt_secret(self._master_key, account_id, plaintext)

    def decrypt(self, secret: EncryptedSecret, account_id: str) -> SecretKey:
        return decrypt_secret(self._master_key, secret, account_id)

    def __repr__(self) -> str:
        return "<KeyVault>"
