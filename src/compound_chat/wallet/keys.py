"""HD wallet derivation (BIP39 mnemonic + BIP44 Ethereum path)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from eth_account import Account
from mnemonic import Mnemonic

from compound_chat.errors import DerivationFailed, InvalidMnemonic
from compound_chat.masking import mask_address
from compound_chat.wallet.secret import SecretKey

logger = logging.getLogger("compound_chat.wallet.keys")

Account.enable_unaudited_hdwallet_features()

# m / purpose' / coin_type' / account' / change / address_index
ETH_DERIVATION_PATH = "m/44'/60'/0'/0/0"
MNEMONIC_STRENGTH = 256  # bits of entropy -> 24 words
VALID_WORD_COUNTS = (12, 15, 18, 21, 24)

_mnemo = Mnemonic("english")


@dataclass
class DerivedWallet:
    """Result of deriving a wallet.

    ``mnemonic`` is only populated for freshly generated wallets and is meant
    for a single display to the owner.  ``private_key`` must be encrypted and
    wiped by the caller straight away.
    """

    address: str
    private_key: SecretKey = field(repr=False)
    mnemonic: str | None = field(default=None, repr=False)


def normalize_mnemonic(phrase: str) -> str:
    """Collapse whitespace and lowercase a user-typed phrase."""
    return " ".join(phrase.lower().split())


def is_valid_mnemonic(phrase: str) -> bool:
    words = normalize_mnemonic(phrase).split(" ")
    if len(words) not in VALID_WORD_COUNTS:
        return False
    return _mnemo.check(" ".join(words))


def derive_new_wallet() -> DerivedWallet:
    """Generate a 24-word mnemonic and derive account 0 on the Ethereum path.

    Raises
    ------
    DerivationFailed
        If anything unexpected happens while generating or deriving.
    """
    try:
        phrase = _mnemo.generate(strength=MNEMONIC_STRENGTH)
        wallet = _derive(phrase)
    except Exception as exc:
        logger.error(f"Wallet derivation failed: {type(exc).__name__}")
        raise DerivationFailed("Failed to create wallet") from exc
    wallet.mnemonic = phrase
    logger.info(f"Derived new wallet {mask_address(wallet.address)}")
    return wallet


def import_wallet(phrase: str) -> DerivedWallet:
    """Derive the wallet for an existing mnemonic.

    The checksum is verified first; nothing is derived for an invalid phrase.

    Raises
    ------
    InvalidMnemonic
        If the phrase fails the BIP39 word list / checksum check.
    DerivationFailed
        If derivation fails for a phrase that passed validation.
    """
    normalized = normalize_mnemonic(phrase)
    if not is_valid_mnemonic(normalized):
        raise InvalidMnemonic()
    try:
        wallet = _derive(normalized)
    except Exception as exc:
        logger.error(f"Wallet import failed: {type(exc).__name__}")
        raise DerivationFailed("Failed to import wallet") from exc
    logger.info(f"Imported wallet {mask_address(wallet.address)}")
    return wallet


def address_from_key(private_key: SecretKey) -> str:
    """Return the checksummed address controlled by *private_key*."""
    return Account.from_key(bytes(private_key.material)).address


def _derive(phrase: str) -> DerivedWallet:
    acct = Account.from_mnemonic(phrase, account_path=ETH_DERIVATION_PATH)
    return DerivedWallet(address=acct.address, private_key=SecretKey(bytes(acct.key)))
