"""Log masking helpers.

Account ids (phone numbers) and addresses are shortened before they reach a
log line, and :class:`RedactingFilter` scrubs anything shaped like a private
key or a mnemonic phrase from formatted records.
"""

from __future__ import annotations

import logging
import re

from mnemonic import Mnemonic

# Transaction hashes share the shape of a key, so only redact hex that follows
# a key-ish label.
_HEX_KEY_RE = re.compile(r"(?i)(key\W{0,3})(0x)?[0-9a-f]{64}")
# 12 to 24 consecutive BIP39 words is a recovery phrase.
_BIP39_WORD = "(?:" + "|".join(sorted(Mnemonic("english").wordlist, key=len, reverse=True)) + ")"
_MNEMONIC_RE = re.compile(rf"(?i)\b(?:{_BIP39_WORD}\s+){{11,23}}{_BIP39_WORD}\b")

REDACTED = "[REDACTED]"


def mask_account_id(account_id: str) -> str:
    """``+254712345678`` → ``+254***5678``."""
    if not account_id or len(account_id) < 8:
        return REDACTED
    return f"{account_id[:4]}***{account_id[-4:]}"


def mask_address(address: str) -> str:
    """``0x1234567890abcdef...`` → ``0x1234...cdef``."""
    if not address or len(address) < 10:
        return "[INVALID]"
    return f"{address[:6]}...{address[-4:]}"


def redact(text: str) -> str:
    """Replace private-key-shaped hex runs and mnemonic-shaped word runs."""
    text = _HEX_KEY_RE.sub(lambda m: m.group(1) + REDACTED, text)
    return _MNEMONIC_RE.sub(REDACTED, text)


class RedactingFilter(logging.Filter):
    """Logging filter that redacts secrets from the rendered message."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True
