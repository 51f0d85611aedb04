"""
Tests for compound_chat.masking.
"""
from __future__ import annotations

import logging

from compound_chat.masking import REDACTED, RedactingFilter, mask_account_id, mask_address, redact

from conftest import TEST_ADDRESS, TEST_MNEMONIC, TEST_PRIVATE_KEY


class TestMasks:

    def test_account_id(self):
        assert mask_account_id("+254712345678") == "+254***5678"
        assert mask_account_id("123") == REDACTED

    def test_address(self):
        assert mask_address(TEST_ADDRESS) == "0xf39F...2266"
        assert mask_address("0x12") == "[INVALID]"


class TestRedaction:

    def test_private_key_after_label(self):
        text = redact(f"private key: 0x{TEST_PRIVATE_KEY}")
        assert TEST_PRIVATE_KEY not in text
        assert REDACTED in text

    def test_transaction_hash_survives(self):
        tx_hash = "0x" + "ab" * 32
        assert redact(f"Submitted {tx_hash}") == f"Submitted {tx_hash}"

    def test_mnemonic(self):
        assert redact(f"phrase: {TEST_MNEMONIC}.") == f"phrase: {REDACTED}."

    def test_ordinary_sentence_survives(self):
        text = "Processing supply from +254***5678"
        assert redact(text) == text

    def test_long_ordinary_sentence_survives(self):
        text = "the user asked for their funds and then wanted more money sent over from this account"
        assert redact(text) == text

    def test_capitalised_mnemonic(self):
        assert redact(TEST_MNEMONIC.upper()) == REDACTED

    def test_filter_rewrites_record(self):
        record = logging.LogRecord(
            "compound_chat.test", logging.INFO, __file__, 1, "phrase=%s", (TEST_MNEMONIC,), None
        )
        assert RedactingFilter().filter(record)
        assert record.getMessage() == f"phrase={REDACTED}"
