"""
Tests for compound_chat.router.
"""
from __future__ import annotations

import pytest

from compound_chat.router import CommandKind, parse_command, parse_transfer_args

from conftest import EXTERNAL


class TestParseCommand:

    @pytest.mark.parametrize(
        "text,kind",
        [
            ("help", CommandKind.HELP),
            ("Hi", CommandKind.HELP),
            ("create wallet", CommandKind.CREATE),
            ("my wallet", CommandKind.WALLET),
            ("check balance", CommandKind.BALANCE),
            ("BAL", CommandKind.BALANCE),
            ("apy", CommandKind.MARKETS),
            ("lend 5 USDC", CommandKind.SUPPLY),
            ("take out 5 USDC", CommandKind.WITHDRAW),
            ("transfer 1 ETH to x", CommandKind.SEND),
            ("topup", CommandKind.DEPOSIT),
            ("txs", CommandKind.HISTORY),
            ("what is this", CommandKind.UNKNOWN),
            ("", CommandKind.UNKNOWN),
        ],
    )
    def test_aliases(self, text, kind):
        assert parse_command(text).kind == kind

    def test_two_word_alias_wins(self):
        parsed = parse_command("import wallet a b c")
        assert parsed.kind == CommandKind.IMPORT
        assert parsed.args == ("a", "b", "c")

    def test_args_keep_casing(self):
        parsed = parse_command(f"  SEND 1 eth to {EXTERNAL} ")
        assert parsed.kind == CommandKind.SEND
        assert parsed.args == ("1", "eth", "to", EXTERNAL)


class TestTransferArgs:

    def test_amount_and_token(self):
        parsed = parse_transfer_args(("1.5", "usdc"))
        assert parsed.amount == "1.5"
        assert parsed.token == "USDC"
        assert parsed.destination is None
        assert not parsed.wants_destination

    def test_with_destination(self):
        parsed = parse_transfer_args(("1", "ETH", "to", EXTERNAL))
        assert parsed.destination == EXTERNAL
        assert parsed.wants_destination

    def test_to_without_destination(self):
        parsed = parse_transfer_args(("1", "ETH", "TO"))
        assert parsed.destination is None
        assert parsed.wants_destination

    def test_multi_word_destination(self):
        assert parse_transfer_args(("1", "USDC", "to", "my", "wallet")).destination == "my wallet"

    @pytest.mark.parametrize("args", [(), ("1",), ("1", "ETH", "for", EXTERNAL)])
    def test_malformed(self, args):
        assert parse_transfer_args(args) is None
