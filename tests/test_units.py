"""
Tests for compound_chat.chain.units.
"""
from __future__ import annotations

import pytest

from compound_chat.chain.units import AmountError, format_units, parse_units


class TestParseUnits:

    @pytest.mark.parametrize(
        "amount,decimals,expected",
        [
            ("1", 6, 1_000_000),
            ("1.5", 6, 1_500_000),
            ("0.000001", 6, 1),
            (" 2 ", 18, 2 * 10**18),
            ("1e-6", 6, 1),
            ("115792089237316195423570985008687907853269984665640564039457", 18,
             115792089237316195423570985008687907853269984665640564039457 * 10**18),
        ],
    )
    def test_valid(self, amount, decimals, expected):
        assert parse_units(amount, decimals) == expected

    @pytest.mark.parametrize(
        "amount", ["0", "-5", "abc", "", "inf", "nan", "0.0000001", "1e999999", "1e80"]
    )
    def test_invalid(self, amount):
        with pytest.raises(AmountError):
            parse_units(amount, 6)


class TestFormatUnits:

    @pytest.mark.parametrize(
        "value,decimals,expected",
        [
            (1_500_000, 6, "1.5"),
            (100_000_000, 6, "100"),
            (0, 18, "0"),
            (1, 18, "0.000000000000000001"),
        ],
    )
    def test_format(self, value, decimals, expected):
        assert format_units(value, decimals) == expected
