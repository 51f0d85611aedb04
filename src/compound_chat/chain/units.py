"""Decimal string <-> smallest-unit integer conversion."""

from __future__ import annotations

from decimal import Decimal, DecimalException, InvalidOperation, localcontext

# Enough digits for any uint256 plus its fractional part.
_PRECISION = 100
MAX_UINT256 = 2**256 - 1


class AmountError(ValueError):
    """Amount string is not a positive number representable in the token."""


def parse_units(amount: str, decimals: int) -> int:
    """Convert ``"1.5"`` with 6 decimals to ``1500000``.

    Raises :class:`AmountError` for non-numeric, non-positive, or
    over-precise input (more fractional digits than the token has).
    """
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        try:
            value = Decimal(amount.strip())
        except (InvalidOperation, AttributeError):
            raise AmountError(f"Invalid amount: {amount}") from None
        if not value.is_finite() or value <= 0:
            raise AmountError(f"Amount must be a positive number: {amount}")
        try:
            scaled = value.scaleb(decimals)
        except DecimalException:
            raise AmountError(f"Amount is too large: {amount}") from None
        if scaled != scaled.to_integral_value():
            raise AmountError(f"Amount {amount} has more than {decimals} decimal places")
        if scaled > MAX_UINT256:
            raise AmountError(f"Amount is too large: {amount}")
        return int(scaled)


def format_units(value: int, decimals: int) -> str:
    """Convert ``1500000`` with 6 decimals to ``"1.5"``."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        text = format(Decimal(value).scaleb(-decimals), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"
