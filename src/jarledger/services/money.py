"""Money parsing and display helpers."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

from ..errors import InvalidAmount

AmountLike = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Numeric(12, 2) columns
MAX_AMOUNT = Decimal("9999999999.99")


def quantize(value: Decimal) -> Decimal:
    """Round to whole cents, half away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_amount(raw: AmountLike) -> Decimal:
    """Parse a user-supplied amount into a positive cent-precision Decimal.

    Floats go through ``str`` so ``0.1`` becomes ``Decimal("0.10")`` rather than
    its binary expansion. Raises ``InvalidAmount`` for anything that is not a
    finite number greater than zero after rounding.
    """
    if isinstance(raw, bool):
        raise InvalidAmount(f"Invalid amount: {raw!r}")
    try:
        value = raw if isinstance(raw, Decimal) else Decimal(str(raw).strip())
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmount(f"Invalid amount: {raw!r}") from exc
    if not value.is_finite() or abs(value) > MAX_AMOUNT:
        raise InvalidAmount(f"Invalid amount: {raw!r}")
    value = quantize(value)
    if value <= 0:
        raise InvalidAmount("Please enter a valid amount greater than zero")
    return value


def format_money(amount: Decimal | int | float) -> str:
    """``$1,234.50``; negative values keep the sign in front of the symbol."""
    value = quantize(Decimal(str(amount)))
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_money_whole(amount: Decimal | int | float) -> str:
    """``$1,235`` for balance cards where cents are noise."""
    value = Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.0f}"
