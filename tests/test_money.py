"""Amount parsing and display formatting."""

from __future__ import annotations

from decimal import Decimal

import pytest

from jarledger.errors import InvalidAmount
from jarledger.services.money import (
    MAX_AMOUNT,
    format_money,
    format_money_whole,
    quantize,
    to_amount,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        (50, Decimal("50.00")),
        ("12.5", Decimal("12.50")),
        (" 7 ", Decimal("7.00")),
        (0.1, Decimal("0.10")),
        (Decimal("1.005"), Decimal("1.01")),
        ("0.005", Decimal("0.01")),
    ],
)
def test_to_amount_accepts_positive_numbers(raw, expected):
    assert to_amount(raw) == expected


@pytest.mark.parametrize("raw", [0, "0.00", "0.004", -1, "-0.50", "", "12,50", "abc", None, True, "inf", "nan"])
def test_to_amount_rejects(raw):
    with pytest.raises(InvalidAmount):
        to_amount(raw)


def test_to_amount_rejects_values_beyond_column_precision():
    assert to_amount(MAX_AMOUNT) == MAX_AMOUNT
    with pytest.raises(InvalidAmount):
        to_amount(MAX_AMOUNT + 1)


def test_invalid_amount_is_a_value_error():
    with pytest.raises(ValueError, match="greater than zero"):
        to_amount(0)


def test_quantize_rounds_half_up():
    assert quantize(Decimal("2.345")) == Decimal("2.35")
    assert quantize(Decimal("-2.345")) == Decimal("-2.35")


@pytest.mark.parametrize(
    "amount, expected",
    [
        (Decimal("1234.5"), "$1,234.50"),
        (0, "$0.00"),
        (Decimal("-12.3"), "-$12.30"),
        (0.1, "$0.10"),
    ],
)
def test_format_money(amount, expected):
    assert format_money(amount) == expected


def test_format_money_whole():
    assert format_money_whole(Decimal("1234.50")) == "$1,235"
    assert format_money_whole(Decimal("-0.4")) == "$0"
