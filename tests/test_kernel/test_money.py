"""
Tests for exact decimal amounts

Binary floats are refused, everything else is quantized to two digits
half-up and must fit 18 significant digits.
"""

from decimal import Decimal

import pytest
from pydantic import BaseModel, ValidationError

from household_ledger.kernel.errors import BadRequest, InvalidAmount
from household_ledger.kernel.money import (
    ZERO,
    Amount,
    PositiveAmount,
    format_amount,
    sum_amounts,
    to_amount,
    to_positive_amount,
)


class Priced(BaseModel):
    price: Amount
    fee: PositiveAmount | None = None


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("123.45", Decimal("123.45")),
        ("10", Decimal("10.00")),
        (" 7.5 ", Decimal("7.50")),
        (42, Decimal("42.00")),
        (Decimal("1.005"), Decimal("1.01")),
        ("-2.345", Decimal("-2.35")),
    ],
)
def test_to_amount_quantizes_half_up(raw, expected):
    amount = to_amount(raw)
    assert amount == expected
    assert amount.as_tuple().exponent == -2


@pytest.mark.parametrize("raw", [0.1, 1.0, True, "abc", "", "NaN", "Infinity", None, [1]])
def test_to_amount_rejects_floats_and_garbage(raw):
    with pytest.raises(InvalidAmount):
        to_amount(raw)


def test_invalid_amount_is_a_bad_request():
    with pytest.raises(BadRequest):
        to_amount(0.5)


def test_eighteen_significant_digits_fit():
    assert to_amount("9999999999999999.99") == Decimal("9999999999999999.99")


def test_more_than_eighteen_digits_rejected():
    with pytest.raises(InvalidAmount):
        to_amount("99999999999999999.99")
    with pytest.raises(InvalidAmount):
        to_amount("1e40")


def test_positive_amount_rejects_zero_and_negative():
    assert to_positive_amount("0.01") == Decimal("0.01")
    with pytest.raises(InvalidAmount):
        to_positive_amount("0")
    with pytest.raises(InvalidAmount):
        to_positive_amount("-5")


def test_format_amount_always_two_digits():
    assert format_amount(Decimal("5")) == "5.00"
    assert format_amount(Decimal("1234.5")) == "1234.50"
    assert format_amount(ZERO) == "0.00"


def test_sum_is_exact():
    """0.1 + 0.2 is exactly 0.3 here, unlike binary floating point"""
    assert sum_amounts(["0.10", "0.20"]) == Decimal("0.30")
    assert sum_amounts(["0.01"] * 1000) == Decimal("10.00")
    assert sum_amounts([]) == ZERO


def test_annotated_amount_serializes_to_string_in_json_mode():
    priced = Priced(price="19.9", fee="0.5")

    assert priced.price == Decimal("19.90")
    assert priced.model_dump(mode="json") == {"price": "19.90", "fee": "0.50"}
    assert priced.model_dump()["price"] == Decimal("19.90")


def test_annotated_amount_rejects_float_as_validation_error():
    with pytest.raises(ValidationError):
        Priced(price=19.9)


def test_annotated_positive_amount_rejects_zero():
    with pytest.raises(ValidationError):
        Priced(price="1.00", fee="0.00")
