"""
Decimal amounts

Money is an exact fixed-point value with two fractional digits and at most
18 significant digits, mirroring a numeric(18, 2) column. Binary floats are
refused outright: 0.1 + 0.2 already drifts, and the ledger sums the same
amounts over and over.

Amounts cross the produced interface as strings ("123.45").
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated, Any

from pydantic import BeforeValidator, PlainSerializer

from household_ledger.kernel.errors import InvalidAmount

SCALE = Decimal("0.01")
MAX_DIGITS = 18
ZERO = Decimal("0.00")


def to_amount(value: Any) -> Decimal:
    """
    Convert a value to an exact amount with scale 2

    Accepts Decimal, int and decimal strings. Values with more than two
    fractional digits are rounded half-up.

    Raises:
        InvalidAmount: For floats, booleans, NaN, infinities, non-numeric
            strings and values beyond 18 significant digits
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmount(value, "binary floating point is not accepted, use a string")

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, str):
        try:
            amount = Decimal(value.strip())
        except InvalidOperation:
            raise InvalidAmount(value, "not a decimal number") from None
    else:
        raise InvalidAmount(value, f"unsupported type {type(value).__name__}")

    if not amount.is_finite():
        raise InvalidAmount(value, "must be a finite number")

    try:
        quantized = amount.quantize(SCALE, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidAmount(value, f"more than {MAX_DIGITS} significant digits") from None
    if len(quantized.as_tuple().digits) > MAX_DIGITS:
        raise InvalidAmount(value, f"more than {MAX_DIGITS} significant digits")
    return quantized


def to_positive_amount(value: Any) -> Decimal:
    """Same as to_amount, but the result must be strictly positive"""
    amount = to_amount(value)
    if amount <= ZERO:
        raise InvalidAmount(value, "must be greater than zero")
    return amount


def format_amount(value: Decimal) -> str:
    """Render an amount with exactly two fractional digits"""
    return str(to_amount(value))


def sum_amounts(values: Any) -> Decimal:
    """Exact sum of stored amounts"""
    total = ZERO
    for value in values:
        total += to_amount(value)
    return total


_serialize = PlainSerializer(format_amount, return_type=str, when_used="json")

Amount = Annotated[Decimal, BeforeValidator(to_amount), _serialize]
PositiveAmount = Annotated[Decimal, BeforeValidator(to_positive_amount), _serialize]
