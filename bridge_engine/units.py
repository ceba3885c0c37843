"""Conversion between human-readable amounts and integer base units."""

from decimal import Decimal, InvalidOperation
from typing import Union

AmountLike = Union[str, int, Decimal]


def parse_units(value: AmountLike, decimals: int) -> int:
    """Parse ``value`` into base units without rounding.

    Works on the decimal digit tuple so precision is never bounded by the
    active decimal context.
    """
    amount = _to_decimal(value)
    sign, digits, exponent = amount.as_tuple()
    coefficient = int("".join(str(digit) for digit in digits) or "0")
    if sign and coefficient:
        raise ValueError(f"Amount must be non-negative: {value}")

    shift = exponent + decimals
    if shift >= 0:
        return coefficient * 10**shift
    divisor = 10 ** (-shift)
    if coefficient % divisor:
        raise ValueError(f"Amount {value} has more than {decimals} decimal places.")
    return coefficient // divisor


def parse_token_id(value: Union[str, int]) -> int:
    if isinstance(value, int):
        token_id = value
    else:
        text = value.strip()
        try:
            token_id = int(text, 16) if text.lower().startswith("0x") else int(text)
        except ValueError as exc:
            raise ValueError(f"Invalid token id: {value}") from exc
    if token_id < 0:
        raise ValueError(f"Token id must be non-negative: {value}")
    return token_id


def _to_decimal(value: AmountLike) -> Decimal:
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    else:
        try:
            amount = Decimal(value.strip())
        except InvalidOperation as exc:
            raise ValueError(f"Invalid amount: {value}") from exc
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value}")
    return amount
