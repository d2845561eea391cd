"""
Quantities -- the single parse-and-validate boundary for decimal input.

Responsibility:
    Turn caller-supplied quantities, unit costs and exchange rates into clean
    ``Decimal`` values exactly once, when they enter the system.  Anything
    that is not a well-formed finite decimal (repeated decimal points, stray
    characters, NaN, infinity, booleans) is rejected with a
    ``QuantityParseError``; values are never "cleaned up".

    Values read back from the database are already ``Decimal`` and are never
    passed through here again.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.
"""

import re
from decimal import Decimal, InvalidOperation

from inventory_kernel.exceptions import QuantityParseError

# Optional sign, digits with at most one decimal point, optional exponent.
_DECIMAL_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")

_MAX_SCALE = 9


def parse_decimal(
    value: object,
    field: str,
    *,
    allow_negative: bool = False,
    allow_zero: bool = True,
) -> Decimal:
    """
    Parse ``value`` into a finite Decimal.

    Preconditions:
        ``value`` is an int, Decimal, float or str.
    Postconditions:
        Returns a finite Decimal with at most 9 fractional digits that
        satisfies the sign constraints.

    Raises:
        QuantityParseError: if the value is missing, malformed, non-finite,
            too precise, negative (unless allowed) or zero (unless allowed).
    """
    if value is None:
        raise QuantityParseError(field, value, "value is required")
    if isinstance(value, bool):
        raise QuantityParseError(field, value, "booleans are not quantities")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        # repr() is the shortest round-tripping form: 0.1 -> "0.1"
        result = _from_text(repr(value), field, value)
    elif isinstance(value, str):
        result = _from_text(value.strip(), field, value)
    else:
        raise QuantityParseError(
            field, value, f"unsupported type {type(value).__name__}"
        )

    if not result.is_finite():
        raise QuantityParseError(field, value, "value must be finite")
    if result.as_tuple().exponent < -_MAX_SCALE:
        raise QuantityParseError(
            field, value, f"at most {_MAX_SCALE} decimal places are allowed"
        )
    if result < 0 and not allow_negative:
        raise QuantityParseError(field, value, "value must not be negative")
    if result == 0 and not allow_zero:
        raise QuantityParseError(field, value, "value must be greater than zero")

    # Normalize -0 and trailing exponent forms without changing the value.
    return result + Decimal(0)


def _from_text(text: str, field: str, original: object) -> Decimal:
    if not text:
        raise QuantityParseError(field, original, "value is required")
    if not _DECIMAL_PATTERN.match(text):
        raise QuantityParseError(field, original, "not a valid decimal number")
    try:
        return Decimal(text)
    except InvalidOperation:
        raise QuantityParseError(field, original, "not a valid decimal number")


def parse_quantity(value: object, field: str = "quantity") -> Decimal:
    """Parse a non-negative stock quantity."""
    return parse_decimal(value, field)


def parse_positive_quantity(value: object, field: str = "quantity") -> Decimal:
    """Parse a strictly positive stock quantity."""
    return parse_decimal(value, field, allow_zero=False)


def parse_amount(value: object, field: str = "amount") -> Decimal:
    """Parse a non-negative monetary amount."""
    return parse_decimal(value, field)


def parse_rate(value: object, field: str = "exchange_rate") -> Decimal:
    """Parse a strictly positive exchange rate."""
    return parse_decimal(value, field, allow_zero=False)
