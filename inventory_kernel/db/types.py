"""
Module: inventory_kernel.db.types
Responsibility: Annotated type aliases and rounding helpers for quantity,
    money and rate columns.  Centralizes precision so that every model and
    service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - No floats anywhere: quantities, costs and rates are Decimal.
    - round_money() and round_quantity() are the only sanctioned rounding
      functions for stored values.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import Numeric, String

# Stock quantity (fractional units allowed, e.g. kilograms or litres)
Quantity = Annotated[Decimal, Numeric(38, 9)]

# Monetary amount
Money = Annotated[Decimal, Numeric(38, 9)]

# Exchange rate
Rate = Annotated[Decimal, Numeric(38, 18)]

# ISO 4217 currency code (e.g., "USD", "EUR", "KES")
Currency = Annotated[str, String(3)]

# Short identifier strings (status values, codes)
ShortCode = Annotated[str, String(50)]

# Long text for notes and reasons
LongText = Annotated[str, String(4000)]


QUANTITY_DECIMAL_PLACES = 3
MONEY_DECIMAL_PLACES = 2
RATE_DECIMAL_PLACES = 9
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")


def round_quantity(value: Decimal) -> Decimal:
    """Round a quantity to QUANTITY_DECIMAL_PLACES using ROUND_HALF_UP."""
    quantizer = Decimal(10) ** -QUANTITY_DECIMAL_PLACES
    return value.quantize(quantizer, rounding=DEFAULT_ROUNDING)


def round_money(value: Decimal, decimal_places: int = MONEY_DECIMAL_PLACES) -> Decimal:
    """
    Round a monetary amount using ROUND_HALF_UP.

    Args:
        value: Amount to round.
        decimal_places: Target scale (defaults to MONEY_DECIMAL_PLACES).

    Returns:
        Rounded Decimal.
    """
    quantizer = Decimal(10) ** -decimal_places
    return value.quantize(quantizer, rounding=DEFAULT_ROUNDING)
