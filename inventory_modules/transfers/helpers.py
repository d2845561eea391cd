"""
Pure helper functions for the transfers module.

Field parsing for inbound payloads, line-total arithmetic and reference
number formatting.  No I/O.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from inventory_kernel.db.types import round_money
from inventory_kernel.exceptions import InvalidFieldError, MissingFieldError


def parse_uuid(value: object, field: str) -> UUID:
    """Parse a required UUID field."""
    if value is None or value == "":
        raise MissingFieldError(field)
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise InvalidFieldError(field, value, "not a valid identifier")


def parse_optional_uuid(value: object, field: str) -> UUID | None:
    if value is None or value == "":
        return None
    return parse_uuid(value, field)


def parse_optional_date(value: object, field: str) -> date | None:
    """Parse an optional ISO date (``YYYY-MM-DD``)."""
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise InvalidFieldError(field, value, "expected an ISO date (YYYY-MM-DD)")


def require_text(value: object, field: str) -> str:
    """Return ``value`` stripped, rejecting missing or blank text."""
    if value is None or not str(value).strip():
        raise MissingFieldError(field)
    return str(value).strip()


def optional_text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def line_total(quantity: Decimal, unit_cost: Decimal) -> Decimal:
    """Line total cost = quantity x unit cost."""
    return round_money(quantity * unit_cost)


def equivalent_amount(total_cost: Decimal, exchange_rate: Decimal) -> Decimal:
    """Line total converted into the tenant's base currency."""
    return round_money(total_cost * exchange_rate)


def format_reference_number(prefix: str, on: date, sequence: int, width: int = 4) -> str:
    """
    Format a request reference number.

    >>> format_reference_number("SR", date(2024, 1, 1), 7)
    'SR-2024-01-01-0007'
    """
    return f"{prefix}-{on.isoformat()}-{sequence:0{width}d}"


def return_reference_number(prefix: str, reference_number: str) -> str:
    """Reference of the return movement of a request (``RET-SR-...``)."""
    return f"{prefix}-{reference_number}"


def reference_sequence_name(tenant_id: UUID, on: date) -> str:
    """Name of the per-tenant, per-day reference number sequence."""
    return f"store_request:{tenant_id}:{on.isoformat()}"
