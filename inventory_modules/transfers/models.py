"""
Transfer Domain Models (``inventory_modules.transfers.models``).

Responsibility
--------------
Enums and frozen value objects for inter-store transfer requests: request
and item statuses, quantity change kinds, the inbound commands (create,
update, approve, issue) and the outbound snapshots returned to callers.

Architecture
------------
Layer: **Modules** -- pure data structures, no I/O.  Inbound commands are
built with ``from_payload`` at the system boundary: tenant identifiers are
stripped from the payload and every quantity, cost and rate passes through
the single decimal parser in ``inventory_kernel.domain.quantities``.

Invariants
----------
- Quantities and amounts are ``Decimal``; never ``float``.
- A new request has at most one line per product.

Failure Modes
-------------
- ``QuantityParseError`` / ``MissingFieldError`` / ``InvalidFieldError``
  from ``from_payload`` on malformed input.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from inventory_kernel.domain.context import strip_tenant_fields
from inventory_kernel.domain.quantities import (
    parse_amount,
    parse_positive_quantity,
    parse_quantity,
    parse_rate,
)
from inventory_kernel.exceptions import InvalidFieldError, MissingFieldError
from inventory_modules.transfers.helpers import (
    optional_text,
    parse_optional_date,
    parse_optional_uuid,
    parse_uuid,
)


class RequestStatus(str, Enum):
    """Lifecycle status of a transfer request."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    PARTIAL_ISSUED = "partial_issued"
    FULFILLED = "fulfilled"
    PARTIALLY_RECEIVED = "partially_received"
    FULLY_RECEIVED = "fully_received"
    CANCELLED = "cancelled"
    PARTIAL_ISSUED_CANCELLED = "partial_issued_cancelled"
    PARTIALLY_RECEIVED_CANCELLED = "partially_received_cancelled"


TERMINAL_REQUEST_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.REJECTED,
    RequestStatus.CANCELLED,
    RequestStatus.PARTIAL_ISSUED_CANCELLED,
    RequestStatus.PARTIALLY_RECEIVED_CANCELLED,
    RequestStatus.FULLY_RECEIVED,
})


class ItemStatus(str, Enum):
    """Line item status; mirrors request states at item granularity."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ISSUED = "issued"
    PARTIAL_ISSUED = "partial_issued"
    FULFILLED = "fulfilled"
    PARTIALLY_RECEIVED = "partially_received"
    FULLY_RECEIVED = "fully_received"
    CANCELLED = "cancelled"
    CLOSED_PARTIALLY_RECEIVED = "closed_partially_received"


# Items that no longer take part in issuing or receiving.
CLOSED_ITEM_STATUSES: frozenset[ItemStatus] = frozenset({
    ItemStatus.REJECTED,
    ItemStatus.CANCELLED,
    ItemStatus.CLOSED_PARTIALLY_RECEIVED,
})

# Items excluded when deciding whether a request is fully received.
RECEIPT_EXCLUDED_ITEM_STATUSES: frozenset[ItemStatus] = frozenset({
    ItemStatus.REJECTED,
    ItemStatus.CANCELLED,
})

RECEIVABLE_ITEM_STATUSES: frozenset[ItemStatus] = frozenset({
    ItemStatus.ISSUED,
    ItemStatus.PARTIAL_ISSUED,
    ItemStatus.PARTIALLY_RECEIVED,
    ItemStatus.FULFILLED,
})


class ChangeKind(str, Enum):
    """Kind of counter mutation recorded in the quantity change log."""

    REQUESTED = "requested"
    APPROVED = "approved"
    ISSUED = "issued"
    FULFILLED = "fulfilled"
    RECEIVED = "received"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class TransferDirection(str, Enum):
    """``request`` = requesting store pulls; ``issue`` = issuing store pushes."""

    REQUEST = "request"
    ISSUE = "issue"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


def _enum_value(enum_cls: type[Enum], value: object, field_name: str, default: Enum) -> Any:
    if value is None or value == "":
        return default
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidFieldError(field_name, value, f"expected one of: {allowed}")


# =============================================================================
# Inbound commands
# =============================================================================


@dataclass(frozen=True)
class NewTransferItem:
    """One line of a new or updated draft request."""

    product_id: UUID
    requested_quantity: Decimal
    unit_cost: Decimal = Decimal("0")
    currency_code: str | None = None
    exchange_rate: Decimal | None = None
    batch_number: str | None = None
    expiry_date: date | None = None
    serial_numbers: tuple[str, ...] = ()
    notes: str | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> NewTransferItem:
        data = strip_tenant_fields(payload)
        rate = data.get("exchange_rate")
        serials = data.get("serial_numbers") or ()
        if isinstance(serials, str):
            serials = [s for s in (part.strip() for part in serials.split(",")) if s]
        return cls(
            product_id=parse_uuid(data.get("product_id"), "product_id"),
            requested_quantity=parse_positive_quantity(
                data.get("requested_quantity"), "requested_quantity"
            ),
            unit_cost=parse_amount(data.get("unit_cost", 0), "unit_cost"),
            currency_code=optional_text(data.get("currency_code")),
            exchange_rate=None if rate in (None, "") else parse_rate(rate),
            batch_number=optional_text(data.get("batch_number")),
            expiry_date=parse_optional_date(data.get("expiry_date"), "expiry_date"),
            serial_numbers=tuple(str(s) for s in serials),
            notes=optional_text(data.get("notes")),
        )


def _items_from_payload(raw_items: object) -> tuple[NewTransferItem, ...]:
    if raw_items is None:
        return ()
    if not isinstance(raw_items, (list, tuple)):
        raise InvalidFieldError("items", raw_items, "expected a list of items")
    items = tuple(NewTransferItem.from_payload(raw) for raw in raw_items)
    seen: set[UUID] = set()
    for item in items:
        if item.product_id in seen:
            raise InvalidFieldError(
                "items", str(item.product_id), "product appears on more than one line"
            )
        seen.add(item.product_id)
    return items


@dataclass(frozen=True)
class NewTransferRequest:
    """Command creating a draft transfer request."""

    requesting_store_id: UUID
    issuing_store_id: UUID
    items: tuple[NewTransferItem, ...] = ()
    direction: TransferDirection = TransferDirection.REQUEST
    priority: Priority = Priority.MEDIUM
    currency_code: str | None = None
    exchange_rate: Decimal = Decimal("1")
    expected_delivery_date: date | None = None
    notes: str | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> NewTransferRequest:
        """Build the command from a raw mapping (tenant keys are ignored)."""
        data = strip_tenant_fields(payload)
        rate = data.get("exchange_rate")
        return cls(
            requesting_store_id=parse_uuid(data.get("requesting_store_id"), "requesting_store_id"),
            issuing_store_id=parse_uuid(data.get("issuing_store_id"), "issuing_store_id"),
            items=_items_from_payload(data.get("items")),
            direction=_enum_value(
                TransferDirection, data.get("direction"), "direction", TransferDirection.REQUEST
            ),
            priority=_enum_value(Priority, data.get("priority"), "priority", Priority.MEDIUM),
            currency_code=optional_text(data.get("currency_code")),
            exchange_rate=Decimal("1") if rate in (None, "") else parse_rate(rate),
            expected_delivery_date=parse_optional_date(
                data.get("expected_delivery_date"), "expected_delivery_date"
            ),
            notes=optional_text(data.get("notes")),
        )


@dataclass(frozen=True)
class TransferRequestUpdate:
    """Changes to a draft request.  ``None`` leaves a field unchanged."""

    requesting_store_id: UUID | None = None
    issuing_store_id: UUID | None = None
    priority: Priority | None = None
    expected_delivery_date: date | None = None
    notes: str | None = None
    items: tuple[NewTransferItem, ...] | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> TransferRequestUpdate:
        data = strip_tenant_fields(payload)
        priority = data.get("priority")
        return cls(
            requesting_store_id=parse_optional_uuid(
                data.get("requesting_store_id"), "requesting_store_id"
            ),
            issuing_store_id=parse_optional_uuid(data.get("issuing_store_id"), "issuing_store_id"),
            priority=None if priority in (None, "") else _enum_value(
                Priority, priority, "priority", Priority.MEDIUM
            ),
            expected_delivery_date=parse_optional_date(
                data.get("expected_delivery_date"), "expected_delivery_date"
            ),
            notes=optional_text(data.get("notes")),
            items=_items_from_payload(data["items"]) if "items" in data else None,
        )


@dataclass(frozen=True)
class ApprovalLine:
    """Approved quantity for one item."""

    item_id: UUID
    approved_quantity: Decimal

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ApprovalLine:
        return cls(
            item_id=parse_uuid(payload.get("item_id"), "item_id"),
            approved_quantity=parse_quantity(payload.get("approved_quantity"), "approved_quantity"),
        )


@dataclass(frozen=True)
class IssueLine:
    """Quantity to issue for one item in this round."""

    item_id: UUID
    issuing_quantity: Decimal

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> IssueLine:
        return cls(
            item_id=parse_uuid(payload.get("item_id"), "item_id"),
            issuing_quantity=parse_quantity(payload.get("issuing_quantity"), "issuing_quantity"),
        )


def lines_from_payload(raw_lines: object, line_cls: type) -> tuple:
    """Parse a list of approval or issue lines."""
    if not raw_lines:
        raise MissingFieldError("items")
    if not isinstance(raw_lines, (list, tuple)):
        raise InvalidFieldError("items", raw_lines, "expected a list")
    return tuple(line_cls.from_payload(strip_tenant_fields(raw)) for raw in raw_lines)


@dataclass(frozen=True)
class TransferRequestFilter:
    """Listing filters; empty tuples mean "any"."""

    statuses: tuple[RequestStatus, ...] = ()
    exclude_statuses: tuple[RequestStatus, ...] = ()
    priorities: tuple[Priority, ...] = ()
    direction: TransferDirection | None = None
    requesting_store_ids: tuple[UUID, ...] = ()
    issuing_store_ids: tuple[UUID, ...] = ()
    created_from: date | None = None
    created_to: date | None = None
    search: str | None = None


# =============================================================================
# Outbound snapshots
# =============================================================================


@dataclass(frozen=True)
class TransferItemInfo:
    """Snapshot of a line item and its counters."""

    id: UUID
    request_id: UUID
    product_id: UUID
    status: ItemStatus
    requested_quantity: Decimal
    approved_quantity: Decimal
    issued_quantity: Decimal
    received_quantity: Decimal
    remaining_quantity: Decimal
    remaining_receiving_quantity: Decimal
    unit_cost: Decimal
    total_cost: Decimal
    currency_code: str
    exchange_rate: Decimal
    equivalent_amount: Decimal
    batch_number: str | None = None
    expiry_date: date | None = None
    serial_numbers: tuple[str, ...] = ()
    rejection_reason: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class TransferRequestInfo:
    """Snapshot of a request header and its items."""

    id: UUID
    tenant_id: UUID
    reference_number: str
    requesting_store_id: UUID
    issuing_store_id: UUID
    direction: TransferDirection
    priority: Priority
    status: RequestStatus
    currency_code: str
    exchange_rate: Decimal
    total_items: int
    total_value: Decimal
    expected_delivery_date: date | None
    notes: str | None
    approval_notes: str | None
    rejection_reason: str | None
    cancellation_reason: str | None
    created_at: datetime | None
    created_by_id: UUID
    submitted_at: datetime | None = None
    submitted_by_id: UUID | None = None
    approved_at: datetime | None = None
    approved_by_id: UUID | None = None
    rejected_at: datetime | None = None
    rejected_by_id: UUID | None = None
    fulfilled_at: datetime | None = None
    fulfilled_by_id: UUID | None = None
    cancelled_at: datetime | None = None
    cancelled_by_id: UUID | None = None
    items: tuple[TransferItemInfo, ...] = field(default_factory=tuple)

    def item(self, item_id: UUID) -> TransferItemInfo:
        for item in self.items:
            if item.id == item_id:
                return item
        raise KeyError(item_id)

    def item_for_product(self, product_id: UUID) -> TransferItemInfo:
        for item in self.items:
            if item.product_id == product_id:
                return item
        raise KeyError(product_id)


@dataclass(frozen=True)
class QuantityChangeInfo:
    """One immutable quantity change log entry."""

    id: UUID
    tenant_id: UUID
    request_id: UUID
    item_id: UUID
    kind: ChangeKind
    quantity: Decimal
    previous_quantity: Decimal
    new_quantity: Decimal
    actor_id: UUID
    notes: str | None
    reason: str | None
    created_at: datetime | None


@dataclass(frozen=True)
class RequestPage:
    """One page of a request listing."""

    items: tuple[TransferRequestInfo, ...]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


@dataclass(frozen=True)
class TransferStats:
    """Request counts per status."""

    counts: Mapping[RequestStatus, int]
    total: int

    def count(self, status: RequestStatus) -> int:
        return self.counts.get(status, 0)


@dataclass(frozen=True)
class TransferEvent:
    """Notification handed to observers after a workflow unit commits."""

    action: str
    tenant_id: UUID
    actor_id: UUID
    request_id: UUID
    reference_number: str
    status: RequestStatus
    occurred_at: datetime
