"""
DTOs -- immutable snapshots of kernel reference and stock data.

Responsibility:
    Data structures returned by kernel services and selectors: accounting
    period, currency, product, store, inventory balance and stock movement.
    Workflow code receives these instead of ORM rows when it only needs to
    read.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  ORM models convert to these through
    their ``to_dto()`` methods in the service/selector layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from inventory_kernel.domain.movement_types import MovementDirection, MovementType


@dataclass(frozen=True)
class PeriodInfo:
    """Snapshot of an accounting period."""

    id: UUID
    tenant_id: UUID
    period_code: str
    name: str
    start_date: date
    end_date: date
    status: str
    is_current: bool

    @property
    def is_open(self) -> bool:
        return self.status == "open"


@dataclass(frozen=True)
class CurrencyInfo:
    """Snapshot of a tenant currency."""

    id: UUID
    tenant_id: UUID
    code: str
    name: str
    is_default: bool


@dataclass(frozen=True)
class ProductInfo:
    """
    Read-only catalog view of a product.

    The transfer workflow only needs existence, the active flag and the
    tracking flags that decide whether batch or serial records move with
    the stock.
    """

    id: UUID
    tenant_id: UUID
    code: str
    name: str
    is_active: bool
    tracks_expiry: bool
    tracks_serial: bool


@dataclass(frozen=True)
class StoreInfo:
    """Snapshot of a store."""

    id: UUID
    tenant_id: UUID
    code: str
    name: str
    is_active: bool


@dataclass(frozen=True)
class BalanceInfo:
    """Current quantity of one product at one store."""

    id: UUID
    tenant_id: UUID
    store_id: UUID
    product_id: UUID
    quantity: Decimal
    average_cost: Decimal
    last_updated: datetime | None


@dataclass(frozen=True)
class HistoricalBalanceInfo:
    """Quantity of one product at one store as of the end of a day, from the ledger."""

    tenant_id: UUID
    store_id: UUID
    product_id: UUID
    as_of: date
    quantity_in: Decimal
    quantity_out: Decimal

    @property
    def quantity(self) -> Decimal:
        return self.quantity_in - self.quantity_out


@dataclass(frozen=True)
class MovementInfo:
    """One immutable stock movement."""

    id: UUID
    tenant_id: UUID
    movement_type: MovementType
    direction: MovementDirection
    store_id: UUID
    product_id: UUID
    quantity_in: Decimal
    quantity_out: Decimal
    reference_number: str
    reference_type: str
    request_id: UUID | None
    item_id: UUID | None
    period_id: UUID
    unit_cost: Decimal
    currency_code: str
    exchange_rate: Decimal
    equivalent_amount: Decimal
    movement_date: datetime
    notes: str | None

    @property
    def quantity(self) -> Decimal:
        return self.quantity_in if self.direction == MovementDirection.IN else self.quantity_out
