"""
Module: inventory_kernel.models.movement
Responsibility: The movement ledger -- one immutable row per physical stock
    movement -- and the movement type table the registry resolves at startup.
Architecture position: Kernel > Models.

Invariants enforced:
    - StockMovement rows are append-only (ORM listeners in
      db/immutability.py reject UPDATE and DELETE).
    - Exactly one of quantity_in / quantity_out is non-zero.
    - Every movement names the accounting period it was posted in and the
      reference number of the originating request.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TenantScopedBase, TrackedBase, UUIDString
from inventory_kernel.db.immutability import append_only
from inventory_kernel.domain.dtos import MovementInfo
from inventory_kernel.domain.movement_types import MovementDirection, MovementType


class MovementTypeRecord(TrackedBase):
    """Name-keyed movement type row (e.g. "Store Issue")."""

    __tablename__ = "movement_types"

    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    direction: Mapped[str] = mapped_column(String(10), nullable=False)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<MovementTypeRecord {self.name}>"


@append_only("StockMovement")
class StockMovement(TenantScopedBase):
    """Immutable record of stock entering or leaving a store."""

    __tablename__ = "stock_movements"

    __table_args__ = (
        Index("idx_movement_reference", "tenant_id", "reference_number"),
        Index("idx_movement_store_product", "tenant_id", "store_id", "product_id"),
        Index("idx_movement_request", "request_id"),
    )

    movement_type_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("movement_types.id"), nullable=False
    )
    movement_type: Mapped[str] = mapped_column(String(50), nullable=False)
    direction: Mapped[str] = mapped_column(String(10), nullable=False)
    store_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("stores.id"), nullable=False
    )
    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )
    quantity_in: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    quantity_out: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    # Originating document (request ids carry no FK: the ledger outlives drafts)
    reference_number: Mapped[str] = mapped_column(String(100), nullable=False)
    reference_type: Mapped[str] = mapped_column(String(50), nullable=False)
    request_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    item_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    period_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("accounting_periods.id"), nullable=False
    )

    # Cost / currency snapshot at movement time
    unit_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)
    exchange_rate: Mapped[Decimal] = mapped_column(default=Decimal("1"), nullable=False)
    equivalent_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    movement_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    def __repr__(self) -> str:
        qty = self.quantity_in if self.direction == MovementDirection.IN.value else self.quantity_out
        return f"<StockMovement {self.movement_type} {self.direction} {qty} ref={self.reference_number}>"

    def to_dto(self) -> MovementInfo:
        return MovementInfo(
            id=self.id,
            tenant_id=self.tenant_id,
            movement_type=MovementType(self.movement_type),
            direction=MovementDirection(self.direction),
            store_id=self.store_id,
            product_id=self.product_id,
            quantity_in=self.quantity_in,
            quantity_out=self.quantity_out,
            reference_number=self.reference_number,
            reference_type=self.reference_type,
            request_id=self.request_id,
            item_id=self.item_id,
            period_id=self.period_id,
            unit_cost=self.unit_cost,
            currency_code=self.currency_code,
            exchange_rate=self.exchange_rate,
            equivalent_amount=self.equivalent_amount,
            movement_date=self.movement_date,
            notes=self.notes,
        )
