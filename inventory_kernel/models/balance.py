"""
Module: inventory_kernel.models.balance
Responsibility: Per-store stock records -- the inventory balance of a product
    at a store, plus the expiry batches and serial numbers that break that
    balance down for tracked products.
Architecture position: Kernel > Models.

Invariants enforced:
    - (tenant_id, store_id, product_id) is unique: one balance per product
      per store.
    - Balance quantities are only changed through InventoryBalanceRepository,
      which holds a FOR UPDATE lock on the row for the enclosing unit.  No
      caller writes an absolute quantity computed outside that lock.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TenantScopedBase, UUIDString
from inventory_kernel.domain.dtos import BalanceInfo


class InventoryBalance(TenantScopedBase):
    """Current stock of one product at one store."""

    __tablename__ = "inventory_balances"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "store_id", "product_id", name="uq_balance_store_product"
        ),
        Index("idx_balance_product", "tenant_id", "product_id"),
    )

    store_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("stores.id"), nullable=False
    )
    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )
    quantity: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    average_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    min_quantity: Mapped[Decimal | None] = mapped_column(nullable=True)
    max_quantity: Mapped[Decimal | None] = mapped_column(nullable=True)
    reorder_level: Mapped[Decimal | None] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_updated: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<InventoryBalance store={self.store_id} product={self.product_id} qty={self.quantity}>"

    def to_dto(self) -> BalanceInfo:
        return BalanceInfo(
            id=self.id,
            tenant_id=self.tenant_id,
            store_id=self.store_id,
            product_id=self.product_id,
            quantity=self.quantity,
            average_cost=self.average_cost,
            last_updated=self.last_updated,
        )


class ExpiryBatch(TenantScopedBase):
    """Quantity of an expiry-tracked product at a store for one expiry date/batch."""

    __tablename__ = "expiry_batches"

    __table_args__ = (
        Index("idx_expiry_store_product", "tenant_id", "store_id", "product_id", "expiry_date"),
    )

    store_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("stores.id"), nullable=False
    )
    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )
    expiry_date: Mapped[date] = mapped_column(Date, nullable=False)
    batch_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    def __repr__(self) -> str:
        return f"<ExpiryBatch {self.batch_number or '-'} exp={self.expiry_date} qty={self.quantity}>"


class SerialNumber(TenantScopedBase):
    """One serial-tracked unit and the store currently holding it."""

    __tablename__ = "serial_numbers"

    __table_args__ = (
        Index("idx_serial_store_product", "tenant_id", "store_id", "product_id", "is_active"),
        Index("idx_serial_number", "tenant_id", "product_id", "serial_number"),
    )

    store_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("stores.id"), nullable=False
    )
    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )
    serial_number: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<SerialNumber {self.serial_number} active={self.is_active}>"
