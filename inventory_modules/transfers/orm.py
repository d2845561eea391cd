"""
SQLAlchemy ORM persistence models for the transfers module.

Responsibility
--------------
Relational persistence for transfer requests, their line items and the
append-only quantity change log.  Domain snapshots live in
``inventory_modules.transfers.models``; each model converts through
``to_dto()``.

Architecture position
---------------------
**Modules layer** -- ORM models inherit from ``TenantScopedBase`` and are
discovered through ``inventory_modules._orm_registry``.

Invariants enforced
-------------------
* (tenant_id, reference_number) is unique.
* Quantity counters use ``Decimal`` (Numeric(38,9)).
* Quantity change rows are append-only (``@append_only``) and carry the
  request and item ids without foreign keys so they outlive a deleted draft.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import TenantScopedBase, UUIDString
from inventory_kernel.db.immutability import append_only
from inventory_modules.transfers.models import (
    ChangeKind,
    ItemStatus,
    Priority,
    QuantityChangeInfo,
    RequestStatus,
    TransferDirection,
    TransferItemInfo,
    TransferRequestInfo,
)


class TransferRequestModel(TenantScopedBase):
    """
    Transfer request header.

    Owns its items (deleted with the header, which is only allowed in draft).
    """

    __tablename__ = "transfer_requests"

    __table_args__ = (
        UniqueConstraint("tenant_id", "reference_number", name="uq_transfer_reference"),
        Index("idx_transfer_status", "tenant_id", "status"),
        Index("idx_transfer_requesting_store", "tenant_id", "requesting_store_id"),
        Index("idx_transfer_issuing_store", "tenant_id", "issuing_store_id"),
    )

    reference_number: Mapped[str] = mapped_column(String(50), nullable=False)
    requesting_store_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("stores.id"), nullable=False
    )
    issuing_store_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("stores.id"), nullable=False
    )
    direction: Mapped[str] = mapped_column(
        String(20), default=TransferDirection.REQUEST.value, nullable=False
    )
    priority: Mapped[str] = mapped_column(
        String(20), default=Priority.MEDIUM.value, nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(50), default=RequestStatus.DRAFT.value, nullable=False
    )

    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)
    exchange_rate: Mapped[Decimal] = mapped_column(default=Decimal("1"), nullable=False)
    total_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_value: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    expected_delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    approval_notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    # Actor / timestamp pair per transition
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    submitted_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    fulfilled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    fulfilled_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    items: Mapped[list[TransferItemModel]] = relationship(
        "TransferItemModel",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="TransferItemModel.line_number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<TransferRequestModel {self.reference_number} status={self.status}>"

    @property
    def request_status(self) -> RequestStatus:
        return RequestStatus(self.status)

    def to_dto(self) -> TransferRequestInfo:
        return TransferRequestInfo(
            id=self.id,
            tenant_id=self.tenant_id,
            reference_number=self.reference_number,
            requesting_store_id=self.requesting_store_id,
            issuing_store_id=self.issuing_store_id,
            direction=TransferDirection(self.direction),
            priority=Priority(self.priority),
            status=RequestStatus(self.status),
            currency_code=self.currency_code,
            exchange_rate=self.exchange_rate,
            total_items=self.total_items,
            total_value=self.total_value,
            expected_delivery_date=self.expected_delivery_date,
            notes=self.notes,
            approval_notes=self.approval_notes,
            rejection_reason=self.rejection_reason,
            cancellation_reason=self.cancellation_reason,
            created_at=self.created_at,
            created_by_id=self.created_by_id,
            submitted_at=self.submitted_at,
            submitted_by_id=self.submitted_by_id,
            approved_at=self.approved_at,
            approved_by_id=self.approved_by_id,
            rejected_at=self.rejected_at,
            rejected_by_id=self.rejected_by_id,
            fulfilled_at=self.fulfilled_at,
            fulfilled_by_id=self.fulfilled_by_id,
            cancelled_at=self.cancelled_at,
            cancelled_by_id=self.cancelled_by_id,
            items=tuple(item.to_dto() for item in self.items),
        )


class TransferItemModel(TenantScopedBase):
    """
    Transfer line item and its quantity counters.

    Counters: requested >= approved >= issued >= received >= 0,
    remaining = approved - issued, remaining_receiving = issued - received
    (both floored at zero).
    """

    __tablename__ = "transfer_request_items"

    __table_args__ = (
        Index("idx_transfer_item_request", "request_id"),
        Index("idx_transfer_item_product", "tenant_id", "product_id"),
    )

    request_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("transfer_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("products.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(50), default=ItemStatus.PENDING.value, nullable=False
    )

    requested_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    approved_quantity: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    issued_quantity: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    received_quantity: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    remaining_quantity: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    remaining_receiving_quantity: Mapped[Decimal] = mapped_column(
        default=Decimal("0"), nullable=False
    )

    unit_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    total_cost: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)
    exchange_rate: Mapped[Decimal] = mapped_column(default=Decimal("1"), nullable=False)
    equivalent_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    batch_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    serial_numbers: Mapped[list | None] = mapped_column(JSON, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    # Number of quantity change entries written for this item
    change_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    request: Mapped[TransferRequestModel] = relationship(
        "TransferRequestModel", back_populates="items"
    )

    def __repr__(self) -> str:
        return (
            f"<TransferItemModel line={self.line_number} status={self.status} "
            f"req={self.requested_quantity} appr={self.approved_quantity} "
            f"iss={self.issued_quantity} rec={self.received_quantity}>"
        )

    @property
    def item_status(self) -> ItemStatus:
        return ItemStatus(self.status)

    def to_dto(self) -> TransferItemInfo:
        return TransferItemInfo(
            id=self.id,
            request_id=self.request_id,
            product_id=self.product_id,
            status=ItemStatus(self.status),
            requested_quantity=self.requested_quantity,
            approved_quantity=self.approved_quantity,
            issued_quantity=self.issued_quantity,
            received_quantity=self.received_quantity,
            remaining_quantity=self.remaining_quantity,
            remaining_receiving_quantity=self.remaining_receiving_quantity,
            unit_cost=self.unit_cost,
            total_cost=self.total_cost,
            currency_code=self.currency_code,
            exchange_rate=self.exchange_rate,
            equivalent_amount=self.equivalent_amount,
            batch_number=self.batch_number,
            expiry_date=self.expiry_date,
            serial_numbers=tuple(self.serial_numbers or ()),
            rejection_reason=self.rejection_reason,
            notes=self.notes,
        )


@append_only("QuantityChange")
class QuantityChangeModel(TenantScopedBase):
    """One counter mutation on a line item.  Never updated or deleted."""

    __tablename__ = "transfer_quantity_changes"

    __table_args__ = (
        Index("idx_quantity_change_item", "item_id"),
        Index("idx_quantity_change_request", "request_id"),
    )

    request_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    item_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    previous_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    new_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    reason: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    def __repr__(self) -> str:
        return f"<QuantityChangeModel {self.kind} {self.quantity} item={self.item_id}>"

    def to_dto(self) -> QuantityChangeInfo:
        return QuantityChangeInfo(
            id=self.id,
            tenant_id=self.tenant_id,
            request_id=self.request_id,
            item_id=self.item_id,
            kind=ChangeKind(self.kind),
            quantity=self.quantity,
            previous_quantity=self.previous_quantity,
            new_quantity=self.new_quantity,
            actor_id=self.created_by_id,
            notes=self.notes,
            reason=self.reason,
            created_at=self.created_at,
        )
