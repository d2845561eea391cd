"""
BalanceSelector -- read-only views of inventory balances and movements.

Current balances come from the balance records.  Balances as of a past
date are rebuilt from the movement ledger, so stock loaded without a
movement (opening balances) is not part of them.
"""

from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from inventory_kernel.domain.dtos import BalanceInfo, HistoricalBalanceInfo, MovementInfo
from inventory_kernel.models.balance import ExpiryBatch, InventoryBalance, SerialNumber
from inventory_kernel.models.movement import StockMovement
from inventory_kernel.selectors.base import BaseSelector


class BalanceSelector(BaseSelector[InventoryBalance]):
    """Current stock and movement history queries (tenant-scoped)."""

    def balance(self, tenant_id: UUID, store_id: UUID, product_id: UUID) -> BalanceInfo | None:
        row = self.session.execute(
            select(InventoryBalance).where(
                InventoryBalance.tenant_id == tenant_id,
                InventoryBalance.store_id == store_id,
                InventoryBalance.product_id == product_id,
            )
        ).scalar_one_or_none()
        return row.to_dto() if row else None

    def current_balances(
        self,
        tenant_id: UUID,
        store_id: UUID | None = None,
        product_id: UUID | None = None,
    ) -> list[BalanceInfo]:
        """Active balances, optionally filtered by store and/or product."""
        stmt = select(InventoryBalance).where(
            InventoryBalance.tenant_id == tenant_id,
            InventoryBalance.is_active.is_(True),
        )
        if store_id is not None:
            stmt = stmt.where(InventoryBalance.store_id == store_id)
        if product_id is not None:
            stmt = stmt.where(InventoryBalance.product_id == product_id)
        stmt = stmt.order_by(InventoryBalance.store_id, InventoryBalance.product_id)
        return [row.to_dto() for row in self.session.execute(stmt).scalars().all()]

    def balances_as_of(
        self,
        tenant_id: UUID,
        as_of: date,
        store_id: UUID | None = None,
    ) -> list[HistoricalBalanceInfo]:
        """
        Per store and product, ``sum(quantity_in) - sum(quantity_out)`` over
        every movement dated up to the end of ``as_of`` (UTC).
        """
        cutoff = datetime.combine(as_of + timedelta(days=1), time.min, tzinfo=UTC)
        total_in = func.coalesce(func.sum(StockMovement.quantity_in), 0)
        total_out = func.coalesce(func.sum(StockMovement.quantity_out), 0)
        stmt = (
            select(StockMovement.store_id, StockMovement.product_id, total_in, total_out)
            .where(
                StockMovement.tenant_id == tenant_id,
                StockMovement.movement_date < cutoff,
            )
            .group_by(StockMovement.store_id, StockMovement.product_id)
            .order_by(StockMovement.store_id, StockMovement.product_id)
        )
        if store_id is not None:
            stmt = stmt.where(StockMovement.store_id == store_id)
        return [
            HistoricalBalanceInfo(
                tenant_id=tenant_id,
                store_id=store,
                product_id=product,
                as_of=as_of,
                quantity_in=Decimal(str(quantity_in)),
                quantity_out=Decimal(str(quantity_out)),
            )
            for store, product, quantity_in, quantity_out in self.session.execute(stmt).all()
        ]

    def movements_for_reference(self, tenant_id: UUID, reference_number: str) -> list[MovementInfo]:
        """Every movement posted against ``reference_number``, oldest first."""
        rows = self.session.execute(
            select(StockMovement)
            .where(
                StockMovement.tenant_id == tenant_id,
                StockMovement.reference_number == reference_number,
            )
            .order_by(StockMovement.movement_date, StockMovement.created_at)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def movements_for_request(self, tenant_id: UUID, request_id: UUID) -> list[MovementInfo]:
        """Issues, receipts and returns of one request (returns use a RET- reference)."""
        rows = self.session.execute(
            select(StockMovement)
            .where(
                StockMovement.tenant_id == tenant_id,
                StockMovement.request_id == request_id,
            )
            .order_by(StockMovement.movement_date, StockMovement.created_at)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def expiry_batches(self, tenant_id: UUID, store_id: UUID, product_id: UUID) -> list[ExpiryBatch]:
        return list(
            self.session.execute(
                select(ExpiryBatch)
                .where(
                    ExpiryBatch.tenant_id == tenant_id,
                    ExpiryBatch.store_id == store_id,
                    ExpiryBatch.product_id == product_id,
                )
                .order_by(ExpiryBatch.expiry_date)
            ).scalars().all()
        )

    def active_serials(self, tenant_id: UUID, store_id: UUID, product_id: UUID) -> list[str]:
        return list(
            self.session.execute(
                select(SerialNumber.serial_number)
                .where(
                    SerialNumber.tenant_id == tenant_id,
                    SerialNumber.store_id == store_id,
                    SerialNumber.product_id == product_id,
                    SerialNumber.is_active.is_(True),
                )
                .order_by(SerialNumber.serial_number)
            ).scalars().all()
        )
