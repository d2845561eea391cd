"""
StockTrackingRepository -- expiry batches and serial numbers per store.

Responsibility:
    Moves the batch / serial breakdown of a product between stores when
    stock goes back to its issuing store.  Expiry batches move earliest
    expiry first into the batch with the same expiry date and batch number
    at the destination (created if absent).  Serial numbers move as whole
    units: deactivated at the source, activated (or created) at the
    destination.

Architecture position:
    Kernel > Services.  Flush-only; called by the reversal engine inside
    its unit.
"""

from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from uuid import UUID

from sqlalchemy import select

from inventory_kernel.db.types import ZERO
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.balance import ExpiryBatch, SerialNumber
from inventory_kernel.services.base import BaseService

logger = get_logger("services.tracking")


@dataclass(frozen=True)
class TrackingTransfer:
    """What a tracking move actually moved."""

    expiry_quantity: Decimal = ZERO
    serial_numbers: tuple[str, ...] = ()


class StockTrackingRepository(BaseService[ExpiryBatch]):
    """Batch and serial bookkeeping between two stores."""

    def transfer_expiry(
        self,
        tenant_id: UUID,
        product_id: UUID,
        from_store_id: UUID,
        to_store_id: UUID,
        quantity: Decimal,
        actor_id: UUID,
    ) -> Decimal:
        """
        Move up to ``quantity`` from ``from_store_id``'s batches, earliest
        expiry first.  Returns the quantity actually moved.
        """
        source_batches = self.session.execute(
            select(ExpiryBatch)
            .where(
                ExpiryBatch.tenant_id == tenant_id,
                ExpiryBatch.store_id == from_store_id,
                ExpiryBatch.product_id == product_id,
                ExpiryBatch.quantity > 0,
            )
            .order_by(ExpiryBatch.expiry_date.asc(), ExpiryBatch.created_at.asc())
            .with_for_update()
        ).scalars().all()

        remaining = quantity
        moved = ZERO
        for batch in source_batches:
            if remaining <= 0:
                break
            take = min(batch.quantity, remaining)
            batch.quantity = batch.quantity - take
            batch.updated_by_id = actor_id

            target = self.session.execute(
                select(ExpiryBatch)
                .where(
                    ExpiryBatch.tenant_id == tenant_id,
                    ExpiryBatch.store_id == to_store_id,
                    ExpiryBatch.product_id == product_id,
                    ExpiryBatch.expiry_date == batch.expiry_date,
                    ExpiryBatch.batch_number.is_(None)
                    if batch.batch_number is None
                    else ExpiryBatch.batch_number == batch.batch_number,
                )
                .with_for_update()
            ).scalars().first()
            if target is None:
                target = ExpiryBatch(
                    tenant_id=tenant_id,
                    store_id=to_store_id,
                    product_id=product_id,
                    expiry_date=batch.expiry_date,
                    batch_number=batch.batch_number,
                    quantity=take,
                    created_by_id=actor_id,
                )
                self.session.add(target)
            else:
                target.quantity = target.quantity + take
                target.updated_by_id = actor_id

            remaining -= take
            moved += take

        self.session.flush()

        if remaining > 0:
            logger.warning(
                "expiry_transfer_short",
                extra={
                    "product_id": str(product_id),
                    "from_store_id": str(from_store_id),
                    "requested": quantity,
                    "moved": moved,
                },
            )
        logger.info(
            "expiry_batches_transferred",
            extra={
                "product_id": str(product_id),
                "from_store_id": str(from_store_id),
                "to_store_id": str(to_store_id),
                "quantity": moved,
            },
        )
        return moved

    def transfer_serials(
        self,
        tenant_id: UUID,
        product_id: UUID,
        from_store_id: UUID,
        to_store_id: UUID,
        count: Decimal,
        actor_id: UUID,
    ) -> tuple[str, ...]:
        """
        Move up to ``count`` whole serial-numbered units between stores.

        Returns the serial numbers moved.
        """
        units = int(count.to_integral_value(rounding=ROUND_DOWN))
        if units <= 0:
            return ()

        active = self.session.execute(
            select(SerialNumber)
            .where(
                SerialNumber.tenant_id == tenant_id,
                SerialNumber.store_id == from_store_id,
                SerialNumber.product_id == product_id,
                SerialNumber.is_active.is_(True),
            )
            .order_by(SerialNumber.created_at.asc(), SerialNumber.serial_number.asc())
            .limit(units)
            .with_for_update()
        ).scalars().all()

        moved: list[str] = []
        for serial in active:
            serial.is_active = False
            serial.updated_by_id = actor_id

            existing = self.session.execute(
                select(SerialNumber).where(
                    SerialNumber.tenant_id == tenant_id,
                    SerialNumber.store_id == to_store_id,
                    SerialNumber.product_id == product_id,
                    SerialNumber.serial_number == serial.serial_number,
                )
            ).scalars().first()
            if existing is None:
                self.session.add(
                    SerialNumber(
                        tenant_id=tenant_id,
                        store_id=to_store_id,
                        product_id=product_id,
                        serial_number=serial.serial_number,
                        is_active=True,
                        created_by_id=actor_id,
                    )
                )
            else:
                existing.is_active = True
                existing.updated_by_id = actor_id
            moved.append(serial.serial_number)

        self.session.flush()
        logger.info(
            "serial_numbers_transferred",
            extra={
                "product_id": str(product_id),
                "from_store_id": str(from_store_id),
                "to_store_id": str(to_store_id),
                "count": len(moved),
            },
        )
        return tuple(moved)

    def transfer(
        self,
        tenant_id: UUID,
        product_id: UUID,
        from_store_id: UUID,
        to_store_id: UUID,
        quantity: Decimal,
        actor_id: UUID,
        tracks_expiry: bool,
        tracks_serial: bool,
    ) -> TrackingTransfer:
        """Move whichever breakdowns the product tracks."""
        expiry_quantity = ZERO
        serials: tuple[str, ...] = ()
        if tracks_expiry:
            expiry_quantity = self.transfer_expiry(
                tenant_id, product_id, from_store_id, to_store_id, quantity, actor_id
            )
        if tracks_serial:
            serials = self.transfer_serials(
                tenant_id, product_id, from_store_id, to_store_id, quantity, actor_id
            )
        return TrackingTransfer(expiry_quantity=expiry_quantity, serial_numbers=serials)
