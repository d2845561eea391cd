"""
QuantityChangeLogger -- appends one entry per item counter mutation.

Entries are numbered per item through the item's ``change_count``; the
item row is only mutated by the unit holding the request lock, so the
numbering is gap-free.  Entries are append-only (``@append_only``).
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.logging_config import get_logger
from inventory_modules.transfers.models import ChangeKind, QuantityChangeInfo
from inventory_modules.transfers.orm import QuantityChangeModel, TransferItemModel

logger = get_logger("modules.transfers.quantity_log")


class QuantityChangeLogger:
    """Writes the quantity change log inside the caller's unit."""

    def __init__(self, session: Session):
        self._session = session

    def record(
        self,
        item: TransferItemModel,
        kind: ChangeKind,
        quantity: Decimal,
        previous_quantity: Decimal,
        new_quantity: Decimal,
        actor_id: UUID,
        notes: str | None = None,
        reason: str | None = None,
    ) -> QuantityChangeInfo:
        if item.id is None or item.request_id is None:
            # New items get their ids at flush
            self._session.flush()
        item.change_count = (item.change_count or 0) + 1
        entry = QuantityChangeModel(
            tenant_id=item.tenant_id,
            request_id=item.request_id,
            item_id=item.id,
            sequence=item.change_count,
            kind=kind.value,
            quantity=quantity,
            previous_quantity=previous_quantity,
            new_quantity=new_quantity,
            notes=notes,
            reason=reason,
            created_by_id=actor_id,
        )
        self._session.add(entry)
        self._session.flush()

        logger.debug(
            "quantity_change_logged",
            extra={
                "item_id": str(item.id),
                "kind": kind.value,
                "quantity": quantity,
                "previous": previous_quantity,
                "new": new_quantity,
                "sequence": entry.sequence,
            },
        )
        return entry.to_dto()
