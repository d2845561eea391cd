"""
MovementLedgerRepository -- append-only record of physical stock movements.

Responsibility:
    Writes exactly one StockMovement per physical movement (issue, receipt,
    return) with its period, reference and cost snapshot.  Rows are never
    updated or deleted (db/immutability.py).

Architecture position:
    Kernel > Services.  Injected into the transfer engines; flush-only.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.db.types import ZERO, round_money
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import MovementInfo
from inventory_kernel.domain.movement_types import (
    DIRECTION_BY_TYPE,
    MovementDirection,
    MovementType,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.movement import StockMovement
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.movement_type_registry import MovementTypeRegistry

logger = get_logger("services.movement_ledger")


@dataclass(frozen=True)
class MovementSpec:
    """Everything needed to post one movement."""

    tenant_id: UUID
    movement_type: MovementType
    store_id: UUID
    product_id: UUID
    quantity: Decimal
    reference_number: str
    reference_type: str
    period_id: UUID
    unit_cost: Decimal
    currency_code: str
    exchange_rate: Decimal
    actor_id: UUID
    request_id: UUID | None = None
    item_id: UUID | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError(f"Movement quantity must be positive, got {self.quantity}")


class MovementLedgerRepository(BaseService[StockMovement]):
    """
    Append-only writer for stock movements.

    The movement type id comes from the injected registry; the direction
    follows from the movement type.
    """

    def __init__(
        self,
        session: Session,
        registry: MovementTypeRegistry,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._registry = registry
        self._clock = clock or SystemClock()

    def record(self, spec: MovementSpec) -> MovementInfo:
        """Append one movement and return its snapshot."""
        direction = DIRECTION_BY_TYPE[spec.movement_type]
        movement = StockMovement(
            tenant_id=spec.tenant_id,
            movement_type_id=self._registry.id_for(spec.movement_type),
            movement_type=spec.movement_type.value,
            direction=direction.value,
            store_id=spec.store_id,
            product_id=spec.product_id,
            quantity_in=spec.quantity if direction == MovementDirection.IN else ZERO,
            quantity_out=spec.quantity if direction == MovementDirection.OUT else ZERO,
            reference_number=spec.reference_number,
            reference_type=spec.reference_type,
            request_id=spec.request_id,
            item_id=spec.item_id,
            period_id=spec.period_id,
            unit_cost=spec.unit_cost,
            currency_code=spec.currency_code,
            exchange_rate=spec.exchange_rate,
            equivalent_amount=round_money(spec.quantity * spec.unit_cost * spec.exchange_rate),
            movement_date=self._clock.now(),
            notes=spec.notes,
            created_by_id=spec.actor_id,
        )
        self.session.add(movement)
        self.session.flush()

        logger.info(
            "movement_recorded",
            extra={
                "movement_id": str(movement.id),
                "movement_type": spec.movement_type.value,
                "direction": direction.value,
                "store_id": str(spec.store_id),
                "product_id": str(spec.product_id),
                "quantity": spec.quantity,
                "reference_number": spec.reference_number,
            },
        )
        return movement.to_dto()

