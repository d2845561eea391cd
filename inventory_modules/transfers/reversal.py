"""
Reversal Engine (``inventory_modules.transfers.reversal``).

Responsibility
--------------
Receiver-side cancellation.  When a request is cancelled after part of it
was received, every item with ``received > 0`` returns its
``issued - received`` portion to the issuing store: the balance goes back
up under lock, a ``Store Return`` movement is appended under the
``RET-<reference>`` reference and the batch / serial breakdown moves with
the stock.  The received portion stays with the receiver.

An item that returned stock then follows ``TransferConfig.reversal_policy``:

* ``reopen``  -- ``received = 0``, ``remaining_receiving = issued``, item
  status back to ``issued``.
* ``close``   -- item becomes ``closed_partially_received`` with nothing
  left to receive; counters are kept.

Items with nothing issued are cancelled in either case.  A cancel with
nothing received has no inventory effect and the request becomes
``cancelled``.

Architecture position
---------------------
**Modules layer** -- runs inside the service's unit; flush-only.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from inventory_kernel.db.types import ZERO
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import MovementInfo, PeriodInfo
from inventory_kernel.domain.movement_types import MovementType
from inventory_kernel.logging_config import get_logger
from inventory_kernel.services.balance_repository import InventoryBalanceRepository
from inventory_kernel.services.catalog_service import CatalogService
from inventory_kernel.services.currency_service import CurrencyService
from inventory_kernel.services.movement_ledger import MovementLedgerRepository, MovementSpec
from inventory_kernel.services.period_service import PeriodService
from inventory_kernel.services.tracking_repository import StockTrackingRepository
from inventory_modules.transfers.config import ReversalPolicy, TransferConfig
from inventory_modules.transfers.fulfillment import REFERENCE_TYPE
from inventory_modules.transfers.helpers import return_reference_number
from inventory_modules.transfers.models import (
    CLOSED_ITEM_STATUSES,
    ChangeKind,
    ItemStatus,
    RequestStatus,
)
from inventory_modules.transfers.orm import TransferItemModel, TransferRequestModel
from inventory_modules.transfers.quantity_log import QuantityChangeLogger
from inventory_modules.transfers.reconciliation import (
    check_item_invariants,
    derive_cancel_receipt_status,
    remaining_receiving,
)
from inventory_modules.transfers.workflows import require_target, require_transition

logger = get_logger("modules.transfers.reversal")


@dataclass(frozen=True)
class ReturnLine:
    """What one item sent back to the issuing store."""

    item_id: UUID
    product_id: UUID
    returned_quantity: Decimal
    kept_quantity: Decimal
    serial_numbers: tuple[str, ...] = ()


@dataclass(frozen=True)
class ReversalResult:
    status: RequestStatus
    returns: tuple[ReturnLine, ...]
    movements: tuple[MovementInfo, ...]


def cancel_unissued_items(
    request: TransferRequestModel,
    change_log: QuantityChangeLogger,
    actor_id: UUID,
    reason: str | None,
) -> int:
    """
    Cancel every open item with nothing issued or received.  Returns how
    many changed.

    Issued items keep their counters.
    """
    cancelled = 0
    for item in request.items:
        if item.item_status in CLOSED_ITEM_STATUSES:
            continue
        if item.issued_quantity > ZERO or item.received_quantity > ZERO:
            continue
        previous = item.remaining_quantity
        item.status = ItemStatus.CANCELLED.value
        item.remaining_quantity = ZERO
        item.updated_by_id = actor_id
        check_item_invariants(item)
        change_log.record(
            item,
            ChangeKind.CANCELLED,
            quantity=previous,
            previous_quantity=previous,
            new_quantity=ZERO,
            actor_id=actor_id,
            reason=reason,
        )
        cancelled += 1
    return cancelled


class ReversalEngine:
    """
    Cancel-after-receipt with compensating returns.

    Non-goals:
        - Does NOT reverse the received portion; the receiver keeps it.
        - Does NOT commit.
    """

    def __init__(
        self,
        balances: InventoryBalanceRepository,
        ledger: MovementLedgerRepository,
        tracking: StockTrackingRepository,
        change_log: QuantityChangeLogger,
        periods: PeriodService,
        currencies: CurrencyService,
        catalog: CatalogService,
        config: TransferConfig | None = None,
        clock: Clock | None = None,
    ):
        self._balances = balances
        self._ledger = ledger
        self._tracking = tracking
        self._change_log = change_log
        self._periods = periods
        self._currencies = currencies
        self._catalog = catalog
        self._config = config or TransferConfig()
        self._clock = clock or SystemClock()

    def cancel_receipt(
        self,
        request: TransferRequestModel,
        actor_id: UUID,
        reason: str | None = None,
    ) -> ReversalResult:
        """
        Receiver-side cancel of a locked request.

        Postconditions:
            ``partially_received_cancelled`` and one return per item with
            ``received > 0`` and a positive returnable quantity, or
            ``cancelled`` with no inventory effect when nothing was
            received.
        """
        require_transition(request.id, request.status, "cancel_receipt")
        previous_status = request.request_status
        new_status = derive_cancel_receipt_status(request.items)
        require_target(request.id, "cancel_receipt", previous_status, new_status)

        returns: list[ReturnLine] = []
        movements: list[MovementInfo] = []
        if new_status == RequestStatus.PARTIALLY_RECEIVED_CANCELLED:
            received_items = sorted(
                (item for item in request.items if item.received_quantity > ZERO),
                key=lambda item: str(item.product_id),
            )
            period: PeriodInfo | None = None
            for item in received_items:
                returnable = remaining_receiving(item.issued_quantity, item.received_quantity)
                if returnable > ZERO and period is None:
                    period = self._periods.get_current_open_period(request.tenant_id)
                    self._currencies.get_default_currency(request.tenant_id)
                line, movement = self._reverse_item(
                    request, item, returnable, period, actor_id, reason
                )
                returns.append(line)
                if movement is not None:
                    movements.append(movement)
        cancel_unissued_items(request, self._change_log, actor_id, reason)

        request.status = new_status.value
        request.cancelled_at = self._clock.now()
        request.cancelled_by_id = actor_id
        request.cancellation_reason = reason
        request.updated_by_id = actor_id

        logger.info(
            "transfer_receipt_cancelled",
            extra={
                "request_id": str(request.id),
                "reference_number": request.reference_number,
                "from_status": previous_status.value,
                "to_status": new_status.value,
                "reversal_policy": self._config.reversal_policy.value,
                "returned_items": sum(1 for r in returns if r.returned_quantity > ZERO),
                "movement_count": len(movements),
            },
        )
        return ReversalResult(
            status=new_status, returns=tuple(returns), movements=tuple(movements)
        )

    def _reverse_item(
        self,
        request: TransferRequestModel,
        item: TransferItemModel,
        returnable: Decimal,
        period: PeriodInfo | None,
        actor_id: UUID,
        reason: str | None,
    ) -> tuple[ReturnLine, MovementInfo | None]:
        kept = item.received_quantity
        movement: MovementInfo | None = None
        serials: tuple[str, ...] = ()

        if returnable > ZERO:
            self._balances.increment(
                request.tenant_id,
                request.issuing_store_id,
                item.product_id,
                returnable,
                actor_id,
                unit_cost=item.unit_cost * item.exchange_rate,
            )
            note = f"Returned {returnable}, receiver kept {kept}"
            movement = self._ledger.record(
                MovementSpec(
                    tenant_id=request.tenant_id,
                    movement_type=MovementType.STORE_RETURN,
                    store_id=request.issuing_store_id,
                    product_id=item.product_id,
                    quantity=returnable,
                    reference_number=return_reference_number(
                        self._config.return_reference_prefix, request.reference_number
                    ),
                    reference_type=REFERENCE_TYPE,
                    period_id=period.id,
                    unit_cost=item.unit_cost,
                    currency_code=item.currency_code,
                    exchange_rate=item.exchange_rate,
                    actor_id=actor_id,
                    request_id=request.id,
                    item_id=item.id,
                    notes=note,
                )
            )
            product = self._catalog.get_product(request.tenant_id, item.product_id)
            if product.tracks_expiry or product.tracks_serial:
                moved = self._tracking.transfer(
                    request.tenant_id,
                    item.product_id,
                    from_store_id=request.requesting_store_id,
                    to_store_id=request.issuing_store_id,
                    quantity=returnable,
                    actor_id=actor_id,
                    tracks_expiry=product.tracks_expiry,
                    tracks_serial=product.tracks_serial,
                )
                serials = moved.serial_numbers

        previous = item.received_quantity
        # Counters move only when stock went back.
        if returnable > ZERO:
            if self._config.reversal_policy == ReversalPolicy.REOPEN:
                item.received_quantity = ZERO
                item.remaining_receiving_quantity = item.issued_quantity
                item.status = ItemStatus.ISSUED.value
            else:
                item.remaining_receiving_quantity = ZERO
                item.status = ItemStatus.CLOSED_PARTIALLY_RECEIVED.value
        item.updated_by_id = actor_id
        check_item_invariants(
            item,
            allow_receipt_beyond_issued=self._config.allow_zero_issue_fulfilled_receipt,
        )

        self._change_log.record(
            item,
            ChangeKind.RETURNED,
            quantity=returnable,
            previous_quantity=previous,
            new_quantity=item.received_quantity,
            actor_id=actor_id,
            notes=f"Returned {returnable}, receiver kept {kept}",
            reason=reason,
        )

        logger.info(
            "transfer_item_returned",
            extra={
                "item_id": str(item.id),
                "product_id": str(item.product_id),
                "returned": returnable,
                "kept": kept,
                "serial_count": len(serials),
            },
        )
        return (
            ReturnLine(
                item_id=item.id,
                product_id=item.product_id,
                returned_quantity=returnable,
                kept_quantity=kept,
                serial_numbers=serials,
            ),
            movement,
        )
