"""
Issue / Receive Engine (``inventory_modules.transfers.fulfillment``).

Responsibility
--------------
Moves stock for a transfer request: issuing takes stock out of the issuing
store, receiving puts it into the requesting store.  Each call validates
the quantities against the item counters, mutates the inventory balance
under its row lock, appends one quantity change entry and (when stock
moves) one movement ledger entry per item, then reconciles the request
status.

Architecture position
---------------------
**Modules layer** -- runs inside the unit opened by
``TransferRequestService``; every dependency is injected and only flushes.
The caller loads the request with ``RequestRepository.get_for_update`` so
the header lock is held before any balance lock.

Invariants enforced
-------------------
* Every quantity and status check happens before the first balance
  mutation; a failure under lock (``InsufficientStockError``) aborts the
  whole unit.
* Items of one issue call are processed in product-id order, so
  concurrent issues against the same store lock balances in the same order.
* Item counters satisfy ``check_item_invariants`` before flush.

Failure modes
-------------
* ``InvalidTransitionError`` / ``ItemStateError`` -- status does not allow
  the operation.
* ``QuantityExceedsLimitError`` -- above ``remaining`` or ``max_receivable``.
* ``InsufficientStockError`` -- issuing store cannot cover the quantity,
  including a store that never held the product.
* ``NoOpenPeriodError`` / ``DefaultCurrencyNotFoundError`` -- reference data
  required before posting a movement.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from inventory_kernel.db.types import ZERO
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import MovementInfo, PeriodInfo
from inventory_kernel.domain.movement_types import MovementType
from inventory_kernel.exceptions import (
    InvalidFieldError,
    InvalidTransitionError,
    ItemStateError,
    MissingFieldError,
    QuantityExceedsLimitError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.services.balance_repository import InventoryBalanceRepository
from inventory_kernel.services.currency_service import CurrencyService
from inventory_kernel.services.movement_ledger import MovementLedgerRepository, MovementSpec
from inventory_kernel.services.period_service import PeriodService
from inventory_modules.transfers.config import TransferConfig
from inventory_modules.transfers.models import (
    CLOSED_ITEM_STATUSES,
    RECEIVABLE_ITEM_STATUSES,
    ChangeKind,
    IssueLine,
    ItemStatus,
    RequestStatus,
)
from inventory_modules.transfers.orm import TransferItemModel, TransferRequestModel
from inventory_modules.transfers.quantity_log import QuantityChangeLogger
from inventory_modules.transfers.reconciliation import (
    check_item_invariants,
    derive_issue_status,
    derive_receipt_status,
    item_status_after_issue,
    item_status_after_receipt,
    max_receivable,
    remaining,
    remaining_receiving,
)
from inventory_modules.transfers.repository import RequestRepository
from inventory_modules.transfers.workflows import require_target, require_transition

logger = get_logger("modules.transfers.fulfillment")

REFERENCE_TYPE = "STORE_REQUEST"


@dataclass(frozen=True)
class FulfillmentResult:
    """Outcome of one issue or receive call."""

    status: RequestStatus
    movements: tuple[MovementInfo, ...]
    items_changed: int


class IssueReceiveEngine:
    """
    Issue and receive operations on a locked transfer request.

    Non-goals:
        - Does NOT commit or roll back.
        - Does NOT look up movement type ids; the registry is resolved once
          and injected through the ledger.
    """

    def __init__(
        self,
        balances: InventoryBalanceRepository,
        ledger: MovementLedgerRepository,
        change_log: QuantityChangeLogger,
        periods: PeriodService,
        currencies: CurrencyService,
        config: TransferConfig | None = None,
        clock: Clock | None = None,
    ):
        self._balances = balances
        self._ledger = ledger
        self._change_log = change_log
        self._periods = periods
        self._currencies = currencies
        self._config = config or TransferConfig()
        self._clock = clock or SystemClock()

    def _posting_period(self, tenant_id: UUID) -> PeriodInfo:
        """Open period for the movements; the default currency must exist too."""
        period = self._periods.get_current_open_period(tenant_id)
        self._currencies.get_default_currency(tenant_id)
        return period

    def _movement(
        self,
        request: TransferRequestModel,
        item: TransferItemModel,
        movement_type: MovementType,
        store_id: UUID,
        quantity: Decimal,
        period: PeriodInfo,
        actor_id: UUID,
        notes: str | None,
    ) -> MovementInfo:
        return self._ledger.record(
            MovementSpec(
                tenant_id=request.tenant_id,
                movement_type=movement_type,
                store_id=store_id,
                product_id=item.product_id,
                quantity=quantity,
                reference_number=request.reference_number,
                reference_type=REFERENCE_TYPE,
                period_id=period.id,
                unit_cost=item.unit_cost,
                currency_code=item.currency_code,
                exchange_rate=item.exchange_rate,
                actor_id=actor_id,
                request_id=request.id,
                item_id=item.id,
                notes=notes,
            )
        )

    # =========================================================================
    # Issue
    # =========================================================================

    def issue(
        self,
        request: TransferRequestModel,
        lines: Sequence[IssueLine],
        actor_id: UUID,
        notes: str | None = None,
    ) -> FulfillmentResult:
        """
        Issue stock for the listed items from the issuing store.

        Preconditions:
            ``request`` is locked; status is approved, partial_issued or
            partially_received.
        Postconditions:
            Issuing store balance is lower by exactly the sum issued; each
            targeted item logs one ``issued`` change and, when its quantity
            is positive, one ``Store Issue`` movement.  Request status is
            ``fulfilled`` iff every item has ``issued >= approved``.
        """
        require_transition(request.id, request.status, "issue")
        if not lines:
            raise MissingFieldError("items")

        targets: list[tuple[TransferItemModel, Decimal]] = []
        seen: set[UUID] = set()
        for line in lines:
            if line.item_id in seen:
                raise InvalidFieldError("items", str(line.item_id), "item listed more than once")
            seen.add(line.item_id)
            item = RequestRepository.item_of(request, line.item_id)
            self._check_issuable(item, line.issuing_quantity)
            targets.append((item, line.issuing_quantity))

        period = self._posting_period(request.tenant_id)
        previous_status = request.request_status

        movements: list[MovementInfo] = []
        changed = 0
        for item, quantity in sorted(targets, key=lambda t: str(t[0].product_id)):
            if quantity == ZERO and item.remaining_quantity == ZERO:
                logger.debug(
                    "issue_line_skipped",
                    extra={"item_id": str(item.id), "reason": "nothing remaining"},
                )
                continue
            movement = self._issue_item(request, item, quantity, period, actor_id, notes)
            if movement is not None:
                movements.append(movement)
            changed += 1

        new_status = derive_issue_status(request.items)
        require_target(request.id, "issue", previous_status, new_status)
        request.status = new_status.value
        request.updated_by_id = actor_id
        if new_status == RequestStatus.FULFILLED:
            request.fulfilled_at = self._clock.now()
            request.fulfilled_by_id = actor_id

        logger.info(
            "transfer_issued",
            extra={
                "request_id": str(request.id),
                "reference_number": request.reference_number,
                "from_status": previous_status.value,
                "to_status": new_status.value,
                "items_changed": changed,
                "movement_count": len(movements),
            },
        )
        return FulfillmentResult(
            status=new_status, movements=tuple(movements), items_changed=changed
        )

    def issue_all(
        self,
        request: TransferRequestModel,
        actor_id: UUID,
        notes: str | None = None,
    ) -> FulfillmentResult:
        """Issue everything still remaining on every open item."""
        lines = [
            IssueLine(item_id=item.id, issuing_quantity=item.remaining_quantity)
            for item in request.items
            if item.item_status not in CLOSED_ITEM_STATUSES
            and item.item_status != ItemStatus.PENDING
            and item.remaining_quantity > ZERO
        ]
        if not lines:
            raise InvalidTransitionError(str(request.id), request.status, "issue all: nothing remaining")
        return self.issue(request, lines, actor_id, notes)

    def _check_issuable(self, item: TransferItemModel, quantity: Decimal) -> None:
        status = item.item_status
        if status in CLOSED_ITEM_STATUSES or status == ItemStatus.PENDING:
            raise ItemStateError(str(item.id), status.value, "issue")
        if quantity < ZERO:
            raise InvalidFieldError("issuing_quantity", quantity, "must not be negative")
        if quantity > item.remaining_quantity:
            raise QuantityExceedsLimitError(
                "issue", str(item.id), quantity, item.remaining_quantity, "remaining"
            )

    def _issue_item(
        self,
        request: TransferRequestModel,
        item: TransferItemModel,
        quantity: Decimal,
        period: PeriodInfo,
        actor_id: UUID,
        notes: str | None,
    ) -> MovementInfo | None:
        if quantity > ZERO:
            self._balances.decrement(
                request.tenant_id, request.issuing_store_id, item.product_id, quantity, actor_id
            )

        previous = item.issued_quantity
        item.issued_quantity = previous + quantity
        item.remaining_quantity = remaining(item.approved_quantity, item.issued_quantity)
        item.remaining_receiving_quantity = remaining_receiving(
            item.issued_quantity, item.received_quantity
        )
        item.status = item_status_after_issue(item.approved_quantity, item.issued_quantity).value
        item.updated_by_id = actor_id
        check_item_invariants(item)

        self._change_log.record(
            item,
            ChangeKind.ISSUED,
            quantity=quantity,
            previous_quantity=previous,
            new_quantity=item.issued_quantity,
            actor_id=actor_id,
            notes=notes,
        )
        if quantity == ZERO:
            return None
        return self._movement(
            request, item, MovementType.STORE_ISSUE, request.issuing_store_id,
            quantity, period, actor_id, notes,
        )

    # =========================================================================
    # Receive
    # =========================================================================

    def receive(
        self,
        request: TransferRequestModel,
        item_id: UUID,
        quantity: Decimal,
        actor_id: UUID,
        notes: str | None = None,
    ) -> FulfillmentResult:
        """
        Receive ``quantity`` of one item into the requesting store.

        Postconditions:
            Requesting store balance is higher by exactly ``quantity``
            (record created at zero if absent); one ``received`` change and
            one ``Store Receipt`` movement.  Request status is
            ``fully_received`` iff every item outside rejected/cancelled has
            received its approved quantity.
        """
        require_transition(request.id, request.status, "receive")
        item = RequestRepository.item_of(request, item_id)
        self._check_receivable(item, quantity)

        period = self._posting_period(request.tenant_id)
        previous_status = request.request_status
        movement = self._receive_item(request, item, quantity, period, actor_id, notes)
        new_status = self._reconcile_receipt(request, previous_status, actor_id)
        return FulfillmentResult(status=new_status, movements=(movement,), items_changed=1)

    def receive_all(
        self,
        request: TransferRequestModel,
        actor_id: UUID,
        notes: str | None = None,
    ) -> FulfillmentResult:
        """Receive the full receivable quantity of every receivable item."""
        require_transition(request.id, request.status, "receive")
        allow_legacy = self._config.allow_zero_issue_fulfilled_receipt
        targets = [
            (item, max_receivable(item, allow_zero_issue_fulfilled=allow_legacy))
            for item in request.items
            if item.item_status in RECEIVABLE_ITEM_STATUSES
        ]
        targets = [(item, qty) for item, qty in targets if qty > ZERO]
        if not targets:
            raise InvalidTransitionError(str(request.id), request.status, "receive all: nothing to receive")

        period = self._posting_period(request.tenant_id)
        previous_status = request.request_status
        movements = [
            self._receive_item(request, item, qty, period, actor_id, notes)
            for item, qty in sorted(targets, key=lambda t: str(t[0].product_id))
        ]
        new_status = self._reconcile_receipt(request, previous_status, actor_id)
        return FulfillmentResult(
            status=new_status, movements=tuple(movements), items_changed=len(movements)
        )

    def _check_receivable(self, item: TransferItemModel, quantity: Decimal) -> None:
        status = item.item_status
        if status not in RECEIVABLE_ITEM_STATUSES:
            raise ItemStateError(str(item.id), status.value, "receive")
        if quantity <= ZERO:
            raise InvalidFieldError("received_quantity", quantity, "must be greater than zero")
        ceiling = max_receivable(
            item, allow_zero_issue_fulfilled=self._config.allow_zero_issue_fulfilled_receipt
        )
        if quantity > ceiling:
            raise QuantityExceedsLimitError(
                "receive", str(item.id), quantity, ceiling, "max receivable"
            )

    def _receive_item(
        self,
        request: TransferRequestModel,
        item: TransferItemModel,
        quantity: Decimal,
        period: PeriodInfo,
        actor_id: UUID,
        notes: str | None,
    ) -> MovementInfo:
        legacy_receipt = (
            self._config.allow_zero_issue_fulfilled_receipt
            and item.item_status == ItemStatus.FULFILLED
            and item.issued_quantity == ZERO
        )

        self._balances.increment(
            request.tenant_id,
            request.requesting_store_id,
            item.product_id,
            quantity,
            actor_id,
            unit_cost=item.unit_cost * item.exchange_rate,
        )

        previous = item.received_quantity
        item.received_quantity = previous + quantity
        item.remaining_receiving_quantity = remaining_receiving(
            item.issued_quantity, item.received_quantity
        )
        item.status = item_status_after_receipt(
            item.issued_quantity, item.received_quantity
        ).value
        item.updated_by_id = actor_id
        check_item_invariants(item, allow_receipt_beyond_issued=legacy_receipt)

        if legacy_receipt:
            logger.warning(
                "zero_issue_fulfilled_receipt",
                extra={
                    "item_id": str(item.id),
                    "quantity": quantity,
                    "requested": item.requested_quantity,
                },
            )

        self._change_log.record(
            item,
            ChangeKind.RECEIVED,
            quantity=quantity,
            previous_quantity=previous,
            new_quantity=item.received_quantity,
            actor_id=actor_id,
            notes=notes,
        )
        return self._movement(
            request, item, MovementType.STORE_RECEIPT, request.requesting_store_id,
            quantity, period, actor_id, notes,
        )

    def _reconcile_receipt(
        self,
        request: TransferRequestModel,
        previous_status: RequestStatus,
        actor_id: UUID,
    ) -> RequestStatus:
        new_status = derive_receipt_status(request.items)
        require_target(request.id, "receive", previous_status, new_status)
        request.status = new_status.value
        request.updated_by_id = actor_id

        logger.info(
            "transfer_received",
            extra={
                "request_id": str(request.id),
                "reference_number": request.reference_number,
                "from_status": previous_status.value,
                "to_status": new_status.value,
            },
        )
        return new_status
