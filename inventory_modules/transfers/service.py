"""
Transfer Request Service (``inventory_modules.transfers.service``).

Responsibility
--------------
The operations exposed to callers of the transfer workflow: create, update
and delete a draft, submit, approve (whole request or per item), reject
(whole request or per item), issue, receive, cancel and cancel-receipt, the
bulk variants approve-all / issue-all / receive-all, and mark-fulfilled for
the zero-issue receipt setting.  Composes the
``RequestRepository``, the ``IssueReceiveEngine`` and the
``ReversalEngine`` with the kernel repositories.

Architecture
------------
Layer: **Modules** -- stateful orchestration wrapper.

1. Builds inbound commands from raw payloads (tenant keys stripped,
   decimals parsed once).
2. Locks the request header (``RequestRepository.get_for_update``).
3. Checks the transition against ``TRANSFER_REQUEST_WORKFLOW``.
4. Delegates stock movement to the engines.
5. Commits, then notifies observers.

Invariants
----------
- Each public method owns its transaction boundary: ``session.commit()`` on
  success, ``session.rollback()`` and re-raise on any failure.  Partial item
  updates never persist; bulk variants run in the same single unit.
- The tenant always comes from ``TenantContext``, never from a payload.
- Every item mutation appends exactly one quantity change entry.

Failure Modes
-------------
- ``ValidationError`` / ``StateError`` before any mutation.
- ``InsufficientStockError`` / ``ReferenceDataError`` mid-unit, full rollback.
- ``IntegrityError`` at flush is translated into ``DuplicateReferenceError``
  or ``IntegrityConstraintError``.
- Observer failures are logged and never propagate; they run after commit.

Usage::

    service = build_transfer_service(session, config=TransferConfig())
    created = service.create(ctx, {"requesting_store_id": ..., "items": [...]})
    service.submit(ctx, created.id)
    service.approve(ctx, created.id, [{"item_id": ..., "approved_quantity": "30"}])
    service.issue(ctx, created.id, [{"item_id": ..., "issuing_quantity": "30"}])
    service.receive(ctx, created.id, item_id, "30")
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_config import InventorySettings, get_active_settings
from inventory_kernel.db.types import ZERO
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.context import TenantContext, require_context
from inventory_kernel.domain.quantities import parse_positive_quantity, parse_quantity
from inventory_kernel.exceptions import (
    DuplicateReferenceError,
    EmptyRequestError,
    IntegrityConstraintError,
    InvalidFieldError,
    InvalidTransitionError,
    ItemStateError,
    QuantityExceedsLimitError,
    SameStoreTransferError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.services.balance_repository import InventoryBalanceRepository
from inventory_kernel.services.catalog_service import CatalogService
from inventory_kernel.services.currency_service import CurrencyService
from inventory_kernel.services.movement_ledger import MovementLedgerRepository
from inventory_kernel.services.movement_type_registry import MovementTypeRegistry
from inventory_kernel.services.period_service import PeriodService
from inventory_kernel.services.sequence_service import SequenceService
from inventory_kernel.services.tracking_repository import StockTrackingRepository
from inventory_modules.transfers.config import TransferConfig
from inventory_modules.transfers.fulfillment import IssueReceiveEngine
from inventory_modules.transfers.helpers import (
    equivalent_amount,
    format_reference_number,
    line_total,
    reference_sequence_name,
    require_text,
)
from inventory_modules.transfers.models import (
    CLOSED_ITEM_STATUSES,
    ApprovalLine,
    ChangeKind,
    IssueLine,
    ItemStatus,
    NewTransferItem,
    NewTransferRequest,
    RequestStatus,
    TransferEvent,
    TransferRequestInfo,
    TransferRequestUpdate,
    lines_from_payload,
)
from inventory_modules.transfers.orm import TransferItemModel, TransferRequestModel
from inventory_modules.transfers.quantity_log import QuantityChangeLogger
from inventory_modules.transfers.reconciliation import (
    check_item_invariants,
    derive_cancel_status,
    item_status_after_approval,
)
from inventory_modules.transfers.repository import RequestRepository
from inventory_modules.transfers.reversal import ReversalEngine, cancel_unissued_items
from inventory_modules.transfers.workflows import require_target, require_transition

logger = get_logger("modules.transfers.service")


class TransferObserver(Protocol):
    """Secondary effect run after a workflow unit commits."""

    def on_transfer_event(self, event: TransferEvent) -> None: ...


class TransferRequestService:
    """
    Orchestrates the transfer request lifecycle.

    Transaction boundary: this service commits on success, rolls back on
    failure.  The repositories and engines it composes only flush.
    """

    def __init__(
        self,
        session: Session,
        registry: MovementTypeRegistry,
        config: TransferConfig | None = None,
        clock: Clock | None = None,
        observers: Iterable[TransferObserver] = (),
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or TransferConfig()
        self._observers: list[TransferObserver] = list(observers)
        self._log_binding = None

        self._requests = RequestRepository(session)
        self._sequences = SequenceService(session)
        self._catalog = CatalogService(session)
        self._currencies = CurrencyService(session)
        self._periods = PeriodService(session, self._clock)
        self._change_log = QuantityChangeLogger(session)

        balances = InventoryBalanceRepository(session, self._clock)
        ledger = MovementLedgerRepository(session, registry, self._clock)
        self._fulfillment = IssueReceiveEngine(
            balances=balances,
            ledger=ledger,
            change_log=self._change_log,
            periods=self._periods,
            currencies=self._currencies,
            config=self._config,
            clock=self._clock,
        )
        self._reversal = ReversalEngine(
            balances=balances,
            ledger=ledger,
            tracking=StockTrackingRepository(session),
            change_log=self._change_log,
            periods=self._periods,
            currencies=self._currencies,
            catalog=self._catalog,
            config=self._config,
            clock=self._clock,
        )

    @property
    def config(self) -> TransferConfig:
        return self._config

    def add_observer(self, observer: TransferObserver) -> None:
        self._observers.append(observer)

    # =========================================================================
    # Unit of work
    # =========================================================================

    def _in_unit(
        self,
        ctx: TenantContext,
        action: str,
        work: Callable[[TenantContext], TransferRequestModel | None],
        request_id: UUID | None = None,
    ) -> TransferRequestInfo | None:
        """Run ``work`` as one unit: commit on success, roll back and re-raise on failure."""
        ctx = require_context(ctx)
        self._log_binding = LogContext.bind(
            correlation_id=ctx.correlation_id,
            tenant_id=ctx.tenant_id,
            actor_id=ctx.actor_id,
            request_id=request_id,
        )
        with self._log_binding:
            try:
                request = work(ctx)
                self._session.flush()
                info = request.to_dto() if request is not None else None
                self._session.commit()
            except IntegrityError as exc:
                self._session.rollback()
                logger.error(
                    "transfer_integrity_error",
                    extra={"action": action, "detail": str(exc.orig)},
                )
                raise self._translate_integrity_error(exc, action) from exc
            except Exception as exc:
                self._session.rollback()
                logger.warning(
                    "transfer_operation_failed",
                    extra={"action": action, "error_type": type(exc).__name__, "error": str(exc)},
                )
                raise
            finally:
                self._log_binding = None

            logger.info(
                "transfer_operation_committed",
                extra={"action": action, "status": info.status.value if info else None},
            )
        if info is not None:
            self._notify(ctx, action, info)
        return info

    def _translate_integrity_error(self, exc: IntegrityError, action: str) -> Exception:
        detail = str(exc.orig)
        if "uq_transfer_reference" in detail or "reference_number" in detail:
            reference = exc.params.get("reference_number", "") if isinstance(exc.params, dict) else ""
            return DuplicateReferenceError(str(reference))
        return IntegrityConstraintError(action.replace("_", " ") + " transfer request", detail)

    def _notify(self, ctx: TenantContext, action: str, info: TransferRequestInfo) -> None:
        if not self._observers:
            return
        event = TransferEvent(
            action=action,
            tenant_id=ctx.tenant_id,
            actor_id=ctx.actor_id,
            request_id=info.id,
            reference_number=info.reference_number,
            status=info.status,
            occurred_at=self._clock.now(),
        )
        for observer in self._observers:
            try:
                observer.on_transfer_event(event)
            except Exception as exc:
                logger.warning(
                    "transfer_observer_failed",
                    extra={
                        "observer": type(observer).__name__,
                        "action": action,
                        "request_id": str(info.id),
                        "error": str(exc),
                    },
                )

    def _bind_log(self, request: TransferRequestModel) -> None:
        if self._log_binding is not None:
            self._log_binding.update(
                request_id=request.id, reference_number=request.reference_number
            )

    def _locked(self, ctx: TenantContext, request_id: UUID, action: str) -> TransferRequestModel:
        request = self._requests.get_for_update(ctx.tenant_id, request_id)
        self._bind_log(request)
        require_transition(request.id, request.status, action)
        return request

    # =========================================================================
    # Draft maintenance
    # =========================================================================

    def create(
        self,
        ctx: TenantContext,
        command: NewTransferRequest | Mapping[str, Any],
    ) -> TransferRequestInfo:
        """
        Create a draft request with its items.

        Postconditions:
            Reference number ``<prefix>-YYYY-MM-DD-NNNN`` from the locked
            per-tenant, per-day counter; each item ``pending`` with one
            ``requested`` change entry.

        Raises:
            SameStoreTransferError, StoreNotFoundError, ProductNotFoundError,
            ProductInactiveError, DefaultCurrencyNotFoundError.
        """
        if not isinstance(command, NewTransferRequest):
            command = NewTransferRequest.from_payload(command)

        def work(ctx: TenantContext) -> TransferRequestModel:
            self._check_stores(ctx, command.requesting_store_id, command.issuing_store_id)
            currency_code = command.currency_code or self._currencies.get_default_currency(
                ctx.tenant_id
            ).code

            today = self._clock.today()
            sequence = self._sequences.next_value(reference_sequence_name(ctx.tenant_id, today))
            reference = format_reference_number(
                self._config.reference_prefix, today, sequence, self._config.sequence_width
            )

            request = TransferRequestModel(
                tenant_id=ctx.tenant_id,
                reference_number=reference,
                requesting_store_id=command.requesting_store_id,
                issuing_store_id=command.issuing_store_id,
                direction=command.direction.value,
                priority=command.priority.value,
                status=RequestStatus.DRAFT.value,
                currency_code=currency_code,
                exchange_rate=command.exchange_rate,
                expected_delivery_date=command.expected_delivery_date,
                notes=command.notes,
                created_by_id=ctx.actor_id,
            )
            self._requests.add(request)
            self._bind_log(request)
            self._replace_items(ctx, request, command.items)

            logger.info(
                "transfer_request_created",
                extra={
                    "request_id": str(request.id),
                    "reference_number": reference,
                    "item_count": request.total_items,
                    "total_value": request.total_value,
                },
            )
            return request

        return self._in_unit(ctx, "create", work)

    def update(
        self,
        ctx: TenantContext,
        request_id: UUID,
        changes: TransferRequestUpdate | Mapping[str, Any],
    ) -> TransferRequestInfo:
        """Change a draft.  Supplied items replace the whole item set."""
        if not isinstance(changes, TransferRequestUpdate):
            changes = TransferRequestUpdate.from_payload(changes)

        def work(ctx: TenantContext) -> TransferRequestModel:
            request = self._locked(ctx, request_id, "update")
            requesting = changes.requesting_store_id or request.requesting_store_id
            issuing = changes.issuing_store_id or request.issuing_store_id
            if changes.requesting_store_id or changes.issuing_store_id:
                self._check_stores(ctx, requesting, issuing)
            request.requesting_store_id = requesting
            request.issuing_store_id = issuing
            if changes.priority is not None:
                request.priority = changes.priority.value
            if changes.expected_delivery_date is not None:
                request.expected_delivery_date = changes.expected_delivery_date
            if changes.notes is not None:
                request.notes = changes.notes
            if changes.items is not None:
                request.items.clear()
                self._session.flush()
                self._replace_items(ctx, request, changes.items)
            request.updated_by_id = ctx.actor_id

            logger.info(
                "transfer_request_updated",
                extra={
                    "request_id": str(request.id),
                    "items_replaced": changes.items is not None,
                    "item_count": request.total_items,
                },
            )
            return request

        return self._in_unit(ctx, "update", work, request_id)

    def delete(self, ctx: TenantContext, request_id: UUID) -> None:
        """Delete a draft and its items.  Quantity change entries remain."""

        def work(ctx: TenantContext) -> None:
            request = self._locked(ctx, request_id, "delete")
            self._requests.delete(request)
            return None

        self._in_unit(ctx, "delete", work, request_id)

    def _check_stores(self, ctx: TenantContext, requesting_store_id: UUID, issuing_store_id: UUID) -> None:
        if requesting_store_id == issuing_store_id:
            raise SameStoreTransferError(str(requesting_store_id))
        self._catalog.get_store(ctx.tenant_id, requesting_store_id)
        self._catalog.get_store(ctx.tenant_id, issuing_store_id)

    def _replace_items(
        self,
        ctx: TenantContext,
        request: TransferRequestModel,
        items: Sequence[NewTransferItem],
    ) -> None:
        for line_number, new_item in enumerate(items, start=1):
            self._catalog.require_active_product(ctx.tenant_id, new_item.product_id)
            rate = new_item.exchange_rate or request.exchange_rate
            total_cost = line_total(new_item.requested_quantity, new_item.unit_cost)
            request.items.append(
                TransferItemModel(
                    tenant_id=ctx.tenant_id,
                    line_number=line_number,
                    product_id=new_item.product_id,
                    status=ItemStatus.PENDING.value,
                    requested_quantity=new_item.requested_quantity,
                    approved_quantity=ZERO,
                    issued_quantity=ZERO,
                    received_quantity=ZERO,
                    remaining_quantity=ZERO,
                    remaining_receiving_quantity=ZERO,
                    unit_cost=new_item.unit_cost,
                    total_cost=total_cost,
                    currency_code=new_item.currency_code or request.currency_code,
                    exchange_rate=rate,
                    equivalent_amount=equivalent_amount(total_cost, rate),
                    batch_number=new_item.batch_number,
                    expiry_date=new_item.expiry_date,
                    serial_numbers=list(new_item.serial_numbers) or None,
                    notes=new_item.notes,
                    change_count=0,
                    created_by_id=ctx.actor_id,
                )
            )
        self._session.flush()

        for item in request.items:
            self._change_log.record(
                item,
                ChangeKind.REQUESTED,
                quantity=item.requested_quantity,
                previous_quantity=ZERO,
                new_quantity=item.requested_quantity,
                actor_id=ctx.actor_id,
                notes=item.notes,
            )
        self._recompute_totals(request)

    @staticmethod
    def _recompute_totals(request: TransferRequestModel) -> None:
        request.total_items = len(request.items)
        request.total_value = sum((item.total_cost for item in request.items), ZERO)

    # =========================================================================
    # Submission and approval
    # =========================================================================

    def submit(self, ctx: TenantContext, request_id: UUID) -> TransferRequestInfo:
        """Submit a draft for approval.  Requires at least one item."""

        def work(ctx: TenantContext) -> TransferRequestModel:
            request = self._locked(ctx, request_id, "submit")
            if not request.items:
                raise EmptyRequestError(str(request.id))
            request.status = RequestStatus.SUBMITTED.value
            request.submitted_at = self._clock.now()
            request.submitted_by_id = ctx.actor_id
            request.updated_by_id = ctx.actor_id
            logger.info(
                "transfer_request_submitted",
                extra={"request_id": str(request.id), "item_count": len(request.items)},
            )
            return request

        return self._in_unit(ctx, "submit", work, request_id)

    def approve(
        self,
        ctx: TenantContext,
        request_id: UUID,
        lines: Sequence[ApprovalLine] | Sequence[Mapping[str, Any]],
        note: str | None = None,
    ) -> TransferRequestInfo:
        """
        Approve a submitted request.

        Every ``pending`` item needs a line; items approved earlier with
        ``approve_item`` may be omitted.  ``approved = 0`` rejects the item.
        All listed items are updated in one unit or none are.

        Raises:
            InvalidFieldError: a pending item has no line, or a line is repeated.
            QuantityExceedsLimitError: approved above requested.
            ItemStateError: the item is no longer open for approval.
        """
        lines = self._parse_lines(lines, ApprovalLine)

        def work(ctx: TenantContext) -> TransferRequestModel:
            request = self._locked(ctx, request_id, "approve")
            self._approve_locked(ctx, request, lines, note)
            return request

        return self._in_unit(ctx, "approve", work, request_id)

    def approve_all(
        self, ctx: TenantContext, request_id: UUID, note: str | None = None
    ) -> TransferRequestInfo:
        """Approve every pending item at its requested quantity, in one unit."""

        def work(ctx: TenantContext) -> TransferRequestModel:
            request = self._locked(ctx, request_id, "approve")
            lines = [
                ApprovalLine(item_id=item.id, approved_quantity=item.requested_quantity)
                for item in request.items
                if item.item_status == ItemStatus.PENDING
            ]
            self._approve_locked(ctx, request, lines, note)
            return request

        return self._in_unit(ctx, "approve_all", work, request_id)

    def _approve_locked(
        self,
        ctx: TenantContext,
        request: TransferRequestModel,
        lines: Sequence[ApprovalLine],
        note: str | None,
    ) -> None:
        by_item: dict[UUID, ApprovalLine] = {}
        for line in lines:
            if line.item_id in by_item:
                raise InvalidFieldError("items", str(line.item_id), "item listed more than once")
            by_item[line.item_id] = line

        targets = []
        for item_id, line in by_item.items():
            item = self._requests.item_of(request, item_id)
            self._check_approvable(item, line.approved_quantity)
            targets.append((item, line.approved_quantity))

        missing = [
            str(item.id) for item in request.items
            if item.item_status == ItemStatus.PENDING and item.id not in by_item
        ]
        if missing:
            raise InvalidFieldError(
                "items", ", ".join(missing), "every pending item needs an approved quantity"
            )

        for item, quantity in targets:
            self._apply_approval(ctx, item, quantity, note)

        self._recompute_totals(request)
        request.status = RequestStatus.APPROVED.value
        request.approval_notes = note
        request.approved_at = self._clock.now()
        request.approved_by_id = ctx.actor_id
        request.updated_by_id = ctx.actor_id

        logger.info(
            "transfer_request_approved",
            extra={
                "request_id": str(request.id),
                "approved_items": sum(
                    1 for item in request.items if item.item_status == ItemStatus.APPROVED
                ),
                "rejected_items": sum(
                    1 for item in request.items if item.item_status == ItemStatus.REJECTED
                ),
                "total_value": request.total_value,
            },
        )

    def approve_item(
        self,
        ctx: TenantContext,
        request_id: UUID,
        item_id: UUID,
        approved_quantity: object,
        note: str | None = None,
    ) -> TransferRequestInfo:
        """Approve one pending item; the request stays ``submitted``."""
        quantity = parse_quantity(approved_quantity, "approved_quantity")

        def work(ctx: TenantContext) -> TransferRequestModel:
            request = self._locked(ctx, request_id, "approve_item")
            item = self._requests.item_of(request, item_id)
            if item.item_status != ItemStatus.PENDING:
                raise ItemStateError(str(item.id), item.status, "approve")
            self._check_approvable(item, quantity)
            self._apply_approval(ctx, item, quantity, note)
            self._recompute_totals(request)
            request.updated_by_id = ctx.actor_id
            return request

        return self._in_unit(ctx, "approve_item", work, request_id)

    @staticmethod
    def _parse_lines(lines: Sequence[Any] | None, line_cls: type) -> tuple:
        """Accept built lines as they are; parse raw mappings."""
        lines = list(lines or ())
        if lines and all(isinstance(line, line_cls) for line in lines):
            return tuple(lines)
        return lines_from_payload(lines, line_cls)

    @staticmethod
    def _check_approvable(item: TransferItemModel, quantity: Decimal) -> None:
        if item.item_status not in (ItemStatus.PENDING, ItemStatus.APPROVED):
            raise ItemStateError(str(item.id), item.status, "approve")
        if quantity > item.requested_quantity:
            raise QuantityExceedsLimitError(
                "approve", str(item.id), quantity, item.requested_quantity, "requested"
            )

    def _apply_approval(
        self,
        ctx: TenantContext,
        item: TransferItemModel,
        quantity: Decimal,
        note: str | None,
    ) -> None:
        previous = item.approved_quantity
        status = item_status_after_approval(quantity)
        item.approved_quantity = quantity
        item.issued_quantity = ZERO
        item.received_quantity = ZERO
        item.remaining_quantity = quantity
        item.remaining_receiving_quantity = ZERO
        item.total_cost = line_total(quantity, item.unit_cost)
        item.equivalent_amount = equivalent_amount(item.total_cost, item.exchange_rate)
        item.status = status.value
        item.updated_by_id = ctx.actor_id
        check_item_invariants(item)

        self._change_log.record(
            item,
            ChangeKind.APPROVED if status == ItemStatus.APPROVED else ChangeKind.REJECTED,
            quantity=quantity,
            previous_quantity=previous,
            new_quantity=quantity,
            actor_id=ctx.actor_id,
            notes=f"Approved: {item.requested_quantity} → {quantity}",
            reason=note,
        )

    # =========================================================================
    # Rejection
    # =========================================================================

    def reject(self, ctx: TenantContext, request_id: UUID, reason: str) -> TransferRequestInfo:
        """Reject a submitted request; every item becomes ``rejected``."""
        reason = require_text(reason, "rejection_reason")

        def work(ctx: TenantContext) -> TransferRequestModel:
            request = self._locked(ctx, request_id, "reject")
            for item in request.items:
                self._apply_rejection(ctx, item, reason)
            self._recompute_totals(request)
            request.status = RequestStatus.REJECTED.value
            request.rejection_reason = reason
            request.rejected_at = self._clock.now()
            request.rejected_by_id = ctx.actor_id
            request.updated_by_id = ctx.actor_id
            logger.info(
                "transfer_request_rejected",
                extra={"request_id": str(request.id), "item_count": len(request.items)},
            )
            return request

        return self._in_unit(ctx, "reject", work, request_id)

    def reject_item(
        self,
        ctx: TenantContext,
        request_id: UUID,
        item_id: UUID,
        reason: str,
    ) -> TransferRequestInfo:
        """Reject one item that has not been issued yet."""
        reason = require_text(reason, "rejection_reason")

        def work(ctx: TenantContext) -> TransferRequestModel:
            request = self._locked(ctx, request_id, "reject_item")
            item = self._requests.item_of(request, item_id)
            if item.item_status in CLOSED_ITEM_STATUSES or item.issued_quantity > ZERO:
                raise ItemStateError(str(item.id), item.status, "reject")
            self._apply_rejection(ctx, item, reason)
            self._recompute_totals(request)
            request.updated_by_id = ctx.actor_id
            return request

        return self._in_unit(ctx, "reject_item", work, request_id)

    def _apply_rejection(self, ctx: TenantContext, item: TransferItemModel, reason: str) -> None:
        previous = item.approved_quantity
        item.approved_quantity = ZERO
        item.remaining_quantity = ZERO
        item.total_cost = ZERO
        item.equivalent_amount = ZERO
        item.rejection_reason = reason
        item.status = ItemStatus.REJECTED.value
        item.updated_by_id = ctx.actor_id
        check_item_invariants(item)

        self._change_log.record(
            item,
            ChangeKind.REJECTED,
            quantity=previous,
            previous_quantity=previous,
            new_quantity=ZERO,
            actor_id=ctx.actor_id,
            reason=reason,
        )

    # =========================================================================
    # Issue / receive
    # =========================================================================

    def issue(
        self,
        ctx: TenantContext,
        request_id: UUID,
        lines: Sequence[IssueLine] | Sequence[Mapping[str, Any]],
        notes: str | None = None,
    ) -> TransferRequestInfo:
        """Issue stock for the listed items (see ``IssueReceiveEngine.issue``)."""
        lines = self._parse_lines(lines, IssueLine)

        def work(ctx: TenantContext) -> TransferRequestModel:
            request = self._locked(ctx, request_id, "issue")
            self._fulfillment.issue(request, lines, ctx.actor_id, notes)
            return request

        return self._in_unit(ctx, "issue", work, request_id)

    def issue_all(
        self, ctx: TenantContext, request_id: UUID, notes: str | None = None
    ) -> TransferRequestInfo:
        """Issue everything remaining, all items in one unit."""

        def work(ctx: TenantContext) -> TransferRequestModel:
            request = self._locked(ctx, request_id, "issue")
            self._fulfillment.issue_all(request, ctx.actor_id, notes)
            return request

        return self._in_unit(ctx, "issue_all", work, request_id)

    def receive(
        self,
        ctx: TenantContext,
        request_id: UUID,
        item_id: UUID,
        received_quantity: object,
        notes: str | None = None,
    ) -> TransferRequestInfo:
        """Receive one item into the requesting store."""
        quantity = parse_positive_quantity(received_quantity, "received_quantity")

        def work(ctx: TenantContext) -> TransferRequestModel:
            request = self._locked(ctx, request_id, "receive")
            self._fulfillment.receive(request, item_id, quantity, ctx.actor_id, notes)
            return request

        return self._in_unit(ctx, "receive", work, request_id)

    def receive_all(
        self, ctx: TenantContext, request_id: UUID, notes: str | None = None
    ) -> TransferRequestInfo:
        """Receive every receivable item in full, in one unit."""

        def work(ctx: TenantContext) -> TransferRequestModel:
            request = self._locked(ctx, request_id, "receive")
            self._fulfillment.receive_all(request, ctx.actor_id, notes)
            return request

        return self._in_unit(ctx, "receive_all", work, request_id)

    def mark_fulfilled(
        self, ctx: TenantContext, request_id: UUID, notes: str | None = None
    ) -> TransferRequestInfo:
        """
        Mark an approved request fulfilled without issuing any stock.

        Only available with ``allow_zero_issue_fulfilled_receipt``.  No
        balance changes and no movement is recorded; every approved item
        becomes ``fulfilled`` with ``issued = 0`` and the requesting store
        may then receive up to the requested quantity.

        Raises:
            InvalidTransitionError: the request is not ``approved``, or the
                setting is off.
        """

        def work(ctx: TenantContext) -> TransferRequestModel:
            request = self._locked(ctx, request_id, "mark_fulfilled")
            if not self._config.allow_zero_issue_fulfilled_receipt:
                raise InvalidTransitionError(str(request.id), request.status, "mark_fulfilled")

            marked = 0
            for item in request.items:
                if item.item_status != ItemStatus.APPROVED or item.issued_quantity > ZERO:
                    continue
                item.status = ItemStatus.FULFILLED.value
                item.updated_by_id = ctx.actor_id
                check_item_invariants(item)
                self._change_log.record(
                    item,
                    ChangeKind.FULFILLED,
                    quantity=ZERO,
                    previous_quantity=item.issued_quantity,
                    new_quantity=item.issued_quantity,
                    actor_id=ctx.actor_id,
                    notes=notes,
                )
                marked += 1

            request.status = RequestStatus.FULFILLED.value
            request.fulfilled_at = self._clock.now()
            request.fulfilled_by_id = ctx.actor_id
            request.updated_by_id = ctx.actor_id
            logger.warning(
                "transfer_request_marked_fulfilled",
                extra={"request_id": str(request.id), "item_count": marked},
            )
            return request

        return self._in_unit(ctx, "mark_fulfilled", work, request_id)

    # =========================================================================
    # Cancellation
    # =========================================================================

    def cancel(
        self, ctx: TenantContext, request_id: UUID, reason: str | None = None
    ) -> TransferRequestInfo:
        """
        Requester-side cancel.

        ``partial_issued_cancelled`` if anything was issued, else
        ``cancelled``.  Items with nothing issued become ``cancelled``;
        issued items keep their counters and no stock moves.
        """

        def work(ctx: TenantContext) -> TransferRequestModel:
            request = self._locked(ctx, request_id, "cancel")
            previous_status = request.request_status
            new_status = derive_cancel_status(request.items)
            require_target(request.id, "cancel", previous_status, new_status)

            cancelled = cancel_unissued_items(request, self._change_log, ctx.actor_id, reason)
            request.status = new_status.value
            request.cancelled_at = self._clock.now()
            request.cancelled_by_id = ctx.actor_id
            request.cancellation_reason = reason
            request.updated_by_id = ctx.actor_id

            logger.info(
                "transfer_request_cancelled",
                extra={
                    "request_id": str(request.id),
                    "from_status": previous_status.value,
                    "to_status": new_status.value,
                    "cancelled_items": cancelled,
                },
            )
            return request

        return self._in_unit(ctx, "cancel", work, request_id)

    def cancel_receipt(
        self, ctx: TenantContext, request_id: UUID, reason: str | None = None
    ) -> TransferRequestInfo:
        """Receiver-side cancel; returns unreceived stock (see ``ReversalEngine``)."""

        def work(ctx: TenantContext) -> TransferRequestModel:
            request = self._locked(ctx, request_id, "cancel_receipt")
            self._reversal.cancel_receipt(request, ctx.actor_id, reason)
            return request

        return self._in_unit(ctx, "cancel_receipt", work, request_id)


def build_transfer_service(
    session: Session,
    config: TransferConfig | None = None,
    settings: InventorySettings | None = None,
    clock: Clock | None = None,
    observers: Iterable[TransferObserver] = (),
    registry: MovementTypeRegistry | None = None,
) -> TransferRequestService:
    """
    Wire a ``TransferRequestService`` for ``session``.

    The movement type registry is resolved once here unless one is passed
    in; a missing movement type fails at startup, not mid-transfer.  Without
    an explicit ``config`` the policy comes from the ``transfers`` section of
    ``settings`` (the active settings when omitted).

    Raises:
        MovementTypeNotRegisteredError: a required movement type is missing.
    """
    if config is None:
        settings = settings or get_active_settings()
        config = TransferConfig.from_dict(settings.transfers)
    registry = registry or MovementTypeRegistry.load(session)
    return TransferRequestService(
        session,
        registry,
        config=config,
        clock=clock,
        observers=observers,
    )
