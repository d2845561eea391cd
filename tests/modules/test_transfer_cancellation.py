"""
Requester cancel and receiver cancel-receipt, including the compensating
return of unreceived stock to the issuing store.
"""

from datetime import date
from decimal import Decimal

import pytest

from inventory_kernel.domain.movement_types import MovementDirection, MovementType
from inventory_kernel.exceptions import InvalidTransitionError, NoOpenPeriodError
from inventory_kernel.models.balance import ExpiryBatch, SerialNumber
from inventory_kernel.selectors.balance_selector import BalanceSelector
from inventory_kernel.services.period_service import PeriodService
from inventory_modules.transfers import ChangeKind, ItemStatus, RequestStatus, ReversalPolicy
from inventory_modules.transfers.config import TransferConfig
from tests.conftest import item_for


def issue(service, ctx, info, world, quantities):
    return service.issue(ctx, info.id, [
        {"item_id": str(item_for(info, world, key).id), "issuing_quantity": qty}
        for key, qty in quantities.items()
    ])


# =============================================================================
# Requester cancel
# =============================================================================


class TestCancel:

    def test_draft(self, ctx, world, new_request, transfer_service, transfer_selector):
        draft = new_request({"widget": "5"})
        cancelled = transfer_service.cancel(ctx, draft.id, reason="not needed")

        assert cancelled.status == RequestStatus.CANCELLED
        assert cancelled.cancellation_reason == "not needed"
        assert cancelled.cancelled_by_id == ctx.actor_id
        item = item_for(cancelled, world, "widget")
        assert item.status == ItemStatus.CANCELLED
        assert transfer_selector.item_history(ctx, item.id)[-1].kind == ChangeKind.CANCELLED

    def test_approved(self, ctx, world, approved_request, transfer_service):
        approved = approved_request({"widget": "5", "gadget": "2"})
        cancelled = transfer_service.cancel(ctx, approved.id)
        assert cancelled.status == RequestStatus.CANCELLED
        assert {i.status for i in cancelled.items} == {ItemStatus.CANCELLED}
        assert all(i.remaining_quantity == 0 for i in cancelled.items)

    def test_partial_issue_keeps_issued_counters(
        self, ctx, world, stock, balance_of, approved_request, transfer_service, transfer_selector
    ):
        stock(world.main_store, world.widget, "100")
        approved = approved_request({"widget": "10", "gadget": "4"})
        issue(transfer_service, ctx, approved, world, {"widget": "6"})

        cancelled = transfer_service.cancel(ctx, approved.id, reason="changed plan")

        assert cancelled.status == RequestStatus.PARTIAL_ISSUED_CANCELLED
        widget = item_for(cancelled, world, "widget")
        gadget = item_for(cancelled, world, "gadget")
        assert widget.status == ItemStatus.PARTIAL_ISSUED
        assert widget.issued_quantity == Decimal("6")
        assert gadget.status == ItemStatus.CANCELLED
        assert balance_of(world.main_store, world.widget) == Decimal("94")
        assert transfer_selector.return_movements(ctx, approved.reference_number) == []

    def test_not_after_fulfilment(self, ctx, world, stock, approved_request, transfer_service):
        stock(world.main_store, world.widget, "100")
        approved = approved_request({"widget": "10"})
        issue(transfer_service, ctx, approved, world, {"widget": "10"})
        with pytest.raises(InvalidTransitionError):
            transfer_service.cancel(ctx, approved.id)


# =============================================================================
# Receiver cancel
# =============================================================================


@pytest.fixture
def partly_received(ctx, world, stock, approved_request, transfer_service):
    """Issued 10, received 4: 6 still in transit."""

    def _build(service=None, product="widget"):
        service = service or transfer_service
        stock(world.main_store, world.products[product], "100")
        approved = approved_request({product: "10"}, service=service)
        issue(service, ctx, approved, world, {product: "10"})
        item = item_for(approved, world, product)
        return service.receive(ctx, approved.id, item.id, "4")

    return _build


class TestCancelReceipt:

    def test_returns_unreceived_portion(
        self, ctx, world, balance_of, partly_received, transfer_service, transfer_selector
    ):
        received = partly_received()
        assert received.status == RequestStatus.PARTIALLY_RECEIVED
        assert balance_of(world.main_store, world.widget) == Decimal("90")

        cancelled = transfer_service.cancel_receipt(ctx, received.id, reason="damaged truck")

        assert cancelled.status == RequestStatus.PARTIALLY_RECEIVED_CANCELLED
        assert balance_of(world.main_store, world.widget) == Decimal("96")
        assert balance_of(world.branch_store, world.widget) == Decimal("4")

        [movement] = transfer_selector.return_movements(ctx, received.reference_number)
        assert movement.reference_number == f"RET-{received.reference_number}"
        assert movement.movement_type == MovementType.STORE_RETURN
        assert movement.direction == MovementDirection.IN
        assert movement.store_id == world.main_store.id
        assert movement.quantity == Decimal("6")
        assert "receiver kept 4" in movement.notes

        item = item_for(cancelled, world, "widget")
        assert item.status == ItemStatus.ISSUED
        assert item.received_quantity == 0
        assert item.remaining_receiving_quantity == Decimal("10")

        last = transfer_selector.item_history(ctx, item.id)[-1]
        assert last.kind == ChangeKind.RETURNED
        assert last.quantity == Decimal("6")
        assert last.previous_quantity == Decimal("4")
        assert last.new_quantity == 0
        assert last.reason == "damaged truck"

    def test_close_policy(self, ctx, world, make_service, partly_received, balance_of):
        service = make_service(TransferConfig(reversal_policy=ReversalPolicy.CLOSE))
        received = partly_received(service)

        cancelled = service.cancel_receipt(ctx, received.id)

        item = item_for(cancelled, world, "widget")
        assert cancelled.status == RequestStatus.PARTIALLY_RECEIVED_CANCELLED
        assert item.status == ItemStatus.CLOSED_PARTIALLY_RECEIVED
        assert item.received_quantity == Decimal("4")
        assert item.remaining_receiving_quantity == 0
        assert balance_of(world.main_store, world.widget) == Decimal("96")

    def test_received_everything_issued(
        self, ctx, world, stock, balance_of, approved_request, transfer_service, transfer_selector
    ):
        # approved 30, issued 20, received 20: nothing in transit to return
        stock(world.main_store, world.widget, "100")
        approved = approved_request({"widget": "30"})
        issue(transfer_service, ctx, approved, world, {"widget": "20"})
        item_id = item_for(approved, world, "widget").id
        received = transfer_service.receive(ctx, approved.id, item_id, "20")
        assert received.status == RequestStatus.PARTIALLY_RECEIVED

        cancelled = transfer_service.cancel_receipt(ctx, approved.id)

        assert cancelled.status == RequestStatus.PARTIALLY_RECEIVED_CANCELLED
        assert transfer_selector.return_movements(ctx, approved.reference_number) == []
        last = transfer_selector.item_history(ctx, item_id)[-1]
        assert last.kind == ChangeKind.RETURNED
        assert last.quantity == 0
        item = item_for(cancelled, world, "widget")
        assert item.received_quantity == Decimal("20")
        assert item.remaining_receiving_quantity == 0
        assert item.status == ItemStatus.FULLY_RECEIVED
        assert balance_of(world.branch_store, world.widget) == Decimal("20")

    def test_unissued_sibling_is_cancelled_alongside_return(
        self, ctx, world, stock, balance_of, approved_request, transfer_service
    ):
        stock(world.main_store, world.widget, "100")
        approved = approved_request({"widget": "10", "gadget": "4"})
        issued = issue(transfer_service, ctx, approved, world, {"widget": "10"})
        assert issued.status == RequestStatus.PARTIAL_ISSUED
        widget_id = item_for(approved, world, "widget").id
        transfer_service.receive(ctx, approved.id, widget_id, "4")

        cancelled = transfer_service.cancel_receipt(ctx, approved.id)

        assert cancelled.status == RequestStatus.PARTIALLY_RECEIVED_CANCELLED
        gadget = item_for(cancelled, world, "gadget")
        assert gadget.status == ItemStatus.CANCELLED
        assert gadget.remaining_quantity == 0
        assert item_for(cancelled, world, "widget").status == ItemStatus.ISSUED
        assert balance_of(world.main_store, world.widget) == Decimal("96")

    def test_nothing_received(self, ctx, world, stock, balance_of, approved_request, transfer_service):
        stock(world.main_store, world.widget, "100")
        approved = approved_request({"widget": "10"})
        issue(transfer_service, ctx, approved, world, {"widget": "10"})

        cancelled = transfer_service.cancel_receipt(ctx, approved.id)

        assert cancelled.status == RequestStatus.CANCELLED
        assert balance_of(world.main_store, world.widget) == Decimal("90")
        assert balance_of(world.branch_store, world.widget) == 0

    def test_unissued_items_are_cancelled(self, ctx, world, approved_request, transfer_service):
        approved = approved_request({"widget": "10"})
        cancelled = transfer_service.cancel_receipt(ctx, approved.id)
        assert cancelled.status == RequestStatus.CANCELLED
        assert item_for(cancelled, world, "widget").status == ItemStatus.CANCELLED

    def test_after_requester_cancel(self, ctx, world, stock, approved_request, transfer_service):
        stock(world.main_store, world.widget, "100")
        approved = approved_request({"widget": "10"})
        issue(transfer_service, ctx, approved, world, {"widget": "4"})
        first = transfer_service.cancel(ctx, approved.id)
        assert first.status == RequestStatus.PARTIAL_ISSUED_CANCELLED

        second = transfer_service.cancel_receipt(ctx, approved.id)
        assert second.status == RequestStatus.CANCELLED

    def test_fully_received_is_final(self, ctx, world, stock, approved_request, transfer_service):
        stock(world.main_store, world.widget, "100")
        approved = approved_request({"widget": "10"})
        issue(transfer_service, ctx, approved, world, {"widget": "10"})
        transfer_service.receive(ctx, approved.id, item_for(approved, world, "widget").id, "10")

        with pytest.raises(InvalidTransitionError):
            transfer_service.cancel_receipt(ctx, approved.id)

    def test_requires_open_period(
        self, ctx, session, world, balance_of, partly_received, transfer_service, transfer_selector
    ):
        received = partly_received()
        PeriodService(session).close_period(world.tenant_id, "2024-01", world.actor_id)
        session.commit()

        with pytest.raises(NoOpenPeriodError):
            transfer_service.cancel_receipt(ctx, received.id)

        assert transfer_selector.get(ctx, received.id).status == RequestStatus.PARTIALLY_RECEIVED
        assert balance_of(world.main_store, world.widget) == Decimal("90")


class TestTrackedReturns:

    def test_expiry_batches_follow_the_return(self, ctx, session, world, partly_received, transfer_service):
        received = partly_received(product="dated")
        session.add(
            ExpiryBatch(
                tenant_id=world.tenant_id,
                store_id=world.branch_store.id,
                product_id=world.products["dated"].id,
                expiry_date=date(2024, 6, 30),
                batch_number="B1",
                quantity=Decimal("10"),
                created_by_id=world.actor_id,
            )
        )
        session.commit()

        transfer_service.cancel_receipt(ctx, received.id)

        selector = BalanceSelector(session)
        [at_main] = selector.expiry_batches(world.tenant_id, world.main_store.id, world.products["dated"].id)
        [at_branch] = selector.expiry_batches(world.tenant_id, world.branch_store.id, world.products["dated"].id)
        assert at_main.batch_number == "B1"
        assert at_main.quantity == Decimal("6")
        assert at_branch.quantity == Decimal("4")

    def test_serial_numbers_follow_the_return(self, ctx, session, world, partly_received, transfer_service):
        received = partly_received(product="serial")
        product_id = world.products["serial"].id
        for number in ("SN-001", "SN-002", "SN-003", "SN-004", "SN-005", "SN-006"):
            session.add(
                SerialNumber(
                    tenant_id=world.tenant_id,
                    store_id=world.branch_store.id,
                    product_id=product_id,
                    serial_number=number,
                    created_by_id=world.actor_id,
                )
            )
        session.commit()

        transfer_service.cancel_receipt(ctx, received.id)

        selector = BalanceSelector(session)
        at_main = selector.active_serials(world.tenant_id, world.main_store.id, product_id)
        at_branch = selector.active_serials(world.tenant_id, world.branch_store.id, product_id)
        assert len(at_main) == 6
        assert at_branch == []
