"""Approval and rejection of submitted requests."""

from decimal import Decimal

import pytest

from inventory_kernel.exceptions import (
    InvalidFieldError,
    InvalidTransitionError,
    ItemNotFoundError,
    ItemStateError,
    MissingFieldError,
    QuantityExceedsLimitError,
)
from inventory_modules.transfers import ApprovalLine, ChangeKind, ItemStatus, RequestStatus
from tests.conftest import item_for


@pytest.fixture
def submitted(ctx, new_request, transfer_service):
    def _submitted(lines: dict):
        created = new_request(lines)
        return transfer_service.submit(ctx, created.id)

    return _submitted


def _line(info, world, key, quantity):
    return {"item_id": str(item_for(info, world, key).id), "approved_quantity": quantity}


class TestApprove:

    def test_partial_approval(self, submitted, transfer_service, transfer_selector, ctx, world):
        request = submitted({"widget": "50"})
        approved = transfer_service.approve(
            ctx, request.id, [_line(request, world, "widget", "30")], note="only 30 spare"
        )

        item = item_for(approved, world, "widget")
        assert approved.status == RequestStatus.APPROVED
        assert approved.approval_notes == "only 30 spare"
        assert approved.approved_by_id == ctx.actor_id
        assert item.status == ItemStatus.APPROVED
        assert item.approved_quantity == Decimal("30")
        assert item.remaining_quantity == Decimal("30")
        assert item.remaining_receiving_quantity == 0
        assert item.total_cost == Decimal("75.00")
        assert approved.total_value == Decimal("75.00")

        history = transfer_selector.item_history(ctx, item.id)
        assert [h.kind for h in history] == [ChangeKind.REQUESTED, ChangeKind.APPROVED]
        assert history[-1].quantity == Decimal("30")
        assert history[-1].reason == "only 30 spare"

    def test_zero_approval_rejects_item(self, submitted, transfer_service, transfer_selector, ctx, world):
        request = submitted({"widget": "50", "gadget": "5"})
        approved = transfer_service.approve(ctx, request.id, [
            _line(request, world, "widget", "50"),
            _line(request, world, "gadget", "0"),
        ])

        gadget = item_for(approved, world, "gadget")
        assert approved.status == RequestStatus.APPROVED
        assert gadget.status == ItemStatus.REJECTED
        assert gadget.remaining_quantity == 0
        assert transfer_selector.item_history(ctx, gadget.id)[-1].kind == ChangeKind.REJECTED

    def test_accepts_built_lines(self, submitted, transfer_service, ctx, world):
        request = submitted({"widget": "5"})
        approved = transfer_service.approve(
            ctx, request.id,
            [ApprovalLine(item_id=item_for(request, world, "widget").id, approved_quantity=Decimal("5"))],
        )
        assert approved.status == RequestStatus.APPROVED

    def test_above_requested(self, submitted, transfer_service, ctx, world):
        request = submitted({"widget": "50"})
        with pytest.raises(QuantityExceedsLimitError) as exc_info:
            transfer_service.approve(ctx, request.id, [_line(request, world, "widget", "51")])
        assert exc_info.value.limit == Decimal("50")
        assert exc_info.value.limit_name == "requested"

    def test_every_pending_item_needs_a_line(self, submitted, transfer_service, transfer_selector, ctx, world):
        request = submitted({"widget": "50", "gadget": "5"})
        with pytest.raises(InvalidFieldError, match="every pending item"):
            transfer_service.approve(ctx, request.id, [_line(request, world, "widget", "10")])

        unchanged = transfer_selector.get(ctx, request.id)
        assert unchanged.status == RequestStatus.SUBMITTED
        assert item_for(unchanged, world, "widget").approved_quantity == 0

    def test_all_or_nothing(self, submitted, transfer_service, transfer_selector, ctx, world):
        request = submitted({"widget": "50", "gadget": "5"})
        with pytest.raises(QuantityExceedsLimitError):
            transfer_service.approve(ctx, request.id, [
                _line(request, world, "widget", "10"),
                _line(request, world, "gadget", "6"),
            ])
        after = transfer_selector.get(ctx, request.id)
        assert all(i.status == ItemStatus.PENDING for i in after.items)
        assert len(transfer_selector.request_history(ctx, request.id)) == 2

    def test_duplicate_line(self, submitted, transfer_service, ctx, world):
        request = submitted({"widget": "50"})
        line = _line(request, world, "widget", "10")
        with pytest.raises(InvalidFieldError, match="more than once"):
            transfer_service.approve(ctx, request.id, [line, dict(line)])

    def test_empty_lines(self, submitted, transfer_service, ctx):
        request = submitted({"widget": "50"})
        with pytest.raises(MissingFieldError):
            transfer_service.approve(ctx, request.id, [])

    def test_foreign_item(self, submitted, transfer_service, ctx, world):
        first = submitted({"widget": "50"})
        second = submitted({"widget": "50"})
        with pytest.raises(ItemNotFoundError):
            transfer_service.approve(ctx, first.id, [_line(second, world, "widget", "5")])

    def test_only_submitted(self, new_request, transfer_service, ctx, world):
        draft = new_request({"widget": "50"})
        with pytest.raises(InvalidTransitionError):
            transfer_service.approve(ctx, draft.id, [_line(draft, world, "widget", "5")])


class TestApproveAllAndPerItem:

    def test_approve_all(self, submitted, transfer_service, ctx):
        request = submitted({"widget": "50", "gadget": "5"})
        approved = transfer_service.approve_all(ctx, request.id)
        assert approved.status == RequestStatus.APPROVED
        assert all(i.approved_quantity == i.requested_quantity for i in approved.items)

    def test_approve_item_keeps_request_submitted(self, submitted, transfer_service, ctx, world):
        request = submitted({"widget": "50", "gadget": "5"})
        after = transfer_service.approve_item(ctx, request.id, item_for(request, world, "widget").id, "20")

        assert after.status == RequestStatus.SUBMITTED
        assert item_for(after, world, "widget").status == ItemStatus.APPROVED
        assert item_for(after, world, "gadget").status == ItemStatus.PENDING

        # Items approved one by one may be omitted from the final approval
        approved = transfer_service.approve(ctx, request.id, [_line(request, world, "gadget", "5")])
        assert approved.status == RequestStatus.APPROVED
        assert item_for(approved, world, "widget").approved_quantity == Decimal("20")

    def test_approve_item_twice(self, submitted, transfer_service, ctx, world):
        request = submitted({"widget": "50"})
        item_id = item_for(request, world, "widget").id
        transfer_service.approve_item(ctx, request.id, item_id, "20")
        with pytest.raises(ItemStateError):
            transfer_service.approve_item(ctx, request.id, item_id, "25")


class TestReject:

    def test_reject_request(self, submitted, transfer_service, transfer_selector, ctx):
        request = submitted({"widget": "50", "gadget": "5"})
        rejected = transfer_service.reject(ctx, request.id, "  not needed  ")

        assert rejected.status == RequestStatus.REJECTED
        assert rejected.rejection_reason == "not needed"
        assert rejected.rejected_by_id == ctx.actor_id
        assert all(i.status == ItemStatus.REJECTED for i in rejected.items)
        assert rejected.total_value == 0
        kinds = [h.kind for h in transfer_selector.request_history(ctx, request.id)]
        assert kinds.count(ChangeKind.REJECTED) == 2

    def test_reason_required(self, submitted, transfer_service, ctx):
        request = submitted({"widget": "50"})
        with pytest.raises(MissingFieldError):
            transfer_service.reject(ctx, request.id, " ")

    def test_rejected_is_terminal(self, submitted, transfer_service, ctx):
        request = submitted({"widget": "50"})
        transfer_service.reject(ctx, request.id, "no")
        for action in (transfer_service.approve_all, transfer_service.cancel, transfer_service.cancel_receipt):
            with pytest.raises(InvalidTransitionError):
                action(ctx, request.id)

    def test_reject_item_after_approval(self, approved_request, transfer_service, ctx, world):
        approved = approved_request({"widget": "50", "gadget": "5"})
        after = transfer_service.reject_item(
            ctx, approved.id, item_for(approved, world, "gadget").id, "discontinued"
        )
        gadget = item_for(after, world, "gadget")
        assert after.status == RequestStatus.APPROVED
        assert gadget.status == ItemStatus.REJECTED
        assert gadget.rejection_reason == "discontinued"
        assert gadget.approved_quantity == 0

    def test_reject_issued_item(self, approved_request, transfer_service, ctx, world, stock):
        stock(world.main_store, world.widget, "100")
        approved = approved_request({"widget": "50", "gadget": "5"})
        widget_id = item_for(approved, world, "widget").id
        transfer_service.issue(ctx, approved.id, [{"item_id": str(widget_id), "issuing_quantity": "10"}])
        with pytest.raises(InvalidTransitionError):
            transfer_service.reject_item(ctx, approved.id, widget_id, "too late")
