"""Read-side queries: lookups, filtered listings, stats and audit trails."""

from datetime import date
from decimal import Decimal

import pytest

from inventory_kernel.domain.context import TenantContext
from inventory_kernel.exceptions import InvalidFieldError, RequestNotFoundError, TenantContextError
from inventory_modules.transfers import (
    ChangeKind,
    Priority,
    RequestStatus,
    TransferConfig,
    TransferDirection,
    TransferRequestFilter,
    TransferSelector,
)
from tests.conftest import item_for


class TestGet:

    def test_returns_snapshot(self, ctx, new_request, transfer_selector):
        created = new_request({"widget": "5"})
        found = transfer_selector.get(ctx, created.id)
        assert found.reference_number == created.reference_number
        assert len(found.items) == 1

    def test_other_tenant_sees_nothing(self, new_request, transfer_selector, other_tenant_id, test_actor_id):
        created = new_request()
        other_ctx = TenantContext(tenant_id=other_tenant_id, actor_id=test_actor_id)
        with pytest.raises(RequestNotFoundError):
            transfer_selector.get(other_ctx, created.id)

    def test_requires_context(self, new_request, transfer_selector):
        created = new_request()
        with pytest.raises(TenantContextError):
            transfer_selector.get(None, created.id)


class TestList:

    @pytest.fixture
    def three_requests(self, ctx, new_request, transfer_service):
        draft = new_request({"widget": "1"}, priority="high")
        submitted = new_request({"widget": "2"})
        transfer_service.submit(ctx, submitted.id)
        pushed = new_request({"gadget": "3"}, direction="issue", priority="urgent")
        return draft, submitted, pushed

    def test_all(self, ctx, three_requests, transfer_selector):
        page = transfer_selector.list(ctx)
        assert page.total == 3
        assert {r.id for r in page.items} == {r.id for r in three_requests}

    def test_newest_first(self, ctx, three_requests, transfer_selector):
        page = transfer_selector.list(ctx)
        references = [r.reference_number for r in page.items]
        assert references == sorted(references, reverse=True)

    def test_by_status(self, ctx, three_requests, transfer_selector):
        page = transfer_selector.list(
            ctx, TransferRequestFilter(statuses=(RequestStatus.SUBMITTED,))
        )
        assert [r.id for r in page.items] == [three_requests[1].id]

    def test_excluding_status(self, ctx, three_requests, transfer_selector):
        page = transfer_selector.list(
            ctx, TransferRequestFilter(exclude_statuses=(RequestStatus.DRAFT,))
        )
        assert page.total == 1

    def test_by_priority_and_direction(self, ctx, three_requests, transfer_selector):
        urgent = transfer_selector.list(ctx, TransferRequestFilter(priorities=(Priority.URGENT,)))
        assert [r.id for r in urgent.items] == [three_requests[2].id]

        pushed = transfer_selector.list(ctx, TransferRequestFilter(direction=TransferDirection.ISSUE))
        assert [r.direction for r in pushed.items] == [TransferDirection.ISSUE]

    def test_by_store(self, ctx, world, three_requests, transfer_selector):
        by_requester = transfer_selector.list(
            ctx, TransferRequestFilter(requesting_store_ids=(world.branch_store.id,))
        )
        by_issuer = transfer_selector.list(
            ctx, TransferRequestFilter(issuing_store_ids=(world.branch_store.id,))
        )
        assert by_requester.total == 3
        assert by_issuer.total == 0

    def test_search_reference(self, ctx, three_requests, transfer_selector):
        page = transfer_selector.list(ctx, TransferRequestFilter(search="0002"))
        assert [r.reference_number for r in page.items] == ["SR-2024-01-01-0002"]

    def test_created_range(self, ctx, three_requests, transfer_selector):
        wide = transfer_selector.list(
            ctx, TransferRequestFilter(created_from=date(2000, 1, 1), created_to=date(2999, 12, 31))
        )
        past = transfer_selector.list(ctx, TransferRequestFilter(created_to=date(2000, 1, 1)))
        assert wide.total == 3
        assert past.total == 0

    def test_pagination(self, ctx, three_requests, transfer_selector):
        first = transfer_selector.list(ctx, page=1, limit=2)
        second = transfer_selector.list(ctx, page=2, limit=2)
        assert first.total == second.total == 3
        assert first.pages == 2
        assert len(first.items) == 2
        assert len(second.items) == 1
        assert not {r.id for r in first.items} & {r.id for r in second.items}

    def test_limit_capped(self, ctx, session, three_requests):
        selector = TransferSelector(session, TransferConfig(default_page_size=1, max_page_size=2))
        assert selector.list(ctx).limit == 1
        assert selector.list(ctx, limit=50).limit == 2

    @pytest.mark.parametrize("page, limit", [(0, 10), (1, -1)])
    def test_bad_paging(self, ctx, transfer_selector, page, limit):
        with pytest.raises(InvalidFieldError):
            transfer_selector.list(ctx, page=page, limit=limit)

    def test_tenant_scoped(self, three_requests, transfer_selector, other_tenant_id, test_actor_id):
        other_ctx = TenantContext(tenant_id=other_tenant_id, actor_id=test_actor_id)
        assert transfer_selector.list(other_ctx).total == 0


class TestStats:

    def test_counts_per_status(self, ctx, new_request, transfer_service, transfer_selector):
        new_request()
        new_request()
        submitted = new_request()
        transfer_service.submit(ctx, submitted.id)

        stats = transfer_selector.stats_summary(ctx)
        assert stats.total == 3
        assert stats.count(RequestStatus.DRAFT) == 2
        assert stats.count(RequestStatus.SUBMITTED) == 1
        assert stats.count(RequestStatus.APPROVED) == 0

        without_drafts = transfer_selector.stats_summary(
            ctx, exclude_statuses=(RequestStatus.DRAFT,)
        )
        assert without_drafts.total == 1

    def test_by_direction(self, ctx, new_request, transfer_selector):
        new_request()
        new_request(direction="issue")
        stats = transfer_selector.stats_summary(ctx, direction=TransferDirection.ISSUE)
        assert stats.total == 1


class TestAuditTrails:

    def test_request_history_covers_every_item(self, ctx, world, approved_request, transfer_selector):
        approved = approved_request({"widget": "5", "gadget": "3"}, {"widget": "5", "gadget": "0"})
        history = transfer_selector.request_history(ctx, approved.id)

        assert len(history) == 4
        by_item = {}
        for entry in history:
            by_item.setdefault(entry.item_id, []).append(entry.kind)
        assert by_item[item_for(approved, world, "widget").id] == [ChangeKind.REQUESTED, ChangeKind.APPROVED]
        assert by_item[item_for(approved, world, "gadget").id] == [ChangeKind.REQUESTED, ChangeKind.REJECTED]

    def test_history_is_tenant_scoped(self, world, approved_request, transfer_selector, other_tenant_id, test_actor_id):
        approved = approved_request({"widget": "5"})
        other_ctx = TenantContext(tenant_id=other_tenant_id, actor_id=test_actor_id)
        assert transfer_selector.request_history(other_ctx, approved.id) == []

    def test_balances(self, ctx, world, stock, approved_request, transfer_service, transfer_selector):
        stock(world.main_store, world.widget, "20", average_cost="2.50")
        approved = approved_request({"widget": "5"})
        transfer_service.issue_all(ctx, approved.id)
        transfer_service.receive_all(ctx, approved.id)

        balances = transfer_selector.current_balances(ctx, product_id=world.widget.id)
        assert {b.store_id: b.quantity for b in balances} == {
            world.main_store.id: Decimal("15"),
            world.branch_store.id: Decimal("5"),
        }
        assert transfer_selector.current_balances(ctx, store_id=world.branch_store.id)[0].quantity == Decimal("5")
        assert transfer_selector.balance(ctx, world.branch_store.id, world.gadget.id) is None

    def test_balances_as_of_follow_the_ledger(
        self, ctx, world, stock, approved_request, transfer_service, transfer_selector
    ):
        stock(world.main_store, world.widget, "100")
        approved = approved_request({"widget": "10"})
        item_id = item_for(approved, world, "widget").id
        transfer_service.issue_all(ctx, approved.id)
        transfer_service.receive(ctx, approved.id, item_id, "4")
        transfer_service.cancel_receipt(ctx, approved.id)

        positions = {
            p.store_id: p for p in transfer_selector.balances_as_of(ctx, date(2024, 1, 1))
        }
        main = positions[world.main_store.id]
        assert main.quantity_out == Decimal("10")
        assert main.quantity_in == Decimal("6")
        assert main.quantity == Decimal("-4")
        assert positions[world.branch_store.id].quantity == Decimal("4")
        assert positions[world.branch_store.id].quantity == (
            transfer_selector.balance(ctx, world.branch_store.id, world.widget.id).quantity
        )
        # opening stock has no movement behind it
        opening = Decimal("100")
        assert opening + main.quantity == (
            transfer_selector.balance(ctx, world.main_store.id, world.widget.id).quantity
        )

    def test_balances_as_of_cutoff_and_store(
        self, ctx, world, stock, approved_request, transfer_service, transfer_selector
    ):
        stock(world.main_store, world.widget, "20")
        approved = approved_request({"widget": "5"})
        transfer_service.issue_all(ctx, approved.id)

        assert transfer_selector.balances_as_of(ctx, date(2023, 12, 31)) == []
        [main_only] = transfer_selector.balances_as_of(
            ctx, date(2024, 1, 2), store_id=world.main_store.id
        )
        assert main_only.store_id == world.main_store.id
        assert main_only.quantity == Decimal("-5")
        assert main_only.as_of == date(2024, 1, 2)
