"""InventoryBalanceRepository: locked decrement / increment of store balances."""

from decimal import Decimal

import pytest

from inventory_kernel.exceptions import InsufficientStockError
from inventory_kernel.services.balance_repository import (
    InventoryBalanceRepository,
    weighted_average_cost,
)


@pytest.fixture
def balances(session, deterministic_clock):
    return InventoryBalanceRepository(session, deterministic_clock)


class TestDecrement:

    def test_reduces_by_exact_quantity(self, balances, world, stock):
        stock(world.main_store, world.widget, "20")
        info = balances.decrement(
            world.tenant_id, world.main_store.id, world.widget.id, Decimal("7.5"), world.actor_id
        )
        assert info.quantity == Decimal("12.5")

    def test_insufficient_stock(self, balances, world, stock, captured_logs):
        stock(world.main_store, world.widget, "10")
        with pytest.raises(InsufficientStockError) as exc_info:
            balances.decrement(
                world.tenant_id, world.main_store.id, world.widget.id, Decimal("15"), world.actor_id
            )
        assert exc_info.value.requested == Decimal("15")
        assert exc_info.value.available == Decimal("10")
        assert exc_info.value.code == "INSUFFICIENT_STOCK"
        assert any(r["message"] == "insufficient_stock" for r in captured_logs())

    def test_exact_balance_can_be_issued(self, balances, world, stock):
        stock(world.main_store, world.widget, "10")
        info = balances.decrement(
            world.tenant_id, world.main_store.id, world.widget.id, Decimal("10"), world.actor_id
        )
        assert info.quantity == 0

    def test_missing_record_reads_as_zero_available(self, balances, world):
        with pytest.raises(InsufficientStockError) as exc_info:
            balances.decrement(
                world.tenant_id, world.main_store.id, world.gadget.id, Decimal("15"), world.actor_id
            )
        assert exc_info.value.available == 0
        assert exc_info.value.requested == Decimal("15")
        assert "only 0 available" in str(exc_info.value)
        assert balances.lock(world.tenant_id, world.main_store.id, world.gadget.id) is None

    @pytest.mark.parametrize("quantity", ["0", "-1"])
    def test_non_positive_quantity(self, balances, world, quantity):
        with pytest.raises(ValueError):
            balances.decrement(
                world.tenant_id, world.main_store.id, world.widget.id, Decimal(quantity), world.actor_id
            )


class TestIncrement:

    def test_creates_missing_record_at_zero(self, balances, world, balance_of):
        assert balances.lock(world.tenant_id, world.branch_store.id, world.widget.id) is None
        info = balances.increment(
            world.tenant_id, world.branch_store.id, world.widget.id, Decimal("4"), world.actor_id
        )
        assert info.quantity == Decimal("4")
        assert balance_of(world.branch_store, world.widget) == Decimal("4")

    def test_adds_to_existing_record(self, balances, world, stock):
        stock(world.branch_store, world.widget, "6")
        info = balances.increment(
            world.tenant_id, world.branch_store.id, world.widget.id, Decimal("4"), world.actor_id
        )
        assert info.quantity == Decimal("10")

    def test_weighted_average_cost(self, balances, world, stock):
        stock(world.branch_store, world.widget, "10", average_cost="2")
        info = balances.increment(
            world.tenant_id, world.branch_store.id, world.widget.id, Decimal("10"), world.actor_id,
            unit_cost=Decimal("4"),
        )
        assert info.average_cost == Decimal("3")

    def test_lock_or_create_returns_same_row(self, balances, world):
        first = balances.lock_or_create(
            world.tenant_id, world.branch_store.id, world.gadget.id, world.actor_id
        )
        second = balances.lock_or_create(
            world.tenant_id, world.branch_store.id, world.gadget.id, world.actor_id
        )
        assert first.id == second.id


class TestOpenBalance:

    def test_duplicate_opening_balance_rejected(self, balances, world, stock):
        stock(world.main_store, world.widget, "5")
        with pytest.raises(ValueError, match="already exists"):
            balances.open_balance(
                world.tenant_id, world.main_store.id, world.widget.id, Decimal("1"), world.actor_id
            )

    def test_balances_are_tenant_scoped(self, balances, world, stock, other_tenant_id):
        stock(world.main_store, world.widget, "5")
        assert balances.lock(other_tenant_id, world.main_store.id, world.widget.id) is None


@pytest.mark.parametrize(
    "current_qty, current_cost, added_qty, added_cost, expected",
    [
        ("0", "0", "5", "3", "3"),
        ("10", "2", "10", "4", "3"),
        ("30", "1", "10", "5", "2"),
    ],
)
def test_weighted_average_cost_function(current_qty, current_cost, added_qty, added_cost, expected):
    result = weighted_average_cost(
        Decimal(current_qty), Decimal(current_cost), Decimal(added_qty), Decimal(added_cost)
    )
    assert result == Decimal(expected)
