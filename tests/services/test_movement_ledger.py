"""MovementLedgerRepository and MovementTypeRegistry."""

from decimal import Decimal

import pytest
from sqlalchemy import delete

from inventory_kernel.domain.movement_types import MovementDirection, MovementType
from inventory_kernel.exceptions import MovementTypeNotRegisteredError
from inventory_kernel.models.movement import MovementTypeRecord
from inventory_kernel.selectors.balance_selector import BalanceSelector
from inventory_kernel.services.movement_ledger import MovementLedgerRepository, MovementSpec
from inventory_kernel.services.movement_type_registry import MovementTypeRegistry


def _spec(world, **overrides) -> MovementSpec:
    fields = dict(
        tenant_id=world.tenant_id,
        movement_type=MovementType.STORE_ISSUE,
        store_id=world.main_store.id,
        product_id=world.widget.id,
        quantity=Decimal("4"),
        reference_number="SR-2024-01-01-0001",
        reference_type="STORE_REQUEST",
        period_id=world.period.id,
        unit_cost=Decimal("2.50"),
        currency_code="KES",
        exchange_rate=Decimal("1.5"),
        actor_id=world.actor_id,
    )
    fields.update(overrides)
    return MovementSpec(**fields)


class TestMovementLedger:

    @pytest.fixture
    def ledger(self, session, world, deterministic_clock):
        return MovementLedgerRepository(
            session, MovementTypeRegistry.load(session), deterministic_clock
        )

    def test_issue_is_outbound(self, ledger, world):
        movement = ledger.record(_spec(world))
        assert movement.direction == MovementDirection.OUT
        assert movement.quantity_out == Decimal("4")
        assert movement.quantity_in == 0
        assert movement.quantity == Decimal("4")

    def test_receipt_and_return_are_inbound(self, ledger, world):
        receipt = ledger.record(_spec(world, movement_type=MovementType.STORE_RECEIPT))
        returned = ledger.record(
            _spec(world, movement_type=MovementType.STORE_RETURN, reference_number="RET-SR-2024-01-01-0001")
        )
        assert receipt.direction == MovementDirection.IN
        assert returned.direction == MovementDirection.IN
        assert returned.quantity_in == Decimal("4")

    def test_equivalent_amount(self, ledger, world):
        movement = ledger.record(_spec(world))
        assert movement.equivalent_amount == Decimal("15.00")

    def test_movement_date_from_clock(self, ledger, world, deterministic_clock):
        movement = ledger.record(_spec(world))
        assert movement.movement_date.replace(tzinfo=None) == deterministic_clock.now().replace(tzinfo=None)

    def test_quantity_must_be_positive(self, world):
        with pytest.raises(ValueError, match="positive"):
            _spec(world, quantity=Decimal("0"))

    def test_selectable_by_reference(self, ledger, session, world):
        ledger.record(_spec(world))
        ledger.record(_spec(world, reference_number="SR-2024-01-01-0002"))
        found = BalanceSelector(session).movements_for_reference(world.tenant_id, "SR-2024-01-01-0001")
        assert len(found) == 1


class TestMovementTypeRegistry:

    def test_load_resolves_every_type(self, session, world):
        registry = MovementTypeRegistry.load(session)
        for movement_type in MovementType:
            assert movement_type in registry
            assert registry.id_for(movement_type) is not None

    def test_ensure_defaults_is_idempotent(self, session, world):
        MovementTypeRegistry.ensure_defaults(session, world.actor_id)
        rows = session.query(MovementTypeRecord).all()
        assert sorted(r.name for r in rows) == sorted(t.value for t in MovementType)

    def test_missing_type_fails_load(self, session, world):
        session.execute(
            delete(MovementTypeRecord).where(MovementTypeRecord.name == MovementType.STORE_RETURN.value)
        )
        with pytest.raises(MovementTypeNotRegisteredError, match="Store Return"):
            MovementTypeRegistry.load(session)

    def test_constructor_requires_all_types(self):
        with pytest.raises(MovementTypeNotRegisteredError):
            MovementTypeRegistry({})
