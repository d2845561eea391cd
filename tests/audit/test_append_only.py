"""
Append-only audit tables.

Stock movements and quantity change entries are written once.  UPDATE and
DELETE through the ORM are rejected at flush.
"""

import pytest
from sqlalchemy import select

from inventory_kernel.db.immutability import append_only_models
from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.models.movement import StockMovement
from inventory_modules.transfers.orm import QuantityChangeModel
from tests.conftest import item_for


def test_registered_append_only_models(db_tables):
    names = set(append_only_models().values())
    assert {"StockMovement", "QuantityChange"} <= names


class TestQuantityChangeImmutability:

    def test_update_rejected(self, session, new_request, captured_logs):
        created = new_request({"widget": "10"})
        entry = session.execute(
            select(QuantityChangeModel).where(QuantityChangeModel.request_id == created.id)
        ).scalars().first()

        entry.quantity = entry.quantity + 1
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "QuantityChange"
        assert exc_info.value.code == "IMMUTABILITY_VIOLATION"
        assert any(r["message"] == "immutability_violation_blocked" for r in captured_logs())

    def test_delete_rejected(self, session, new_request):
        created = new_request({"widget": "10"})
        entry = session.execute(
            select(QuantityChangeModel).where(QuantityChangeModel.request_id == created.id)
        ).scalars().first()

        session.delete(entry)
        with pytest.raises(ImmutabilityViolationError, match="cannot be deleted"):
            session.flush()


class TestMovementImmutability:

    def test_update_rejected(self, ctx, session, world, stock, approved_request, transfer_service):
        stock(world.main_store, world.widget, "10")
        approved = approved_request({"widget": "5"})
        transfer_service.issue(
            ctx, approved.id,
            [{"item_id": str(item_for(approved, world, "widget").id), "issuing_quantity": "5"}],
        )
        movement = session.execute(
            select(StockMovement).where(StockMovement.request_id == approved.id)
        ).scalars().one()

        movement.notes = "edited"
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "StockMovement"
