"""
Tests that the movement log is append-only.

Any ORM update or delete of a MovementLogEntry (per instance or bulk) is
rejected with ImmutabilityViolationError and the transaction rolls back.
"""

import pytest
from sqlalchemy import delete, select, update

from stock_kernel.domain.values import MovementType
from stock_kernel.exceptions import ImmutabilityViolationError
from stock_kernel.models.movement import MovementLogEntry


@pytest.fixture
def logged_entry(app, warehouse_pair, make_product, seed_stock):
    central, _ = warehouse_pair
    product = make_product()
    return seed_stock(product.id, central.id, 10)


class TestMovementLogImmutability:

    def test_update_rejected(self, app, logged_entry, captured_logs):
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            with app.database.session_scope() as session:
                entry = session.get(MovementLogEntry, logged_entry.id)
                entry.quantity_change = 999

        assert exc_info.value.entity_id == str(logged_entry.id)
        with app.database.read_scope() as session:
            assert session.get(MovementLogEntry, logged_entry.id).quantity_change == 10
        assert any(r["message"] == "immutability_violation_blocked" for r in captured_logs())

    def test_delete_rejected(self, app, logged_entry):
        with pytest.raises(ImmutabilityViolationError):
            with app.database.session_scope() as session:
                session.delete(session.get(MovementLogEntry, logged_entry.id))

        assert app.movements(movement_type=MovementType.ENTRY)[0].id == logged_entry.id

    def test_bulk_update_rejected(self, app, logged_entry):
        with pytest.raises(ImmutabilityViolationError):
            with app.database.session_scope() as session:
                session.execute(update(MovementLogEntry).values(details="rewritten"))

        assert app.movements()[0].details == "initial stock"

    def test_bulk_delete_rejected(self, app, logged_entry):
        count = app.movement_count()
        with pytest.raises(ImmutabilityViolationError):
            with app.database.session_scope() as session:
                session.execute(delete(MovementLogEntry))
        assert app.movement_count() == count

    def test_reads_allowed(self, app, logged_entry):
        with app.database.read_scope() as session:
            rows = session.execute(select(MovementLogEntry)).scalars().all()
        assert len(rows) == 2
