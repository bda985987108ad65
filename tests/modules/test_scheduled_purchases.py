"""
Tests for ScheduledPurchaseService.

Validates:
- Scheduling: item snapshots, quantity and duplicate checks, date listing
- Conversion: a DRAFT order priced 0 and delivered on the scheduled date,
  with the schedule removed in the same transaction
- Rejected conversions keep the schedule and consume no order number
- A supplier referenced by a schedule cannot be deleted
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.exceptions import (
    InvalidOperationError,
    IssuingCompanyNotFoundError,
    NonPositiveQuantityError,
    ProductNotFoundError,
    ScheduledPurchaseNotFoundError,
    SupplierNotFoundError,
    ValidationError,
)
from stock_modules.purchasing.models import (
    NewPurchaseOrderLine,
    NewScheduledPurchaseItem,
    PurchaseOrderStatus,
)


@pytest.fixture
def schedules(app):
    return app.scheduled_purchases


@pytest.fixture
def products(make_product):
    return make_product("Widget", sku="W-1"), make_product("Gadget", sku="G-1")


@pytest.fixture
def schedule(schedules, supplier, products):
    widget, gadget = products
    return schedules.schedule_purchase(
        date(2024, 3, 1),
        "Monthly restock",
        [NewScheduledPurchaseItem(widget.id, 12), NewScheduledPurchaseItem(gadget.id, 4)],
        supplier_id=supplier.id,
        notes="Call before delivery",
        created_by="alice",
    )


class TestSchedule:

    def test_items_snapshot_catalog(self, schedule):
        assert schedule.title == "Monthly restock"
        assert [(i.sku, i.product_name, i.quantity) for i in schedule.items] == [
            ("W-1", "Widget", 12),
            ("G-1", "Gadget", 4),
        ]
        assert schedule.ready_for_order

    def test_rejects_bad_items(self, schedules, products):
        widget = products[0]
        with pytest.raises(ValidationError):
            schedules.schedule_purchase(date(2024, 3, 1), "Empty", [])
        with pytest.raises(NonPositiveQuantityError):
            schedules.schedule_purchase(
                date(2024, 3, 1), "Zero", [NewScheduledPurchaseItem(widget.id, 0)]
            )
        with pytest.raises(ValidationError):
            schedules.schedule_purchase(
                date(2024, 3, 1),
                "Twice",
                [NewScheduledPurchaseItem(widget.id, 1), NewScheduledPurchaseItem(widget.id, 2)],
            )
        with pytest.raises(ProductNotFoundError):
            schedules.schedule_purchase(
                date(2024, 3, 1), "Ghost", [NewScheduledPurchaseItem(uuid4(), 1)]
            )
        with pytest.raises(SupplierNotFoundError):
            schedules.schedule_purchase(
                date(2024, 3, 1),
                "Nobody",
                [NewScheduledPurchaseItem(widget.id, 1)],
                supplier_id=uuid4(),
            )
        assert schedules.list_scheduled_purchases() == []

    def test_list_by_date_range(self, schedules, products):
        item = [NewScheduledPurchaseItem(products[0].id, 1)]
        for day in (20, 5, 12):
            schedules.schedule_purchase(date(2024, 4, day), f"Day {day}", item)

        assert [s.title for s in schedules.list_scheduled_purchases()] == [
            "Day 5",
            "Day 12",
            "Day 20",
        ]
        assert [
            s.title
            for s in schedules.list_scheduled_purchases(
                since=date(2024, 4, 6), until=date(2024, 4, 20)
            )
        ] == ["Day 12", "Day 20"]

    def test_update_replaces_items_and_clears_supplier(self, schedules, schedule, products):
        widget, _ = products
        updated = schedules.update_scheduled_purchase(
            schedule.id,
            items=[NewScheduledPurchaseItem(widget.id, 30)],
            supplier_id=None,
        )
        assert [(i.sku, i.quantity) for i in updated.items] == [("W-1", 30)]
        assert updated.supplier_id is None
        assert not updated.ready_for_order
        assert updated.notes == "Call before delivery"

    def test_delete(self, schedules, schedule):
        schedules.delete_scheduled_purchase(schedule.id)
        with pytest.raises(ScheduledPurchaseNotFoundError):
            schedules.get_scheduled_purchase(schedule.id)


class TestGeneratePurchaseOrder:

    def test_converts_into_draft(
        self, app, schedules, schedule, warehouse_pair, issuing_company
    ):
        central, _ = warehouse_pair
        before = (app.ledger_hash(), app.movement_count())

        order = schedules.generate_purchase_order(
            schedule.id, central.id, issuing_company_id=issuing_company.id
        )

        assert order.status == PurchaseOrderStatus.DRAFT
        assert order.order_number == "OC-000001"
        assert order.supplier_id == schedule.supplier_id
        assert order.issuing_company_id == issuing_company.id
        assert order.delivery_date == date(2024, 3, 1)
        assert order.requester == "alice"
        assert order.total == Decimal("0")
        assert [(line.sku, line.quantity, line.price) for line in order.lines] == [
            ("W-1", 12, Decimal("0")),
            ("G-1", 4, Decimal("0")),
        ]
        assert schedules.list_scheduled_purchases() == []
        assert (app.ledger_hash(), app.movement_count()) == before

    def test_schedule_without_supplier_is_kept(
        self, schedules, products, warehouse_pair, captured_logs
    ):
        central, _ = warehouse_pair
        pending = schedules.schedule_purchase(
            date(2024, 3, 1), "Supplier to be chosen", [NewScheduledPurchaseItem(products[0].id, 1)]
        )

        with pytest.raises(ValidationError):
            schedules.generate_purchase_order(pending.id, central.id)

        assert schedules.get_scheduled_purchase(pending.id) == pending
        assert any(
            r["message"] == "scheduled_purchase_conversion_rejected" for r in captured_logs()
        )

    def test_rejected_conversion_consumes_no_number(
        self, schedules, schedule, purchase_orders, supplier, warehouse_pair, products
    ):
        central, _ = warehouse_pair
        with pytest.raises(IssuingCompanyNotFoundError):
            schedules.generate_purchase_order(schedule.id, central.id, issuing_company_id=uuid4())

        assert schedules.get_scheduled_purchase(schedule.id) == schedule
        order = purchase_orders.create_purchase_order(
            supplier.id, central.id, [NewPurchaseOrderLine(products[0].id, 1, Decimal("1"))]
        )
        assert order.order_number == "OC-000001"

    def test_missing(self, schedules, warehouse_pair):
        central, _ = warehouse_pair
        with pytest.raises(ScheduledPurchaseNotFoundError):
            schedules.generate_purchase_order(uuid4(), central.id)


class TestSupplierReference:

    def test_scheduled_supplier_cannot_be_deleted(self, catalog, schedules, schedule, supplier):
        with pytest.raises(InvalidOperationError):
            catalog.delete_supplier(supplier.id)

        schedules.delete_scheduled_purchase(schedule.id)
        catalog.delete_supplier(supplier.id)
        assert catalog.list_suppliers() == []
