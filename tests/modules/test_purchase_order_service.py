"""
Tests for PurchaseOrderService.

Validates:
- Creation: numbering from the purchase order counter, derived total,
  line snapshots, issuing company reference, validation
- Lifecycle: issue, cancel, forbidden transitions, listing by counter value
- Receipt: one ENTRY per line under a shared transaction id, status and
  ledger committed together, second receipt rejected without effects
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.domain.values import MovementType
from stock_kernel.exceptions import (
    InvalidStateError,
    IssuingCompanyNotFoundError,
    NonPositiveQuantityError,
    ProductNotFoundError,
    PurchaseOrderNotFoundError,
    SupplierNotFoundError,
    ValidationError,
    WarehouseNotFoundError,
)
from stock_modules.purchasing.config import PurchasingConfig
from stock_modules.purchasing.models import NewPurchaseOrderLine, PurchaseOrderStatus
from stock_modules.purchasing.service import PurchaseOrderService
from stock_modules.purchasing.workflows import PURCHASE_ORDER_WORKFLOW


@pytest.fixture
def products(make_product):
    return make_product("Widget", sku="W-1"), make_product("Gadget", sku="G-1")


@pytest.fixture
def issued_order(purchase_orders, supplier, warehouse_pair, products, issuing_company):
    central, _ = warehouse_pair
    widget, gadget = products
    order = purchase_orders.create_purchase_order(
        supplier.id,
        central.id,
        [
            NewPurchaseOrderLine(widget.id, 10, Decimal("2.50")),
            NewPurchaseOrderLine(gadget.id, 5, Decimal("4.00")),
        ],
        issuing_company_id=issuing_company.id,
        requester="Compras",
    )
    return purchase_orders.issue(order.id)


class TestCreatePurchaseOrder:

    def test_draft_with_number_and_total(
        self, purchase_orders, supplier, warehouse_pair, products, deterministic_clock
    ):
        central, _ = warehouse_pair
        widget, gadget = products

        order = purchase_orders.create_purchase_order(
            supplier.id,
            central.id,
            [
                NewPurchaseOrderLine(widget.id, 10, Decimal("2.50")),
                NewPurchaseOrderLine(gadget.id, 5, "4.00"),
            ],
            delivery_date=date(2024, 1, 15),
        )

        assert order.order_number == "OC-000001"
        assert order.status == PurchaseOrderStatus.DRAFT
        assert order.total == Decimal("45.00")
        assert order.issue_date == deterministic_clock.now().date()
        assert order.delivery_date == date(2024, 1, 15)
        assert [(line.line_number, line.sku, line.quantity) for line in order.lines] == [
            (1, "W-1", 10),
            (2, "G-1", 5),
        ]
        assert order.lines[0].total == Decimal("25.00")

    def test_numbers_increase(self, purchase_orders, supplier, warehouse_pair, products):
        central, _ = warehouse_pair
        line = [NewPurchaseOrderLine(products[0].id, 1, Decimal("1"))]
        numbers = [
            purchase_orders.create_purchase_order(supplier.id, central.id, line).order_number
            for _ in range(3)
        ]
        assert numbers == ["OC-000001", "OC-000002", "OC-000003"]

    def test_no_ledger_effect(self, app, purchase_orders, supplier, warehouse_pair, products):
        central, _ = warehouse_pair
        before = (app.ledger_hash(), app.movement_count())
        purchase_orders.create_purchase_order(
            supplier.id, central.id, [NewPurchaseOrderLine(products[0].id, 3, Decimal("1"))]
        )
        assert (app.ledger_hash(), app.movement_count()) == before

    def test_empty_order(self, purchase_orders, supplier, warehouse_pair):
        central, _ = warehouse_pair
        with pytest.raises(ValidationError):
            purchase_orders.create_purchase_order(supplier.id, central.id, [])

    def test_non_positive_line(self, purchase_orders, supplier, warehouse_pair, products):
        central, _ = warehouse_pair
        with pytest.raises(NonPositiveQuantityError):
            purchase_orders.create_purchase_order(
                supplier.id, central.id, [NewPurchaseOrderLine(products[0].id, 0, Decimal("1"))]
            )

    def test_negative_price(self, purchase_orders, supplier, warehouse_pair, products):
        central, _ = warehouse_pair
        with pytest.raises(ValidationError):
            purchase_orders.create_purchase_order(
                supplier.id, central.id, [NewPurchaseOrderLine(products[0].id, 1, Decimal("-1"))]
            )

    def test_duplicate_product(self, purchase_orders, supplier, warehouse_pair, products):
        central, _ = warehouse_pair
        widget = products[0]
        with pytest.raises(ValidationError):
            purchase_orders.create_purchase_order(
                supplier.id,
                central.id,
                [
                    NewPurchaseOrderLine(widget.id, 1, Decimal("1")),
                    NewPurchaseOrderLine(widget.id, 2, Decimal("1")),
                ],
            )

    def test_unknown_references(self, purchase_orders, supplier, warehouse_pair, products):
        central, _ = warehouse_pair
        line = [NewPurchaseOrderLine(products[0].id, 1, Decimal("1"))]
        with pytest.raises(SupplierNotFoundError):
            purchase_orders.create_purchase_order(uuid4(), central.id, line)
        with pytest.raises(WarehouseNotFoundError):
            purchase_orders.create_purchase_order(supplier.id, uuid4(), line)
        with pytest.raises(ProductNotFoundError):
            purchase_orders.create_purchase_order(
                supplier.id, central.id, [NewPurchaseOrderLine(uuid4(), 1, Decimal("1"))]
            )

    def test_rejected_order_does_not_consume_a_number(
        self, purchase_orders, supplier, warehouse_pair, products
    ):
        central, _ = warehouse_pair
        with pytest.raises(ProductNotFoundError):
            purchase_orders.create_purchase_order(
                supplier.id, central.id, [NewPurchaseOrderLine(uuid4(), 1, Decimal("1"))]
            )
        order = purchase_orders.create_purchase_order(
            supplier.id, central.id, [NewPurchaseOrderLine(products[0].id, 1, Decimal("1"))]
        )
        assert order.order_number == "OC-000001"

    def test_issuing_company_reference(self, issued_order, issuing_company):
        assert issued_order.issuing_company_id == issuing_company.id

    def test_unknown_issuing_company(self, purchase_orders, supplier, warehouse_pair, products):
        central, _ = warehouse_pair
        with pytest.raises(IssuingCompanyNotFoundError):
            purchase_orders.create_purchase_order(
                supplier.id,
                central.id,
                [NewPurchaseOrderLine(products[0].id, 1, Decimal("1"))],
                issuing_company_id=uuid4(),
            )
        assert purchase_orders.list_purchase_orders() == []


class TestLifecycle:

    def test_issue(self, issued_order):
        assert issued_order.status == PurchaseOrderStatus.ISSUED

    def test_cancel_issued(self, app, purchase_orders, issued_order):
        cancelled = purchase_orders.cancel(issued_order.id)
        assert cancelled.status == PurchaseOrderStatus.CANCELLED
        with pytest.raises(InvalidStateError):
            purchase_orders.receive(issued_order.id)
        assert app.movements(movement_type=MovementType.ENTRY) == []

    def test_cannot_issue_twice(self, purchase_orders, issued_order):
        with pytest.raises(InvalidStateError) as exc_info:
            purchase_orders.issue(issued_order.id)
        assert exc_info.value.current_state == "issued"

    def test_draft_cannot_be_received(self, purchase_orders, supplier, warehouse_pair, products):
        central, _ = warehouse_pair
        order = purchase_orders.create_purchase_order(
            supplier.id, central.id, [NewPurchaseOrderLine(products[0].id, 1, Decimal("1"))]
        )
        with pytest.raises(InvalidStateError):
            purchase_orders.receive(order.id)

    def test_missing(self, purchase_orders):
        with pytest.raises(PurchaseOrderNotFoundError):
            purchase_orders.get_purchase_order(uuid4())

    def test_list_by_status(self, purchase_orders, issued_order, supplier, warehouse_pair, products):
        central, _ = warehouse_pair
        draft = purchase_orders.create_purchase_order(
            supplier.id, central.id, [NewPurchaseOrderLine(products[0].id, 1, Decimal("1"))]
        )
        assert [o.order_number for o in purchase_orders.list_purchase_orders()] == [
            draft.order_number,
            issued_order.order_number,
        ]
        assert [o.id for o in purchase_orders.list_purchase_orders(PurchaseOrderStatus.ISSUED)] == [
            issued_order.id
        ]

    def test_list_orders_by_counter_across_digit_widths(
        self, app, supplier, warehouse_pair, products, deterministic_clock
    ):
        central, _ = warehouse_pair
        service = PurchaseOrderService(
            app.database,
            app.engine,
            clock=deterministic_clock,
            config=PurchasingConfig(order_number_start=9, order_number_width=1),
        )
        line = [NewPurchaseOrderLine(products[0].id, 1, Decimal("1"))]
        created = [
            service.create_purchase_order(supplier.id, central.id, line).order_number
            for _ in range(3)
        ]

        assert created == ["OC-9", "OC-10", "OC-11"]
        assert [o.order_number for o in service.list_purchase_orders()] == [
            "OC-11",
            "OC-10",
            "OC-9",
        ]


class TestReceive:

    def test_receipt_posts_entries(self, app, issued_order, warehouse_pair, products):
        central, _ = warehouse_pair
        widget, gadget = products

        receipt = app.receive_purchase_order(issued_order.id, actor="warehouse-clerk")

        assert app.quantity_of(widget.id, central.id) == 10
        assert app.quantity_of(gadget.id, central.id) == 5
        assert len(receipt.movements) == 2
        assert all(m.movement_type == MovementType.ENTRY for m in receipt.movements)
        assert all(m.user == "warehouse-clerk" for m in receipt.movements)
        assert all(
            m.details == f"Receipt of purchase order {issued_order.order_number}."
            for m in receipt.movements
        )
        transaction_id = receipt.movements[0].transaction_id
        assert transaction_id is not None
        assert receipt.movements[1].transaction_id == transaction_id

        order = receipt.purchase_order
        assert order.status == PurchaseOrderStatus.RECEIVED
        stock_transition = PURCHASE_ORDER_WORKFLOW.stock_transition_from(issued_order.status.value)
        assert order.status.value == stock_transition.to_state
        assert order.received_warehouse_id == central.id
        assert order.receipt_transaction_id == transaction_id
        assert order.received_at is not None

    def test_second_receipt_rejected(self, app, purchase_orders, issued_order, captured_logs):
        purchase_orders.receive(issued_order.id)
        before = (app.ledger_hash(), app.movement_count())

        with pytest.raises(InvalidStateError) as exc_info:
            purchase_orders.receive(issued_order.id)

        assert exc_info.value.entity_id == str(issued_order.id)
        assert (app.ledger_hash(), app.movement_count()) == before
        assert any(r["message"] == "purchase_order_receive_rejected" for r in captured_logs())

    def test_receive_into_other_warehouse(self, app, purchase_orders, issued_order, warehouse_pair, products):
        central, north = warehouse_pair
        receipt = purchase_orders.receive(issued_order.id, warehouse_id=north.id)
        assert app.quantity_of(products[0].id, north.id) == 10
        assert app.quantity_of(products[0].id, central.id) == 0
        assert receipt.purchase_order.received_warehouse_id == north.id
        assert receipt.purchase_order.destination_warehouse_id == central.id

    def test_unknown_override_warehouse_changes_nothing(
        self, app, purchase_orders, issued_order
    ):
        with pytest.raises(WarehouseNotFoundError):
            purchase_orders.receive(issued_order.id, warehouse_id=uuid4())
        assert purchase_orders.get_purchase_order(issued_order.id).status == PurchaseOrderStatus.ISSUED
        assert app.movements(movement_type=MovementType.ENTRY) == []

    def test_single_line_has_no_transaction_id(
        self, purchase_orders, supplier, warehouse_pair, products
    ):
        central, _ = warehouse_pair
        order = purchase_orders.create_purchase_order(
            supplier.id, central.id, [NewPurchaseOrderLine(products[0].id, 7, Decimal("1"))]
        )
        purchase_orders.issue(order.id)
        receipt = purchase_orders.receive(order.id)
        (movement,) = receipt.movements
        assert movement.transaction_id is None
        assert receipt.purchase_order.receipt_transaction_id is None

    def test_receipt_adds_to_existing_stock(
        self, app, purchase_orders, issued_order, warehouse_pair, products, seed_stock
    ):
        central, _ = warehouse_pair
        seed_stock(products[0].id, central.id, 3)
        receipt = purchase_orders.receive(issued_order.id)
        assert receipt.movements[0].new_quantity_in_warehouse == 13
        assert app.verify_ledger_consistency() == []
