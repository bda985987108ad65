"""
Tests for CatalogService.

Validates:
- Product creation writes a CREATION log entry (zero change, no warehouse)
- Bulk creation is all-or-nothing
- SKU uniqueness and field validation
- Product deletion leaves an audit entry per removed ledger row
- Log snapshots survive catalog edits
- Suppliers, users, warehouse access and authentication
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from stock_kernel.domain.values import NO_WAREHOUSE, MovementType, UserRole
from stock_kernel.exceptions import (
    AuthenticationError,
    DuplicateEmailError,
    DuplicateSkuError,
    InvalidOperationError,
    ProductNotFoundError,
    SupplierNotFoundError,
    UserNotFoundError,
    ValidationError,
    WarehouseNotFoundError,
)
from stock_kernel.services.catalog_service import (
    BULK_CREATED_DETAILS,
    CREATED_DETAILS,
    DELETED_DETAILS,
)


# =============================================================================
# Products
# =============================================================================


class TestCreateProduct:

    def test_creation_is_logged(self, app, catalog):
        product = catalog.create_product(
            "SKU-1", "Widget", category="Tools", price="4.50", actor="alice"
        )

        (entry,) = app.movements(product_id=product.id)
        assert entry.movement_type == MovementType.CREATION
        assert entry.quantity_change == 0
        assert entry.new_quantity_in_warehouse == 0
        assert entry.warehouse_id is None
        assert entry.warehouse_name == NO_WAREHOUSE
        assert entry.details == CREATED_DETAILS
        assert entry.user == "alice"
        assert entry.transaction_id is None

    def test_fields(self, catalog):
        product = catalog.create_product(
            "SKU-1",
            "Widget",
            category="Tools",
            price=4.5,
            low_stock_threshold=3,
            description="Blue widget",
            images=["a.png", "b.png"],
        )
        assert product.price == Decimal("4.5")
        assert product.low_stock_threshold == 3
        assert product.images == ("a.png", "b.png")
        assert catalog.get_product(product.id) == product

    def test_default_threshold_from_settings(self, catalog, settings):
        product = catalog.create_product("SKU-1", "Widget")
        assert product.low_stock_threshold == settings.alerts.default_low_stock_threshold

    def test_no_ledger_rows(self, app, catalog):
        product = catalog.create_product("SKU-1", "Widget")
        assert app.stock_positions(product_id=product.id) == []
        assert app.total_for_product(product.id) == 0

    def test_duplicate_sku(self, app, catalog):
        catalog.create_product("SKU-1", "Widget")
        count = app.movement_count()
        with pytest.raises(DuplicateSkuError):
            catalog.create_product("SKU-1", "Other")
        assert app.movement_count() == count

    @pytest.mark.parametrize(
        "kwargs, field",
        [
            ({"sku": " ", "name": "x"}, "sku"),
            ({"sku": "S", "name": ""}, "name"),
            ({"sku": "S", "name": "x", "price": -1}, "price"),
            ({"sku": "S", "name": "x", "price": "abc"}, "price"),
            ({"sku": "S", "name": "x", "low_stock_threshold": -1}, "low_stock_threshold"),
            ({"sku": "S", "name": "x", "images": ["1", "2", "3", "4", "5"]}, "images"),
        ],
    )
    def test_validation(self, catalog, kwargs, field):
        with pytest.raises(ValidationError) as exc_info:
            catalog.create_product(**kwargs)
        assert exc_info.value.field == field


class TestBulkCreateProducts:

    def test_bulk(self, app, catalog):
        records = catalog.bulk_create_products(
            [
                {"sku": "A-1", "name": "Alpha", "price": "1.00"},
                {"sku": "B-1", "name": "Beta", "category": "Parts"},
            ],
            actor="loader",
        )
        assert [r.sku for r in records] == ["A-1", "B-1"]
        entries = app.movements(movement_type=MovementType.CREATION)
        assert len(entries) == 2
        assert {e.details for e in entries} == {BULK_CREATED_DETAILS}
        assert {e.user for e in entries} == {"loader"}

    def test_duplicate_within_batch_rejects_all(self, catalog):
        with pytest.raises(DuplicateSkuError):
            catalog.bulk_create_products(
                [{"sku": "A-1", "name": "Alpha"}, {"sku": "A-1", "name": "Again"}]
            )
        assert catalog.list_products() == []

    def test_conflict_with_existing_rejects_all(self, catalog):
        catalog.create_product("B-1", "Beta")
        with pytest.raises(DuplicateSkuError):
            catalog.bulk_create_products(
                [{"sku": "A-1", "name": "Alpha"}, {"sku": "B-1", "name": "Beta"}]
            )
        assert [p.sku for p in catalog.list_products()] == ["B-1"]

    def test_unknown_field(self, catalog):
        with pytest.raises(ValidationError):
            catalog.bulk_create_products([{"sku": "A-1", "name": "Alpha", "colour": "red"}])


class TestUpdateProduct:

    def test_update_keeps_log_snapshot(self, app, catalog, warehouse_pair, seed_stock):
        central, _ = warehouse_pair
        product = catalog.create_product("SKU-1", "Widget")
        seed_stock(product.id, central.id, 5)

        updated = catalog.update_product(product.id, name="Widget v2", sku="SKU-2", price="9.99")

        assert updated.name == "Widget v2"
        assert updated.price == Decimal("9.99")
        history = app.movements(product_id=product.id)
        assert {e.product_name for e in history} == {"Widget"}
        assert {e.sku for e in history} == {"SKU-1"}
        assert app.stock_positions(product_id=product.id)[0].product_name == "Widget v2"

    def test_duplicate_sku_on_update(self, catalog):
        catalog.create_product("SKU-1", "Widget")
        other = catalog.create_product("SKU-2", "Gadget")
        with pytest.raises(DuplicateSkuError):
            catalog.update_product(other.id, sku="SKU-1")

    def test_same_sku_allowed(self, catalog):
        product = catalog.create_product("SKU-1", "Widget")
        assert catalog.update_product(product.id, sku="SKU-1").sku == "SKU-1"

    def test_missing(self, catalog):
        with pytest.raises(ProductNotFoundError):
            catalog.update_product(uuid4(), name="x")

    def test_unknown_field(self, catalog):
        product = catalog.create_product("SKU-1", "Widget")
        with pytest.raises(ValidationError):
            catalog.update_product(product.id, stock=10)


class TestDeleteProduct:

    def test_delete_with_stock_logs_each_row(self, app, catalog, warehouse_pair, seed_stock):
        central, north = warehouse_pair
        product = catalog.create_product("SKU-1", "Widget")
        seed_stock(product.id, central.id, 7)
        seed_stock(product.id, north.id, 3)

        entries = catalog.delete_product(product.id, actor="admin")

        assert len(entries) == 2
        assert {(e.warehouse_id, e.quantity_change) for e in entries} == {
            (central.id, -7),
            (north.id, -3),
        }
        assert all(e.movement_type == MovementType.ADJUSTMENT for e in entries)
        assert all(e.new_quantity_in_warehouse == 0 for e in entries)
        assert all(e.details == DELETED_DETAILS for e in entries)
        assert entries[0].transaction_id is not None
        assert entries[0].transaction_id == entries[1].transaction_id

        assert app.stock_positions(product_id=product.id) == []
        assert catalog.find_product_by_sku("SKU-1") is None
        with pytest.raises(ProductNotFoundError):
            catalog.get_product(product.id)
        assert app.verify_ledger_consistency() == []

    def test_delete_without_stock(self, app, catalog):
        product = catalog.create_product("SKU-1", "Widget")

        (entry,) = catalog.delete_product(product.id)

        assert entry.quantity_change == 0
        assert entry.warehouse_name == NO_WAREHOUSE
        assert entry.transaction_id is None

    def test_history_survives_deletion(self, app, catalog, warehouse_pair, seed_stock):
        central, _ = warehouse_pair
        product = catalog.create_product("SKU-1", "Widget")
        seed_stock(product.id, central.id, 4)
        catalog.delete_product(product.id)

        history = app.movements(product_id=product.id)
        assert [e.movement_type for e in history] == [
            MovementType.ADJUSTMENT,
            MovementType.ENTRY,
            MovementType.CREATION,
        ]
        assert {e.product_name for e in history} == {"Widget"}

    def test_sku_reusable_after_delete(self, catalog):
        product = catalog.create_product("SKU-1", "Widget")
        catalog.delete_product(product.id)
        assert catalog.create_product("SKU-1", "New Widget").name == "New Widget"

    def test_missing(self, catalog):
        with pytest.raises(ProductNotFoundError):
            catalog.delete_product(uuid4())


class TestProductQueries:

    def test_list_by_category(self, catalog):
        catalog.create_product("B", "Beta", category="Parts")
        catalog.create_product("A", "Alpha", category="Tools")
        catalog.create_product("C", "Gamma", category="Tools")
        assert [p.sku for p in catalog.list_products()] == ["A", "B", "C"]
        assert [p.sku for p in catalog.list_products(category="Tools")] == ["A", "C"]

    def test_find_by_sku(self, catalog):
        product = catalog.create_product("A", "Alpha")
        assert catalog.find_product_by_sku("A") == product
        assert catalog.find_product_by_sku("missing") is None


# =============================================================================
# Warehouses and suppliers
# =============================================================================


class TestWarehouses:

    def test_create_and_list(self, catalog):
        north = catalog.create_warehouse("North", "Trujillo")
        catalog.create_warehouse("Central", "Lima")
        assert catalog.get_warehouse(north.id) == north
        assert [w.name for w in catalog.list_warehouses()] == ["Central", "North"]

    def test_name_required(self, catalog):
        with pytest.raises(ValidationError):
            catalog.create_warehouse("")

    def test_missing(self, catalog):
        with pytest.raises(WarehouseNotFoundError):
            catalog.get_warehouse(uuid4())


class TestSuppliers:

    def test_update(self, catalog, supplier):
        updated = catalog.update_supplier(supplier.id, contact_phone="+51 1 555 0199")
        assert updated.contact_phone == "+51 1 555 0199"
        assert updated.name == supplier.name

    def test_delete_unreferenced(self, catalog, supplier):
        catalog.delete_supplier(supplier.id)
        with pytest.raises(SupplierNotFoundError):
            catalog.get_supplier(supplier.id)

    def test_delete_referenced_by_purchase_order(
        self, catalog, purchase_orders, supplier, warehouse_pair
    ):
        from stock_modules.purchasing.models import NewPurchaseOrderLine

        central, _ = warehouse_pair
        product = catalog.create_product("SKU-1", "Widget")
        purchase_orders.create_purchase_order(
            supplier.id, central.id, [NewPurchaseOrderLine(product.id, 5, Decimal("1"))]
        )

        with pytest.raises(InvalidOperationError):
            catalog.delete_supplier(supplier.id)
        assert catalog.get_supplier(supplier.id) == supplier

    def test_extra_reference_check(self, catalog, supplier):
        catalog.add_supplier_reference_check(lambda session, supplier_id: True)
        with pytest.raises(InvalidOperationError):
            catalog.delete_supplier(supplier.id)


# =============================================================================
# Users
# =============================================================================


class TestUsers:

    def test_create_normalizes_email(self, catalog, warehouse_pair):
        central, _ = warehouse_pair
        user = catalog.create_user(
            "Ana", " Ana@Example.COM ", UserRole.EMPLOYEE, "pw", warehouse_ids=[central.id]
        )
        assert user.email == "ana@example.com"
        assert user.warehouse_ids == (central.id,)

    def test_duplicate_email(self, catalog):
        catalog.create_user("Ana", "ana@example.com", UserRole.EMPLOYEE, "pw")
        with pytest.raises(DuplicateEmailError):
            catalog.create_user("Other", "ANA@example.com", UserRole.MANAGER, "pw")

    def test_unknown_warehouse_access(self, catalog):
        with pytest.raises(WarehouseNotFoundError):
            catalog.create_user("Ana", "ana@example.com", UserRole.EMPLOYEE, "pw", [uuid4()])
        assert catalog.list_users() == []

    def test_permitted_warehouses(self, catalog, warehouse_pair):
        central, north = warehouse_pair
        employee = catalog.create_user(
            "Ana", "ana@example.com", UserRole.EMPLOYEE, "pw", [north.id]
        )
        admin = catalog.create_user("Root", "root@example.com", UserRole.ADMINISTRATOR, "pw")

        assert [w.id for w in catalog.permitted_warehouses(employee.id)] == [north.id]
        assert {w.id for w in catalog.permitted_warehouses(admin.id)} == {central.id, north.id}

    def test_update_replaces_access(self, catalog, warehouse_pair):
        central, north = warehouse_pair
        user = catalog.create_user("Ana", "ana@example.com", UserRole.EMPLOYEE, "pw", [north.id])
        updated = catalog.update_user(user.id, role=UserRole.MANAGER, warehouse_ids=[central.id])
        assert updated.role == UserRole.MANAGER
        assert updated.warehouse_ids == (central.id,)

    def test_authenticate(self, catalog, captured_logs):
        user = catalog.create_user("Ana", "ana@example.com", UserRole.EMPLOYEE, "s3cret")

        assert catalog.authenticate("ANA@example.com", "s3cret").id == user.id
        with pytest.raises(AuthenticationError):
            catalog.authenticate("ana@example.com", "wrong")
        with pytest.raises(AuthenticationError):
            catalog.authenticate("nobody@example.com", "s3cret")

        failures = [r for r in captured_logs() if r["message"] == "authentication_failed"]
        assert len(failures) == 2

    def test_password_change(self, catalog):
        user = catalog.create_user("Ana", "ana@example.com", UserRole.EMPLOYEE, "old")
        catalog.update_user(user.id, password="new")
        with pytest.raises(AuthenticationError):
            catalog.authenticate("ana@example.com", "old")
        assert catalog.authenticate("ana@example.com", "new").id == user.id

    def test_cannot_delete_self(self, catalog):
        user = catalog.create_user("Ana", "ana@example.com", UserRole.ADMINISTRATOR, "pw")
        with pytest.raises(InvalidOperationError):
            catalog.delete_user(user.id, acting_user_id=user.id)
        assert catalog.get_user(user.id) == user

    def test_delete(self, catalog, warehouse_pair):
        central, _ = warehouse_pair
        admin = catalog.create_user("Root", "root@example.com", UserRole.ADMINISTRATOR, "pw")
        user = catalog.create_user("Ana", "ana@example.com", UserRole.EMPLOYEE, "pw", [central.id])
        catalog.delete_user(user.id, acting_user_id=admin.id)
        with pytest.raises(UserNotFoundError):
            catalog.get_user(user.id)
