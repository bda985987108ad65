"""
CatalogService -- reference data for products, warehouses, suppliers, users.

Responsibility:
    Thin CRUD over the catalogs, plus the two catalog operations that reach
    the movement log:
      - product creation appends a zero-effect CREATION entry;
      - product deletion removes the product's ledger rows through a
        MovementEngine unit of work and logs one ADJUSTMENT per row
        removed, so the ledger never changes without a log entry.

Architecture position:
    Kernel > Services.  Owns its transaction scopes (one per call).

Invariants enforced:
    - SKU and user email are unique.
    - price >= 0, low_stock_threshold >= 0, at most MAX_PRODUCT_IMAGES images.
    - A supplier still referenced elsewhere (purchase orders) is not deleted.
    - A user cannot delete their own account.

Failure modes:
    NotFoundError subclasses, ValidationError (DuplicateSkuError,
    DuplicateEmailError), InvalidOperationError, AuthenticationError.
"""

from collections.abc import Callable, Iterable, Mapping, Sequence
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from stock_kernel.db.engine import Database
from stock_kernel.domain.dtos import (
    MovementRecord,
    ProductRecord,
    SupplierRecord,
    UserRecord,
    WarehouseRecord,
)
from stock_kernel.domain.values import LedgerKey, MovementType, UserRole
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
from stock_kernel.logging_config import get_logger
from stock_kernel.models.catalog import (
    MAX_PRODUCT_IMAGES,
    Product,
    Supplier,
    User,
    UserWarehouseAccess,
    Warehouse,
)
from stock_kernel.services.movement_engine import MovementEngine
from stock_kernel.services.movement_log import MovementLog
from stock_kernel.utils.hashing import hash_password, verify_password

logger = get_logger("services.catalog")

CREATED_DETAILS = "Product added to the system."
BULK_CREATED_DETAILS = "Product added by bulk load."
DELETED_DETAILS = "Product deleted."

_PRODUCT_FIELDS = frozenset(
    {"sku", "name", "category", "price", "low_stock_threshold", "description", "images"}
)
_SUPPLIER_FIELDS = frozenset(
    {"name", "tax_id", "address", "contact_person", "contact_email", "contact_phone"}
)

# (session, supplier_id) -> True when the supplier is still referenced
SupplierReferenceCheck = Callable[[Session, UUID], bool]


def _require_text(field: str, value: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(field, "must not be empty")
    return value


def _to_price(value: Any) -> Decimal:
    try:
        price = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as exc:
        raise ValidationError("price", f"not a number: {value!r}") from exc
    if price < 0:
        raise ValidationError("price", "must be >= 0")
    return price


def _to_threshold(value: int) -> int:
    if value < 0:
        raise ValidationError("low_stock_threshold", "must be >= 0")
    return value


def _to_images(images: Iterable[str]) -> list[str]:
    images = list(images)
    if len(images) > MAX_PRODUCT_IMAGES:
        raise ValidationError(
            "images", f"at most {MAX_PRODUCT_IMAGES} images, got {len(images)}"
        )
    return images


def _normalize_email(email: str) -> str:
    return _require_text("email", email).lower()


class CatalogService:
    """
    Catalog operations, each in its own transaction.

    Args:
        database: Owned database handle.
        engine: Movement engine; product deletion runs in its unit of work.
        default_low_stock_threshold: Applied when a product is created
            without an explicit threshold.
        supplier_reference_checks: Callables consulted before a supplier is
            deleted.  Outer packages register theirs here so the kernel does
            not import them.
    """

    def __init__(
        self,
        database: Database,
        engine: MovementEngine,
        default_low_stock_threshold: int = 0,
        supplier_reference_checks: Sequence[SupplierReferenceCheck] = (),
    ):
        self._database = database
        self._engine = engine
        self._default_threshold = _to_threshold(default_low_stock_threshold)
        self._supplier_checks = list(supplier_reference_checks)

    def add_supplier_reference_check(self, check: SupplierReferenceCheck) -> None:
        self._supplier_checks.append(check)

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def _build_product(
        self,
        sku: str,
        name: str,
        category: str = "",
        price: Any = Decimal("0"),
        low_stock_threshold: int | None = None,
        description: str = "",
        images: Iterable[str] = (),
    ) -> Product:
        if low_stock_threshold is None:
            low_stock_threshold = self._default_threshold
        return Product(
            sku=_require_text("sku", sku),
            name=_require_text("name", name),
            category=category,
            price=_to_price(price),
            low_stock_threshold=_to_threshold(low_stock_threshold),
            description=description,
            images=_to_images(images),
        )

    @staticmethod
    def _sku_taken(session: Session, sku: str, exclude_id: UUID | None = None) -> bool:
        stmt = select(Product.id).where(Product.sku == sku)
        if exclude_id is not None:
            stmt = stmt.where(Product.id != exclude_id)
        return session.execute(stmt).first() is not None

    def _insert_products(
        self,
        session: Session,
        products: list[Product],
        details: str,
        actor: str,
    ) -> list[ProductRecord]:
        log = MovementLog(session, self._engine.clock)
        seen: set[str] = set()
        for product in products:
            if product.sku in seen or self._sku_taken(session, product.sku):
                raise DuplicateSkuError(product.sku)
            seen.add(product.sku)
            session.add(product)
            session.flush()
            log.append(
                product=product,
                warehouse=None,
                movement_type=MovementType.CREATION,
                quantity_change=0,
                new_quantity=0,
                details=details,
                user=actor,
            )
        return [product.to_dto() for product in products]

    def create_product(
        self,
        sku: str,
        name: str,
        category: str = "",
        price: Any = Decimal("0"),
        low_stock_threshold: int | None = None,
        description: str = "",
        images: Iterable[str] = (),
        actor: str = "system",
    ) -> ProductRecord:
        """Create a product and log its CREATION entry."""
        product = self._build_product(
            sku, name, category, price, low_stock_threshold, description, images
        )
        with self._database.session_scope() as session:
            (record,) = self._insert_products(session, [product], CREATED_DETAILS, actor)
        logger.info("product_created", extra={"product_id": str(record.id), "sku": record.sku})
        return record

    def bulk_create_products(
        self,
        rows: Iterable[Mapping[str, Any]],
        actor: str = "system",
    ) -> list[ProductRecord]:
        """
        Create many products at once (all or nothing).

        Each row holds the keyword arguments of create_product.
        """
        products = []
        for row in rows:
            unknown = set(row) - _PRODUCT_FIELDS
            if unknown:
                raise ValidationError("product", f"unknown fields: {sorted(unknown)}")
            products.append(self._build_product(**row))
        with self._database.session_scope() as session:
            records = self._insert_products(session, products, BULK_CREATED_DETAILS, actor)
        logger.info("products_bulk_created", extra={"count": len(records)})
        return records

    def update_product(self, product_id: UUID, **changes: Any) -> ProductRecord:
        """Update product attributes in place.  Past log entries keep their snapshot."""
        unknown = set(changes) - _PRODUCT_FIELDS
        if unknown:
            raise ValidationError("product", f"unknown fields: {sorted(unknown)}")

        with self._database.session_scope() as session:
            product = session.get(Product, product_id)
            if product is None:
                raise ProductNotFoundError(str(product_id))

            if "sku" in changes:
                sku = _require_text("sku", changes["sku"])
                if self._sku_taken(session, sku, exclude_id=product_id):
                    raise DuplicateSkuError(sku)
                product.sku = sku
            if "name" in changes:
                product.name = _require_text("name", changes["name"])
            if "category" in changes:
                product.category = changes["category"]
            if "price" in changes:
                product.price = _to_price(changes["price"])
            if "low_stock_threshold" in changes:
                product.low_stock_threshold = _to_threshold(changes["low_stock_threshold"])
            if "description" in changes:
                product.description = changes["description"]
            if "images" in changes:
                product.images = _to_images(changes["images"])
            session.flush()
            record = product.to_dto()

        logger.info(
            "product_updated",
            extra={"product_id": str(product_id), "fields": sorted(changes)},
        )
        return record

    def delete_product(self, product_id: UUID, actor: str = "system") -> list[MovementRecord]:
        """
        Delete a product and its ledger rows.

        Logs one ADJUSTMENT per removed row (-quantity, new quantity 0), or
        a single zero-change ADJUSTMENT not tied to a warehouse when the
        product had no rows.  Returns the entries written.
        """
        with self._database.read_scope() as session:
            warehouse_ids = list(session.execute(select(Warehouse.id)).scalars())
        keys = [LedgerKey(product_id, wid) for wid in warehouse_ids]

        with self._engine.unit_of_work(keys, "delete_product", actor) as uow:
            product = uow.require_product(product_id)
            rows = uow.ledger.entries_for_product(product_id)
            transaction_id = self._engine.new_transaction_id(len(rows))

            entries = []
            for row in rows:
                warehouse = uow.session.get(Warehouse, row.warehouse_id)
                entries.append(
                    uow.log.append(
                        product=product,
                        warehouse=warehouse,
                        movement_type=MovementType.ADJUSTMENT,
                        quantity_change=-row.quantity,
                        new_quantity=0,
                        details=DELETED_DETAILS,
                        user=actor,
                        transaction_id=transaction_id,
                    )
                )
            if not rows:
                entries.append(
                    uow.log.append(
                        product=product,
                        warehouse=None,
                        movement_type=MovementType.ADJUSTMENT,
                        quantity_change=0,
                        new_quantity=0,
                        details=DELETED_DETAILS,
                        user=actor,
                    )
                )
            removed = uow.ledger.remove_product(product_id)
            uow.session.delete(product)
            uow.session.flush()
            records = [entry.to_dto() for entry in entries]

        logger.info(
            "product_deleted",
            extra={"product_id": str(product_id), "ledger_rows_removed": len(removed)},
        )
        return records

    def get_product(self, product_id: UUID) -> ProductRecord:
        with self._database.read_scope() as session:
            product = session.get(Product, product_id)
            if product is None:
                raise ProductNotFoundError(str(product_id))
            return product.to_dto()

    def find_product_by_sku(self, sku: str) -> ProductRecord | None:
        with self._database.read_scope() as session:
            product = session.execute(
                select(Product).where(Product.sku == sku)
            ).scalar_one_or_none()
            return product.to_dto() if product is not None else None

    def list_products(self, category: str | None = None) -> list[ProductRecord]:
        with self._database.read_scope() as session:
            stmt = select(Product).order_by(Product.sku)
            if category is not None:
                stmt = stmt.where(Product.category == category)
            return [p.to_dto() for p in session.execute(stmt).scalars()]

    # ------------------------------------------------------------------
    # Warehouses
    # ------------------------------------------------------------------

    def create_warehouse(self, name: str, location: str = "") -> WarehouseRecord:
        with self._database.session_scope() as session:
            warehouse = Warehouse(name=_require_text("name", name), location=location)
            session.add(warehouse)
            session.flush()
            record = warehouse.to_dto()
        logger.info("warehouse_created", extra={"warehouse_id": str(record.id)})
        return record

    def get_warehouse(self, warehouse_id: UUID) -> WarehouseRecord:
        with self._database.read_scope() as session:
            warehouse = session.get(Warehouse, warehouse_id)
            if warehouse is None:
                raise WarehouseNotFoundError(str(warehouse_id))
            return warehouse.to_dto()

    def list_warehouses(self) -> list[WarehouseRecord]:
        with self._database.read_scope() as session:
            stmt = select(Warehouse).order_by(Warehouse.name)
            return [w.to_dto() for w in session.execute(stmt).scalars()]

    # ------------------------------------------------------------------
    # Suppliers
    # ------------------------------------------------------------------

    def create_supplier(
        self,
        name: str,
        tax_id: str = "",
        address: str = "",
        contact_person: str = "",
        contact_email: str = "",
        contact_phone: str = "",
    ) -> SupplierRecord:
        with self._database.session_scope() as session:
            supplier = Supplier(
                name=_require_text("name", name),
                tax_id=tax_id,
                address=address,
                contact_person=contact_person,
                contact_email=contact_email,
                contact_phone=contact_phone,
            )
            session.add(supplier)
            session.flush()
            record = supplier.to_dto()
        logger.info("supplier_created", extra={"supplier_id": str(record.id)})
        return record

    def update_supplier(self, supplier_id: UUID, **changes: Any) -> SupplierRecord:
        unknown = set(changes) - _SUPPLIER_FIELDS
        if unknown:
            raise ValidationError("supplier", f"unknown fields: {sorted(unknown)}")
        if "name" in changes:
            changes["name"] = _require_text("name", changes["name"])

        with self._database.session_scope() as session:
            supplier = session.get(Supplier, supplier_id)
            if supplier is None:
                raise SupplierNotFoundError(str(supplier_id))
            for field, value in changes.items():
                setattr(supplier, field, value)
            session.flush()
            return supplier.to_dto()

    def delete_supplier(self, supplier_id: UUID) -> None:
        with self._database.session_scope() as session:
            supplier = session.get(Supplier, supplier_id)
            if supplier is None:
                raise SupplierNotFoundError(str(supplier_id))
            if any(check(session, supplier_id) for check in self._supplier_checks):
                raise InvalidOperationError(
                    f"Supplier {supplier_id} is referenced by purchasing documents"
                )
            session.delete(supplier)
        logger.info("supplier_deleted", extra={"supplier_id": str(supplier_id)})

    def get_supplier(self, supplier_id: UUID) -> SupplierRecord:
        with self._database.read_scope() as session:
            supplier = session.get(Supplier, supplier_id)
            if supplier is None:
                raise SupplierNotFoundError(str(supplier_id))
            return supplier.to_dto()

    def list_suppliers(self) -> list[SupplierRecord]:
        with self._database.read_scope() as session:
            stmt = select(Supplier).order_by(Supplier.name)
            return [s.to_dto() for s in session.execute(stmt).scalars()]

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    @staticmethod
    def _warehouse_ids_of(session: Session, user_id: UUID) -> tuple[UUID, ...]:
        return tuple(
            session.execute(
                select(UserWarehouseAccess.warehouse_id)
                .where(UserWarehouseAccess.user_id == user_id)
                .order_by(UserWarehouseAccess.warehouse_id)
            ).scalars()
        )

    @staticmethod
    def _set_access(session: Session, user_id: UUID, warehouse_ids: Iterable[UUID]) -> None:
        session.execute(
            delete(UserWarehouseAccess).where(UserWarehouseAccess.user_id == user_id)
        )
        for warehouse_id in dict.fromkeys(warehouse_ids):
            if session.get(Warehouse, warehouse_id) is None:
                raise WarehouseNotFoundError(str(warehouse_id))
            session.add(UserWarehouseAccess(user_id=user_id, warehouse_id=warehouse_id))
        session.flush()

    @staticmethod
    def _email_taken(session: Session, email: str, exclude_id: UUID | None = None) -> bool:
        stmt = select(User.id).where(User.email == email)
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        return session.execute(stmt).first() is not None

    def create_user(
        self,
        name: str,
        email: str,
        role: UserRole,
        password: str,
        warehouse_ids: Iterable[UUID] = (),
    ) -> UserRecord:
        email = _normalize_email(email)
        role = UserRole(role)
        with self._database.session_scope() as session:
            if self._email_taken(session, email):
                raise DuplicateEmailError(email)
            user = User(
                name=_require_text("name", name),
                email=email,
                role=role.value,
                password_hash=hash_password(_require_text("password", password)),
            )
            session.add(user)
            session.flush()
            self._set_access(session, user.id, warehouse_ids)
            record = user.to_dto(self._warehouse_ids_of(session, user.id))
        logger.info("user_created", extra={"user_id": str(record.id), "role": role.value})
        return record

    def update_user(
        self,
        user_id: UUID,
        name: str | None = None,
        email: str | None = None,
        role: UserRole | None = None,
        password: str | None = None,
        warehouse_ids: Iterable[UUID] | None = None,
    ) -> UserRecord:
        """Update a user.  ``warehouse_ids``, when given, replaces the access set."""
        with self._database.session_scope() as session:
            user = session.get(User, user_id)
            if user is None:
                raise UserNotFoundError(str(user_id))
            if name is not None:
                user.name = _require_text("name", name)
            if email is not None:
                email = _normalize_email(email)
                if self._email_taken(session, email, exclude_id=user_id):
                    raise DuplicateEmailError(email)
                user.email = email
            if role is not None:
                user.role = UserRole(role).value
            if password:
                user.password_hash = hash_password(password)
            session.flush()
            if warehouse_ids is not None:
                self._set_access(session, user_id, warehouse_ids)
            record = user.to_dto(self._warehouse_ids_of(session, user_id))
        logger.info("user_updated", extra={"user_id": str(user_id)})
        return record

    def delete_user(self, user_id: UUID, acting_user_id: UUID | None = None) -> None:
        if acting_user_id is not None and acting_user_id == user_id:
            raise InvalidOperationError("A user cannot delete their own account")
        with self._database.session_scope() as session:
            user = session.get(User, user_id)
            if user is None:
                raise UserNotFoundError(str(user_id))
            session.execute(
                delete(UserWarehouseAccess).where(UserWarehouseAccess.user_id == user_id)
            )
            session.delete(user)
        logger.info("user_deleted", extra={"user_id": str(user_id)})

    def get_user(self, user_id: UUID) -> UserRecord:
        with self._database.read_scope() as session:
            user = session.get(User, user_id)
            if user is None:
                raise UserNotFoundError(str(user_id))
            return user.to_dto(self._warehouse_ids_of(session, user_id))

    def list_users(self) -> list[UserRecord]:
        with self._database.read_scope() as session:
            users = session.execute(select(User).order_by(User.name)).scalars().all()
            return [u.to_dto(self._warehouse_ids_of(session, u.id)) for u in users]

    def permitted_warehouses(self, user_id: UUID) -> list[WarehouseRecord]:
        """Warehouses a user may operate on.  Administrators see all."""
        with self._database.read_scope() as session:
            user = session.get(User, user_id)
            if user is None:
                raise UserNotFoundError(str(user_id))
            stmt = select(Warehouse).order_by(Warehouse.name)
            if UserRole(user.role) != UserRole.ADMINISTRATOR:
                stmt = stmt.join(
                    UserWarehouseAccess,
                    UserWarehouseAccess.warehouse_id == Warehouse.id,
                ).where(UserWarehouseAccess.user_id == user_id)
            return [w.to_dto() for w in session.execute(stmt).scalars()]

    def authenticate(self, email: str, password: str) -> UserRecord:
        """Trivial credential check.  Raises AuthenticationError on any mismatch."""
        normalized = (email or "").strip().lower()
        with self._database.read_scope() as session:
            user = session.execute(
                select(User).where(User.email == normalized)
            ).scalar_one_or_none()
            if user is None or not verify_password(password, user.password_hash):
                logger.warning("authentication_failed", extra={"email": normalized})
                raise AuthenticationError(normalized)
            record = user.to_dto(self._warehouse_ids_of(session, user.id))
        logger.info("user_authenticated", extra={"user_id": str(record.id)})
        return record
