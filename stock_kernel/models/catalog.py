"""
Module: stock_kernel.models.catalog
Responsibility: ORM persistence for reference data -- products, warehouses,
    suppliers, users and user warehouse access.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py.  MUST NOT import from services/, selectors/, or outer
    layers.

Invariants enforced:
    - Product.sku is unique (UNIQUE constraint).
    - Product.price >= 0 and Product.low_stock_threshold >= 0 (CHECK).
    - User.email is unique (UNIQUE constraint).
    - A (user, warehouse) access grant appears at most once.

Failure modes:
    - IntegrityError on duplicate SKU / email (the catalog service checks
      first and raises DuplicateSkuError / DuplicateEmailError).
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, TrackedBase, UUIDString
from stock_kernel.domain.values import UserRole

MAX_PRODUCT_IMAGES = 4


class Product(TrackedBase):
    """
    A stock-keeping unit.

    Deleting a product removes its ledger rows (see CatalogService); its
    movement log entries remain, carrying the name and SKU captured when each
    movement was written.
    """

    __tablename__ = "products"

    __table_args__ = (
        UniqueConstraint("sku", name="uq_product_sku"),
        CheckConstraint("price >= 0", name="ck_product_price_non_negative"),
        CheckConstraint(
            "low_stock_threshold >= 0",
            name="ck_product_threshold_non_negative",
        ),
        Index("idx_product_category", "category"),
    )

    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    low_stock_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # Ordered list of image URLs, at most MAX_PRODUCT_IMAGES
    images: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    def to_dto(self):
        from stock_kernel.domain.dtos import ProductRecord

        return ProductRecord(
            id=self.id,
            sku=self.sku,
            name=self.name,
            category=self.category,
            price=self.price,
            low_stock_threshold=self.low_stock_threshold,
            description=self.description,
            images=tuple(self.images or ()),
        )

    def __repr__(self) -> str:
        return f"<Product {self.sku} {self.name!r}>"


class Warehouse(TrackedBase):
    """A physical stock location.  No deletion operation exists."""

    __tablename__ = "warehouses"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    def to_dto(self):
        from stock_kernel.domain.dtos import WarehouseRecord

        return WarehouseRecord(id=self.id, name=self.name, location=self.location)

    def __repr__(self) -> str:
        return f"<Warehouse {self.name!r}>"


class Supplier(TrackedBase):
    """A vendor that purchase orders are placed with."""

    __tablename__ = "suppliers"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Taxpayer registration number (RUC)
    tax_id: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    address: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    contact_person: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    contact_email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    contact_phone: Mapped[str] = mapped_column(String(50), nullable=False, default="")

    def to_dto(self):
        from stock_kernel.domain.dtos import SupplierRecord

        return SupplierRecord(
            id=self.id,
            name=self.name,
            tax_id=self.tax_id,
            address=self.address,
            contact_person=self.contact_person,
            contact_email=self.contact_email,
            contact_phone=self.contact_phone,
        )


class User(TrackedBase):
    """An application user.  Acts as the actor recorded on movements."""

    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("email", name="uq_user_email"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(200), nullable=False)

    def to_dto(self, warehouse_ids: tuple[UUID, ...] = ()):
        from stock_kernel.domain.dtos import UserRecord

        return UserRecord(
            id=self.id,
            name=self.name,
            email=self.email,
            role=UserRole(self.role),
            warehouse_ids=warehouse_ids,
        )


class UserWarehouseAccess(Base):
    """Grants a user access to one warehouse."""

    __tablename__ = "user_warehouse_access"

    __table_args__ = (
        UniqueConstraint("user_id", "warehouse_id", name="uq_user_warehouse"),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("warehouses.id"),
        nullable=False,
    )
