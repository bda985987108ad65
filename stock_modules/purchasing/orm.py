"""
SQLAlchemy ORM persistence models for the Purchasing module.

Responsibility
--------------
Database-backed persistence for purchase orders and their lines, issuing
company profiles and scheduled purchases.

Architecture position
---------------------
**Modules layer** -- ORM models consumed by ``PurchaseOrderService``.
Inherits from the kernel ``TrackedBase`` / ``Base``.

Invariants enforced
-------------------
* Prices and totals are ``Decimal`` (Numeric(18, 2)) -- never float.
* ``status`` is stored as String(20) holding a ``PurchaseOrderStatus`` value.
* ``order_number`` is unique.
* A (purchase order, product) pair appears on at most one line.
* Lines carry the product id, name and SKU as snapshots with NO foreign key
  to ``products``, so deleting a product leaves past orders readable.
* ``issuing_company_id``, when set, references an issuing company profile.
* ``number`` is the raw counter value behind ``order_number`` and defines
  list order; the formatted number is for display only.
* Scheduled purchase items snapshot name and SKU like order lines.

Audit relevance
---------------
``receipt_transaction_id`` links a received order to the movement log
entries its receipt posted.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base, TrackedBase, UUIDString


class IssuingCompanyModel(TrackedBase):
    """
    One of our own companies that can issue purchase orders.

    ``details`` is an ordered list of {"label", "value"} pairs printed on the
    order header (tax id, address, phone ...).
    """

    __tablename__ = "issuing_companies"

    profile_name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    details: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    def to_dto(self):
        from stock_modules.purchasing.models import CompanyDetail, IssuingCompany

        return IssuingCompany(
            id=self.id,
            profile_name=self.profile_name,
            details=tuple(CompanyDetail(d["label"], d["value"]) for d in self.details),
        )


class PurchaseOrderModel(TrackedBase):
    """
    A purchase order.

    Maps to the ``PurchaseOrder`` DTO in ``stock_modules.purchasing.models``.
    """

    __tablename__ = "purchase_orders"

    __table_args__ = (
        UniqueConstraint("order_number", name="uq_purchase_order_number"),
        UniqueConstraint("number", name="uq_purchase_order_counter"),
        Index("idx_purchase_order_supplier", "supplier_id"),
        Index("idx_purchase_order_status", "status"),
    )

    order_number: Mapped[str] = mapped_column(String(50), nullable=False)
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    supplier_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("suppliers.id"), nullable=False
    )
    issuing_company_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("issuing_companies.id"), nullable=True
    )
    destination_warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("warehouses.id"), nullable=False
    )
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    requester: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    total: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    # Receipt
    received_at: Mapped[datetime | None] = mapped_column(nullable=True)
    received_warehouse_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    receipt_transaction_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    lines: Mapped[list["PurchaseOrderLineModel"]] = relationship(
        "PurchaseOrderLineModel",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderLineModel.line_number",
        lazy="selectin",
    )

    def to_dto(self):
        from stock_modules.purchasing.models import (
            PurchaseOrder,
            PurchaseOrderStatus,
        )

        return PurchaseOrder(
            id=self.id,
            order_number=self.order_number,
            supplier_id=self.supplier_id,
            issuing_company_id=self.issuing_company_id,
            destination_warehouse_id=self.destination_warehouse_id,
            issue_date=self.issue_date,
            status=PurchaseOrderStatus(self.status),
            lines=tuple(line.to_dto() for line in self.lines),
            total=self.total,
            delivery_date=self.delivery_date,
            requester=self.requester,
            received_at=self.received_at,
            received_warehouse_id=self.received_warehouse_id,
            receipt_transaction_id=self.receipt_transaction_id,
        )

    def __repr__(self) -> str:
        return f"<PurchaseOrderModel {self.order_number} [{self.status}]>"


class PurchaseOrderLineModel(Base):
    """One product line of a purchase order."""

    __tablename__ = "purchase_order_lines"

    __table_args__ = (
        UniqueConstraint("purchase_order_id", "line_number", name="uq_po_line_number"),
        UniqueConstraint("purchase_order_id", "product_id", name="uq_po_line_product"),
        CheckConstraint("quantity > 0", name="ck_po_line_quantity_positive"),
        CheckConstraint("price >= 0", name="ck_po_line_price_non_negative"),
    )

    purchase_order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("purchase_orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(nullable=False)

    purchase_order: Mapped["PurchaseOrderModel"] = relationship(
        "PurchaseOrderModel",
        back_populates="lines",
    )

    def to_dto(self):
        from stock_modules.purchasing.models import PurchaseOrderLine

        return PurchaseOrderLine(
            line_number=self.line_number,
            product_id=self.product_id,
            product_name=self.product_name,
            sku=self.sku,
            quantity=self.quantity,
            price=self.price,
        )


class ScheduledPurchaseModel(TrackedBase):
    """A purchase planned for a date, not yet turned into an order."""

    __tablename__ = "scheduled_purchases"

    __table_args__ = (Index("idx_scheduled_purchase_date", "scheduled_date"),)

    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    supplier_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("suppliers.id"), nullable=True
    )
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)

    items: Mapped[list["ScheduledPurchaseItemModel"]] = relationship(
        "ScheduledPurchaseItemModel",
        back_populates="scheduled_purchase",
        cascade="all, delete-orphan",
        order_by="ScheduledPurchaseItemModel.line_number",
        lazy="selectin",
    )

    def to_dto(self):
        from stock_modules.purchasing.models import ScheduledPurchase

        return ScheduledPurchase(
            id=self.id,
            scheduled_date=self.scheduled_date,
            title=self.title,
            supplier_id=self.supplier_id,
            notes=self.notes,
            created_by=self.created_by,
            items=tuple(item.to_dto() for item in self.items),
        )


class ScheduledPurchaseItemModel(Base):
    __tablename__ = "scheduled_purchase_items"

    __table_args__ = (
        UniqueConstraint("scheduled_purchase_id", "line_number", name="uq_sp_item_line"),
        CheckConstraint("quantity > 0", name="ck_sp_item_quantity_positive"),
    )

    scheduled_purchase_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("scheduled_purchases.id", ondelete="CASCADE"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    scheduled_purchase: Mapped["ScheduledPurchaseModel"] = relationship(
        "ScheduledPurchaseModel",
        back_populates="items",
    )

    def to_dto(self):
        from stock_modules.purchasing.models import ScheduledPurchaseItem

        return ScheduledPurchaseItem(
            product_id=self.product_id,
            product_name=self.product_name,
            sku=self.sku,
            quantity=self.quantity,
        )
