"""
Purchasing Domain Models.

The nouns of purchasing: purchase orders, their lines and receipts, the
companies that issue orders, and purchases scheduled for a later date.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from stock_kernel.domain.dtos import MovementRecord


class PurchaseOrderStatus(Enum):
    """Purchase order lifecycle states."""
    DRAFT = "draft"
    ISSUED = "issued"
    RECEIVED = "received"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class NewPurchaseOrderLine:
    """A requested line when creating a purchase order."""
    product_id: UUID
    quantity: int
    price: Decimal


@dataclass(frozen=True)
class PurchaseOrderLine:
    """A line on a purchase order.  Name and SKU are snapshots taken at creation."""
    line_number: int
    product_id: UUID
    product_name: str
    sku: str
    quantity: int
    price: Decimal

    @property
    def total(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class PurchaseOrder:
    """A purchase order."""
    id: UUID
    order_number: str
    supplier_id: UUID
    issuing_company_id: UUID | None
    destination_warehouse_id: UUID
    issue_date: date
    status: PurchaseOrderStatus
    lines: tuple[PurchaseOrderLine, ...] = field(default_factory=tuple)
    total: Decimal = Decimal("0")
    delivery_date: date | None = None
    requester: str = ""
    received_at: datetime | None = None
    received_warehouse_id: UUID | None = None
    receipt_transaction_id: UUID | None = None


@dataclass(frozen=True)
class PurchaseOrderReceipt:
    """Result of receiving a purchase order: the order and the ENTRY movements posted."""
    purchase_order: PurchaseOrder
    movements: tuple[MovementRecord, ...]


@dataclass(frozen=True)
class CompanyDetail:
    label: str
    value: str


@dataclass(frozen=True)
class IssuingCompany:
    """A company profile printed in the header of the orders it issues."""
    id: UUID
    profile_name: str
    details: tuple[CompanyDetail, ...] = ()


@dataclass(frozen=True)
class NewScheduledPurchaseItem:
    product_id: UUID
    quantity: int


@dataclass(frozen=True)
class ScheduledPurchaseItem:
    product_id: UUID
    product_name: str
    sku: str
    quantity: int


@dataclass(frozen=True)
class ScheduledPurchase:
    """
    A purchase planned for ``scheduled_date``.

    Turning it into an order needs a supplier and at least one item.
    """
    id: UUID
    scheduled_date: date
    title: str
    supplier_id: UUID | None
    notes: str
    created_by: str
    items: tuple[ScheduledPurchaseItem, ...] = ()

    @property
    def ready_for_order(self) -> bool:
        return self.supplier_id is not None and bool(self.items)
