"""
Data Transfer Objects returned by kernel services.

Responsibility:
    Frozen dataclasses handed back to callers instead of ORM instances, so
    nothing outside a transaction scope can mutate ledger or log rows.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from stock_kernel.domain.values import MovementType, UserRole


@dataclass(frozen=True)
class ProductRecord:
    id: UUID
    sku: str
    name: str
    category: str
    price: Decimal
    low_stock_threshold: int
    description: str = ""
    images: tuple[str, ...] = ()


@dataclass(frozen=True)
class WarehouseRecord:
    id: UUID
    name: str
    location: str


@dataclass(frozen=True)
class SupplierRecord:
    id: UUID
    name: str
    tax_id: str
    address: str = ""
    contact_person: str = ""
    contact_email: str = ""
    contact_phone: str = ""


@dataclass(frozen=True)
class UserRecord:
    """A catalog user.  The password hash never leaves the kernel."""

    id: UUID
    name: str
    email: str
    role: UserRole
    warehouse_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class MovementRecord:
    """
    Immutable snapshot of one movement log entry.

    product_name, sku and warehouse_name are the values captured when the
    movement was written, not the current catalog values.
    """

    id: UUID
    sequence: int
    timestamp: datetime
    product_id: UUID | None
    product_name: str
    sku: str
    warehouse_id: UUID | None
    warehouse_name: str
    movement_type: MovementType
    quantity_change: int
    new_quantity_in_warehouse: int
    details: str
    user: str
    transaction_id: UUID | None = None


@dataclass(frozen=True)
class TransferResult:
    """
    Outcome of a transfer or bulk transfer.

    records holds EXIT/ENTRY pairs in append order: for each item, the EXIT
    at the source followed by the ENTRY at the destination.
    """

    transaction_id: UUID
    records: tuple[MovementRecord, ...] = field(default_factory=tuple)

    @property
    def exits(self) -> tuple[MovementRecord, ...]:
        return tuple(r for r in self.records if r.movement_type == MovementType.EXIT)

    @property
    def entries(self) -> tuple[MovementRecord, ...]:
        return tuple(r for r in self.records if r.movement_type == MovementType.ENTRY)
