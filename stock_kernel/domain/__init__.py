"""Pure domain types: values, DTOs and the injectable clock."""

from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.dtos import (
    MovementRecord,
    ProductRecord,
    SupplierRecord,
    TransferResult,
    UserRecord,
    WarehouseRecord,
)
from stock_kernel.domain.values import (
    NO_WAREHOUSE,
    LedgerKey,
    MovementType,
    ReceiptLine,
    TransferItem,
    UserRole,
)
from stock_kernel.domain.workflow import Transition, Workflow

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "MovementRecord",
    "ProductRecord",
    "SupplierRecord",
    "TransferResult",
    "UserRecord",
    "WarehouseRecord",
    "NO_WAREHOUSE",
    "LedgerKey",
    "MovementType",
    "ReceiptLine",
    "TransferItem",
    "UserRole",
    "Transition",
    "Workflow",
]
