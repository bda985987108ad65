"""ORM models for the stock kernel."""

from stock_kernel.models.catalog import (
    MAX_PRODUCT_IMAGES,
    Product,
    Supplier,
    User,
    UserWarehouseAccess,
    Warehouse,
)
from stock_kernel.models.ledger import StockLedgerEntry
from stock_kernel.models.movement import MovementLogEntry
from stock_kernel.models.sequence import SequenceCounter

__all__ = [
    "MAX_PRODUCT_IMAGES",
    "Product",
    "Supplier",
    "User",
    "UserWarehouseAccess",
    "Warehouse",
    "StockLedgerEntry",
    "MovementLogEntry",
    "SequenceCounter",
]
