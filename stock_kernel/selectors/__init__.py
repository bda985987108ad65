"""Read-only query selectors."""

from stock_kernel.selectors.ledger_selector import (
    LedgerSelector,
    LowStockItem,
    StockPosition,
)
from stock_kernel.selectors.movement_selector import (
    LedgerDiscrepancy,
    MovementSelector,
)

__all__ = [
    "LedgerSelector",
    "LowStockItem",
    "StockPosition",
    "LedgerDiscrepancy",
    "MovementSelector",
]
