"""Kernel services: ledger, movement log, movement engine and catalogs."""

from stock_kernel.services.catalog_service import CatalogService
from stock_kernel.services.ledger_service import StockLedger
from stock_kernel.services.lock_manager import LedgerLockManager
from stock_kernel.services.movement_engine import (
    MovementEngine,
    UnitOfWork,
    signed_change,
)
from stock_kernel.services.movement_log import MovementLog
from stock_kernel.services.sequence_service import SequenceService

__all__ = [
    "CatalogService",
    "StockLedger",
    "LedgerLockManager",
    "MovementEngine",
    "UnitOfWork",
    "signed_change",
    "MovementLog",
    "SequenceService",
]
