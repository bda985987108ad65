"""
Stock Kernel

A multi-warehouse stock ledger with an append-only movement log:
- Per-warehouse quantities derived from and reconciled against the log
- Atomic compound movements (transfer, bulk transfer, receipt)
- Pair-scoped locking for concurrent callers
- Immutable, denormalised movement history
"""

__version__ = "0.1.0"
