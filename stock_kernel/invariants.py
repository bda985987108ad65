"""
Kernel Invariants Contract.

These invariants are structural law for the stock ledger. They are enforced
by the movement engine, the ledger primitive, the ORM immutability
listeners and database check constraints. No setting may override them.

This module exists solely to declare them explicitly. Enforcement is
distributed across MovementEngine, StockLedger, MovementLog and
db/immutability.py.
"""

from enum import Enum, unique


@unique
class LedgerInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    NON_NEGATIVE_QUANTITY = "non_negative_quantity"
    """Every ledger row has quantity >= 0 at all times. Enforced by
    MovementEngine validation, StockLedger.apply_delta's floor and a
    CHECK constraint on stock_ledger."""

    LEDGER_LOG_COUPLING = "ledger_log_coupling"
    """Every ledger mutation is written in the same transaction as its
    movement log entry. Enforced by MovementEngine.unit_of_work, the only
    path that hands out a StockLedger."""

    BALANCED_TRANSFER = "balanced_transfer"
    """For every product moved by a transfer or bulk transfer, total EXIT
    magnitude at the source equals total ENTRY magnitude at the
    destination. Enforced by MovementEngine."""

    APPEND_ONLY_LOG = "append_only_log"
    """Movement log entries are never updated or deleted. Enforced by
    ORM listeners (stock_kernel.db.immutability)."""

    ALL_OR_NOTHING = "all_or_nothing"
    """A compound operation either applies every write or none. Enforced by
    validating before the first write and by the transaction scope."""

    TRANSACTION_GROUPING = "transaction_grouping"
    """transaction_id is set iff one operation produced two or more log
    entries. Enforced by MovementEngine.new_transaction_id()."""

    SEQUENCE_MONOTONICITY = "sequence_monotonicity"
    """Log entry sequence numbers strictly increase in append order.
    Enforced by SequenceService with a locked counter row."""


ALL_LEDGER_INVARIANTS: frozenset[LedgerInvariant] = frozenset(LedgerInvariant)

# The kernel package may not import from these packages.
# Enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "stock_services",
    "stock_config",
    "stock_modules",
)
