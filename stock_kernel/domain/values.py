"""
Value types shared by the ledger, the log and the catalogs.

Responsibility:
    Enumerations and small immutable value objects with no I/O.  Imported by
    models/, services/, selectors/ and outer packages alike.

Architecture position:
    Kernel > Domain -- pure, zero I/O.
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class MovementType(str, Enum):
    """Kind of movement recorded in the log.

    Sign convention of quantity_change:
        ENTRY       > 0
        EXIT        < 0
        ADJUSTMENT  either sign
        CREATION    == 0 (product lifecycle marker, no ledger effect)
    """

    ENTRY = "entry"
    EXIT = "exit"
    ADJUSTMENT = "adjustment"
    CREATION = "creation"


class UserRole(str, Enum):
    """Access level of a catalog user."""

    ADMINISTRATOR = "administrator"
    MANAGER = "manager"
    EMPLOYEE = "employee"


# Warehouse name recorded on log entries that are not tied to a warehouse.
NO_WAREHOUSE = "N/A"


@dataclass(frozen=True)
class LedgerKey:
    """Composite key of a ledger row.  Orders by string form for lock ordering."""

    product_id: UUID
    warehouse_id: UUID

    def sort_key(self) -> tuple[str, str]:
        return (str(self.product_id), str(self.warehouse_id))


@dataclass(frozen=True)
class TransferItem:
    """One line of a bulk transfer request."""

    product_id: UUID
    quantity: int


@dataclass(frozen=True)
class ReceiptLine:
    """One line to post as an ENTRY when goods are received."""

    product_id: UUID
    quantity: int
